import logging

from fastapi import APIRouter, Depends, HTTPException

from trauma_one.backend import get_backend
from trauma_one.dependencies import require_session
from trauma_one.errors import AuthError
from trauma_one.models.auth import AuthSession, LoginRequest
from trauma_one.services.list_state import views
from trauma_one.services.wizard import wizards

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=AuthSession)
async def login(body: LoginRequest):
    """Sign in with email and password."""
    backend = await get_backend()
    try:
        return await backend.sessions.sign_in(body.email, body.password)
    except AuthError as e:
        logger.info("Rejected sign-in for %s", body.email)
        raise HTTPException(status_code=401, detail=e.message) from None


@router.get("/session", response_model=AuthSession)
async def current_session(session: AuthSession = Depends(require_session)):
    return session


@router.post("/logout")
async def logout(session: AuthSession = Depends(require_session)):
    backend = await get_backend()
    await backend.sessions.sign_out(session.access_token)
    wizards.discard_owned_by(session.user.id)
    views.discard_owned_by(session.user.id)
    return {"status": "signed_out"}
