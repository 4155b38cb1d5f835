from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from trauma_one.backend import get_backend
from trauma_one.errors import AuthError
from trauma_one.models.auth import AuthSession
from trauma_one.services.repositories import AdmissionRepository, PatientRepository
from trauma_one.services.storage import StorageProvider

bearer = HTTPBearer(auto_error=False)


async def require_session(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
) -> AuthSession:
    """The caller's live session. Expired sessions surface as SessionExpiredError."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    backend = await get_backend()
    try:
        return await backend.sessions.current(credentials.credentials)
    except AuthError as e:
        raise HTTPException(status_code=401, detail=e.message) from e


async def get_patient_repository(
    session: AuthSession = Depends(require_session),
) -> PatientRepository:
    backend = await get_backend()
    return PatientRepository(backend.store.for_session(session.access_token))


async def get_admission_repository(
    session: AuthSession = Depends(require_session),
    patients: PatientRepository = Depends(get_patient_repository),
) -> AdmissionRepository:
    backend = await get_backend()
    return AdmissionRepository(backend.store.for_session(session.access_token), patients)


async def get_storage(
    session: AuthSession = Depends(require_session),
) -> StorageProvider:
    backend = await get_backend()
    return backend.storage.for_session(session.access_token)
