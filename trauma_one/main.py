import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import FileResponse, JSONResponse

from trauma_one.backend import close_backend, get_backend, init_backend
from trauma_one.errors import (
    FormValidationError,
    RecordNotFoundError,
    SessionExpiredError,
    StoreError,
)
from trauma_one.routers import admissions, auth, dashboard, patients, registry, wizard
from trauma_one.services.list_state import views
from trauma_one.services.storage import LocalStorage
from trauma_one.services.wizard import wizards

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Trauma One...")
    await init_backend()
    logger.info("Backend initialized")
    yield
    wizards.clear()
    views.clear()
    await close_backend()
    logger.info("Trauma One shut down")


app = FastAPI(
    title="Trauma One",
    description="Trauma front desk - patient registry and admissions",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(auth.router)
app.include_router(dashboard.router)
app.include_router(patients.router)
app.include_router(admissions.router)
app.include_router(wizard.router)
app.include_router(registry.router)


@app.exception_handler(FormValidationError)
async def form_validation_handler(request: Request, exc: FormValidationError):
    return JSONResponse(status_code=422, content={"detail": exc.message})


@app.exception_handler(RecordNotFoundError)
async def not_found_handler(request: Request, exc: RecordNotFoundError):
    return JSONResponse(status_code=404, content={"detail": exc.message})


@app.exception_handler(SessionExpiredError)
async def session_expired_handler(request: Request, exc: SessionExpiredError):
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() == "bearer" and token:
        backend = await get_backend()
        backend.sessions.expire(token)
    logger.warning("Session expired for %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=401,
        content={"detail": "Session expired", "redirect": "/login"},
    )


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error("Store error on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=502, content={"detail": exc.message})


@app.get("/health")
async def health():
    backend = await get_backend()
    return {"status": "ok", "backend": backend.engine}


@app.get("/media/{path}")
async def serve_media(path: str, token: str):
    """Serve a locally stored object behind a signed URL."""
    backend = await get_backend()
    if not isinstance(backend.storage, LocalStorage):
        raise HTTPException(status_code=404, detail="Not found")
    target = backend.storage.resolve(path, token)
    if target is None:
        raise HTTPException(status_code=403, detail="Invalid or expired link")
    return FileResponse(target)
