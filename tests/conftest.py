import os

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# In-memory local backend and no hosted services for tests
os.environ["SUPABASE_URL"] = ""
os.environ["SUPABASE_ANON_KEY"] = ""
os.environ["DATABASE_PATH"] = ":memory:"
os.environ["SEED_DEMO_DATA"] = "false"

from trauma_one.backend import close_backend, init_backend
from trauma_one.main import app
from trauma_one.services.list_state import views
from trauma_one.services.repositories import AdmissionRepository, PatientRepository
from trauma_one.services.wizard import wizards

LOGIN = {"email": "frontdesk@traumaone.local", "password": "traumaone"}


@pytest_asyncio.fixture
async def backend(tmp_path):
    """Provide a fresh local backend (in-memory SQLite, temp storage dir) per test."""
    import trauma_one.backend as backend_mod

    await close_backend()

    # Override module-level config directly (avoids fragile importlib.reload)
    backend_mod.SUPABASE_URL = ""
    backend_mod.DATABASE_PATH = ":memory:"
    backend_mod.SEED_DEMO_DATA = False
    backend_mod.LOCAL_STORAGE_DIR = str(tmp_path / "uploads")
    backend_mod.LOCAL_AUTH_EMAIL = LOGIN["email"]
    backend_mod.LOCAL_AUTH_PASSWORD = LOGIN["password"]

    await init_backend()
    yield await backend_mod.get_backend()
    wizards.clear()
    views.clear()
    await close_backend()


@pytest.fixture
def store(backend):
    return backend.store


@pytest.fixture
def patient_repo(store):
    return PatientRepository(store)


@pytest.fixture
def admission_repo(store, patient_repo):
    return AdmissionRepository(store, patient_repo)


@pytest_asyncio.fixture
async def async_client(backend):
    """Provide an async httpx client for async HTTP tests."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def credentials():
    return dict(LOGIN)


@pytest_asyncio.fixture
async def auth_headers(async_client, credentials):
    resp = await async_client.post("/api/auth/login", json=credentials)
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@pytest_asyncio.fixture
async def authed_client(async_client, auth_headers):
    """Async client that sends a signed-in bearer token on every request."""
    async_client.headers.update(auth_headers)
    return async_client
