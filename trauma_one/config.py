import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Hosted backend (Supabase-style: PostgREST rows, GoTrue auth, object storage).
# When SUPABASE_URL is empty the service runs against the local backend below.
SUPABASE_URL = os.getenv("SUPABASE_URL", "").rstrip("/")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "")
SUPABASE_TIMEOUT = float(os.getenv("SUPABASE_TIMEOUT", "15"))

# Object storage
STORAGE_BUCKET = os.getenv("STORAGE_BUCKET", "avatar")
SIGNED_URL_TTL_SECONDS = int(os.getenv("SIGNED_URL_TTL_SECONDS", "3600"))

BASE_DIR = Path(__file__).resolve().parent.parent

# Local backend (development and tests)
DATABASE_PATH = os.getenv("DATABASE_PATH", "trauma_one.db")
LOCAL_STORAGE_DIR = os.getenv("LOCAL_STORAGE_DIR", str(BASE_DIR / "data" / "uploads"))
LOCAL_AUTH_EMAIL = os.getenv("LOCAL_AUTH_EMAIL", "frontdesk@traumaone.local")
LOCAL_AUTH_PASSWORD = os.getenv("LOCAL_AUTH_PASSWORD", "traumaone")
LOCAL_SIGNING_KEY = os.getenv("LOCAL_SIGNING_KEY", "change-me-in-production")
LOCAL_SESSION_TTL_SECONDS = int(os.getenv("LOCAL_SESSION_TTL_SECONDS", "3600"))
SEED_DEMO_DATA = os.getenv("SEED_DEMO_DATA", "true").lower() in ("1", "true", "yes", "on")

# Registry views
ADMISSIONS_PAGE_SIZE = int(os.getenv("ADMISSIONS_PAGE_SIZE", "10"))
PATIENTS_PAGE_SIZE = int(os.getenv("PATIENTS_PAGE_SIZE", "15"))
QUICK_ADD_REQUIRES_BIRTHDATE = os.getenv(
    "QUICK_ADD_REQUIRES_BIRTHDATE", "true"
).lower() in ("1", "true", "yes", "on")
WIZARD_IDLE_TTL_SECONDS = int(os.getenv("WIZARD_IDLE_TTL_SECONDS", "3600"))
