from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

import aiosqlite
import httpx

from trauma_one.config import (
    DATABASE_PATH,
    LOCAL_AUTH_EMAIL,
    LOCAL_AUTH_PASSWORD,
    LOCAL_SESSION_TTL_SECONDS,
    LOCAL_SIGNING_KEY,
    LOCAL_STORAGE_DIR,
    SEED_DEMO_DATA,
    STORAGE_BUCKET,
    SUPABASE_ANON_KEY,
    SUPABASE_TIMEOUT,
    SUPABASE_URL,
)
from trauma_one.services.auth import AuthProvider, LocalAuth, SupabaseAuth
from trauma_one.services.query import TableQuery
from trauma_one.services.session import SessionManager
from trauma_one.services.storage import LocalStorage, StorageProvider, SupabaseStorage
from trauma_one.services.store import PostgrestStore, SQLiteStore, StoreAdapter

logger = logging.getLogger(__name__)


@dataclass
class Backend:
    """The collaborators every request needs: rows, auth and object storage."""
    engine: str
    store: StoreAdapter
    auth: AuthProvider
    storage: StorageProvider
    sessions: SessionManager
    http: httpx.AsyncClient | None = None

    async def close(self) -> None:
        await self.sessions.close()
        if isinstance(self.store, SQLiteStore):
            await self.store.close()
        if self.http is not None:
            await self.http.aclose()


_backend: Backend | None = None


async def get_backend() -> Backend:
    global _backend
    if _backend is None:
        if SUPABASE_URL:
            if not SUPABASE_ANON_KEY:
                raise RuntimeError("SUPABASE_URL is set but SUPABASE_ANON_KEY is empty.")
            client = httpx.AsyncClient(timeout=SUPABASE_TIMEOUT)
            auth = SupabaseAuth(client, SUPABASE_URL, SUPABASE_ANON_KEY)
            _backend = Backend(
                engine="supabase",
                store=PostgrestStore(client, SUPABASE_URL, SUPABASE_ANON_KEY),
                auth=auth,
                storage=SupabaseStorage(client, SUPABASE_URL, SUPABASE_ANON_KEY, STORAGE_BUCKET),
                sessions=SessionManager(auth),
                http=client,
            )
            logger.info("Using hosted backend at %s", SUPABASE_URL)
        else:
            conn = await aiosqlite.connect(DATABASE_PATH)
            conn.row_factory = aiosqlite.Row
            await conn.execute("PRAGMA foreign_keys = ON")
            auth = LocalAuth(
                LOCAL_AUTH_EMAIL,
                LOCAL_AUTH_PASSWORD,
                LOCAL_SIGNING_KEY,
                ttl_seconds=LOCAL_SESSION_TTL_SECONDS,
            )
            _backend = Backend(
                engine="local",
                store=SQLiteStore(conn),
                auth=auth,
                storage=LocalStorage(Path(LOCAL_STORAGE_DIR), LOCAL_SIGNING_KEY),
                sessions=SessionManager(auth),
            )
            logger.info("Using local backend with SQLite database at %s", DATABASE_PATH)
    return _backend


SQLITE_SCHEMA = """
    CREATE TABLE IF NOT EXISTS patients (
        id TEXT PRIMARY KEY,
        first_name TEXT NOT NULL CHECK (length(first_name) > 0),
        last_name TEXT NOT NULL CHECK (length(last_name) > 0),
        birthdate TEXT,
        sex TEXT NOT NULL CHECK (sex IN ('Male', 'Female', 'Other')),
        hospital_registration_number TEXT,
        blood_type TEXT,
        profile_picture TEXT,
        created_at TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS admissions (
        id TEXT PRIMARY KEY,
        patient_id TEXT NOT NULL REFERENCES patients(id),
        chief_complaint TEXT NOT NULL,
        nature_of_injury TEXT,
        date_of_injury TEXT,
        time_of_injury TEXT,
        place_of_injury TEXT,
        history_of_present_illness TEXT,
        past_medical_history TEXT,
        personal_social_history TEXT,
        obstetric_gynecologic_history TEXT,
        blood_pressure TEXT,
        hr INTEGER CHECK (hr IS NULL OR hr > 0),
        rr INTEGER CHECK (rr IS NULL OR rr > 0),
        spo2 INTEGER CHECK (spo2 IS NULL OR spo2 BETWEEN 0 AND 100),
        temperature REAL,
        physical_examination TEXT,
        imaging_findings TEXT,
        laboratory TEXT,
        diagnosis TEXT,
        initial_management TEXT,
        surgical_plan TEXT,
        surgery_done INTEGER,
        surgery_done_at TEXT,
        remarks TEXT,
        status TEXT NOT NULL DEFAULT 'ADMITTED',
        severity TEXT,
        created_at TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_admissions_patient ON admissions(patient_id);
    CREATE INDEX IF NOT EXISTS idx_admissions_status ON admissions(status);
"""


async def init_backend() -> None:
    backend = await get_backend()
    if isinstance(backend.store, SQLiteStore):
        await backend.store.executescript(SQLITE_SCHEMA)
        await backend.store.conn.commit()
        if SEED_DEMO_DATA:
            await ensure_demo_data(backend.store)


async def close_backend() -> None:
    global _backend
    if _backend is not None:
        await _backend.close()
        _backend = None


DEMO_PATIENTS = [
    {
        "id": "demo-patient-mendoza",
        "first_name": "Carlos",
        "last_name": "Mendoza",
        "birthdate": "1984-03-09",
        "sex": "Male",
        "hospital_registration_number": "TO-2024-0001",
        "blood_type": "O+",
    },
    {
        "id": "demo-patient-reyes",
        "first_name": "Ana",
        "last_name": "Reyes",
        "birthdate": "1992-11-21",
        "sex": "Female",
        "hospital_registration_number": "TO-2024-0002",
        "blood_type": "A-",
    },
    {
        "id": "demo-patient-santos",
        "first_name": "Miguel",
        "last_name": "Santos",
        "birthdate": None,
        "sex": "Male",
        "hospital_registration_number": "TO-2024-0003",
        "blood_type": None,
    },
]


async def _seed_demo_data(store: SQLiteStore) -> None:
    now = datetime.now(timezone.utc)
    for offset, patient in enumerate(DEMO_PATIENTS):
        patient = {**patient, "created_at": (now - timedelta(days=3 - offset)).isoformat()}
        await store.insert("patients", [patient])

    admissions = [
        {
            "id": "demo-admission-mvc",
            "patient_id": "demo-patient-mendoza",
            "chief_complaint": "Motorcycle collision, left leg pain",
            "nature_of_injury": "Vehicular accident",
            "date_of_injury": (now - timedelta(days=2)).date().isoformat(),
            "time_of_injury": "21:40:00",
            "place_of_injury": "National Highway km 12",
            "blood_pressure": "110/70",
            "hr": 104,
            "rr": 22,
            "spo2": 97,
            "temperature": 37.2,
            "diagnosis": "Open fracture, left tibia",
            "initial_management": "Splinting, IV antibiotics, tetanus toxoid",
            "surgical_plan": "Debridement and external fixation",
            "severity": "severe",
            "created_at": (now - timedelta(days=2)).isoformat(),
        },
        {
            "id": "demo-admission-fall",
            "patient_id": "demo-patient-reyes",
            "chief_complaint": "Fall from height, wrist pain",
            "nature_of_injury": "Fall",
            "date_of_injury": (now - timedelta(days=1)).date().isoformat(),
            "place_of_injury": "Residence",
            "hr": 88,
            "rr": 18,
            "spo2": 99,
            "diagnosis": "Distal radius fracture, right",
            "severity": "moderate",
            "created_at": (now - timedelta(days=1)).isoformat(),
        },
    ]
    await store.insert("admissions", admissions)


async def ensure_demo_data(store: SQLiteStore) -> None:
    """Seed demo patients and admissions once, into an empty local database."""
    existing = await store.select(TableQuery("patients", columns="id").in_(
        "id", [p["id"] for p in DEMO_PATIENTS]
    ))
    if existing.rows:
        return
    await _seed_demo_data(store)
    logger.info("Seeded %d demo patients", len(DEMO_PATIENTS))
