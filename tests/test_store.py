"""Tests for the local SQLite backend: schema, row surface and demo seed."""

import pytest

from trauma_one.backend import DEMO_PATIENTS, ensure_demo_data
from trauma_one.errors import StoreError
from trauma_one.services.query import Condition, TableQuery, patient_search_query


async def _patient(store, **fields):
    row = {"first_name": "Ana", "last_name": "Reyes", "sex": "Female", **fields}
    (inserted,) = await store.insert("patients", [row])
    return inserted


async def test_init_creates_tables(store):
    """Test that init_backend creates the expected tables."""
    cursor = await store.conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
    )
    tables = [row[0] for row in await cursor.fetchall()]
    assert "patients" in tables
    assert "admissions" in tables


async def test_insert_assigns_id_and_created_at(store):
    patient = await _patient(store)
    assert patient["id"]
    assert patient["created_at"]
    assert patient["birthdate"] is None


async def test_admission_status_defaults_to_admitted(store):
    patient = await _patient(store)
    (admission,) = await store.insert(
        "admissions", [{"patient_id": patient["id"], "chief_complaint": "Burn"}]
    )
    assert admission["status"] == "ADMITTED"


async def test_foreign_key_enforced(store):
    with pytest.raises(StoreError) as exc:
        await store.insert("admissions", [{"patient_id": "ghost", "chief_complaint": "Burn"}])
    assert exc.value.code == "23503"


async def test_check_constraint(store):
    with pytest.raises(StoreError) as exc:
        await store.insert("patients", [{"first_name": "A", "last_name": "B", "sex": "X"}])
    assert exc.value.code == "23514"


async def test_ilike_or_search_is_case_insensitive(store):
    await _patient(store, first_name="Ana", hospital_registration_number="TO-77")
    await _patient(store, first_name="Bea", last_name="Cruz")
    result = await store.select(patient_search_query("to-7"))
    assert len(result.rows) == 1
    result = await store.select(patient_search_query("CRUZ"))
    assert len(result.rows) == 1


async def test_empty_in_matches_nothing(store):
    await _patient(store)
    result = await store.select(TableQuery("patients").in_("id", []))
    assert result.rows == []


async def test_range_and_exact_count(store):
    for i in range(15):
        await _patient(store, first_name=f"P{i:02d}")
    query = TableQuery("patients", count=True).order("created_at", descending=True).range(10, 19)
    result = await store.select(query)
    assert result.count == 15
    assert [r["first_name"] for r in result.rows] == [f"P{i:02d}" for i in range(4, -1, -1)]


async def test_embed_patient(store):
    patient = await _patient(store)
    await store.insert("admissions", [{"patient_id": patient["id"], "chief_complaint": "Burn"}])
    result = await store.select(TableQuery("admissions", embed=("patients",)))
    assert result.rows[0]["patients"]["first_name"] == "Ana"


async def test_unknown_relation(store):
    with pytest.raises(StoreError):
        await store.select(TableQuery("patients", embed=("admissions",)))


async def test_unknown_table(store):
    with pytest.raises(StoreError) as exc:
        await store.select(TableQuery("doctors"))
    assert exc.value.code == "42P01"


async def test_unknown_column_rejected(store):
    with pytest.raises(ValueError):
        await store.select(TableQuery("patients").eq("password", "x"))


async def test_partial_update(store):
    patient = await _patient(store, blood_type="O+")
    rows = await store.update(
        "patients", {"last_name": "Santos"}, [Condition("id", "eq", patient["id"])]
    )
    assert rows[0]["last_name"] == "Santos"
    assert rows[0]["blood_type"] == "O+"


async def test_update_requires_filter(store):
    with pytest.raises(ValueError):
        await store.update("patients", {"last_name": "X"}, [])


async def test_demo_seed_is_idempotent(store):
    await ensure_demo_data(store)
    await ensure_demo_data(store)
    result = await store.select(TableQuery("patients", count=True))
    assert result.count == len(DEMO_PATIENTS)
    admissions = await store.select(TableQuery("admissions", count=True))
    assert admissions.count == 2
