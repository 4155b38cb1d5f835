"""Tests for patient and admission repositories over the local store."""

import typing
from datetime import date, timedelta
from unittest.mock import patch

import pytest

from trauma_one.errors import FormValidationError, RecordNotFoundError
from trauma_one.models.admission import Admission, AdmissionDraft
from trauma_one.models.patient import Patient, PatientDraft
from trauma_one.services.query import AdmissionFilters
from trauma_one.services.repositories import (
    PATIENT_NOT_FOUND,
    AdmissionRepository,
    PatientRepository,
)
from trauma_one.services.validation import CHIEF_COMPLAINT_REQUIRED, HR_INVALID


async def _register(patient_repo, first="Ana", last="Reyes", reg=None, **fields):
    return await patient_repo.create(
        PatientDraft(
            first_name=first,
            last_name=last,
            sex="Female",
            hospital_registration_number=reg,
            **fields,
        )
    )


async def _admit(admission_repo, patient_id, complaint="Fall", **fields):
    return await admission_repo.create(
        AdmissionDraft(patient_id=patient_id, chief_complaint=complaint, **fields)
    )


# --- Patients ---


async def test_register_and_get(patient_repo):
    created = await _register(patient_repo, reg="TO-1", birthdate="1992-11-21")
    fetched = await patient_repo.get(created.id)
    assert fetched.full_name == "Ana Reyes"
    assert fetched.birthdate == date(1992, 11, 21)
    assert fetched.hospital_registration_number == "TO-1"


async def test_register_validates_before_insert(patient_repo, store):
    with patch.object(store, "insert", wraps=store.insert) as insert:
        with pytest.raises(FormValidationError):
            await patient_repo.create(PatientDraft(first_name="", last_name="Reyes", sex="Female"))
    insert.assert_not_called()


async def test_get_missing_patient(patient_repo):
    with pytest.raises(RecordNotFoundError):
        await patient_repo.get("nobody")


async def test_patient_list_pagination(patient_repo):
    for i in range(20):
        await _register(patient_repo, first=f"Pat{i:02d}")
    page1 = await patient_repo.list(page=1)
    page2 = await patient_repo.list(page=2)
    assert page1.page_size == 15
    assert len(page1.items) == 15
    assert len(page2.items) == 5
    assert page1.total == 20
    assert page1.total_pages == 2
    # newest first
    assert page1.items[0].first_name == "Pat19"
    assert page2.items[-1].first_name == "Pat00"


async def test_patient_search(patient_repo):
    await _register(patient_repo, first="Ana", last="Reyes", reg="TO-100")
    await _register(patient_repo, first="Bea", last="Anacleto", reg="TO-200")
    await _register(patient_repo, first="Carl", last="Cruz", reg="TO-300")

    assert (await patient_repo.list("ana")).total == 2
    assert (await patient_repo.list("to-3")).total == 1
    assert (await patient_repo.list("zzz")).total == 0


async def test_update_patient(patient_repo):
    created = await _register(patient_repo)
    updated = await patient_repo.update(
        created.id, PatientDraft(first_name="Ana", last_name="Santos", sex="Female", blood_type="B+")
    )
    assert updated.last_name == "Santos"
    assert updated.blood_type == "B+"


async def test_update_missing_patient(patient_repo):
    with pytest.raises(RecordNotFoundError):
        await patient_repo.update("nobody", PatientDraft(first_name="A", last_name="B", sex="Male"))


async def test_count_created_since(patient_repo):
    await _register(patient_repo)
    assert await patient_repo.count_created_since(date.today() - timedelta(days=1)) == 1
    assert await patient_repo.count_created_since(date.today() + timedelta(days=2)) == 0


# --- Admissions ---


async def test_create_admission_rejects_invalid_draft(admission_repo, patient_repo):
    patient = await _register(patient_repo)
    with pytest.raises(FormValidationError) as exc:
        await _admit(admission_repo, patient.id, complaint="")
    assert exc.value.message == CHIEF_COMPLAINT_REQUIRED

    with pytest.raises(FormValidationError) as exc:
        await _admit(admission_repo, patient.id, hr="0")
    assert exc.value.message == HR_INVALID


async def test_create_admission_for_unknown_patient(admission_repo):
    with pytest.raises(FormValidationError) as exc:
        await _admit(admission_repo, "ghost")
    assert exc.value.message == PATIENT_NOT_FOUND


async def test_admission_detail(admission_repo, patient_repo):
    patient = await _register(patient_repo, birthdate="1990-01-01")
    admission = await _admit(
        admission_repo,
        patient.id,
        date_of_injury="2024-07-12",
        time_of_injury="14:30",
        spo2="98",
    )
    detail = await admission_repo.get(admission.id)
    assert detail.patient.id == patient.id
    assert detail.patient_name == "Ana Reyes"
    assert detail.injury_datetime == "Fri, 12 Jul 2024, 14:30"
    assert detail.spo2 == 98
    assert detail.display_age != "-"
    assert detail.can_discharge is True


async def test_update_keeps_patient_and_status(admission_repo, patient_repo):
    patient = await _register(patient_repo)
    other = await _register(patient_repo, first="Bea")
    admission = await _admit(admission_repo, patient.id)
    await admission_repo.set_status(admission.id, "DISCHARGED")

    updated = await admission_repo.update(
        admission.id,
        AdmissionDraft(patient_id=other.id, chief_complaint="Fall, revised", remarks="Stable"),
    )
    assert updated.patient_id == patient.id
    assert updated.status == "DISCHARGED"
    assert updated.chief_complaint == "Fall, revised"
    assert updated.remarks == "Stable"


async def test_page_two_of_fifteen_admissions(admission_repo, patient_repo):
    patient = await _register(patient_repo)
    created = [await _admit(admission_repo, patient.id, complaint=f"C{i:02d}") for i in range(15)]

    page = await admission_repo.list(AdmissionFilters(), page=2)
    assert page.total == 15
    assert page.total_pages == 2
    assert len(page.items) == 5
    # records 11-15 in newest-first order are the five oldest
    assert [a.id for a in page.items] == [a.id for a in reversed(created[:5])]


async def test_zero_match_search_returns_empty_not_unfiltered(admission_repo, patient_repo, store):
    patient = await _register(patient_repo, reg="TO-1")
    await _admit(admission_repo, patient.id)

    with patch.object(store, "select", wraps=store.select) as select:
        page = await admission_repo.list(AdmissionFilters(free_text="TO-999"))
    assert page.items == []
    assert page.total == 0
    assert page.total_pages == 0
    # only the patient lookup ran; admissions were never queried
    assert [call.args[0].table for call in select.call_args_list] == ["patients"]


async def test_search_by_registration_number(admission_repo, patient_repo):
    ana = await _register(patient_repo, reg="TO-1")
    bea = await _register(patient_repo, first="Bea", last="Cruz", reg="TO-2")
    await _admit(admission_repo, ana.id)
    await _admit(admission_repo, bea.id)

    page = await admission_repo.list(AdmissionFilters(free_text="to-2"))
    assert [a.patient_id for a in page.items] == [bea.id]


async def test_filter_by_status_and_date(admission_repo, patient_repo):
    patient = await _register(patient_repo)
    first = await _admit(admission_repo, patient.id, date_of_injury="2024-07-12")
    await _admit(admission_repo, patient.id, date_of_injury="2024-07-13")
    await admission_repo.set_status(first.id, "DISCHARGED")

    admitted = await admission_repo.list(AdmissionFilters(status="ADMITTED"))
    assert admitted.total == 1
    by_date = await admission_repo.list(AdmissionFilters(date_of_injury=date(2024, 7, 12)))
    assert [a.id for a in by_date.items] == [first.id]
    everything = await admission_repo.list(AdmissionFilters())
    assert everything.total == 2


async def test_history_for_patient(admission_repo, patient_repo):
    ana = await _register(patient_repo)
    bea = await _register(patient_repo, first="Bea")
    older = await _admit(admission_repo, ana.id, complaint="First")
    newer = await _admit(admission_repo, ana.id, complaint="Second")
    await _admit(admission_repo, bea.id)

    history = await admission_repo.history_for_patient(ana.id)
    assert [a.id for a in history] == [newer.id, older.id]


async def test_count_by_status(admission_repo, patient_repo):
    patient = await _register(patient_repo)
    admission = await _admit(admission_repo, patient.id)
    await _admit(admission_repo, patient.id)
    await admission_repo.set_status(admission.id, "DISCHARGED")
    assert await admission_repo.count() == 2
    assert await admission_repo.count("ADMITTED") == 1
    assert await admission_repo.count("DISCHARGED") == 1


def test_list_method_does_not_shadow_builtin_in_annotations():
    assert typing.get_type_hints(PatientRepository.selectable)["return"] == list[Patient]
    assert typing.get_type_hints(PatientRepository.find_ids)["return"] == list[str]
    assert typing.get_type_hints(AdmissionRepository.history_for_patient)["return"] == list[Admission]
