"""Tests for the admission lifecycle: ADMITTED -> DISCHARGED."""

import pytest

from trauma_one.errors import RecordNotFoundError
from trauma_one.models.admission import Admission, AdmissionDraft
from trauma_one.models.patient import PatientDraft
from trauma_one.services.lifecycle import (
    can_discharge,
    can_transition,
    current_status,
    discharge,
    normalize_status,
)


class TestNormalizeStatus:
    def test_canonical_values(self):
        assert normalize_status("ADMITTED") == "ADMITTED"
        assert normalize_status("discharged") == "DISCHARGED"

    def test_legacy_alias(self):
        assert normalize_status("DISCHARGE") == "DISCHARGED"

    def test_blank_means_no_filter(self):
        assert normalize_status("") is None
        assert normalize_status(None) is None


class TestTransitions:
    def test_admitted_to_discharged(self):
        assert can_transition("ADMITTED", "DISCHARGED")

    def test_discharged_is_terminal(self):
        assert not can_transition("DISCHARGED", "ADMITTED")
        assert not can_transition("DISCHARGED", "DISCHARGED")

    def test_unknown_status(self):
        assert not can_transition("TRANSFERRED", "DISCHARGED")

    def test_guard(self):
        admitted = Admission(id="a", patient_id="p")
        discharged = Admission(id="a", patient_id="p", status="DISCHARGED")
        assert current_status(admitted) == "ADMITTED"
        assert can_discharge(admitted)
        assert not can_discharge(discharged)

    def test_missing_status_defaults_to_admitted(self):
        assert Admission(id="a", patient_id="p", status=None).status == "ADMITTED"


async def _admit(patient_repo, admission_repo, **fields):
    patient = await patient_repo.create(
        PatientDraft(first_name="Carlos", last_name="Mendoza", sex="Male")
    )
    draft = AdmissionDraft(patient_id=patient.id, chief_complaint="Leg pain", **fields)
    return await admission_repo.create(draft)


async def test_new_admission_is_admitted(patient_repo, admission_repo):
    admission = await _admit(patient_repo, admission_repo)
    assert admission.status == "ADMITTED"


async def test_discharge_sets_status_only(patient_repo, admission_repo):
    admission = await _admit(patient_repo, admission_repo, hr="96", diagnosis="Tibia fracture")
    detail = await discharge(admission_repo, admission.id)
    assert detail.status == "DISCHARGED"
    assert detail.can_discharge is False
    assert detail.hr == 96
    assert detail.diagnosis == "Tibia fracture"
    assert detail.chief_complaint == "Leg pain"


async def test_discharge_is_idempotent(patient_repo, admission_repo):
    admission = await _admit(patient_repo, admission_repo)
    first = await discharge(admission_repo, admission.id)
    second = await discharge(admission_repo, admission.id)
    assert first.status == second.status == "DISCHARGED"
    assert second.model_dump(exclude={"injury_day"}) == first.model_dump(exclude={"injury_day"})


async def test_discharge_unknown_admission(admission_repo):
    with pytest.raises(RecordNotFoundError):
        await discharge(admission_repo, "missing")
