"""Patient and admission repositories over a store adapter.

Every query the registry screens need goes through here, so the filter
composition in ``services.query`` can be exercised without HTTP.
"""

from __future__ import annotations

import logging
from datetime import date

from trauma_one.config import ADMISSIONS_PAGE_SIZE, PATIENTS_PAGE_SIZE
from trauma_one.errors import FormValidationError, RecordNotFoundError, StoreError
from trauma_one.models.admission import (
    Admission,
    AdmissionDetail,
    AdmissionDraft,
    AdmissionListItem,
    AdmissionStatus,
)
from trauma_one.models.common import Page
from trauma_one.models.patient import Patient, PatientDraft
from trauma_one.services import derived
from trauma_one.services.lifecycle import can_discharge
from trauma_one.services.query import (
    AdmissionFilters,
    TableQuery,
    compose_admission_query,
    compose_patient_query,
    count_query,
    patient_admissions_query,
    patient_search_query,
    total_pages,
)
from trauma_one.services.store import StoreAdapter
from trauma_one.services.validation import (
    admission_record,
    ensure_valid_admission,
    ensure_valid_patient,
    patient_record,
)

logger = logging.getLogger(__name__)

PATIENT_NOT_FOUND = "Selected patient does not exist."


def _empty_page(page: int, page_size: int) -> Page:
    return Page(items=[], page=page, page_size=page_size, total=0, total_pages=0)


class PatientRepository:
    def __init__(self, store: StoreAdapter, page_size: int = PATIENTS_PAGE_SIZE) -> None:
        self._store = store
        self.page_size = page_size

    async def list(self, search: str = "", page: int = 1) -> Page[Patient]:
        result = await self._store.select(compose_patient_query(search, page, self.page_size))
        total = result.count or 0
        return Page[Patient](
            items=[Patient.model_validate(row) for row in result.rows],
            page=page,
            page_size=self.page_size,
            total=total,
            total_pages=total_pages(total, self.page_size),
        )

    async def selectable(self) -> list[Patient]:
        """Every patient, newest first, for the admission wizard's picker."""
        result = await self._store.select(
            TableQuery("patients").order("created_at", descending=True)
        )
        return [Patient.model_validate(row) for row in result.rows]

    async def find_ids(self, search: str) -> list[str]:
        result = await self._store.select(patient_search_query(search))
        return [row["id"] for row in result.rows]

    async def get(self, patient_id: str) -> Patient:
        result = await self._store.select(TableQuery("patients").eq("id", patient_id))
        if not result.rows:
            raise RecordNotFoundError(f"Patient {patient_id} not found")
        return Patient.model_validate(result.rows[0])

    async def create(self, draft: PatientDraft, require_birthdate: bool = False) -> Patient:
        ensure_valid_patient(draft, require_birthdate=require_birthdate)
        rows = await self._store.insert("patients", [patient_record(draft)])
        if not rows:
            raise StoreError("Patient insert returned no rows")
        patient = Patient.model_validate(rows[0])
        logger.info("Registered patient %s", patient.id)
        return patient

    async def update(self, patient_id: str, draft: PatientDraft) -> Patient:
        ensure_valid_patient(draft)
        values = patient_record(draft)
        values.pop("id", None)
        rows = await self._store.update(
            "patients", values, TableQuery("patients").eq("id", patient_id).filters
        )
        if not rows:
            raise RecordNotFoundError(f"Patient {patient_id} not found")
        return Patient.model_validate(rows[0])

    async def set_profile_picture(self, patient_id: str, path: str) -> Patient:
        rows = await self._store.update(
            "patients",
            {"profile_picture": path},
            TableQuery("patients").eq("id", patient_id).filters,
        )
        if not rows:
            raise RecordNotFoundError(f"Patient {patient_id} not found")
        return Patient.model_validate(rows[0])

    async def count_created_since(self, since: date) -> int:
        query = count_query("patients").gte("created_at", since.isoformat())
        result = await self._store.select(query)
        return result.count or 0


def admission_list_item(row: dict, as_of: date | None = None) -> AdmissionListItem:
    row = dict(row)
    embedded = row.pop("patients", None)
    patient = Patient.model_validate(embedded) if embedded else None
    item = AdmissionListItem.model_validate(row)
    item.patient = patient
    item.injury_datetime = derived.format_injury_datetime(item.date_of_injury, item.time_of_injury)
    item.injury_day = derived.injury_day(item.date_of_injury, as_of)
    if patient is not None:
        item.patient_name = patient.full_name or "Unknown"
        item.age = derived.age(patient.birthdate, as_of)
    return item


class AdmissionRepository:
    def __init__(
        self,
        store: StoreAdapter,
        patients: PatientRepository | None = None,
        page_size: int = ADMISSIONS_PAGE_SIZE,
    ) -> None:
        self._store = store
        self._patients = patients or PatientRepository(store)
        self.page_size = page_size

    async def list(self, filters: AdmissionFilters, page: int = 1) -> Page[AdmissionListItem]:
        patient_ids = None
        if filters.search:
            patient_ids = await self._patients.find_ids(filters.search)
            if not patient_ids:
                logger.debug("No patients match %r; admission search is empty", filters.search)
                return _empty_page(page, self.page_size)
        result = await self._store.select(
            compose_admission_query(filters, page, self.page_size, patient_ids)
        )
        total = result.count or 0
        return Page[AdmissionListItem](
            items=[admission_list_item(row) for row in result.rows],
            page=page,
            page_size=self.page_size,
            total=total,
            total_pages=total_pages(total, self.page_size),
        )

    async def _row(self, admission_id: str, embed: tuple[str, ...] = ()) -> dict:
        result = await self._store.select(
            TableQuery("admissions", embed=embed).eq("id", admission_id)
        )
        if not result.rows:
            raise RecordNotFoundError(f"Admission {admission_id} not found")
        return result.rows[0]

    async def get(self, admission_id: str) -> AdmissionDetail:
        item = admission_list_item(await self._row(admission_id, embed=("patients",)))
        birthdate = item.patient.birthdate if item.patient else None
        return AdmissionDetail(
            **item.model_dump(exclude={"patient"}),
            patient=item.patient,
            display_age=derived.display_age(birthdate),
            can_discharge=can_discharge(item),
        )

    async def create(self, draft: AdmissionDraft) -> Admission:
        ensure_valid_admission(draft)
        try:
            await self._patients.get(draft.patient_id)
        except RecordNotFoundError:
            raise FormValidationError(PATIENT_NOT_FOUND) from None

        record = admission_record(draft)
        record["status"] = AdmissionStatus.ADMITTED.value
        rows = await self._store.insert("admissions", [record])
        if not rows:
            raise StoreError("Admission insert returned no rows")
        admission = Admission.model_validate(rows[0])
        logger.info("Admitted patient %s as admission %s", admission.patient_id, admission.id)
        return admission

    async def update(self, admission_id: str, draft: AdmissionDraft) -> Admission:
        """Edit clinical fields. The patient link and status are left alone."""
        existing = await self._row(admission_id)
        draft = draft.model_copy(update={"patient_id": existing["patient_id"]})
        ensure_valid_admission(draft)

        values = admission_record(draft)
        values.pop("patient_id", None)
        rows = await self._store.update(
            "admissions", values, TableQuery("admissions").eq("id", admission_id).filters
        )
        if not rows:
            raise RecordNotFoundError(f"Admission {admission_id} not found")
        return Admission.model_validate(rows[0])

    async def set_status(self, admission_id: str, status: str) -> Admission:
        rows = await self._store.update(
            "admissions",
            {"status": status},
            TableQuery("admissions").eq("id", admission_id).filters,
        )
        if not rows:
            raise RecordNotFoundError(f"Admission {admission_id} not found")
        return Admission.model_validate(rows[0])

    async def history_for_patient(self, patient_id: str) -> list[Admission]:
        result = await self._store.select(patient_admissions_query(patient_id))
        return [Admission.model_validate(row) for row in result.rows]

    async def count(self, status: str | None = None) -> int:
        query = count_query("admissions")
        if status:
            query.eq("status", status)
        result = await self._store.select(query)
        return result.count or 0
