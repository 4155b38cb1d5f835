from datetime import date

from fastapi import APIRouter, Depends, Query

from trauma_one.dependencies import get_admission_repository
from trauma_one.errors import RecordNotFoundError
from trauma_one.models.admission import (
    Admission,
    AdmissionCopyText,
    AdmissionDetail,
    AdmissionDraft,
    AdmissionListItem,
    AdmissionStatus,
)
from trauma_one.models.common import Page
from trauma_one.services import derived, lifecycle
from trauma_one.services.query import AdmissionFilters
from trauma_one.services.repositories import AdmissionRepository

router = APIRouter(prefix="/api/admissions", tags=["admissions"])


@router.get("", response_model=Page[AdmissionListItem])
async def list_admissions(
    q: str = "",
    date_of_injury: date | None = None,
    status: str = AdmissionStatus.ADMITTED.value,
    page: int = Query(1, ge=1),
    admissions: AdmissionRepository = Depends(get_admission_repository),
):
    """Admissions registry page.

    ``q`` matches patient first name, last name or registration number.
    An empty ``status`` lists every admission regardless of state.
    """
    filters = AdmissionFilters(
        free_text=q,
        date_of_injury=date_of_injury,
        status=lifecycle.normalize_status(status),
    )
    return await admissions.list(filters, page)


@router.post("", response_model=Admission)
async def create_admission(
    body: AdmissionDraft,
    admissions: AdmissionRepository = Depends(get_admission_repository),
):
    return await admissions.create(body)


@router.get("/{admission_id}", response_model=AdmissionDetail)
async def get_admission(
    admission_id: str,
    admissions: AdmissionRepository = Depends(get_admission_repository),
):
    return await admissions.get(admission_id)


@router.patch("/{admission_id}", response_model=Admission)
async def update_admission(
    admission_id: str,
    body: AdmissionDraft,
    admissions: AdmissionRepository = Depends(get_admission_repository),
):
    """Edit an admission's clinical fields. The patient cannot be changed."""
    return await admissions.update(admission_id, body)


@router.post("/{admission_id}/discharge", response_model=AdmissionDetail)
async def discharge_admission(
    admission_id: str,
    admissions: AdmissionRepository = Depends(get_admission_repository),
):
    return await lifecycle.discharge(admissions, admission_id)


@router.get("/{admission_id}/copy-text", response_model=AdmissionCopyText)
async def get_admission_copy_text(
    admission_id: str,
    admissions: AdmissionRepository = Depends(get_admission_repository),
):
    """Plain-text summary for pasting into a chat thread."""
    admission = await admissions.get(admission_id)
    if admission.patient is None:
        raise RecordNotFoundError(f"Patient for admission {admission_id} not found")
    return AdmissionCopyText(
        admission_id=admission.id,
        text=derived.admission_chat_text(admission.patient, admission),
    )
