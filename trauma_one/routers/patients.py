import logging

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile

from trauma_one.config import SIGNED_URL_TTL_SECONDS
from trauma_one.dependencies import get_admission_repository, get_patient_repository, get_storage
from trauma_one.errors import RecordNotFoundError, SessionExpiredError, StoreError
from trauma_one.models.admission import Admission
from trauma_one.models.common import Page
from trauma_one.models.patient import Patient, PatientDetail, PatientDraft, ProfilePictureResponse
from trauma_one.services import derived
from trauma_one.services.repositories import AdmissionRepository, PatientRepository
from trauma_one.services.storage import StorageProvider, profile_picture_path

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/patients", tags=["patients"])


@router.get("", response_model=Page[Patient])
async def list_patients(
    q: str = "",
    page: int = Query(1, ge=1),
    patients: PatientRepository = Depends(get_patient_repository),
):
    """Search patients by name or registration number, newest first."""
    return await patients.list(q, page)


@router.post("", response_model=Patient)
async def register_patient(
    body: PatientDraft,
    patients: PatientRepository = Depends(get_patient_repository),
):
    return await patients.create(body)


@router.get("/{patient_id}", response_model=PatientDetail)
async def get_patient(
    patient_id: str,
    patients: PatientRepository = Depends(get_patient_repository),
    storage: StorageProvider = Depends(get_storage),
):
    """Patient record with computed age and a signed profile picture URL."""
    patient = await patients.get(patient_id)
    detail = PatientDetail(
        **patient.model_dump(),
        age=derived.age(patient.birthdate),
        display_age=derived.display_age(patient.birthdate),
        label=derived.patient_label(patient),
    )
    if patient.profile_picture:
        try:
            detail.profile_picture_url = await storage.signed_url(
                patient.profile_picture, SIGNED_URL_TTL_SECONDS
            )
        except SessionExpiredError:
            raise
        except StoreError as e:
            logger.warning("No signed URL for patient %s: %s", patient_id, e.message)
    return detail


@router.patch("/{patient_id}", response_model=Patient)
async def update_patient(
    patient_id: str,
    body: PatientDraft,
    patients: PatientRepository = Depends(get_patient_repository),
):
    return await patients.update(patient_id, body)


@router.post("/{patient_id}/profile-picture", response_model=ProfilePictureResponse)
async def upload_profile_picture(
    patient_id: str,
    file: UploadFile = File(...),
    patients: PatientRepository = Depends(get_patient_repository),
    storage: StorageProvider = Depends(get_storage),
):
    """Upload (or replace) the patient's photo and store its path on the record."""
    await patients.get(patient_id)
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    try:
        path = profile_picture_path(patient_id, file.filename)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None

    await storage.upload(path, content, file.content_type or "application/octet-stream")
    patient = await patients.set_profile_picture(patient_id, path)
    return ProfilePictureResponse(
        patient_id=patient.id,
        profile_picture=path,
        signed_url=await storage.signed_url(path, SIGNED_URL_TTL_SECONDS),
    )


@router.get("/{patient_id}/profile-picture-url", response_model=ProfilePictureResponse)
async def get_profile_picture_url(
    patient_id: str,
    patients: PatientRepository = Depends(get_patient_repository),
    storage: StorageProvider = Depends(get_storage),
):
    patient = await patients.get(patient_id)
    if not patient.profile_picture:
        raise RecordNotFoundError(f"Patient {patient_id} has no profile picture")
    return ProfilePictureResponse(
        patient_id=patient.id,
        profile_picture=patient.profile_picture,
        signed_url=await storage.signed_url(patient.profile_picture, SIGNED_URL_TTL_SECONDS),
    )


@router.get("/{patient_id}/admissions", response_model=list[Admission])
async def get_patient_admissions(
    patient_id: str,
    patients: PatientRepository = Depends(get_patient_repository),
    admissions: AdmissionRepository = Depends(get_admission_repository),
):
    """Admission history for one patient, newest first."""
    await patients.get(patient_id)
    return await admissions.history_for_patient(patient_id)
