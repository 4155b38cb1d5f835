import logging

from fastapi import APIRouter, Depends, HTTPException

from trauma_one.dependencies import get_admission_repository, get_patient_repository, require_session
from trauma_one.models.admission import Admission
from trauma_one.models.auth import AuthSession
from trauma_one.models.patient import PatientDraft
from trauma_one.services.repositories import AdmissionRepository, PatientRepository
from trauma_one.services.wizard import AdmissionWizard, WizardState, WizardUpdate, wizards

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/wizard", tags=["wizard"])


async def _bound_wizard(
    wizard_id: str,
    session: AuthSession = Depends(require_session),
    patients: PatientRepository = Depends(get_patient_repository),
    admissions: AdmissionRepository = Depends(get_admission_repository),
) -> AdmissionWizard:
    return wizards.get(wizard_id, session.user.id).bind(patients, admissions)


@router.post("", response_model=WizardState)
async def start_wizard(
    session: AuthSession = Depends(require_session),
    patients: PatientRepository = Depends(get_patient_repository),
    admissions: AdmissionRepository = Depends(get_admission_repository),
):
    """Open a new admission wizard with the patient picker loaded."""
    wizard = wizards.create(session.user.id).bind(patients, admissions)
    await wizard.load_patients()
    logger.info("Started admission wizard %s", wizard.id)
    return wizard.snapshot()


@router.get("/{wizard_id}", response_model=WizardState)
async def get_wizard(wizard: AdmissionWizard = Depends(_bound_wizard)):
    return wizard.snapshot()


@router.patch("/{wizard_id}", response_model=WizardState)
async def update_wizard(body: WizardUpdate, wizard: AdmissionWizard = Depends(_bound_wizard)):
    """Merge field edits into the draft, move between steps, toggle quick add.

    Nothing is validated here; the full draft is checked once on submit.
    """
    try:
        if body.fields:
            wizard.update(**body.fields)
        if body.step is not None:
            wizard.go_to(body.step)
        elif body.move == "next":
            wizard.next()
        elif body.move == "back":
            wizard.back()
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from None
    if body.quick_add_open is True:
        wizard.open_quick_add()
    elif body.quick_add_open is False:
        wizard.close_quick_add()
    return wizard.snapshot()


@router.post("/{wizard_id}/patients", response_model=WizardState)
async def reload_patients(wizard: AdmissionWizard = Depends(_bound_wizard)):
    """Re-fetch the patient picker. Only the latest overlapping reload is kept."""
    if not await wizard.load_patients():
        logger.debug("Picker reload for wizard %s was overtaken", wizard.id)
    return wizard.snapshot()


@router.post("/{wizard_id}/quick-add-patient", response_model=WizardState)
async def quick_add_patient(body: PatientDraft, wizard: AdmissionWizard = Depends(_bound_wizard)):
    """Register a patient inline and select it for this admission."""
    await wizard.quick_add_patient(body)
    return wizard.snapshot()


@router.post("/{wizard_id}/submit", response_model=Admission)
async def submit_wizard(
    wizard: AdmissionWizard = Depends(_bound_wizard),
    session: AuthSession = Depends(require_session),
):
    admission = await wizard.submit()
    wizards.discard(wizard.id, session.user.id)
    return admission


@router.delete("/{wizard_id}")
async def cancel_wizard(wizard_id: str, session: AuthSession = Depends(require_session)):
    wizards.discard(wizard_id, session.user.id)
    return {"status": "discarded"}
