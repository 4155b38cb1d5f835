from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query

from trauma_one.dependencies import get_admission_repository, get_patient_repository, require_session
from trauma_one.models.admission import AdmissionListView
from trauma_one.models.auth import AuthSession
from trauma_one.models.patient import PatientListView
from trauma_one.services.list_state import views
from trauma_one.services.repositories import AdmissionRepository, PatientRepository

router = APIRouter(prefix="/api/registry", tags=["registry"])


@router.get("/admissions", response_model=AdmissionListView)
async def admissions_view(
    q: str | None = None,
    date_of_injury: date | None = None,
    clear_date: bool = False,
    status: str | None = None,
    page: int | None = Query(None, ge=1),
    session: AuthSession = Depends(require_session),
    admissions: AdmissionRepository = Depends(get_admission_repository),
):
    """The signed-in user's admissions screen.

    Omitted parameters keep their previous value. A failed query comes back
    with ``error`` set and no rows. When a newer request for the same screen
    overtook this one, ``applied`` is false and the rows are the newer ones.
    """
    state = views.admissions(session.user.id, admissions)
    applied = await state.show(
        page=page,
        free_text=q,
        date_of_injury=date_of_injury,
        status=status,
        clear_date=clear_date,
    )
    return state.snapshot(applied)


@router.get("/patients", response_model=PatientListView)
async def patients_view(
    q: str | None = None,
    page: int | None = Query(None, ge=1),
    selected: str | None = None,
    session: AuthSession = Depends(require_session),
    patients: PatientRepository = Depends(get_patient_repository),
):
    """The signed-in user's patient registry screen with its selected patient."""
    state = views.patients(session.user.id, patients)
    applied = await state.show(page=page, search=q)
    if selected:
        try:
            state.select(selected)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e)) from None
    return state.snapshot(applied)
