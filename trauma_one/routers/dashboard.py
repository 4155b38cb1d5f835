from datetime import date

from fastapi import APIRouter, Depends

from trauma_one.dependencies import get_admission_repository, get_patient_repository
from trauma_one.models.admission import AdmissionStatus
from trauma_one.models.common import DashboardCard, DashboardSummary
from trauma_one.services.repositories import AdmissionRepository, PatientRepository

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("", response_model=DashboardSummary)
async def get_dashboard(
    patients: PatientRepository = Depends(get_patient_repository),
    admissions: AdmissionRepository = Depends(get_admission_repository),
):
    """Greeting plus headline counts for the landing page."""
    month_start = date.today().replace(day=1)
    return DashboardSummary(
        cards=[
            DashboardCard(
                title="Patients This Month",
                value=await patients.count_created_since(month_start),
            ),
            DashboardCard(
                title="Admitted",
                value=await admissions.count(AdmissionStatus.ADMITTED.value),
            ),
            DashboardCard(
                title="Discharged",
                value=await admissions.count(AdmissionStatus.DISCHARGED.value),
            ),
        ]
    )
