"""Admission lifecycle: ADMITTED -> DISCHARGED.

Discharge is a status-only partial update. It needs no validation, leaves the
clinical fields untouched and is safe to repeat.
"""

import logging
from typing import TYPE_CHECKING

from trauma_one.models.admission import Admission, AdmissionDetail, AdmissionStatus

if TYPE_CHECKING:
    from trauma_one.services.repositories import AdmissionRepository

logger = logging.getLogger(__name__)

TRANSITIONS: dict[AdmissionStatus, frozenset[AdmissionStatus]] = {
    AdmissionStatus.ADMITTED: frozenset({AdmissionStatus.DISCHARGED}),
    AdmissionStatus.DISCHARGED: frozenset(),
}

# Older screens filtered on "DISCHARGE"
_STATUS_ALIASES = {"DISCHARGE": AdmissionStatus.DISCHARGED.value}


def normalize_status(value: str | None) -> str | None:
    """Canonical status for a filter or stored value; blank means no filter."""
    if value is None or not value.strip():
        return None
    upper = value.strip().upper()
    return _STATUS_ALIASES.get(upper, upper)


def current_status(admission: Admission) -> str:
    return normalize_status(admission.status) or AdmissionStatus.ADMITTED.value


def can_transition(source: str, target: str) -> bool:
    try:
        return AdmissionStatus(target) in TRANSITIONS[AdmissionStatus(source)]
    except ValueError:
        return False


def can_discharge(admission: Admission) -> bool:
    return current_status(admission) != AdmissionStatus.DISCHARGED.value


async def discharge(
    admissions: "AdmissionRepository",
    admission_id: str,
) -> AdmissionDetail:
    """Mark an admission discharged and return the refreshed record."""
    await admissions.set_status(admission_id, AdmissionStatus.DISCHARGED.value)
    logger.info("Discharged admission %s", admission_id)
    return await admissions.get(admission_id)
