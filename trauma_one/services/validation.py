"""Client-side validation rules for admission and patient drafts.

Each validator returns ``None`` when the draft is acceptable, or the first
failing rule's message. Rules run in a fixed order and the whole draft is
checked at submission, regardless of which wizard step a field lives on.
"""

import re
from datetime import date

from trauma_one.errors import FormValidationError
from trauma_one.models.admission import AdmissionDraft
from trauma_one.models.patient import BLOOD_TYPES, PatientDraft, Sex

_DIGITS = re.compile(r"^[0-9]+$")

PATIENT_REQUIRED = "Patient is required."
CHIEF_COMPLAINT_REQUIRED = "Chief complaint is required."
RR_INVALID = "Respiratory Rate (RR) must be a positive integer."
HR_INVALID = "Heart Rate (HR) must be a positive integer."
SPO2_INVALID = "SpO2 must be a number between 0 and 100."
TEMPERATURE_INVALID = "Temperature must be a number."

FIRST_NAME_REQUIRED = "First name is required."
LAST_NAME_REQUIRED = "Last name is required."
SEX_REQUIRED = "Please select a sex."
BIRTHDATE_REQUIRED = "A birthdate is required."
BIRTHDATE_IN_FUTURE = "Birthdate cannot be in the future."
BLOOD_TYPE_INVALID = f"Blood type must be one of {', '.join(BLOOD_TYPES)}."


def _is_positive_integer(value: str) -> bool:
    return bool(_DIGITS.match(value)) and int(value) > 0


def _is_percentage(value: str) -> bool:
    return bool(_DIGITS.match(value)) and 0 <= int(value) <= 100


def _is_number(value: str) -> bool:
    try:
        float(value)
    except ValueError:
        return False
    # float() accepts these but a temperature never is one
    return value.strip().lower() not in ("nan", "inf", "-inf", "+inf", "infinity", "-infinity")


def validate_admission(draft: AdmissionDraft) -> str | None:
    if not draft.patient_id.strip():
        return PATIENT_REQUIRED
    if not draft.chief_complaint.strip():
        return CHIEF_COMPLAINT_REQUIRED
    if draft.rr and not _is_positive_integer(draft.rr):
        return RR_INVALID
    if draft.hr and not _is_positive_integer(draft.hr):
        return HR_INVALID
    if draft.spo2 and not _is_percentage(draft.spo2):
        return SPO2_INVALID
    if draft.temperature and not _is_number(draft.temperature):
        return TEMPERATURE_INVALID
    return None


def validate_patient(
    draft: PatientDraft,
    require_birthdate: bool = False,
    today: date | None = None,
) -> str | None:
    if not draft.first_name.strip():
        return FIRST_NAME_REQUIRED
    if not draft.last_name.strip():
        return LAST_NAME_REQUIRED
    if draft.sex not in {s.value for s in Sex}:
        return SEX_REQUIRED
    if draft.birthdate is None:
        if require_birthdate:
            return BIRTHDATE_REQUIRED
    elif draft.birthdate > (today or date.today()):
        return BIRTHDATE_IN_FUTURE
    if draft.blood_type and draft.blood_type not in BLOOD_TYPES:
        return BLOOD_TYPE_INVALID
    return None


def ensure_valid_admission(draft: AdmissionDraft) -> None:
    error = validate_admission(draft)
    if error:
        raise FormValidationError(error)


def ensure_valid_patient(draft: PatientDraft, require_birthdate: bool = False) -> None:
    error = validate_patient(draft, require_birthdate=require_birthdate)
    if error:
        raise FormValidationError(error)


def _text_or_none(value: str) -> str | None:
    value = value.strip()
    return value or None


def admission_record(draft: AdmissionDraft) -> dict:
    """Convert an accepted draft into the row shape the store expects.

    Blank strings become null, vitals become numbers. The draft must already
    have passed ``validate_admission``.
    """
    record = {}
    for name, value in draft.model_dump().items():
        if isinstance(value, str):
            record[name] = _text_or_none(value)
        else:
            record[name] = value
    for name in ("hr", "rr", "spo2"):
        if record[name] is not None:
            record[name] = int(record[name])
    if record["temperature"] is not None:
        record["temperature"] = float(record["temperature"])
    if draft.date_of_injury is not None:
        record["date_of_injury"] = draft.date_of_injury.isoformat()
    if draft.time_of_injury is not None:
        record["time_of_injury"] = draft.time_of_injury.isoformat()
    if draft.surgery_done_at is not None:
        record["surgery_done_at"] = draft.surgery_done_at.isoformat()
    return record


def patient_record(draft: PatientDraft) -> dict:
    record = {
        "first_name": draft.first_name.strip(),
        "last_name": draft.last_name.strip(),
        "birthdate": draft.birthdate.isoformat() if draft.birthdate else None,
        "sex": draft.sex,
        "hospital_registration_number": draft.hospital_registration_number,
        "blood_type": draft.blood_type,
    }
    if draft.id:
        record["id"] = draft.id
    return record
