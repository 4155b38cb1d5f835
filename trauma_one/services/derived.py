"""Display values derived from patient and admission records."""

from datetime import date, datetime, time

from trauma_one.models.admission import Admission
from trauma_one.models.patient import Patient

MISSING = "-"


def _as_date(value: date | str | None) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def _as_time(value: time | str | None) -> time | None:
    if value is None or value == "":
        return None
    if isinstance(value, time):
        return value
    try:
        return time.fromisoformat(value)
    except ValueError:
        return None


def age(birthdate: date | str | None, as_of: date | None = None) -> int | None:
    """Whole years since ``birthdate``; one less if the birthday is still ahead."""
    born = _as_date(birthdate)
    if born is None:
        return None
    today = as_of or date.today()
    years = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        years -= 1
    return years


def display_age(birthdate: date | str | None, as_of: date | None = None) -> str:
    years = age(birthdate, as_of)
    return MISSING if years is None else str(years)


def injury_day(
    date_of_injury: date | str | None,
    as_of: datetime | date | None = None,
) -> int | None:
    """Whole days elapsed since the start of the injury date."""
    injured = _as_date(date_of_injury)
    if injured is None:
        return None
    now = as_of or datetime.now()
    if not isinstance(now, datetime):
        now = datetime.combine(now, time.min)
    return (now.replace(tzinfo=None) - datetime.combine(injured, time.min)).days


def format_injury_datetime(
    date_of_injury: date | str | None,
    time_of_injury: time | str | None = None,
) -> str:
    """``Fri, 12 Jul 2024, 14:30``, or the date alone when no time is recorded."""
    injured = _as_date(date_of_injury)
    if injured is None:
        return MISSING
    text = injured.strftime("%a, %d %b %Y")
    at = _as_time(time_of_injury)
    if at is not None:
        text += ", " + at.strftime("%H:%M")
    return text


def format_date(value: date | str | None) -> str:
    parsed = _as_date(value)
    return parsed.strftime("%m/%d/%Y") if parsed else MISSING


def format_time(value: time | str | None) -> str:
    parsed = _as_time(value)
    return parsed.strftime("%I:%M %p") if parsed else MISSING


def patient_label(patient: Patient) -> str:
    """Selection label: ``First Last (RegNo) - birthdate - sex``."""
    label = patient.full_name
    if patient.hospital_registration_number:
        label += f" ({patient.hospital_registration_number})"
    if patient.birthdate:
        label += f" - {patient.birthdate.isoformat()}"
    if patient.sex:
        label += f" - {patient.sex}"
    return label


def _or_missing(value) -> str:
    if value is None or value == "":
        return MISSING
    return str(value)


def admission_chat_text(
    patient: Patient,
    admission: Admission,
    as_of: date | None = None,
) -> str:
    """Plain-text admission summary for pasting into a chat thread."""
    lines = [
        f"Name: {patient.full_name}",
        f"Sex: {_or_missing(patient.sex)}",
        f"Age: {display_age(patient.birthdate, as_of)}",
        "",
        f"Chief Complaint: {_or_missing(admission.chief_complaint)}",
        "",
        f"Nature of Injury: {_or_missing(admission.nature_of_injury)}",
        f"Date of injury: {format_date(admission.date_of_injury)}",
        f"Time of Injury: {format_time(admission.time_of_injury)}",
        f"Place of Injury: {_or_missing(admission.place_of_injury)}",
        "",
        f"History of Present Illness:\n{_or_missing(admission.history_of_present_illness)}",
        "",
        f"Past Medical History:\n{_or_missing(admission.past_medical_history)}",
        f"Personal Social History: {_or_missing(admission.personal_social_history)}",
        f"Obstetric/Gynecologic History: {_or_missing(admission.obstetric_gynecologic_history)}",
        "",
        f"Blood Pressure: {_or_missing(admission.blood_pressure)}",
        f"HR: {_or_missing(admission.hr)}",
        f"RR: {_or_missing(admission.rr)}",
        f"SpO2: {_or_missing(admission.spo2)}",
        f"Temperature: {_or_missing(admission.temperature)}",
        "",
        f"Physical Examination:\n{_or_missing(admission.physical_examination)}",
        "",
        f"Imaging Findings:\n{_or_missing(admission.imaging_findings)}",
        "",
        f"Laboratory:\n{_or_missing(admission.laboratory)}",
        "",
        f"Diagnosis:\n{_or_missing(admission.diagnosis)}",
        "",
        f"Initial Management:\n{_or_missing(admission.initial_management)}",
        "",
        f"Surgical Plan:\n{_or_missing(admission.surgical_plan)}",
    ]
    return "\n".join(lines)
