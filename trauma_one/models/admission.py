from datetime import date, time
from enum import Enum

from pydantic import BaseModel, field_validator

from trauma_one.models.common import ListView
from trauma_one.models.patient import Patient


class AdmissionStatus(str, Enum):
    ADMITTED = "ADMITTED"
    DISCHARGED = "DISCHARGED"


INJURY_FIELDS = (
    "chief_complaint",
    "nature_of_injury",
    "date_of_injury",
    "time_of_injury",
    "place_of_injury",
)
HISTORY_FIELDS = (
    "history_of_present_illness",
    "past_medical_history",
    "personal_social_history",
    "obstetric_gynecologic_history",
)
VITALS_FIELDS = ("blood_pressure", "hr", "rr", "spo2", "temperature")
EXAM_FIELDS = ("physical_examination", "imaging_findings", "laboratory")
PLAN_FIELDS = (
    "diagnosis",
    "initial_management",
    "surgical_plan",
    "surgery_done",
    "surgery_done_at",
    "remarks",
)

# Fields the draft carries as raw form strings.
DRAFT_TEXT_FIELDS = (
    "patient_id",
    "chief_complaint",
    "nature_of_injury",
    "place_of_injury",
    *HISTORY_FIELDS,
    *VITALS_FIELDS,
    *EXAM_FIELDS,
    "diagnosis",
    "initial_management",
    "surgical_plan",
    "remarks",
    "severity",
)


class AdmissionDraft(BaseModel):
    """Admission form state. Vitals stay strings until the draft is accepted."""
    patient_id: str = ""
    chief_complaint: str = ""
    nature_of_injury: str = ""
    date_of_injury: date | None = None
    time_of_injury: time | None = None
    place_of_injury: str = ""
    history_of_present_illness: str = ""
    past_medical_history: str = ""
    personal_social_history: str = ""
    obstetric_gynecologic_history: str = ""
    blood_pressure: str = ""
    hr: str = ""
    rr: str = ""
    spo2: str = ""
    temperature: str = ""
    physical_examination: str = ""
    imaging_findings: str = ""
    laboratory: str = ""
    diagnosis: str = ""
    initial_management: str = ""
    surgical_plan: str = ""
    surgery_done: bool | None = None
    surgery_done_at: date | None = None
    remarks: str = ""
    severity: str = ""

    @field_validator(*DRAFT_TEXT_FIELDS, mode="before")
    @classmethod
    def _as_form_text(cls, value):
        # JSON clients may send vitals as numbers
        if value is None:
            return ""
        if isinstance(value, bool):
            return str(value).lower()
        if isinstance(value, (int, float)):
            return str(value)
        return value

    @field_validator("date_of_injury", "time_of_injury", "surgery_done_at", mode="before")
    @classmethod
    def _empty_is_missing(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class Admission(BaseModel):
    id: str
    patient_id: str
    chief_complaint: str | None = None
    nature_of_injury: str | None = None
    date_of_injury: date | None = None
    time_of_injury: str | None = None
    place_of_injury: str | None = None
    history_of_present_illness: str | None = None
    past_medical_history: str | None = None
    personal_social_history: str | None = None
    obstetric_gynecologic_history: str | None = None
    blood_pressure: str | None = None
    hr: int | None = None
    rr: int | None = None
    spo2: int | None = None
    temperature: float | None = None
    physical_examination: str | None = None
    imaging_findings: str | None = None
    laboratory: str | None = None
    diagnosis: str | None = None
    initial_management: str | None = None
    surgical_plan: str | None = None
    surgery_done: bool | None = None
    surgery_done_at: date | None = None
    remarks: str | None = None
    status: str = AdmissionStatus.ADMITTED.value
    severity: str | None = None
    created_at: str | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _default_status(cls, value):
        return value or AdmissionStatus.ADMITTED.value

    @field_validator("date_of_injury", "surgery_done_at", mode="before")
    @classmethod
    def _empty_date(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class AdmissionListItem(Admission):
    patient: Patient | None = None
    patient_name: str = "Unknown"
    injury_datetime: str = "-"
    injury_day: int | None = None
    age: int | None = None


class AdmissionDetail(AdmissionListItem):
    display_age: str = "-"
    can_discharge: bool = True


class AdmissionCopyText(BaseModel):
    admission_id: str
    text: str


class AdmissionListView(ListView[AdmissionListItem]):
    free_text: str = ""
    date_of_injury: date | None = None
    status: str | None = None
