from datetime import date
from enum import Enum

from pydantic import BaseModel, field_validator

from trauma_one.models.common import ListView

BLOOD_TYPES = ("A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-")


class Sex(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class PatientDraft(BaseModel):
    """Registration / edit form contents as submitted by the front desk."""
    id: str | None = None
    first_name: str = ""
    last_name: str = ""
    birthdate: date | None = None
    sex: str = ""
    hospital_registration_number: str | None = None
    blood_type: str | None = None

    @field_validator("birthdate", "hospital_registration_number", "blood_type", "id", mode="before")
    @classmethod
    def _empty_is_missing(cls, value):
        return _blank_to_none(value)

    @field_validator("first_name", "last_name", "sex", mode="before")
    @classmethod
    def _none_is_empty(cls, value):
        return "" if value is None else value


class Patient(BaseModel):
    id: str
    first_name: str
    last_name: str
    birthdate: date | None = None
    sex: str | None = None
    hospital_registration_number: str | None = None
    blood_type: str | None = None
    profile_picture: str | None = None
    created_at: str | None = None

    @field_validator("birthdate", mode="before")
    @classmethod
    def _empty_birthdate(cls, value):
        return _blank_to_none(value)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class PatientDetail(Patient):
    age: int | None = None
    display_age: str = "-"
    label: str = ""
    profile_picture_url: str | None = None


class PatientOption(BaseModel):
    value: str
    label: str


class ProfilePictureResponse(BaseModel):
    patient_id: str
    profile_picture: str
    signed_url: str | None = None


class PatientListView(ListView[Patient]):
    search: str = ""
    selected_id: str | None = None
