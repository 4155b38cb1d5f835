"""Multi-step admission wizard with inline patient quick add.

The wizard keeps the admission draft and the selectable patient list. The
operator may move between steps freely; the complete draft is validated once,
on submit. Quick add creates a patient, selects it and prepends it to the
picker list without re-fetching.
"""

import logging
import time
import uuid
from typing import Literal

from pydantic import BaseModel

from trauma_one.config import QUICK_ADD_REQUIRES_BIRTHDATE, WIZARD_IDLE_TTL_SECONDS
from trauma_one.errors import FormValidationError, RecordNotFoundError, StoreError
from trauma_one.models.admission import (
    EXAM_FIELDS,
    HISTORY_FIELDS,
    INJURY_FIELDS,
    PLAN_FIELDS,
    VITALS_FIELDS,
    Admission,
    AdmissionDraft,
)
from trauma_one.models.patient import Patient, PatientDraft, PatientOption
from trauma_one.services.derived import patient_label
from trauma_one.services.repositories import AdmissionRepository, PatientRepository
from trauma_one.services.request_fence import RequestFence

logger = logging.getLogger(__name__)

WIZARD_STEPS = (
    ("Patient & Injury", ("patient_id", *INJURY_FIELDS)),
    ("History", HISTORY_FIELDS),
    ("Vitals", VITALS_FIELDS),
    ("Exam & Labs", EXAM_FIELDS),
    ("Diagnosis", (*PLAN_FIELDS, "severity")),
)


class WizardState(BaseModel):
    id: str
    step: int
    step_name: str
    steps: list[str]
    step_fields: list[str]
    draft: AdmissionDraft
    patient_options: list[PatientOption]
    quick_add_open: bool
    error: str | None = None
    quick_add_error: str | None = None
    submitted_admission_id: str | None = None


class WizardUpdate(BaseModel):
    step: int | None = None
    move: Literal["next", "back"] | None = None
    fields: dict = {}
    quick_add_open: bool | None = None


class AdmissionWizard:
    def __init__(
        self,
        owner: str,
        require_birthdate: bool = QUICK_ADD_REQUIRES_BIRTHDATE,
    ) -> None:
        self.id = str(uuid.uuid4())
        self.owner = owner
        self.require_birthdate = require_birthdate
        self.draft = AdmissionDraft()
        self.patients: list[Patient] = []
        self.step = 0
        self.quick_add_open = False
        self.error: str | None = None
        self.quick_add_error: str | None = None
        self.submitted: Admission | None = None
        self._patient_repo: PatientRepository | None = None
        self._admission_repo: AdmissionRepository | None = None
        self._patients_fence = RequestFence()
        self.touched_at = time.monotonic()

    def bind(self, patients: PatientRepository, admissions: AdmissionRepository) -> "AdmissionWizard":
        """Attach repositories acting with the current request's session."""
        self._patient_repo = patients
        self._admission_repo = admissions
        return self

    def _repos(self) -> tuple[PatientRepository, AdmissionRepository]:
        if self._patient_repo is None or self._admission_repo is None:
            raise RuntimeError("Wizard used before bind()")
        return self._patient_repo, self._admission_repo

    async def load_patients(self) -> bool:
        """Reload the picker. Returns False when a newer reload overtook this one."""
        patients, _ = self._repos()
        token = self._patients_fence.issue()
        loaded = await patients.selectable()
        if not self._patients_fence.is_current(token):
            return False
        self.patients = loaded
        return True

    # --- navigation ---

    def go_to(self, step: int) -> None:
        if not 0 <= step < len(WIZARD_STEPS):
            raise ValueError(f"Step must be between 0 and {len(WIZARD_STEPS) - 1}")
        self.step = step

    def next(self) -> None:
        self.go_to(min(self.step + 1, len(WIZARD_STEPS) - 1))

    def back(self) -> None:
        self.go_to(max(self.step - 1, 0))

    @property
    def is_last_step(self) -> bool:
        return self.step == len(WIZARD_STEPS) - 1

    # --- draft ---

    def update(self, **fields) -> AdmissionDraft:
        unknown = set(fields) - set(AdmissionDraft.model_fields)
        if unknown:
            raise ValueError(f"Unknown admission fields: {', '.join(sorted(unknown))}")
        self.draft = AdmissionDraft.model_validate({**self.draft.model_dump(), **fields})
        return self.draft

    def select_patient(self, patient_id: str | None) -> None:
        self.update(patient_id=patient_id or "")

    def options(self) -> list[PatientOption]:
        return [PatientOption(value=p.id, label=patient_label(p)) for p in self.patients]

    # --- quick add ---

    def open_quick_add(self) -> None:
        self.quick_add_open = True
        self.quick_add_error = None

    def close_quick_add(self) -> None:
        self.quick_add_open = False

    async def quick_add_patient(self, draft: PatientDraft) -> Patient:
        patients, _ = self._repos()
        self.quick_add_error = None
        try:
            patient = await patients.create(draft, require_birthdate=self.require_birthdate)
        except (FormValidationError, StoreError) as e:
            self.quick_add_error = e.message
            raise
        # an in-flight picker reload may predate this insert
        self._patients_fence.invalidate()
        self.patients.insert(0, patient)
        self.select_patient(patient.id)
        self.quick_add_open = False
        logger.info("Quick-added patient %s in wizard %s", patient.id, self.id)
        return patient

    # --- submit ---

    async def submit(self) -> Admission:
        _, admissions = self._repos()
        self.error = None
        try:
            admission = await admissions.create(self.draft)
        except (FormValidationError, StoreError) as e:
            self.error = e.message
            raise
        self.submitted = admission
        return admission

    def snapshot(self) -> WizardState:
        name, fields = WIZARD_STEPS[self.step]
        return WizardState(
            id=self.id,
            step=self.step,
            step_name=name,
            steps=[label for label, _ in WIZARD_STEPS],
            step_fields=list(fields),
            draft=self.draft,
            patient_options=self.options(),
            quick_add_open=self.quick_add_open,
            error=self.error,
            quick_add_error=self.quick_add_error,
            submitted_admission_id=self.submitted.id if self.submitted else None,
        )


class WizardRegistry:
    """In-memory wizards, one owner each.

    Discarded on submit, cancel or sign-out. Wizards left idle longer than
    ``idle_ttl`` seconds are swept whenever a wizard is created or looked up.
    """

    def __init__(self, idle_ttl: float = WIZARD_IDLE_TTL_SECONDS) -> None:
        self.idle_ttl = idle_ttl
        self._wizards: dict[str, AdmissionWizard] = {}

    def sweep(self) -> int:
        cutoff = time.monotonic() - self.idle_ttl
        idle = [wid for wid, wizard in self._wizards.items() if wizard.touched_at < cutoff]
        for wizard_id in idle:
            del self._wizards[wizard_id]
        if idle:
            logger.info("Dropped %d idle wizards", len(idle))
        return len(idle)

    def create(self, owner: str, **kwargs) -> AdmissionWizard:
        self.sweep()
        wizard = AdmissionWizard(owner, **kwargs)
        self._wizards[wizard.id] = wizard
        return wizard

    def get(self, wizard_id: str, owner: str) -> AdmissionWizard:
        self.sweep()
        wizard = self._wizards.get(wizard_id)
        if wizard is None or wizard.owner != owner:
            raise RecordNotFoundError(f"Wizard {wizard_id} not found")
        wizard.touched_at = time.monotonic()
        return wizard

    def discard(self, wizard_id: str, owner: str) -> None:
        self.get(wizard_id, owner)
        del self._wizards[wizard_id]

    def discard_owned_by(self, owner: str) -> int:
        stale = [wid for wid, wizard in self._wizards.items() if wizard.owner == owner]
        for wizard_id in stale:
            del self._wizards[wizard_id]
        return len(stale)

    def clear(self) -> None:
        self._wizards.clear()

    def __len__(self) -> int:
        return len(self._wizards)


wizards = WizardRegistry()
