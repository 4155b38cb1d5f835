"""Registry list view state with latest-request-wins fetching.

Filter or page changes may overlap; a response is applied only if no newer
request has been issued since. A failed fetch records the error and clears
the rows instead of raising into the view. An expired session is the one
failure that is raised, so the caller can sign the user out.

``views`` keeps one admissions and one patients list per signed-in user for
the registry endpoints.
"""

import logging
from datetime import date

from trauma_one.errors import SessionExpiredError, StoreError
from trauma_one.models.admission import AdmissionListItem, AdmissionListView, AdmissionStatus
from trauma_one.models.common import Page
from trauma_one.models.patient import Patient, PatientListView
from trauma_one.services.lifecycle import normalize_status
from trauma_one.services.query import AdmissionFilters
from trauma_one.services.repositories import AdmissionRepository, PatientRepository
from trauma_one.services.request_fence import RequestFence

logger = logging.getLogger(__name__)


class PagedListState:
    def __init__(self) -> None:
        self.page = 1
        self.items: list = []
        self.total = 0
        self.total_pages = 0
        self.loading = False
        self.error: str | None = None
        self._fence = RequestFence()

    async def _fetch(self) -> Page:  # pragma: no cover - interface
        raise NotImplementedError

    def _applied(self, page: Page) -> None:
        """Hook for subclasses after a page has been applied."""

    async def refresh(self) -> bool:
        """Fetch the current page. Returns False when the response was stale."""
        token = self._fence.issue()
        self.loading = True
        self.error = None
        try:
            page = await self._fetch()
        except SessionExpiredError:
            self.loading = False
            raise
        except StoreError as e:
            if not self._fence.is_current(token):
                return False
            logger.warning("%s fetch failed: %s", type(self).__name__, e.message)
            self.items = []
            self.total = 0
            self.total_pages = 0
            self.error = e.message
            self.loading = False
            return True

        if not self._fence.is_current(token):
            logger.debug("Dropping stale %s response %d", type(self).__name__, token)
            return False
        self.items = page.items
        self.total = page.total
        self.total_pages = page.total_pages
        self.loading = False
        self._applied(page)
        return True

    async def set_page(self, page: int) -> bool:
        if page < 1:
            raise ValueError("page must be >= 1")
        self.page = page
        return await self.refresh()


class AdmissionListState(PagedListState):
    items: list[AdmissionListItem]

    def __init__(self, repository: AdmissionRepository) -> None:
        super().__init__()
        self._repository = repository
        self.filters = AdmissionFilters(status=AdmissionStatus.ADMITTED.value)

    def bind(self, repository: AdmissionRepository) -> "AdmissionListState":
        self._repository = repository
        return self

    async def _fetch(self) -> Page:
        return await self._repository.list(self.filters, self.page)

    def _change_filters(
        self,
        free_text: str | None,
        date_of_injury: date | None,
        status: str | None,
        clear_date: bool,
    ) -> bool:
        before = (self.filters.free_text, self.filters.date_of_injury, self.filters.status)
        if free_text is not None:
            self.filters.free_text = free_text
        if date_of_injury is not None or clear_date:
            self.filters.date_of_injury = date_of_injury
        if status is not None:
            self.filters.status = normalize_status(status)
        return before != (self.filters.free_text, self.filters.date_of_injury, self.filters.status)

    async def set_filters(
        self,
        free_text: str | None = None,
        date_of_injury: date | None = None,
        status: str | None = None,
        clear_date: bool = False,
    ) -> bool:
        """Change filters and go back to page 1."""
        self._change_filters(free_text, date_of_injury, status, clear_date)
        self.page = 1
        return await self.refresh()

    async def show(
        self,
        page: int | None = None,
        free_text: str | None = None,
        date_of_injury: date | None = None,
        status: str | None = None,
        clear_date: bool = False,
    ) -> bool:
        """Apply whatever changed in one fetch. New filters without a page mean page 1."""
        changed = self._change_filters(free_text, date_of_injury, status, clear_date)
        if page is not None:
            return await self.set_page(page)
        if changed:
            self.page = 1
        return await self.refresh()

    def snapshot(self, applied: bool = True) -> AdmissionListView:
        return AdmissionListView(
            items=self.items,
            page=self.page,
            total=self.total,
            total_pages=self.total_pages,
            error=self.error,
            applied=applied,
            free_text=self.filters.free_text,
            date_of_injury=self.filters.date_of_injury,
            status=self.filters.status,
        )


class PatientListState(PagedListState):
    """Patient registry list; keeps a selected patient in view."""
    items: list[Patient]

    def __init__(self, repository: PatientRepository) -> None:
        super().__init__()
        self._repository = repository
        self.search = ""
        self.selected: Patient | None = None

    def bind(self, repository: PatientRepository) -> "PatientListState":
        self._repository = repository
        return self

    async def _fetch(self) -> Page:
        return await self._repository.list(self.search, self.page)

    def _applied(self, page: Page) -> None:
        if not page.items:
            self.selected = None
        elif self.selected is None or all(p.id != self.selected.id for p in page.items):
            self.selected = page.items[0]

    async def refresh(self) -> bool:
        applied = await super().refresh()
        if applied and self.error:
            self.selected = None
        return applied

    async def set_search(self, search: str) -> bool:
        self.search = search
        self.page = 1
        return await self.refresh()

    async def show(self, page: int | None = None, search: str | None = None) -> bool:
        if search is not None and search != self.search:
            self.search = search
            self.page = 1
        if page is not None:
            return await self.set_page(page)
        return await self.refresh()

    def select(self, patient_id: str) -> Patient:
        for patient in self.items:
            if patient.id == patient_id:
                self.selected = patient
                return patient
        raise ValueError(f"Patient {patient_id} is not on this page")

    def snapshot(self, applied: bool = True) -> PatientListView:
        return PatientListView(
            items=self.items,
            page=self.page,
            total=self.total,
            total_pages=self.total_pages,
            error=self.error,
            applied=applied,
            search=self.search,
            selected_id=self.selected.id if self.selected else None,
        )


class ListViews:
    """Per-user registry list states, kept until sign-out."""

    def __init__(self) -> None:
        self._admissions: dict[str, AdmissionListState] = {}
        self._patients: dict[str, PatientListState] = {}

    def admissions(self, owner: str, repository: AdmissionRepository) -> AdmissionListState:
        state = self._admissions.get(owner)
        if state is None:
            state = self._admissions[owner] = AdmissionListState(repository)
        return state.bind(repository)

    def patients(self, owner: str, repository: PatientRepository) -> PatientListState:
        state = self._patients.get(owner)
        if state is None:
            state = self._patients[owner] = PatientListState(repository)
        return state.bind(repository)

    def discard_owned_by(self, owner: str) -> None:
        self._admissions.pop(owner, None)
        self._patients.pop(owner, None)

    def clear(self) -> None:
        self._admissions.clear()
        self._patients.clear()

    def __len__(self) -> int:
        return len(self._admissions.keys() | self._patients.keys())


views = ListViews()
