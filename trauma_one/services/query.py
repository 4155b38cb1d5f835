"""Backend-neutral query shapes and the registry filter composer.

A ``TableQuery`` is a small value object mirroring the row-query surface the
backing store exposes (projection, embedded relations, eq / ilike / in / gte
filters, OR groups, ordering, offset/limit ranges and exact counts). Store
adapters translate it into PostgREST parameters or SQL.
"""

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any

PATIENT_SEARCH_COLUMNS = ("first_name", "last_name", "hospital_registration_number")

OPERATORS = ("eq", "ilike", "in", "gte")


@dataclass(frozen=True)
class Condition:
    column: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in OPERATORS:
            raise ValueError(f"Unsupported operator: {self.op}")


@dataclass
class TableQuery:
    table: str
    columns: str = "*"
    embed: tuple[str, ...] = ()
    filters: list[Condition] = field(default_factory=list)
    any_of: list[tuple[Condition, ...]] = field(default_factory=list)
    order_by: str | None = None
    descending: bool = False
    offset: int | None = None
    limit: int | None = None
    count: bool = False

    def eq(self, column: str, value: Any) -> "TableQuery":
        self.filters.append(Condition(column, "eq", value))
        return self

    def ilike(self, column: str, pattern: str) -> "TableQuery":
        self.filters.append(Condition(column, "ilike", pattern))
        return self

    def in_(self, column: str, values: list) -> "TableQuery":
        self.filters.append(Condition(column, "in", list(values)))
        return self

    def gte(self, column: str, value: Any) -> "TableQuery":
        self.filters.append(Condition(column, "gte", value))
        return self

    def or_(self, *conditions: Condition) -> "TableQuery":
        self.any_of.append(tuple(conditions))
        return self

    def order(self, column: str, descending: bool = False) -> "TableQuery":
        self.order_by = column
        self.descending = descending
        return self

    def range(self, start: int, end: int) -> "TableQuery":
        """Inclusive row range, same semantics as the BaaS ``range(from, to)``."""
        if start < 0 or end < start - 1:
            raise ValueError(f"Invalid range {start}-{end}")
        self.offset = start
        self.limit = end - start + 1
        return self


@dataclass
class AdmissionFilters:
    free_text: str = ""
    date_of_injury: date | None = None
    status: str | None = None

    @property
    def search(self) -> str:
        return (self.free_text or "").strip()


def page_range(page: int, page_size: int) -> tuple[int, int]:
    """Page N covers rows [(N-1)*size, N*size-1]."""
    if page < 1:
        raise ValueError("page must be >= 1")
    if page_size < 1:
        raise ValueError("page_size must be >= 1")
    start = (page - 1) * page_size
    return start, start + page_size - 1


def total_pages(count: int | None, page_size: int) -> int:
    return math.ceil((count or 0) / page_size)


def contains_pattern(text: str) -> str:
    return f"%{text.strip()}%"


def patient_search_query(text: str, columns: str = "id") -> TableQuery:
    """Case-insensitive partial match on name or hospital registration number."""
    pattern = contains_pattern(text)
    return TableQuery("patients", columns=columns).or_(
        *(Condition(column, "ilike", pattern) for column in PATIENT_SEARCH_COLUMNS)
    )


def compose_patient_query(search: str, page: int, page_size: int) -> TableQuery:
    if search and search.strip():
        query = patient_search_query(search, columns="*")
    else:
        query = TableQuery("patients")
    query.count = True
    start, end = page_range(page, page_size)
    return query.order("created_at", descending=True).range(start, end)


def compose_admission_query(
    filters: AdmissionFilters,
    page: int,
    page_size: int,
    patient_ids: list[str] | None = None,
) -> TableQuery:
    """Build the admissions page query.

    ``patient_ids`` is the resolved free-text match set. Callers must
    short-circuit before calling this when free text matched nobody.
    """
    query = TableQuery("admissions", embed=("patients",), count=True)
    if filters.search:
        if not patient_ids:
            raise ValueError("free-text search requires resolved patient ids")
        query.in_("patient_id", patient_ids)
    if filters.date_of_injury:
        query.eq("date_of_injury", filters.date_of_injury.isoformat())
    if filters.status:
        query.eq("status", filters.status)
    start, end = page_range(page, page_size)
    return query.order("created_at", descending=True).range(start, end)


def patient_admissions_query(patient_id: str) -> TableQuery:
    return (
        TableQuery("admissions")
        .eq("patient_id", patient_id)
        .order("created_at", descending=True)
    )


def count_query(table: str) -> TableQuery:
    """Exact count with no rows returned."""
    query = TableQuery(table, columns="id", count=True)
    query.offset = 0
    query.limit = 0
    return query
