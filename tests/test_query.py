"""Tests for the registry query composer and pagination math."""

from datetime import date

import pytest

from trauma_one.services.query import (
    AdmissionFilters,
    Condition,
    TableQuery,
    compose_admission_query,
    compose_patient_query,
    count_query,
    page_range,
    patient_admissions_query,
    patient_search_query,
    total_pages,
)
from trauma_one.services.request_fence import RequestFence
from trauma_one.services.store import PostgrestStore


class TestPageRange:
    def test_first_page(self):
        assert page_range(1, 10) == (0, 9)

    def test_nth_page(self):
        assert page_range(2, 10) == (10, 19)
        assert page_range(3, 15) == (30, 44)

    def test_rejects_page_zero(self):
        with pytest.raises(ValueError):
            page_range(0, 10)


class TestTotalPages:
    def test_rounds_up(self):
        assert total_pages(15, 10) == 2
        assert total_pages(20, 10) == 2
        assert total_pages(21, 10) == 3

    def test_no_results(self):
        assert total_pages(0, 10) == 0
        assert total_pages(None, 15) == 0


class TestTableQuery:
    def test_range_is_inclusive(self):
        q = TableQuery("admissions").range(10, 19)
        assert q.offset == 10
        assert q.limit == 10

    def test_unknown_operator(self):
        with pytest.raises(ValueError):
            Condition("status", "like", "x")

    def test_builders_chain(self):
        q = TableQuery("patients").eq("sex", "Male").gte("created_at", "2024-07-01")
        assert [c.op for c in q.filters] == ["eq", "gte"]


class TestPatientSearch:
    def test_or_over_name_and_registration_number(self):
        q = patient_search_query("  ana ")
        assert q.columns == "id"
        (group,) = q.any_of
        assert {c.column for c in group} == {"first_name", "last_name", "hospital_registration_number"}
        assert all(c.op == "ilike" and c.value == "%ana%" for c in group)

    def test_patient_page_query(self):
        q = compose_patient_query("reyes", page=2, page_size=15)
        assert q.count is True
        assert q.order_by == "created_at" and q.descending
        assert (q.offset, q.limit) == (15, 15)
        assert len(q.any_of) == 1

    def test_blank_search_lists_everyone(self):
        q = compose_patient_query("   ", page=1, page_size=15)
        assert q.any_of == []


class TestAdmissionQuery:
    def test_no_filters(self):
        q = compose_admission_query(AdmissionFilters(), page=1, page_size=10)
        assert q.filters == []
        assert q.embed == ("patients",)
        assert q.count is True
        assert (q.offset, q.limit) == (0, 10)
        assert q.order_by == "created_at" and q.descending

    def test_all_filters(self):
        filters = AdmissionFilters(
            free_text="TO-1", date_of_injury=date(2024, 7, 12), status="ADMITTED"
        )
        q = compose_admission_query(filters, page=2, page_size=10, patient_ids=["p-1", "p-2"])
        assert Condition("patient_id", "in", ["p-1", "p-2"]) in q.filters
        assert Condition("date_of_injury", "eq", "2024-07-12") in q.filters
        assert Condition("status", "eq", "ADMITTED") in q.filters
        assert q.offset == 10

    def test_free_text_without_matches_is_caller_error(self):
        with pytest.raises(ValueError):
            compose_admission_query(AdmissionFilters(free_text="x"), 1, 10, patient_ids=[])

    def test_patient_history(self):
        q = patient_admissions_query("p-1")
        assert q.filters == [Condition("patient_id", "eq", "p-1")]
        assert q.descending

    def test_count_query_fetches_no_rows(self):
        q = count_query("patients")
        assert q.count and q.limit == 0


class TestPostgrestParams:
    def test_admission_page_params(self):
        filters = AdmissionFilters(free_text="ana", status="DISCHARGED")
        q = compose_admission_query(filters, page=1, page_size=10, patient_ids=["p-1", "p,2"])
        params = PostgrestStore.build_params(q)
        assert params[0] == ("select", "*,patients(*)")
        assert ("patient_id", 'in.("p-1","p,2")') in params
        assert ("status", "eq.DISCHARGED") in params
        assert ("order", "created_at.desc") in params
        assert ("offset", "0") in params
        assert ("limit", "10") in params

    def test_or_group_is_quoted(self):
        params = PostgrestStore.build_params(patient_search_query("ana"))
        assert (
            "or",
            '(first_name.ilike."%ana%",last_name.ilike."%ana%",hospital_registration_number.ilike."%ana%")',
        ) in params


class TestRequestFence:
    def test_latest_wins(self):
        fence = RequestFence()
        first = fence.issue()
        second = fence.issue()
        assert not fence.is_current(first)
        assert fence.is_current(second)

    def test_invalidate(self):
        fence = RequestFence()
        token = fence.issue()
        fence.invalidate()
        assert not fence.is_current(token)
        assert fence.latest == token + 1
