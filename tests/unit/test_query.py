from __future__ import annotations

import copy
import itertools

import pytest

from fleetboard.domain.models import QuerySpec, SortDirection
from fleetboard.errors import InvalidQueryError
from fleetboard.query import (
    filter_records,
    iter_pages,
    matches_filters,
    paginate,
    run_query,
    search_records,
    sort_records,
)

PAGE_SIZE = 10


def _ids(records):
    return [r["id"] for r in records]


# --------------- concrete scenarios ---------------


def test_status_filter_selects_single_record(vehicles):
    result = run_query(vehicles, QuerySpec(filters={"status": "available"}, page=1, page_size=10))

    assert _ids(result.items) == ["v1"]
    assert result.total_matched == 1
    assert result.total_pages == 1


def test_search_without_match_returns_empty_page(vehicles):
    result = run_query(
        vehicles,
        QuerySpec(search_text="Ford", search_fields=("make", "model"), page=1, page_size=10),
    )

    assert result.items == ()
    assert result.total_matched == 0
    assert result.total_pages == 0


def test_second_page_holds_records_11_to_20(numbered_records):
    result = run_query(numbered_records, QuerySpec(sort_key="rank", page=2, page_size=PAGE_SIZE))

    assert len(result.items) == PAGE_SIZE
    assert [r["rank"] for r in result.items] == list(range(11, 21))


def test_last_page_holds_remainder(numbered_records):
    result = run_query(numbered_records, QuerySpec(sort_key="rank", page=3, page_size=PAGE_SIZE))

    assert len(result.items) == 5
    assert result.total_pages == 3
    assert result.has_previous
    assert not result.has_next


# --------------- search ---------------


def test_search_is_case_insensitive_across_fields(vehicles):
    matched = search_records(vehicles, "GOLF", ["make", "model"])
    assert _ids(matched) == ["v3"]


def test_search_any_field_matches(vehicles):
    matched = search_records(vehicles, "o", ["make"])
    # Toyota, Volkswagen
    assert _ids(matched) == ["v1", "v3"]


def test_search_missing_fields_never_match_or_raise(vehicles):
    assert search_records(vehicles, "amara", ["nickname"]) == []


def test_search_dotted_path_into_nested_record(vehicles):
    assert _ids(search_records(vehicles, "amara", ["current_driver.name"])) == ["v2"]


def test_search_callable_accessor(vehicles):
    matched = search_records(vehicles, "toyota prius", [lambda r: f"{r['make']} {r['model']}"])
    assert _ids(matched) == ["v1"]


def test_search_stringifies_numbers(vehicles):
    assert _ids(search_records(vehicles, "2023", ["year"])) == ["v2"]


def test_empty_search_keeps_everything(vehicles):
    assert search_records(vehicles, "", ["make"]) == vehicles


# --------------- filters ---------------


@pytest.mark.parametrize("sentinel", ["all", "", None, "ALL"])
def test_no_filter_sentinels_match_everything(vehicles, sentinel):
    assert filter_records(vehicles, {"status": sentinel}) == vehicles


def test_filters_compare_normalised_strings():
    records = [{"id": "a", "seats": 4, "active": True}, {"id": "b", "seats": "5", "active": False}]
    assert _ids(filter_records(records, {"seats": "4"})) == ["a"]
    assert _ids(filter_records(records, {"seats": 5})) == ["b"]
    assert _ids(filter_records(records, {"active": "true"})) == ["a"]


def test_filters_are_conjunctive(vehicles):
    assert _ids(filter_records(vehicles, {"partner_id": "p1", "status": "maintenance"})) == ["v3"]
    assert filter_records(vehicles, {"partner_id": "p2", "status": "maintenance"}) == []


FILTER_SETS = [
    {"status": "available"},
    {"partner_id": "p1"},
    {"category": "suv"},
    {"status": "all"},
    {"partner_id": "p2"},
]


@pytest.mark.parametrize(
    "first,second",
    [pair for pair in itertools.combinations(FILTER_SETS, 2) if not set(pair[0]) & set(pair[1])],
)
def test_filter_union_equals_conjunction(vehicles, first, second):
    union = {**first, **second}
    for record in vehicles:
        assert matches_filters(record, union) == (
            matches_filters(record, first) and matches_filters(record, second)
        )


# --------------- sort ---------------


def test_sort_numbers_numerically():
    records = [{"id": "a", "n": 10}, {"id": "b", "n": 9}, {"id": "c", "n": 100}]
    assert _ids(sort_records(records, "n")) == ["b", "a", "c"]
    assert _ids(sort_records(records, "n", SortDirection.DESC)) == ["c", "a", "b"]


def test_sort_dates_chronologically(vehicles):
    # mixed "Z", "+00:00" and date-only strings
    assert _ids(sort_records(vehicles, "created_at")) == ["v2", "v3", "v1"]


def test_sort_strings_lexicographically(vehicles):
    assert _ids(sort_records(vehicles, "make", "desc")) == ["v3", "v1", "v2"]


@pytest.mark.parametrize("direction", [SortDirection.ASC, SortDirection.DESC])
def test_missing_sort_values_go_last_in_both_directions(vehicles, direction):
    ordered = sort_records(vehicles, "year", direction)
    assert ordered[-1]["id"] == "v3"


@pytest.mark.parametrize("direction", [SortDirection.ASC, SortDirection.DESC])
def test_sort_is_stable_for_ties(numbered_records, direction):
    ordered = sort_records(numbered_records, "group", direction)
    for group in ("odd", "even"):
        ranks = [r["rank"] for r in ordered if r["group"] == group]
        assert ranks == sorted(ranks)


def test_unknown_sort_key_preserves_order(vehicles):
    assert sort_records(vehicles, "does_not_exist", SortDirection.DESC) == vehicles


def test_sort_by_nested_path(vehicles):
    ordered = sort_records(vehicles, "current_driver.name")
    assert ordered[0]["id"] == "v2"


# --------------- pagination ---------------


@pytest.mark.parametrize("page_size", [1, 3, 7, 10, 25, 40])
def test_pages_concatenate_to_full_result(numbered_records, page_size):
    spec = QuerySpec(
        filters={"group": "odd"}, sort_key="rank", sort_direction="desc", page_size=page_size
    )
    pages = list(iter_pages(numbered_records, spec))
    concatenated = [r for page in pages for r in page.items]
    full = sort_records(filter_records(numbered_records, spec.filters), "rank", "desc")

    assert concatenated == full
    assert len(pages) == max(pages[0].total_pages, 1)
    assert len({r["id"] for r in concatenated}) == len(concatenated)


def test_out_of_range_page_is_empty_with_accurate_totals(numbered_records):
    result = run_query(numbered_records, QuerySpec(page=9, page_size=PAGE_SIZE))
    assert result.items == ()
    assert result.total_matched == 25
    assert result.total_pages == 3


def test_paginate_slice():
    assert paginate(list(range(7)), 2, 3) == [3, 4, 5]
    assert paginate(list(range(7)), 4, 3) == []


@pytest.mark.parametrize("page,page_size", [(0, 10), (-1, 10), (1, 0), (2, -5)])
def test_invalid_paging_raises(vehicles, page, page_size):
    with pytest.raises(InvalidQueryError) as exc_info:
        run_query(vehicles, QuerySpec(page=page, page_size=page_size))
    assert "must be >= 1" in exc_info.value.reason


def test_invalid_query_error_is_a_value_error(vehicles):
    with pytest.raises(ValueError):
        run_query(vehicles, QuerySpec(page=0))


# --------------- purity ---------------


def test_run_query_does_not_mutate_input(vehicles):
    original = copy.deepcopy(vehicles)
    spec = QuerySpec(
        search_text="o",
        search_fields=("make", "model"),
        filters={"partner_id": "p1"},
        sort_key="weekly_rate",
        sort_direction="desc",
    )
    first = run_query(vehicles, spec)
    second = run_query(vehicles, spec)

    assert vehicles == original
    assert first == second


def test_query_spec_is_immutable():
    spec = QuerySpec()
    with pytest.raises(Exception):
        spec.page = 2
