from __future__ import annotations

from datetime import date

import pytest

from pigfarm.errors import ValidationError
from pigfarm.query import (
    FieldKind,
    ListQuery,
    ListView,
    SortDirection,
    SortField,
    clamp_page,
    filter_records,
    paginate,
    sort_records,
    total_pages,
)

RECORDS = [
    {"id": 1, "tag": "S-10", "breed": "Duroc", "litters": 3, "born": date(2024, 5, 1)},
    {"id": 2, "tag": "s-2", "breed": "Landrace", "litters": 10, "born": date(2023, 1, 15)},
    {"id": 3, "tag": "S-3", "breed": "Duroc", "litters": 3, "born": date(2024, 5, 1)},
    {"id": 4, "tag": "X-1", "breed": None, "litters": None, "born": date(2022, 12, 31)},
    {"id": 5, "tag": "S-1", "breed": "Large White", "litters": 1, "born": date(2025, 2, 2)},
]


def _ids(records):
    return [r["id"] for r in records]


def test_filter_is_case_insensitive_on_any_field():
    assert _ids(filter_records(RECORDS, "duroc", ["tag", "breed"])) == [1, 3]
    assert _ids(filter_records(RECORDS, "S-1", ["tag"])) == [1, 5]
    assert _ids(filter_records(RECORDS, "", ["tag"])) == [1, 2, 3, 4, 5]
    assert _ids(filter_records(RECORDS, None, ["tag"])) == [1, 2, 3, 4, 5]
    assert filter_records(RECORDS, "nothing", ["tag", "breed"]) == []


def test_filter_accepts_callables():
    assert _ids(filter_records(RECORDS, "10 litters", [lambda r: f"{r['litters']} litters"])) == [2]


def test_numeric_sort_is_numeric_not_lexical():
    ordered = sort_records(RECORDS, "litters", SortDirection.ASC, FieldKind.NUMBER)
    assert _ids(ordered) == [4, 5, 1, 3, 2]


def test_date_sort_and_ties_keep_incoming_order():
    ordered = sort_records(RECORDS, "born", SortDirection.ASC, FieldKind.DATE)
    assert _ids(ordered) == [4, 2, 1, 3, 5]

    descending = sort_records(RECORDS, "born", SortDirection.DESC, FieldKind.DATE)
    assert _ids(descending) == [5, 1, 3, 2, 4]


def test_string_sort_ignores_case():
    ordered = sort_records(RECORDS, "tag", "asc", FieldKind.STRING)
    assert [r["tag"] for r in ordered] == ["S-1", "S-10", "s-2", "S-3", "X-1"]


def test_sort_desc_then_asc_restores_order_and_is_idempotent():
    filtered = filter_records(RECORDS, "s-", ["tag"])
    asc = sort_records(filtered, "litters", "asc", FieldKind.NUMBER)

    again = sort_records(asc, "litters", "asc", FieldKind.NUMBER)
    assert again == asc

    round_trip = sort_records(sort_records(asc, "litters", "desc", FieldKind.NUMBER), "litters", "asc", FieldKind.NUMBER)
    assert _ids(round_trip) == _ids(asc)


@pytest.mark.parametrize("page_size", [1, 2, 3, 4, 5, 7])
def test_pages_cover_the_set_exactly_once(page_size):
    rows = sort_records(RECORDS, "tag", "asc")
    pages = total_pages(len(rows), page_size)
    collected = []
    for page in range(1, pages + 1):
        collected.extend(paginate(rows, page, page_size))
    assert collected == rows


def test_total_pages_and_clamp():
    assert total_pages(0, 10) == 0
    assert total_pages(10, 10) == 1
    assert total_pages(11, 10) == 2
    assert clamp_page(5, 11, 10) == 2
    assert clamp_page(0, 11, 10) == 1
    assert clamp_page(3, 0, 10) == 1
    with pytest.raises(ValidationError):
        total_pages(5, 0)
    with pytest.raises(ValidationError):
        paginate(RECORDS, 1, 0)


def test_list_query_resets_page_and_toggles_direction():
    q = ListQuery(page=4)
    q.search("duroc")
    assert q.page == 1

    q.page = 3
    q.sort_by("tag")
    assert (q.sort, q.direction, q.page) == ("tag", SortDirection.ASC, 1)

    q.page = 2
    q.sort_by("tag")
    assert (q.direction, q.page) == (SortDirection.DESC, 1)

    q.sort_by("born")
    assert (q.sort, q.direction) == ("born", SortDirection.ASC)

    q.page = 5
    q.set_page_size(25)
    assert (q.page_size, q.page) == (25, 1)


VIEW = ListView(
    search_fields=("tag", "breed"),
    sort_fields={
        "tag": SortField("tag"),
        "litters": SortField("litters", FieldKind.NUMBER),
        "born": SortField("born", FieldKind.DATE),
    },
    default_sort="born",
    default_direction=SortDirection.DESC,
)


def test_list_view_composes_filter_sort_paginate():
    page = VIEW.apply(RECORDS, ListQuery(q="s-", sort="litters", direction=SortDirection.DESC, page_size=2))
    assert page.total == 4
    assert page.total_pages == 2
    assert _ids(page.items) == [2, 1]


def test_list_view_default_sort_and_clamped_page():
    query = ListQuery(page=9, page_size=2)
    page = VIEW.apply(RECORDS, query)
    assert page.page == 3
    assert query.page == 3
    assert _ids(page.items) == [4]

    first = VIEW.apply(RECORDS, ListQuery(page_size=2))
    assert _ids(first.items) == [5, 1]


def test_list_view_rejects_unknown_sort_field():
    with pytest.raises(ValidationError) as exc:
        VIEW.apply(RECORDS, ListQuery(sort="weight"))
    assert "sort" in exc.value.details


def test_string_sort_places_accented_letters_with_their_base_letter():
    people = [{"name": "Zed"}, {"name": "Émile"}, {"name": "Alan"}, {"name": "emile"}]
    ordered = sort_records(people, "name", "asc")
    assert [p["name"] for p in ordered] == ["Alan", "emile", "Émile", "Zed"]

    descending = sort_records(people, "name", "desc")
    assert [p["name"] for p in descending] == ["Zed", "Émile", "emile", "Alan"]
