"""
Generic list engine shared by every entity screen.

A list request is always evaluated as ``filter -> sort -> paginate``:

* ``filter_records`` keeps records where any configured field contains the
  search text (case-insensitive).
* ``sort_records`` is a stable sort whose comparison depends on the declared
  kind of the field: text collates on base letters first (accents and case
  only break ties), numbers and dates compare numerically (dates as epoch
  milliseconds).
* ``paginate`` slices one page; ``clamp_page`` keeps the page number inside
  ``[1, total_pages]`` after the record count changes.

Fields are given either as attribute/key names or as callables, so the same
engine serves ORM rows, dicts and computed columns.
"""
from __future__ import annotations

import math
import unicodedata
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Generic, Iterable, Mapping, Sequence, TypeVar, Union

from .datetime_utils import epoch_ms
from .errors import ValidationError

T = TypeVar("T")

Accessor = Union[str, Callable[[Any], Any]]


class FieldKind(str, Enum):
    STRING = "string"
    NUMBER = "number"
    DATE = "date"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


def field_value(record: Any, accessor: Accessor) -> Any:
    if callable(accessor):
        return accessor(record)
    if isinstance(record, Mapping):
        return record.get(accessor)
    return getattr(record, accessor, None)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def filter_records(records: Iterable[T], query: str | None, fields: Sequence[Accessor]) -> list[T]:
    records = list(records)
    needle = (query or "").strip().casefold()
    if not needle:
        return records
    return [
        r for r in records
        if any(needle in _as_text(field_value(r, f)).casefold() for f in fields)
    ]


def _string_key(value: Any) -> tuple[str, str, str]:
    # Root-collation levels: base letters, then accents, then case.
    # Independent of the process locale, so "Émile" sorts between "Alan" and "Zed".
    text = _as_text(value)
    folded = text.casefold()
    decomposed = unicodedata.normalize("NFKD", folded)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return base, folded, text


def _number_key(value: Any) -> float:
    if value is None:
        return 0.0
    return float(value)


def _date_key(value: Any) -> float:
    if value is None:
        return 0.0
    if isinstance(value, (date, datetime)):
        return epoch_ms(value)
    if isinstance(value, str):
        return epoch_ms(datetime.fromisoformat(value))
    return float(value)


_KEYS: dict[FieldKind, Callable[[Any], Any]] = {
    FieldKind.STRING: _string_key,
    FieldKind.NUMBER: _number_key,
    FieldKind.DATE: _date_key,
}


def sort_records(
    records: Iterable[T],
    accessor: Accessor,
    direction: SortDirection | str = SortDirection.ASC,
    kind: FieldKind = FieldKind.STRING,
) -> list[T]:
    key = _KEYS[FieldKind(kind)]
    descending = SortDirection(direction) is SortDirection.DESC
    # sorted() is stable in both directions: ties keep their incoming order
    return sorted(records, key=lambda r: key(field_value(r, accessor)), reverse=descending)


def total_pages(count: int, page_size: int) -> int:
    if page_size < 1:
        raise ValidationError("page_size must be at least 1", details={"page_size": "must be >= 1"})
    return math.ceil(count / page_size)


def clamp_page(page: int, count: int, page_size: int) -> int:
    return max(1, min(page, total_pages(count, page_size) or 1))


def paginate(records: Sequence[T], page: int, page_size: int) -> list[T]:
    if page_size < 1:
        raise ValidationError("page_size must be at least 1", details={"page_size": "must be >= 1"})
    start = (page - 1) * page_size
    return list(records[start:start + page_size])


@dataclass
class Page(Generic[T]):
    items: list[T]
    total: int
    total_pages: int
    page: int
    page_size: int


@dataclass
class SortField:
    accessor: Accessor
    kind: FieldKind = FieldKind.STRING


@dataclass
class ListQuery:
    """State of one list screen: search text, sort and the page being viewed."""

    q: str = ""
    sort: str | None = None
    direction: SortDirection = SortDirection.ASC
    page: int = 1
    page_size: int = 10

    def search(self, q: str) -> None:
        self.q = q
        self.page = 1

    def sort_by(self, field_name: str) -> None:
        if self.sort == field_name:
            self.direction = (
                SortDirection.DESC if self.direction is SortDirection.ASC else SortDirection.ASC
            )
        else:
            self.sort = field_name
            self.direction = SortDirection.ASC
        self.page = 1

    def set_page_size(self, page_size: int) -> None:
        self.page_size = page_size
        self.page = 1


@dataclass
class ListView(Generic[T]):
    """Per-entity list configuration: searchable fields and sortable fields."""

    search_fields: Sequence[Accessor]
    sort_fields: Mapping[str, SortField] = field(default_factory=dict)
    default_sort: str | None = None
    default_direction: SortDirection = SortDirection.ASC

    def sort_field(self, name: str) -> SortField:
        try:
            return self.sort_fields[name]
        except KeyError:
            allowed = ", ".join(sorted(self.sort_fields))
            raise ValidationError(
                f"Cannot sort by '{name}'. Allowed: {allowed}",
                details={"sort": f"must be one of: {allowed}"},
            ) from None

    def apply(self, records: Iterable[T], query: ListQuery) -> Page[T]:
        rows = filter_records(records, query.q, self.search_fields)

        sort_name = query.sort or self.default_sort
        direction = query.direction if query.sort else self.default_direction
        if sort_name:
            by = self.sort_field(sort_name)
            rows = sort_records(rows, by.accessor, direction, by.kind)

        page = clamp_page(query.page, len(rows), query.page_size)
        query.page = page
        return Page(
            items=paginate(rows, page, query.page_size),
            total=len(rows),
            total_pages=total_pages(len(rows), query.page_size),
            page=page,
            page_size=query.page_size,
        )
