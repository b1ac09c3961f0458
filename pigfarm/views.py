from __future__ import annotations

from .metrics import occupancy_pct
from .query import FieldKind, ListView, SortDirection, SortField

NUMBER = FieldKind.NUMBER
DATE = FieldKind.DATE


def _subject_tag(record):
    for animal in (record.sow, record.boar, record.piglet):
        if animal is not None:
            return animal.tag_number
    return None


SOWS = ListView(
    search_fields=("tag_number", "breed", "status"),
    sort_fields={
        "sow_id": SortField("sow_id", NUMBER),
        "tag_number": SortField("tag_number"),
        "breed": SortField("breed"),
        "birth_date": SortField("birth_date", DATE),
        "status": SortField("status"),
    },
    default_sort="tag_number",
)

BOARS = ListView(
    search_fields=("tag_number", "breed", "status"),
    sort_fields={
        "boar_id": SortField("boar_id", NUMBER),
        "tag_number": SortField("tag_number"),
        "breed": SortField("breed"),
        "birth_date": SortField("birth_date", DATE),
        "status": SortField("status"),
    },
    default_sort="tag_number",
)

BREEDINGS = ListView(
    search_fields=("sow_tag_number", "boar_tag_number", "method", "notes"),
    sort_fields={
        "breeding_date": SortField("breeding_date", DATE),
        "expected_farrow_date": SortField("expected_farrow_date", DATE),
        "sow_tag_number": SortField("sow_tag_number"),
        "boar_tag_number": SortField("boar_tag_number"),
        "method": SortField("method"),
    },
    default_sort="breeding_date",
    default_direction=SortDirection.DESC,
)

FARROWINGS = ListView(
    search_fields=("sow_tag_number", "notes"),
    sort_fields={
        "farrowing_date": SortField("farrowing_date", DATE),
        "sow_tag_number": SortField("sow_tag_number"),
        "total_born": SortField("total_born", NUMBER),
        "born_alive": SortField("born_alive", NUMBER),
        "stillborn": SortField("stillborn", NUMBER),
        "mummified": SortField("mummified", NUMBER),
        "average_birth_weight": SortField("average_birth_weight", NUMBER),
    },
    default_sort="farrowing_date",
    default_direction=SortDirection.DESC,
)

PIGLETS = ListView(
    search_fields=(
        "tag_number",
        "status",
        "gender",
        "death_cause",
        lambda p: p.farrowing.sow_tag_number if p.farrowing is not None else None,
    ),
    sort_fields={
        "tag_number": SortField("tag_number"),
        "status": SortField("status"),
        "gender": SortField("gender"),
        "birth_weight": SortField("birth_weight", NUMBER),
        "farrowing_date": SortField("farrowing_date", DATE),
        "created_at": SortField("created_at", DATE),
    },
    default_sort="created_at",
    default_direction=SortDirection.DESC,
)

PENS = ListView(
    search_fields=("pen_number", "pen_type"),
    sort_fields={
        "pen_number": SortField("pen_number"),
        "pen_type": SortField("pen_type"),
        "capacity": SortField("capacity", NUMBER),
        "current_count": SortField("current_count", NUMBER),
        "occupancy": SortField(lambda p: occupancy_pct(p.current_count, p.capacity), NUMBER),
    },
    default_sort="pen_number",
)

HEALTH_RECORDS = ListView(
    search_fields=("record_type", "disease", "treatment", "medicine", "veterinarian", _subject_tag),
    sort_fields={
        "record_date": SortField("record_date", DATE),
        "record_type": SortField("record_type"),
        "cost": SortField("cost", NUMBER),
        "subject": SortField(_subject_tag),
    },
    default_sort="record_date",
    default_direction=SortDirection.DESC,
)

FEED_RECORDS = ListView(
    search_fields=("feed_type", "notes", lambda r: r.pen.pen_number if r.pen is not None else None),
    sort_fields={
        "record_date": SortField("record_date", DATE),
        "feed_type": SortField("feed_type"),
        "quantity": SortField("quantity", NUMBER),
        "cost": SortField("cost", NUMBER),
    },
    default_sort="record_date",
    default_direction=SortDirection.DESC,
)

USERS = ListView(
    search_fields=("email", "name", "role"),
    sort_fields={
        "email": SortField("email"),
        "name": SortField("name"),
        "role": SortField("role"),
        "created_at": SortField("created_at", DATE),
    },
    default_sort="email",
)

ACTIVITY_LOGS = ListView(
    search_fields=("user_email", "user_name", "entity_name"),
    sort_fields={
        "created_at": SortField("created_at", DATE),
        "action": SortField("action"),
        "module": SortField("module"),
        "user_email": SortField("user_email"),
    },
    default_sort="created_at",
    default_direction=SortDirection.DESC,
)

GROWTH_RECORDS = ListView(
    search_fields=("piglet_tag_number", "notes"),
    sort_fields={
        "record_date": SortField("record_date", DATE),
        "piglet_tag_number": SortField("piglet_tag_number"),
        "weight": SortField("weight", NUMBER),
        "age_in_days": SortField("age_in_days", NUMBER),
        "adg": SortField("adg", NUMBER),
    },
    default_sort="record_date",
    default_direction=SortDirection.DESC,
)
