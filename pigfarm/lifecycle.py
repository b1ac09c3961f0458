"""
Rules every write to the breeding graph must pass.

Two layers reject bad input independently:

* form checks (``*_form_errors``) look only at the submitted fields and
  return a ``{field: message}`` map, the same checks a client runs before
  submitting;
* structural checks (``validate_*``) look at the stored graph: referenced
  animals exist, a breeding farrows at most once, failed breedings never
  farrow, status edits follow the transition tables.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Mapping

from sqlalchemy.orm import Session

from . import models
from .errors import ConflictError, MissingReferenceError, NotFoundError, StateError, ValidationError
from .models import BoarStatus, PigletStatus, SowStatus

logger = logging.getLogger(__name__)


# -----------------------------
# Status transition tables
# -----------------------------
_SOW_EXITS = {SowStatus.CULLED, SowStatus.SOLD}
_BOAR_EXITS = {BoarStatus.CULLED, BoarStatus.SOLD}

SOW_TRANSITIONS: dict[SowStatus, set[SowStatus]] = {
    SowStatus.ACTIVE: {SowStatus.PREGNANT} | _SOW_EXITS,
    SowStatus.PREGNANT: {SowStatus.LACTATING, SowStatus.ACTIVE} | _SOW_EXITS,
    SowStatus.LACTATING: {SowStatus.WEANED} | _SOW_EXITS,
    SowStatus.WEANED: {SowStatus.ACTIVE, SowStatus.PREGNANT} | _SOW_EXITS,
    SowStatus.CULLED: set(),
    SowStatus.SOLD: set(),
}

BOAR_TRANSITIONS: dict[BoarStatus, set[BoarStatus]] = {
    BoarStatus.ACTIVE: {BoarStatus.RESTING} | _BOAR_EXITS,
    BoarStatus.RESTING: {BoarStatus.ACTIVE} | _BOAR_EXITS,
    BoarStatus.CULLED: set(),
    BoarStatus.SOLD: set(),
}

PIGLET_TRANSITIONS: dict[PigletStatus, set[PigletStatus]] = {
    PigletStatus.NURSING: {PigletStatus.WEANED, PigletStatus.DEAD},
    PigletStatus.WEANED: {PigletStatus.GROWING, PigletStatus.DEAD},
    PigletStatus.GROWING: {PigletStatus.READY, PigletStatus.DEAD},
    PigletStatus.READY: {PigletStatus.SOLD, PigletStatus.DEAD},
    PigletStatus.SOLD: set(),
    PigletStatus.DEAD: set(),
}

_TABLES = {
    "sow": (SowStatus, SOW_TRANSITIONS),
    "boar": (BoarStatus, BOAR_TRANSITIONS),
    "piglet": (PigletStatus, PIGLET_TRANSITIONS),
}


def validate_status_transition(kind: str, current: str, new: str) -> None:
    enum_cls, table = _TABLES[kind]
    current_status, new_status = enum_cls(current), enum_cls(new)
    if current_status is new_status:
        return
    if new_status not in table[current_status]:
        allowed = ", ".join(sorted(s.value for s in table[current_status])) or "none (terminal)"
        raise StateError(
            f"{kind.capitalize()} cannot move from {current_status.value} to {new_status.value}",
            details={"status": f"allowed from {current_status.value}: {allowed}"},
        )


# -----------------------------
# Form-level checks
# -----------------------------
def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _required(data: Mapping[str, Any], fields: tuple[str, ...]) -> dict[str, str]:
    return {f: "required" for f in fields if _blank(data.get(f))}


def sow_form_errors(data: Mapping[str, Any]) -> dict[str, str]:
    return _required(data, ("tag_number", "breed", "birth_date"))


def boar_form_errors(data: Mapping[str, Any]) -> dict[str, str]:
    return _required(data, ("tag_number", "breed", "birth_date"))


def breeding_form_errors(data: Mapping[str, Any]) -> dict[str, str]:
    return _required(data, ("sow_id", "boar_id", "breeding_date"))


def farrowing_form_errors(data: Mapping[str, Any]) -> dict[str, str]:
    errors = _required(data, ("sow_id", "breeding_id", "farrowing_date", "total_born", "born_alive"))

    counts: dict[str, int] = {}
    for name in ("total_born", "born_alive", "stillborn", "mummified"):
        if name in errors or _blank(data.get(name)):
            continue
        n = _as_int(data.get(name))
        if n is None:
            errors[name] = "must be a whole number"
        elif n < 0:
            errors[name] = "must be >= 0"
        else:
            counts[name] = n

    if "total_born" in counts and "born_alive" in counts and counts["total_born"] < counts["born_alive"]:
        errors["born_alive"] = "cannot exceed total_born"
    return errors


def piglet_form_errors(data: Mapping[str, Any]) -> dict[str, str]:
    return _required(data, ("tag_number", "farrowing_id"))


def require_valid(errors: Mapping[str, str], message: str = "Invalid input") -> None:
    if errors:
        raise ValidationError(message, details=dict(errors))


# -----------------------------
# Structural checks
# -----------------------------
def validate_breeding_create(db: Session, sow_id: int, boar_id: int, breeding_date: date):
    """Both animals must exist; a sow may hold several open breedings."""
    sow = db.get(models.Sow, sow_id)
    if not sow:
        raise MissingReferenceError(f"Sow {sow_id} not found", details={"sow_id": "unknown sow"})
    boar = db.get(models.Boar, boar_id)
    if not boar:
        raise MissingReferenceError(f"Boar {boar_id} not found", details={"boar_id": "unknown boar"})
    return sow, boar


def eligible_breedings(db: Session) -> list[models.Breeding]:
    """Breedings that may still farrow: no farrowing yet and not marked failed."""
    return (
        db.query(models.Breeding)
        .outerjoin(models.Farrowing, models.Farrowing.breeding_id == models.Breeding.breeding_id)
        .filter(models.Farrowing.farrowing_id.is_(None))
        .filter((models.Breeding.success.is_(None)) | (models.Breeding.success.is_(True)))
        .order_by(models.Breeding.breeding_date.desc(), models.Breeding.breeding_id.desc())
        .all()
    )


def validate_farrowing_create(db: Session, breeding_id: int) -> models.Breeding:
    breeding = db.get(models.Breeding, breeding_id)
    if not breeding:
        raise MissingReferenceError(
            f"Breeding {breeding_id} not found", details={"breeding_id": "unknown breeding"}
        )
    existing = (
        db.query(models.Farrowing)
        .filter(models.Farrowing.breeding_id == breeding_id)
        .first()
    )
    if existing:
        raise ConflictError(
            f"Breeding {breeding_id} already has farrowing {existing.farrowing_id}",
            details={"breeding_id": "already farrowed"},
        )
    if breeding.success is False:
        raise StateError(
            f"Breeding {breeding_id} is marked failed and cannot farrow",
            details={"breeding_id": "breeding failed"},
        )
    sow = breeding.sow
    if sow is not None and SowStatus(sow.status) in _SOW_EXITS:
        raise StateError(
            f"Sow {sow.tag_number} is {sow.status} and cannot farrow",
            details={"sow_id": f"sow is {sow.status}"},
        )
    return breeding


def validate_breeding_success_change(breeding: models.Breeding, success: bool | None) -> None:
    if success is False and breeding.farrowing is not None:
        raise StateError(
            f"Breeding {breeding.breeding_id} has a farrowing and cannot be marked failed",
            details={"success": "breeding already farrowed"},
        )


def validate_piglet_create(db: Session, farrowing_id: int, tag_number: str | None) -> models.Farrowing:
    if _blank(tag_number):
        raise ValidationError("Tag number is required", details={"tag_number": "required"})
    farrowing = db.get(models.Farrowing, farrowing_id)
    if not farrowing:
        raise MissingReferenceError(
            f"Farrowing {farrowing_id} not found", details={"farrowing_id": "unknown farrowing"}
        )
    return farrowing


_SUBJECTS = (
    ("sow_id", models.Sow),
    ("boar_id", models.Boar),
    ("piglet_id", models.Piglet),
)


def validate_health_subject(db: Session, data: Mapping[str, Any]) -> None:
    present = [(name, model) for name, model in _SUBJECTS if data.get(name) is not None]
    if len(present) != 1:
        raise ValidationError(
            "Exactly one of sow_id, boar_id or piglet_id is required",
            details={name: "exactly one subject required" for name, _ in _SUBJECTS},
        )
    name, model = present[0]
    if not db.get(model, data[name]):
        raise MissingReferenceError(f"{model.__name__} {data[name]} not found", details={name: "unknown animal"})


def validate_pen(db: Session, pen_id: int | None) -> models.Pen | None:
    if pen_id is None:
        return None
    pen = db.get(models.Pen, pen_id)
    if not pen:
        raise MissingReferenceError(f"Pen {pen_id} not found", details={"pen_id": "unknown pen"})
    return pen


# -----------------------------
# Pen bookkeeping
# -----------------------------
def move_piglet(piglet: models.Piglet, to_pen: models.Pen | None) -> None:
    """Point the piglet at ``to_pen`` and keep both pens' counts in step."""
    from_pen = piglet.current_pen
    if from_pen is to_pen:
        return
    if from_pen is not None:
        from_pen.current_count = max(0, (from_pen.current_count or 0) - 1)
    if to_pen is not None:
        to_pen.current_count = (to_pen.current_count or 0) + 1
    piglet.current_pen = to_pen


def remove_piglet(db: Session, piglet: models.Piglet) -> None:
    """Delete one piglet along with its health and growth records and free its pen place."""
    move_piglet(piglet, None)
    for record_model in (models.HealthRecord, models.GrowthRecord):
        db.query(record_model).filter(
            record_model.piglet_id == piglet.piglet_id
        ).delete(synchronize_session=False)
    db.delete(piglet)


# -----------------------------
# Cascades
# -----------------------------
def cascade_delete_farrowing(db: Session, farrowing_id: int) -> int:
    """
    Delete a farrowing and every piglet of its litter in one transaction.

    The sow goes back to PREGNANT. On any failure the whole unit is rolled
    back and the error re-raised. Returns the number of piglets deleted.
    """
    farrowing = db.get(models.Farrowing, farrowing_id)
    if not farrowing:
        raise NotFoundError("Farrowing not found")

    try:
        piglets = (
            db.query(models.Piglet)
            .filter(models.Piglet.farrowing_id == farrowing_id)
            .all()
        )
        for piglet in piglets:
            remove_piglet(db, piglet)
        db.flush()

        sow = farrowing.sow
        if sow is not None and sow.status == SowStatus.LACTATING.value:
            sow.status = SowStatus.PREGNANT.value

        db.delete(farrowing)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Cascade delete of farrowing %s rolled back", farrowing_id)
        raise

    logger.info("Deleted farrowing %s with %d piglets", farrowing_id, len(piglets))
    return len(piglets)
