from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..activity import Action, Module, log_activity
from ..database import get_db
from ..deps import get_actor, list_query, to_page
from ..errors import MissingReferenceError, NotFoundError, StateError, ValidationError
from ..lifecycle import (
    move_piglet,
    piglet_form_errors,
    remove_piglet,
    require_valid,
    validate_pen,
    validate_piglet_create,
    validate_status_transition,
)
from ..metrics import age_in_days
from ..models import PigletStatus, SowStatus
from ..query import ListQuery
from .. import models, schemas, views

router = APIRouter(prefix="/piglets", tags=["piglets"])

# Piglets in these states no longer occupy a pen place
_OUT_OF_PEN = {PigletStatus.DEAD.value, PigletStatus.SOLD.value}


def _get_piglet(db: Session, piglet_id: int) -> models.Piglet:
    piglet = db.get(models.Piglet, piglet_id)
    if not piglet:
        raise NotFoundError("Piglet not found")
    return piglet


def _load_piglets(db: Session, piglet_ids: list[int]) -> list[models.Piglet]:
    piglets = []
    for piglet_id in dict.fromkeys(piglet_ids):
        piglet = db.get(models.Piglet, piglet_id)
        if not piglet:
            raise MissingReferenceError(
                f"Piglet {piglet_id} not found", details={"piglet_ids": f"unknown piglet {piglet_id}"}
            )
        piglets.append(piglet)
    return piglets


def piglet_out(piglet: models.Piglet, today: date | None = None) -> schemas.PigletOut:
    out = schemas.PigletOut.model_validate(piglet)
    if piglet.farrowing_date is not None:
        until = today or date.today()
        if piglet.status == PigletStatus.DEAD.value and piglet.death_date is not None:
            until = piglet.death_date
        out.age_days = age_in_days(piglet.farrowing_date, until)
    return out


def _label(piglet: models.Piglet) -> str:
    return piglet.tag_number or f"Piglet {piglet.piglet_id}"


@router.get("/", response_model=schemas.Page[schemas.PigletOut])
def list_piglets(
    status: PigletStatus | None = Query(default=None),
    farrowing_id: int | None = Query(default=None),
    pen_id: int | None = Query(default=None),
    query: ListQuery = Depends(list_query),
    db: Session = Depends(get_db),
):
    q = db.query(models.Piglet)
    if status:
        q = q.filter(models.Piglet.status == status.value)
    if farrowing_id is not None:
        q = q.filter(models.Piglet.farrowing_id == farrowing_id)
    if pen_id is not None:
        q = q.filter(models.Piglet.current_pen_id == pen_id)
    today = date.today()
    return to_page(views.PIGLETS.apply(q.all(), query), lambda p: piglet_out(p, today))


@router.post("/", response_model=schemas.PigletOut)
def create_piglet(
    payload: schemas.PigletCreate,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    data = payload.model_dump()
    require_valid(piglet_form_errors(data), "Invalid piglet")
    validate_piglet_create(db, payload.farrowing_id, payload.tag_number)
    pen = validate_pen(db, data.pop("current_pen_id"))

    piglet = models.Piglet(**data)
    piglet.tag_number = payload.tag_number.strip()
    db.add(piglet)
    if piglet.status not in _OUT_OF_PEN:
        move_piglet(piglet, pen)
    db.commit()
    db.refresh(piglet)

    log_activity(
        db, actor, Action.CREATE, Module.PIGLETS,
        entity_id=piglet.piglet_id, entity_name=_label(piglet),
        details={"farrowing_id": piglet.farrowing_id, "status": piglet.status, "gender": piglet.gender},
    )
    return piglet_out(piglet)


@router.post("/wean", response_model=schemas.BatchResult)
def wean_piglets(
    payload: schemas.WeanRequest,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    """Move a group of nursing piglets to WEANED; optionally mark their sow WEANED."""
    piglets = _load_piglets(db, payload.piglet_ids)
    sow = None
    if payload.sow_id is not None:
        sow = db.get(models.Sow, payload.sow_id)
        if not sow:
            raise MissingReferenceError(f"Sow {payload.sow_id} not found", details={"sow_id": "unknown sow"})

    for piglet in piglets:
        validate_status_transition("piglet", piglet.status, PigletStatus.WEANED)

    try:
        for piglet in piglets:
            piglet.status = PigletStatus.WEANED.value
        if sow is not None:
            sow.status = SowStatus.WEANED.value
        db.commit()
    except Exception:
        db.rollback()
        raise

    ids = [p.piglet_id for p in piglets]
    log_activity(
        db, actor, Action.CREATE, Module.WEANING,
        entity_id=ids[0], entity_name=f"Weaned {len(ids)} piglets",
        details={"piglet_count": len(ids), "sow_id": payload.sow_id, "weaning_date": payload.weaning_date},
    )
    return schemas.BatchResult(updated=len(ids), piglet_ids=ids)


@router.post("/transfer", response_model=schemas.BatchResult)
def transfer_piglets(
    payload: schemas.TransferRequest,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    """Move piglets into another pen, keeping both pens' counts in step."""
    to_pen = validate_pen(db, payload.to_pen_id)
    piglets = _load_piglets(db, payload.piglet_ids)
    for piglet in piglets:
        if piglet.status in _OUT_OF_PEN:
            raise StateError(
                f"{_label(piglet)} is {piglet.status} and cannot be transferred",
                details={"piglet_ids": f"piglet {piglet.piglet_id} is {piglet.status}"},
            )

    try:
        for piglet in piglets:
            move_piglet(piglet, to_pen)
        db.commit()
    except Exception:
        db.rollback()
        raise

    ids = [p.piglet_id for p in piglets]
    log_activity(
        db, actor, Action.CREATE, Module.PEN_TRANSFER,
        entity_id=ids[0], entity_name=f"Transferred {len(ids)} piglets",
        details={"piglet_count": len(ids), "to_pen_id": payload.to_pen_id, "reason": payload.reason},
    )
    return schemas.BatchResult(updated=len(ids), piglet_ids=ids)


@router.get("/{piglet_id}", response_model=schemas.PigletOut)
def get_piglet(piglet_id: int, db: Session = Depends(get_db)):
    return piglet_out(_get_piglet(db, piglet_id))


@router.patch("/{piglet_id}", response_model=schemas.PigletOut)
def update_piglet(
    piglet_id: int,
    payload: schemas.PigletUpdate,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    piglet = _get_piglet(db, piglet_id)
    changes = payload.model_dump(exclude_unset=True)

    if "tag_number" in changes:
        tag = (changes["tag_number"] or "").strip()
        if not tag:
            raise ValidationError("Tag number is required", details={"tag_number": "required"})
        piglet.tag_number = tag

    new_status = changes.get("status")
    if new_status is not None:
        validate_status_transition("piglet", piglet.status, new_status)
        piglet.status = PigletStatus(new_status).value

    if "current_pen_id" in changes:
        move_piglet(piglet, validate_pen(db, changes["current_pen_id"]))

    for key in ("birth_weight", "gender", "death_cause", "notes"):
        if key in changes:
            setattr(piglet, key, changes[key])

    if piglet.status == PigletStatus.DEAD.value:
        if "death_date" in changes:
            piglet.death_date = changes["death_date"]
        piglet.death_date = piglet.death_date or date.today()
    if piglet.status in _OUT_OF_PEN:
        move_piglet(piglet, None)

    db.commit()
    db.refresh(piglet)

    log_activity(
        db, actor, Action.UPDATE, Module.PIGLETS,
        entity_id=piglet.piglet_id, entity_name=_label(piglet), details=changes,
    )
    return piglet_out(piglet)


@router.delete("/{piglet_id}", response_model=schemas.DeleteResult)
def delete_piglet(
    piglet_id: int,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    piglet = _get_piglet(db, piglet_id)
    label = _label(piglet)
    try:
        remove_piglet(db, piglet)
        db.commit()
    except Exception:
        db.rollback()
        raise

    log_activity(db, actor, Action.DELETE, Module.PIGLETS, entity_id=piglet_id, entity_name=label)
    return {"deleted_count": 1}
