from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..activity import Action, Module, log_activity
from ..database import get_db
from ..deps import get_actor, list_query, to_page
from ..errors import ConflictError, NotFoundError
from ..metrics import occupancy_level, occupancy_pct
from ..models import PenType
from ..query import ListQuery
from .. import models, schemas, views

router = APIRouter(prefix="/pens", tags=["pens"])


def _get_pen(db: Session, pen_id: int) -> models.Pen:
    pen = db.get(models.Pen, pen_id)
    if not pen:
        raise NotFoundError("Pen not found")
    return pen


def _ensure_number_free(db: Session, pen_number: str, pen_id: int | None = None) -> None:
    q = db.query(models.Pen).filter(models.Pen.pen_number == pen_number)
    if pen_id is not None:
        q = q.filter(models.Pen.pen_id != pen_id)
    if q.first():
        raise ConflictError(
            f"Pen number {pen_number} is already in use", details={"pen_number": "already in use"}
        )


def pen_out(pen: models.Pen) -> schemas.PenOut:
    out = schemas.PenOut.model_validate(pen)
    out.occupancy_pct = round(occupancy_pct(pen.current_count, pen.capacity), 1)
    out.occupancy_level = occupancy_level(out.occupancy_pct)
    return out


@router.get("/", response_model=schemas.Page[schemas.PenOut])
def list_pens(
    pen_type: PenType | None = Query(default=None),
    query: ListQuery = Depends(list_query),
    db: Session = Depends(get_db),
):
    q = db.query(models.Pen)
    if pen_type:
        q = q.filter(models.Pen.pen_type == pen_type.value)
    return to_page(views.PENS.apply(q.all(), query), pen_out)


@router.post("/", response_model=schemas.PenOut)
def create_pen(
    payload: schemas.PenCreate,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    payload.pen_number = payload.pen_number.strip()
    _ensure_number_free(db, payload.pen_number)

    pen = models.Pen(**payload.model_dump())
    db.add(pen)
    db.commit()
    db.refresh(pen)

    log_activity(
        db, actor, Action.CREATE, Module.PENS,
        entity_id=pen.pen_id, entity_name=pen.pen_number,
        details={"pen_type": pen.pen_type, "capacity": pen.capacity},
    )
    return pen_out(pen)


@router.get("/{pen_id}", response_model=schemas.PenOut)
def get_pen(pen_id: int, db: Session = Depends(get_db)):
    return pen_out(_get_pen(db, pen_id))


@router.patch("/{pen_id}", response_model=schemas.PenOut)
def update_pen(
    pen_id: int,
    payload: schemas.PenUpdate,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    pen = _get_pen(db, pen_id)
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None or k == "notes"}

    if "pen_number" in changes:
        changes["pen_number"] = changes["pen_number"].strip()
        _ensure_number_free(db, changes["pen_number"], pen_id)

    for key, value in changes.items():
        setattr(pen, key, value)
    db.commit()
    db.refresh(pen)

    log_activity(
        db, actor, Action.UPDATE, Module.PENS,
        entity_id=pen.pen_id, entity_name=pen.pen_number, details=changes,
    )
    return pen_out(pen)


@router.delete("/{pen_id}", response_model=schemas.DeleteResult)
def delete_pen(
    pen_id: int,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    """
    Hard-delete a pen.

    Guards:
    - Cannot delete a pen that still holds piglets (transfer them first).
    - Cannot delete a pen with feed records.
    """
    pen = _get_pen(db, pen_id)

    piglet_ref = db.query(models.Piglet).filter(models.Piglet.current_pen_id == pen_id).first()
    if piglet_ref:
        raise ConflictError(
            f"Pen {pen.pen_number} still holds piglet {piglet_ref.piglet_id}. Transfer the piglets first."
        )
    feed_ref = db.query(models.FeedRecord).filter(models.FeedRecord.pen_id == pen_id).first()
    if feed_ref:
        raise ConflictError(
            f"Pen {pen.pen_number} has feed record {feed_ref.feed_record_id}. Delete it first."
        )

    pen_number = pen.pen_number
    db.delete(pen)
    db.commit()

    log_activity(db, actor, Action.DELETE, Module.PENS, entity_id=pen_id, entity_name=pen_number)
    return {"deleted_count": 1}
