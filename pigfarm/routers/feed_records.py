from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..activity import Action, Module, log_activity
from ..database import get_db
from ..deps import get_actor, list_query, to_page
from ..errors import NotFoundError
from ..lifecycle import validate_pen
from ..query import ListQuery
from .. import models, schemas, views

router = APIRouter(prefix="/feed-records", tags=["feed"])


def _get_record(db: Session, feed_record_id: int) -> models.FeedRecord:
    record = db.get(models.FeedRecord, feed_record_id)
    if not record:
        raise NotFoundError("Feed record not found")
    return record


@router.get("/", response_model=schemas.Page[schemas.FeedRecordOut])
def list_feed_records(
    pen_id: int | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    query: ListQuery = Depends(list_query),
    db: Session = Depends(get_db),
):
    q = db.query(models.FeedRecord)
    if pen_id is not None:
        q = q.filter(models.FeedRecord.pen_id == pen_id)
    if start_date is not None:
        q = q.filter(models.FeedRecord.record_date >= start_date)
    if end_date is not None:
        q = q.filter(models.FeedRecord.record_date <= end_date)
    return to_page(views.FEED_RECORDS.apply(q.all(), query), schemas.FeedRecordOut.model_validate)


@router.post("/", response_model=schemas.FeedRecordOut)
def create_feed_record(
    payload: schemas.FeedRecordCreate,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    pen = validate_pen(db, payload.pen_id)

    record = models.FeedRecord(**payload.model_dump())
    db.add(record)
    db.commit()
    db.refresh(record)

    log_activity(
        db, actor, Action.CREATE, Module.FEED,
        entity_id=record.feed_record_id,
        entity_name=f"{record.feed_type} - {pen.pen_number}",
        details={"quantity": record.quantity, "unit": record.unit, "cost": record.cost},
    )
    return record


@router.get("/{feed_record_id}", response_model=schemas.FeedRecordOut)
def get_feed_record(feed_record_id: int, db: Session = Depends(get_db)):
    return _get_record(db, feed_record_id)


@router.patch("/{feed_record_id}", response_model=schemas.FeedRecordOut)
def update_feed_record(
    feed_record_id: int,
    payload: schemas.FeedRecordUpdate,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    record = _get_record(db, feed_record_id)
    changes = {
        k: v for k, v in payload.model_dump(exclude_unset=True).items()
        if v is not None or k in ("cost", "notes")
    }
    if "pen_id" in changes:
        validate_pen(db, changes["pen_id"])

    for key, value in changes.items():
        setattr(record, key, value)
    db.commit()
    db.refresh(record)

    log_activity(
        db, actor, Action.UPDATE, Module.FEED,
        entity_id=record.feed_record_id, entity_name=record.feed_type, details=changes,
    )
    return record


@router.delete("/{feed_record_id}", response_model=schemas.DeleteResult)
def delete_feed_record(
    feed_record_id: int,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    record = _get_record(db, feed_record_id)
    feed_type = record.feed_type
    db.delete(record)
    db.commit()

    log_activity(db, actor, Action.DELETE, Module.FEED, entity_id=feed_record_id, entity_name=feed_type)
    return {"deleted_count": 1}
