from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..activity import Action, Module, log_activity
from ..database import get_db
from ..deps import get_actor, list_query, to_page
from ..errors import MissingReferenceError, NotFoundError, ValidationError
from ..metrics import age_in_days, average_daily_gain
from ..query import ListQuery
from .. import models, schemas, views

router = APIRouter(prefix="/growth-records", tags=["growth"])


def _get_record(db: Session, growth_record_id: int) -> models.GrowthRecord:
    record = db.get(models.GrowthRecord, growth_record_id)
    if not record:
        raise NotFoundError("Growth record not found")
    return record


def _get_piglet(db: Session, piglet_id: int) -> models.Piglet:
    piglet = db.get(models.Piglet, piglet_id)
    if not piglet:
        raise MissingReferenceError(
            f"Piglet {piglet_id} not found", details={"piglet_id": "unknown piglet"}
        )
    return piglet


def _derive(
    db: Session,
    piglet: models.Piglet,
    record_date: date,
    weight: float,
    exclude_id: int | None = None,
) -> tuple[int, float | None]:
    """Age at weighing and ADG against the latest earlier weighing (or birth weight)."""
    if record_date < piglet.farrowing_date:
        raise ValidationError(
            "Weighing cannot be dated before the piglet was born",
            details={"record_date": f"must be on or after {piglet.farrowing_date.isoformat()}"},
        )

    q = db.query(models.GrowthRecord).filter(
        models.GrowthRecord.piglet_id == piglet.piglet_id,
        models.GrowthRecord.record_date < record_date,
    )
    if exclude_id is not None:
        q = q.filter(models.GrowthRecord.growth_record_id != exclude_id)
    previous = q.order_by(
        models.GrowthRecord.record_date.desc(), models.GrowthRecord.growth_record_id.desc()
    ).first()

    adg = average_daily_gain(
        weight,
        record_date,
        previous=(previous.record_date, previous.weight) if previous else None,
        farrowing_date=piglet.farrowing_date,
        birth_weight=piglet.birth_weight,
    )
    return age_in_days(piglet.farrowing_date, record_date), adg


def _label(record: models.GrowthRecord) -> str:
    tag = record.piglet_tag_number or f"Piglet {record.piglet_id}"
    return f"{tag} - {record.weight}kg"


@router.get("/", response_model=schemas.Page[schemas.GrowthRecordOut])
def list_growth_records(
    piglet_id: int | None = Query(default=None),
    query: ListQuery = Depends(list_query),
    db: Session = Depends(get_db),
):
    q = db.query(models.GrowthRecord)
    if piglet_id is not None:
        q = q.filter(models.GrowthRecord.piglet_id == piglet_id)
    return to_page(views.GROWTH_RECORDS.apply(q.all(), query), schemas.GrowthRecordOut.model_validate)


@router.post("/", response_model=schemas.GrowthRecordOut)
def create_growth_record(
    payload: schemas.GrowthRecordCreate,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    piglet = _get_piglet(db, payload.piglet_id)
    age, adg = _derive(db, piglet, payload.record_date, payload.weight)

    record = models.GrowthRecord(**payload.model_dump(), age_in_days=age, adg=adg)
    db.add(record)
    db.commit()
    db.refresh(record)

    log_activity(
        db, actor, Action.CREATE, Module.GROWTH,
        entity_id=record.growth_record_id, entity_name=_label(record),
        details={"piglet_id": record.piglet_id, "weight": record.weight, "age_in_days": age},
    )
    return record


@router.get("/{growth_record_id}", response_model=schemas.GrowthRecordOut)
def get_growth_record(growth_record_id: int, db: Session = Depends(get_db)):
    return _get_record(db, growth_record_id)


@router.patch("/{growth_record_id}", response_model=schemas.GrowthRecordOut)
def update_growth_record(
    growth_record_id: int,
    payload: schemas.GrowthRecordUpdate,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    """Edit a weighing; age and ADG are recomputed for this record only."""
    record = _get_record(db, growth_record_id)
    changes = {
        k: v for k, v in payload.model_dump(exclude_unset=True).items()
        if v is not None or k == "notes"
    }

    if "record_date" in changes or "weight" in changes:
        record_date = changes.get("record_date", record.record_date)
        weight = changes.get("weight", record.weight)
        record.age_in_days, record.adg = _derive(
            db, record.piglet, record_date, weight, exclude_id=record.growth_record_id
        )
    for key, value in changes.items():
        setattr(record, key, value)
    db.commit()
    db.refresh(record)

    log_activity(
        db, actor, Action.UPDATE, Module.GROWTH,
        entity_id=record.growth_record_id, entity_name=_label(record), details=changes,
    )
    return record


@router.delete("/{growth_record_id}", response_model=schemas.DeleteResult)
def delete_growth_record(
    growth_record_id: int,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    record = _get_record(db, growth_record_id)
    label = _label(record)
    db.delete(record)
    db.commit()

    log_activity(db, actor, Action.DELETE, Module.GROWTH, entity_id=growth_record_id, entity_name=label)
    return {"deleted_count": 1}
