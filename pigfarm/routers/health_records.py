from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..activity import Action, Module, log_activity
from ..database import get_db
from ..deps import get_actor, list_query, to_page
from ..errors import NotFoundError
from ..lifecycle import validate_health_subject
from ..models import HealthRecordType
from ..query import ListQuery
from .. import models, schemas, views

router = APIRouter(prefix="/health-records", tags=["health"])


def _get_record(db: Session, health_record_id: int) -> models.HealthRecord:
    record = db.get(models.HealthRecord, health_record_id)
    if not record:
        raise NotFoundError("Health record not found")
    return record


def _subject_label(record: models.HealthRecord) -> str:
    for animal in (record.sow, record.boar, record.piglet):
        if animal is not None and animal.tag_number:
            return animal.tag_number
    return "Unknown"


@router.get("/", response_model=schemas.Page[schemas.HealthRecordOut])
def list_health_records(
    record_type: HealthRecordType | None = Query(default=None),
    sow_id: int | None = Query(default=None),
    boar_id: int | None = Query(default=None),
    piglet_id: int | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    query: ListQuery = Depends(list_query),
    db: Session = Depends(get_db),
):
    q = db.query(models.HealthRecord)
    if record_type:
        q = q.filter(models.HealthRecord.record_type == record_type.value)
    if sow_id is not None:
        q = q.filter(models.HealthRecord.sow_id == sow_id)
    if boar_id is not None:
        q = q.filter(models.HealthRecord.boar_id == boar_id)
    if piglet_id is not None:
        q = q.filter(models.HealthRecord.piglet_id == piglet_id)
    if start_date is not None:
        q = q.filter(models.HealthRecord.record_date >= start_date)
    if end_date is not None:
        q = q.filter(models.HealthRecord.record_date <= end_date)
    return to_page(views.HEALTH_RECORDS.apply(q.all(), query), schemas.HealthRecordOut.model_validate)


@router.post("/", response_model=schemas.HealthRecordOut)
def create_health_record(
    payload: schemas.HealthRecordCreate,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    data = payload.model_dump()
    validate_health_subject(db, data)

    record = models.HealthRecord(**data)
    db.add(record)
    db.commit()
    db.refresh(record)

    log_activity(
        db, actor, Action.CREATE, Module.HEALTH,
        entity_id=record.health_record_id,
        entity_name=f"{record.record_type} - {_subject_label(record)}",
        details={"record_date": record.record_date, "disease": record.disease, "treatment": record.treatment},
    )
    return record


@router.get("/{health_record_id}", response_model=schemas.HealthRecordOut)
def get_health_record(health_record_id: int, db: Session = Depends(get_db)):
    return _get_record(db, health_record_id)


@router.patch("/{health_record_id}", response_model=schemas.HealthRecordOut)
def update_health_record(
    health_record_id: int,
    payload: schemas.HealthRecordUpdate,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    record = _get_record(db, health_record_id)
    changes = payload.model_dump(exclude_unset=True)
    for key in ("record_type", "record_date"):
        if changes.get(key) is None:
            changes.pop(key, None)

    for key, value in changes.items():
        setattr(record, key, value)
    db.commit()
    db.refresh(record)

    log_activity(
        db, actor, Action.UPDATE, Module.HEALTH,
        entity_id=record.health_record_id,
        entity_name=f"{record.record_type} - {_subject_label(record)}",
        details=changes,
    )
    return record


@router.delete("/{health_record_id}", response_model=schemas.DeleteResult)
def delete_health_record(
    health_record_id: int,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    record = _get_record(db, health_record_id)
    label = f"{record.record_type} - {_subject_label(record)}"
    db.delete(record)
    db.commit()

    log_activity(db, actor, Action.DELETE, Module.HEALTH, entity_id=health_record_id, entity_name=label)
    return {"deleted_count": 1}
