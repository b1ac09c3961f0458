from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..activity import Action, Module, log_activity
from ..database import get_db
from ..deps import get_actor, list_query, to_page
from ..errors import ConflictError, NotFoundError
from ..lifecycle import require_valid, sow_form_errors, validate_status_transition
from ..metrics import age_in_months, sow_lifetime_stats
from ..models import SowStatus
from ..query import ListQuery
from .. import models, schemas, views

router = APIRouter(prefix="/sows", tags=["sows"])


def _get_sow(db: Session, sow_id: int) -> models.Sow:
    sow = db.get(models.Sow, sow_id)
    if not sow:
        raise NotFoundError("Sow not found")
    return sow


def _ensure_tag_free(db: Session, tag_number: str, sow_id: int | None = None) -> None:
    q = db.query(models.Sow).filter(models.Sow.tag_number == tag_number)
    if sow_id is not None:
        q = q.filter(models.Sow.sow_id != sow_id)
    if q.first():
        raise ConflictError(
            f"Sow tag {tag_number} is already in use", details={"tag_number": "already in use"}
        )


def sow_out(sow: models.Sow, today: date | None = None) -> schemas.SowOut:
    out = schemas.SowOut.model_validate(sow)
    out.age_months = age_in_months(sow.birth_date, today or date.today())
    return out


@router.get("/", response_model=schemas.Page[schemas.SowOut])
def list_sows(
    status: SowStatus | None = Query(default=None),
    query: ListQuery = Depends(list_query),
    db: Session = Depends(get_db),
):
    q = db.query(models.Sow)
    if status:
        q = q.filter(models.Sow.status == status.value)
    today = date.today()
    return to_page(views.SOWS.apply(q.all(), query), lambda s: sow_out(s, today))


@router.post("/", response_model=schemas.SowOut)
def create_sow(
    payload: schemas.SowCreate,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    data = payload.model_dump()
    require_valid(sow_form_errors(data), "Invalid sow")
    data["tag_number"] = data["tag_number"].strip()
    _ensure_tag_free(db, data["tag_number"])

    sow = models.Sow(**data)
    db.add(sow)
    db.commit()
    db.refresh(sow)

    log_activity(
        db, actor, Action.CREATE, Module.SOWS,
        entity_id=sow.sow_id, entity_name=sow.tag_number,
        details={"breed": sow.breed, "status": sow.status},
    )
    return sow_out(sow)


@router.get("/{sow_id}", response_model=schemas.SowOut)
def get_sow(sow_id: int, db: Session = Depends(get_db)):
    return sow_out(_get_sow(db, sow_id))


@router.get("/{sow_id}/stats", response_model=schemas.SowLifetimeStats)
def get_sow_stats(sow_id: int, db: Session = Depends(get_db)):
    sow = _get_sow(db, sow_id)
    return sow_lifetime_stats(sow.farrowings)


@router.patch("/{sow_id}", response_model=schemas.SowOut)
def update_sow(
    sow_id: int,
    payload: schemas.SowUpdate,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    sow = _get_sow(db, sow_id)
    changes = payload.model_dump(exclude_unset=True)

    merged = {
        "tag_number": sow.tag_number,
        "breed": sow.breed,
        "birth_date": sow.birth_date,
        **changes,
    }
    require_valid(sow_form_errors(merged), "Invalid sow")

    if changes.get("status") is not None:
        validate_status_transition("sow", sow.status, changes["status"])
    else:
        changes.pop("status", None)
    if "tag_number" in changes:
        changes["tag_number"] = changes["tag_number"].strip()
        _ensure_tag_free(db, changes["tag_number"], sow_id)

    for key, value in changes.items():
        setattr(sow, key, value)
    db.commit()
    db.refresh(sow)

    log_activity(
        db, actor, Action.UPDATE, Module.SOWS,
        entity_id=sow.sow_id, entity_name=sow.tag_number, details=changes,
    )
    return sow_out(sow)


@router.delete("/{sow_id}", response_model=schemas.DeleteResult)
def delete_sow(
    sow_id: int,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    """
    Hard-delete a sow.

    Guards:
    - Cannot delete a sow with breedings (delete them first).
    - Cannot delete a sow with farrowings.
    - Cannot delete a sow with health records.
    """
    sow = _get_sow(db, sow_id)

    breeding_ref = db.query(models.Breeding).filter(models.Breeding.sow_id == sow_id).first()
    if breeding_ref:
        raise ConflictError(
            f"Sow {sow_id} is referenced by breeding {breeding_ref.breeding_id}. "
            "Remove the breeding first."
        )
    farrowing_ref = db.query(models.Farrowing).filter(models.Farrowing.sow_id == sow_id).first()
    if farrowing_ref:
        raise ConflictError(
            f"Sow {sow_id} has farrowing {farrowing_ref.farrowing_id}. Delete the farrowing first."
        )
    health_ref = db.query(models.HealthRecord).filter(models.HealthRecord.sow_id == sow_id).first()
    if health_ref:
        raise ConflictError(
            f"Sow {sow_id} has health record {health_ref.health_record_id}. Delete it first."
        )

    tag_number = sow.tag_number
    db.delete(sow)
    db.commit()

    log_activity(db, actor, Action.DELETE, Module.SOWS, entity_id=sow_id, entity_name=tag_number)
    return {"deleted_count": 1}
