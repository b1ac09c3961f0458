from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..activity import Action, Module, log_activity
from ..database import get_db
from ..deps import get_actor, list_query, to_page
from ..errors import ConflictError, NotFoundError
from ..lifecycle import boar_form_errors, require_valid, validate_status_transition
from ..metrics import age_in_months
from ..models import BoarStatus
from ..query import ListQuery
from .. import models, schemas, views

router = APIRouter(prefix="/boars", tags=["boars"])


def _get_boar(db: Session, boar_id: int) -> models.Boar:
    boar = db.get(models.Boar, boar_id)
    if not boar:
        raise NotFoundError("Boar not found")
    return boar


def _ensure_tag_free(db: Session, tag_number: str, boar_id: int | None = None) -> None:
    q = db.query(models.Boar).filter(models.Boar.tag_number == tag_number)
    if boar_id is not None:
        q = q.filter(models.Boar.boar_id != boar_id)
    if q.first():
        raise ConflictError(
            f"Boar tag {tag_number} is already in use", details={"tag_number": "already in use"}
        )


def boar_out(boar: models.Boar, today: date | None = None) -> schemas.BoarOut:
    out = schemas.BoarOut.model_validate(boar)
    out.age_months = age_in_months(boar.birth_date, today or date.today())
    return out


@router.get("/", response_model=schemas.Page[schemas.BoarOut])
def list_boars(
    status: BoarStatus | None = Query(default=None),
    query: ListQuery = Depends(list_query),
    db: Session = Depends(get_db),
):
    q = db.query(models.Boar)
    if status:
        q = q.filter(models.Boar.status == status.value)
    today = date.today()
    return to_page(views.BOARS.apply(q.all(), query), lambda b: boar_out(b, today))


@router.post("/", response_model=schemas.BoarOut)
def create_boar(
    payload: schemas.BoarCreate,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    data = payload.model_dump()
    require_valid(boar_form_errors(data), "Invalid boar")
    data["tag_number"] = data["tag_number"].strip()
    _ensure_tag_free(db, data["tag_number"])

    boar = models.Boar(**data)
    db.add(boar)
    db.commit()
    db.refresh(boar)

    log_activity(
        db, actor, Action.CREATE, Module.BOARS,
        entity_id=boar.boar_id, entity_name=boar.tag_number, details={"breed": boar.breed},
    )
    return boar_out(boar)


@router.get("/{boar_id}", response_model=schemas.BoarOut)
def get_boar(boar_id: int, db: Session = Depends(get_db)):
    return boar_out(_get_boar(db, boar_id))


@router.patch("/{boar_id}", response_model=schemas.BoarOut)
def update_boar(
    boar_id: int,
    payload: schemas.BoarUpdate,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    boar = _get_boar(db, boar_id)
    changes = payload.model_dump(exclude_unset=True)

    merged = {"tag_number": boar.tag_number, "breed": boar.breed, "birth_date": boar.birth_date, **changes}
    require_valid(boar_form_errors(merged), "Invalid boar")

    if changes.get("status") is not None:
        validate_status_transition("boar", boar.status, changes["status"])
    else:
        changes.pop("status", None)
    if "tag_number" in changes:
        changes["tag_number"] = changes["tag_number"].strip()
        _ensure_tag_free(db, changes["tag_number"], boar_id)

    for key, value in changes.items():
        setattr(boar, key, value)
    db.commit()
    db.refresh(boar)

    log_activity(
        db, actor, Action.UPDATE, Module.BOARS,
        entity_id=boar.boar_id, entity_name=boar.tag_number, details=changes,
    )
    return boar_out(boar)


@router.delete("/{boar_id}", response_model=schemas.DeleteResult)
def delete_boar(
    boar_id: int,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    boar = _get_boar(db, boar_id)

    breeding_ref = db.query(models.Breeding).filter(models.Breeding.boar_id == boar_id).first()
    if breeding_ref:
        raise ConflictError(
            f"Boar {boar_id} is referenced by breeding {breeding_ref.breeding_id}. "
            "Remove the breeding first."
        )
    health_ref = db.query(models.HealthRecord).filter(models.HealthRecord.boar_id == boar_id).first()
    if health_ref:
        raise ConflictError(
            f"Boar {boar_id} has health record {health_ref.health_record_id}. Delete it first."
        )

    tag_number = boar.tag_number
    db.delete(boar)
    db.commit()

    log_activity(db, actor, Action.DELETE, Module.BOARS, entity_id=boar_id, entity_name=tag_number)
    return {"deleted_count": 1}
