from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..activity import Action, Module, log_activity
from ..database import get_db
from ..deps import get_actor, list_query, to_page
from ..errors import ConflictError, NotFoundError, ValidationError
from ..lifecycle import (
    cascade_delete_farrowing,
    farrowing_form_errors,
    require_valid,
    validate_farrowing_create,
)
from ..models import PigletStatus, SowStatus
from ..query import ListQuery
from .. import models, schemas, views
from .piglets import piglet_out

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/farrowings", tags=["farrowings"])


def _get_farrowing(db: Session, farrowing_id: int) -> models.Farrowing:
    farrowing = db.get(models.Farrowing, farrowing_id)
    if not farrowing:
        raise NotFoundError("Farrowing not found")
    return farrowing


@router.get("/", response_model=schemas.Page[schemas.FarrowingOut])
def list_farrowings(
    sow_id: int | None = Query(default=None),
    query: ListQuery = Depends(list_query),
    db: Session = Depends(get_db),
):
    q = db.query(models.Farrowing)
    if sow_id is not None:
        q = q.filter(models.Farrowing.sow_id == sow_id)
    return to_page(views.FARROWINGS.apply(q.all(), query), schemas.FarrowingOut.model_validate)


@router.post("/", response_model=schemas.FarrowingOut)
def create_farrowing(
    payload: schemas.FarrowingCreate,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    """
    Record a farrowing for an eligible breeding.

    Side effects, committed together:
    - one NURSING piglet per live-born piglet, at the litter's average weight;
    - the breeding is marked successful;
    - the sow becomes LACTATING.
    """
    data = payload.model_dump()
    require_valid(farrowing_form_errors(data), "Invalid farrowing")
    breeding = validate_farrowing_create(db, payload.breeding_id)
    if breeding.sow_id != payload.sow_id:
        raise ValidationError(
            f"Breeding {breeding.breeding_id} belongs to sow {breeding.sow_id}",
            details={"sow_id": "does not match the breeding's sow"},
        )

    try:
        farrowing = models.Farrowing(**data)
        db.add(farrowing)
        db.flush()

        for _ in range(payload.born_alive):
            db.add(
                models.Piglet(
                    farrowing_id=farrowing.farrowing_id,
                    birth_weight=payload.average_birth_weight,
                    status=PigletStatus.NURSING.value,
                )
            )

        breeding.success = True
        breeding.sow.status = SowStatus.LACTATING.value
        db.commit()
    except IntegrityError:
        # Another request farrowed this breeding between the check and the insert
        db.rollback()
        raise ConflictError(
            f"Breeding {payload.breeding_id} already has a farrowing",
            details={"breeding_id": "already farrowed"},
        ) from None
    except Exception:
        db.rollback()
        raise

    db.refresh(farrowing)
    logger.info(
        "Farrowing %s recorded for breeding %s with %d piglets",
        farrowing.farrowing_id, breeding.breeding_id, payload.born_alive,
    )
    log_activity(
        db, actor, Action.CREATE, Module.FARROWING,
        entity_id=farrowing.farrowing_id, entity_name=farrowing.sow_tag_number,
        details={
            "sow_id": payload.sow_id,
            "total_born": payload.total_born,
            "born_alive": payload.born_alive,
            "farrowing_date": payload.farrowing_date,
        },
    )
    return schemas.FarrowingOut.model_validate(farrowing)


@router.get("/{farrowing_id}", response_model=schemas.FarrowingOut)
def get_farrowing(farrowing_id: int, db: Session = Depends(get_db)):
    return schemas.FarrowingOut.model_validate(_get_farrowing(db, farrowing_id))


@router.get("/{farrowing_id}/piglets", response_model=list[schemas.PigletOut])
def list_piglets_for_farrowing(farrowing_id: int, db: Session = Depends(get_db)):
    _get_farrowing(db, farrowing_id)
    piglets = (
        db.query(models.Piglet)
        .filter(models.Piglet.farrowing_id == farrowing_id)
        .order_by(models.Piglet.piglet_id.asc())
        .all()
    )
    today = date.today()
    return [piglet_out(p, today) for p in piglets]


@router.patch("/{farrowing_id}", response_model=schemas.FarrowingOut)
def update_farrowing(
    farrowing_id: int,
    payload: schemas.FarrowingUpdate,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    farrowing = _get_farrowing(db, farrowing_id)
    changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None or k == "notes"}

    merged = {
        "sow_id": farrowing.sow_id,
        "breeding_id": farrowing.breeding_id,
        "farrowing_date": farrowing.farrowing_date,
        "total_born": farrowing.total_born,
        "born_alive": farrowing.born_alive,
        "stillborn": farrowing.stillborn,
        "mummified": farrowing.mummified,
        **changes,
    }
    require_valid(farrowing_form_errors(merged), "Invalid farrowing")

    for key, value in changes.items():
        setattr(farrowing, key, value)
    db.commit()
    db.refresh(farrowing)

    log_activity(
        db, actor, Action.UPDATE, Module.FARROWING,
        entity_id=farrowing.farrowing_id, entity_name=farrowing.sow_tag_number, details=changes,
    )
    return schemas.FarrowingOut.model_validate(farrowing)


@router.delete("/{farrowing_id}", response_model=schemas.FarrowingDeleteResult)
def delete_farrowing(
    farrowing_id: int,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    """Delete a farrowing together with every piglet of its litter."""
    sow_tag = _get_farrowing(db, farrowing_id).sow_tag_number
    piglets_deleted = cascade_delete_farrowing(db, farrowing_id)

    log_activity(
        db, actor, Action.DELETE, Module.FARROWING,
        entity_id=farrowing_id, entity_name=sow_tag,
        details={"piglets_deleted": piglets_deleted},
    )
    return {"deleted_count": 1, "piglets_deleted": piglets_deleted}
