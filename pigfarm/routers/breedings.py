from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..activity import Action, Module, log_activity
from ..database import get_db
from ..deps import get_actor, list_query, to_page
from ..errors import ConflictError, NotFoundError
from ..lifecycle import (
    breeding_form_errors,
    require_valid,
    validate_breeding_create,
    validate_breeding_success_change,
)
from ..models import SowStatus
from ..query import ListQuery
from .. import models, schemas, views

router = APIRouter(prefix="/breedings", tags=["breedings"])

GESTATION_DAYS = 114

# A confirmed breeding only moves sows that are open for service
_OPEN_SOW = {SowStatus.ACTIVE.value, SowStatus.WEANED.value}


def _get_breeding(db: Session, breeding_id: int) -> models.Breeding:
    breeding = db.get(models.Breeding, breeding_id)
    if not breeding:
        raise NotFoundError("Breeding not found")
    return breeding


def _mark_pregnant(breeding: models.Breeding) -> None:
    if breeding.success is True and breeding.sow is not None and breeding.sow.status in _OPEN_SOW:
        breeding.sow.status = SowStatus.PREGNANT.value


@router.get("/", response_model=schemas.Page[schemas.BreedingOut])
def list_breedings(
    sow_id: int | None = Query(default=None),
    boar_id: int | None = Query(default=None),
    query: ListQuery = Depends(list_query),
    db: Session = Depends(get_db),
):
    q = db.query(models.Breeding)
    if sow_id is not None:
        q = q.filter(models.Breeding.sow_id == sow_id)
    if boar_id is not None:
        q = q.filter(models.Breeding.boar_id == boar_id)
    return to_page(views.BREEDINGS.apply(q.all(), query), schemas.BreedingOut.model_validate)


@router.post("/", response_model=schemas.BreedingOut)
def create_breeding(
    payload: schemas.BreedingCreate,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    data = payload.model_dump()
    require_valid(breeding_form_errors(data), "Invalid breeding")
    sow, boar = validate_breeding_create(db, payload.sow_id, payload.boar_id, payload.breeding_date)

    breeding = models.Breeding(
        **data,
        expected_farrow_date=payload.breeding_date + timedelta(days=GESTATION_DAYS),
    )
    # Pending objects do not lazy-load, so attach the loaded animals
    breeding.sow, breeding.boar = sow, boar
    db.add(breeding)
    _mark_pregnant(breeding)
    db.commit()
    db.refresh(breeding)

    log_activity(
        db, actor, Action.CREATE, Module.BREEDING,
        entity_id=breeding.breeding_id,
        entity_name=f"{sow.tag_number} x {boar.tag_number}",
        details={"breeding_date": payload.breeding_date, "method": payload.method},
    )
    return breeding


@router.get("/{breeding_id}", response_model=schemas.BreedingOut)
def get_breeding(breeding_id: int, db: Session = Depends(get_db)):
    return _get_breeding(db, breeding_id)


@router.patch("/{breeding_id}", response_model=schemas.BreedingOut)
def update_breeding(
    breeding_id: int,
    payload: schemas.BreedingUpdate,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    breeding = _get_breeding(db, breeding_id)
    changes = payload.model_dump(exclude_unset=True)

    if "success" in changes:
        validate_breeding_success_change(breeding, changes["success"])
        breeding.success = changes["success"]
    if changes.get("breeding_date") is not None:
        breeding.breeding_date = changes["breeding_date"]
        breeding.expected_farrow_date = breeding.breeding_date + timedelta(days=GESTATION_DAYS)
    if changes.get("method") is not None:
        breeding.method = changes["method"]
    if "notes" in changes:
        breeding.notes = changes["notes"]

    _mark_pregnant(breeding)
    db.commit()
    db.refresh(breeding)

    log_activity(
        db, actor, Action.UPDATE, Module.BREEDING,
        entity_id=breeding.breeding_id,
        entity_name=f"{breeding.sow_tag_number} x {breeding.boar_tag_number}",
        details=changes,
    )
    return breeding


@router.delete("/{breeding_id}", response_model=schemas.DeleteResult)
def delete_breeding(
    breeding_id: int,
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    breeding = _get_breeding(db, breeding_id)
    if breeding.farrowing is not None:
        raise ConflictError(
            f"Breeding {breeding_id} has farrowing {breeding.farrowing.farrowing_id}. "
            "Delete the farrowing first."
        )

    label = f"{breeding.sow_tag_number} x {breeding.boar_tag_number}"
    db.delete(breeding)
    db.commit()

    log_activity(db, actor, Action.DELETE, Module.BREEDING, entity_id=breeding_id, entity_name=label)
    return {"deleted_count": 1}
