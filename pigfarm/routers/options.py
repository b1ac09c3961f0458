from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..lifecycle import eligible_breedings
from ..metrics import occupancy_pct
from ..models import BoarStatus, PenType, SowStatus
from .. import models, schemas

router = APIRouter(prefix="/options", tags=["options"])


@router.get("/breedings", response_model=list[schemas.OptionItem])
def options_breedings(
    eligible_only: bool = True,
    db: Session = Depends(get_db),
):
    """Dropdown of breedings; by default only those that may still farrow."""
    if eligible_only:
        breedings = eligible_breedings(db)
    else:
        breedings = (
            db.query(models.Breeding)
            .order_by(models.Breeding.breeding_date.desc(), models.Breeding.breeding_id.desc())
            .all()
        )

    out: list[schemas.OptionItem] = []
    for b in breedings:
        sow = b.sow_tag_number or f"ID {b.sow_id}"
        boar = b.boar_tag_number or f"ID {b.boar_id}"
        label = f"#{b.breeding_id} {sow} x {boar} (bred {b.breeding_date})"
        out.append(schemas.OptionItem(id=b.breeding_id, label=label))
    return out


@router.get("/sows", response_model=list[schemas.OptionItem])
def options_sows(
    status: SowStatus | None = Query(default=None),
    db: Session = Depends(get_db),
):
    q = db.query(models.Sow)
    if status:
        q = q.filter(models.Sow.status == status.value)

    return [
        schemas.OptionItem(id=s.sow_id, label=f"{s.tag_number} ({s.breed}, {s.status})")
        for s in q.order_by(models.Sow.tag_number.asc()).all()
    ]


@router.get("/boars", response_model=list[schemas.OptionItem])
def options_boars(
    status: BoarStatus | None = Query(default=None),
    db: Session = Depends(get_db),
):
    q = db.query(models.Boar)
    if status:
        q = q.filter(models.Boar.status == status.value)

    return [
        schemas.OptionItem(id=b.boar_id, label=f"{b.tag_number} ({b.breed}, {b.status})")
        for b in q.order_by(models.Boar.tag_number.asc()).all()
    ]


@router.get("/pens", response_model=list[schemas.OptionItem])
def options_pens(
    pen_type: PenType | None = Query(default=None),
    db: Session = Depends(get_db),
):
    q = db.query(models.Pen)
    if pen_type:
        q = q.filter(models.Pen.pen_type == pen_type.value)

    out: list[schemas.OptionItem] = []
    for p in q.order_by(models.Pen.pen_number.asc()).all():
        pct = occupancy_pct(p.current_count, p.capacity)
        label = f"{p.pen_number} ({p.pen_type}) {p.current_count}/{p.capacity} ({pct:.0f}%)"
        out.append(schemas.OptionItem(id=p.pen_id, label=label))
    return out
