from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..metrics import deaths_on
from .. import models, schemas

router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.get("/piglet-deaths", response_model=schemas.PigletDeathAlert)
def piglet_deaths(
    day: date | None = Query(default=None),
    db: Session = Depends(get_db),
):
    """Number of piglets recorded dead on ``day`` (today by default)."""
    day = day or date.today()
    piglets = db.query(models.Piglet).filter(models.Piglet.death_date == day).all()
    return {"day": day, "count": deaths_on(piglets, day)}
