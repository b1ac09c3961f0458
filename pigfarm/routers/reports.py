from __future__ import annotations

from dataclasses import asdict
from datetime import date

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ..activity import Action, Module, log_activity
from ..database import get_db
from ..deps import get_actor
from ..metrics import death_cause_summary, litter_survival, sow_lifetime_stats
from ..models import PigletStatus, SowStatus
from .. import models, schemas

router = APIRouter(prefix="/reports", tags=["reports"])


def _date_range_filters(start_date, end_date, col):
    if start_date is not None:
        yield col >= start_date
    if end_date is not None:
        yield col <= end_date


def _csv_stream(rows, header):
    import csv
    from io import StringIO

    buf = StringIO()
    w = csv.writer(buf)
    w.writerow(header)
    yield buf.getvalue()

    for r in rows:
        buf.seek(0)
        buf.truncate(0)
        w.writerow(r)
        yield buf.getvalue()


def _in_range(d: date, start_date: date | None, end_date: date | None) -> bool:
    return (start_date is None or d >= start_date) and (end_date is None or d <= end_date)


def _sow_performance(db: Session, status, start_date, end_date) -> list[schemas.SowPerformanceRow]:
    q = db.query(models.Sow)
    if status:
        q = q.filter(models.Sow.status == status.value)

    rows = []
    for sow in q.order_by(models.Sow.tag_number.asc()).all():
        farrowings = [f for f in sow.farrowings if _in_range(f.farrowing_date, start_date, end_date)]
        stats = sow_lifetime_stats(farrowings)
        rows.append(
            schemas.SowPerformanceRow(
                sow_id=sow.sow_id, tag_number=sow.tag_number, breed=sow.breed, **asdict(stats)
            )
        )
    return rows


def _batch_survival(db: Session, start_date, end_date):
    q = db.query(models.Farrowing)
    for f in _date_range_filters(start_date, end_date, models.Farrowing.farrowing_date):
        q = q.filter(f)
    farrowings = q.order_by(models.Farrowing.farrowing_date.desc(), models.Farrowing.farrowing_id.desc()).all()
    return [litter_survival(f) for f in farrowings]


@router.get("/sow-performance", response_model=list[schemas.SowPerformanceRow])
def report_sow_performance(
    status: SowStatus | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
):
    return _sow_performance(db, status, start_date, end_date)


@router.get("/batch-survival", response_model=list[schemas.LitterSurvival])
def report_batch_survival(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
):
    return _batch_survival(db, start_date, end_date)


@router.get("/death-causes", response_model=schemas.DeathCauseSummary)
def report_death_causes(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
):
    q = db.query(models.Piglet).filter(models.Piglet.status == PigletStatus.DEAD.value)
    if start_date is not None or end_date is not None:
        q = q.filter(models.Piglet.death_date.isnot(None))
        for f in _date_range_filters(start_date, end_date, models.Piglet.death_date):
            q = q.filter(f)
    return death_cause_summary(q.all())


@router.get("/sow-performance.csv")
def report_sow_performance_csv(
    status: SowStatus | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    performance = _sow_performance(db, status, start_date, end_date)

    header = [
        "sow_id", "tag_number", "breed", "total_litters", "total_born", "total_born_alive",
        "total_stillborn", "dead_post_farrowing", "survivors", "survival_rate", "mortality_rate",
        "avg_born_per_litter", "avg_birth_weight",
    ]
    rows = [
        [
            r.sow_id, r.tag_number, r.breed, r.total_litters, r.total_born, r.total_born_alive,
            r.total_stillborn, r.dead_post_farrowing, r.survivors, r.survival_rate, r.mortality_rate,
            r.avg_born_per_litter, r.avg_birth_weight,
        ]
        for r in performance
    ]

    log_activity(db, actor, Action.EXPORT, Module.SOWS, entity_name="sow-performance.csv")
    return StreamingResponse(
        _csv_stream(rows, header),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=sow_performance.csv"},
    )


@router.get("/batch-survival.csv")
def report_batch_survival_csv(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    batches = _batch_survival(db, start_date, end_date)

    header = [
        "farrowing_id", "sow_tag_number", "batch_date", "born_alive", "stillborn", "mummified",
        "dead_post_farrowing", "survivors", "survival_rate",
    ]
    rows = [
        [
            b.farrowing_id, b.sow_tag_number, b.batch_date, b.born_alive, b.stillborn, b.mummified,
            b.dead_post_farrowing, b.survivors, b.survival_rate,
        ]
        for b in batches
    ]

    log_activity(db, actor, Action.EXPORT, Module.FARROWING, entity_name="batch-survival.csv")
    return StreamingResponse(
        _csv_stream(rows, header),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=batch_survival.csv"},
    )
