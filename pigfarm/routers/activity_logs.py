from __future__ import annotations

from datetime import date, timedelta

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..activity import Action, Module, log_activity
from ..database import get_db
from ..datetime_utils import start_of_day, utcnow
from ..deps import get_actor, list_query, to_page
from ..metrics import activity_stats
from ..query import ListQuery
from ..retention import purge_older_than
from ..system_config import retention_days as configured_retention_days
from .. import models, schemas, views

router = APIRouter(prefix="/activity-logs", tags=["activity-logs"])


@router.get("/", response_model=schemas.Page[schemas.ActivityLogOut])
def list_activity_logs(
    user_id: int | None = Query(default=None),
    action: Action | None = Query(default=None),
    module: Module | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    query: ListQuery = Depends(list_query),
    db: Session = Depends(get_db),
):
    q = db.query(models.ActivityLog)
    if user_id is not None:
        q = q.filter(models.ActivityLog.user_id == user_id)
    if action:
        q = q.filter(models.ActivityLog.action == action.value)
    if module:
        q = q.filter(models.ActivityLog.module == module.value)
    if start_date is not None:
        q = q.filter(models.ActivityLog.created_at >= start_of_day(start_date))
    if end_date is not None:
        # end_date is inclusive: everything before the next midnight
        q = q.filter(models.ActivityLog.created_at < start_of_day(end_date + timedelta(days=1)))
    return to_page(views.ACTIVITY_LOGS.apply(q.all(), query), schemas.ActivityLogOut.model_validate)


@router.get("/stats", response_model=schemas.ActivityStatsOut)
def get_activity_stats(db: Session = Depends(get_db)):
    return activity_stats(db.query(models.ActivityLog).all(), utcnow())


@router.delete("/", response_model=schemas.DeleteResult)
def purge_activity_logs(
    retention_days: int | None = Query(default=None, ge=1, le=365),
    db: Session = Depends(get_db),
    actor: models.User | None = Depends(get_actor),
):
    """
    Delete activity logs older than the retention window.

    Without ``retention_days`` the window stored in the system configuration
    is used. The cleanup is recorded only once the purge has committed.
    """
    days = retention_days or configured_retention_days(db)
    deleted = purge_older_than(db, days, utcnow())
    log_activity(
        db, actor, Action.DELETE, Module.ACTIVITY_LOGS,
        entity_name=f"Cleanup older than {days} days",
        details={"retention_days": days, "deleted_count": deleted},
    )
    return {"deleted_count": deleted}
