from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from . import models
from .datetime_utils import as_datetime
from .errors import ValidationError

logger = logging.getLogger(__name__)


def retention_cutoff(retention_days: int, now: datetime) -> datetime:
    if retention_days < 0:
        raise ValidationError(
            "retention_days must be >= 0", details={"retention_days": "must be >= 0"}
        )
    return as_datetime(now) - timedelta(days=retention_days)


def purge_older_than(db: Session, retention_days: int, now: datetime) -> int:
    """
    Delete every activity log created before ``now - retention_days``.

    Runs as one transaction: the count returned is exactly the number of rows
    removed, or nothing is removed and the error propagates. Re-running with
    the same cutoff deletes nothing further.
    """
    cutoff = retention_cutoff(retention_days, now)
    try:
        deleted = (
            db.query(models.ActivityLog)
            .filter(models.ActivityLog.created_at < cutoff)
            .delete(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Activity log purge (cutoff %s) rolled back", cutoff.isoformat())
        raise

    logger.info("Purged %d activity logs older than %s", deleted, cutoff.isoformat())
    return deleted
