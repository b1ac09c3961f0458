from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Mapping

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger(__name__)


class Action(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    VIEW = "VIEW"
    EXPORT = "EXPORT"


class Module(str, Enum):
    SOWS = "SOWS"
    BOARS = "BOARS"
    BREEDING = "BREEDING"
    FARROWING = "FARROWING"
    PIGLETS = "PIGLETS"
    GROWTH = "GROWTH"
    WEANING = "WEANING"
    PEN_TRANSFER = "PEN_TRANSFER"
    PENS = "PENS"
    HEALTH = "HEALTH"
    FEED = "FEED"
    USERS = "USERS"
    SETTINGS = "SETTINGS"
    ACTIVITY_LOGS = "ACTIVITY_LOGS"


def log_activity(
    db: Session,
    actor: models.User | None,
    action: Action,
    module: Module,
    *,
    entity_id: Any = None,
    entity_name: str | None = None,
    details: Mapping[str, Any] | None = None,
) -> None:
    """
    Record a successful mutation. Fire-and-forget: a failure here is logged
    and rolled back, it never undoes or fails the operation being recorded.
    Anonymous requests (no actor) are not recorded.
    """
    if actor is None:
        return

    entry = models.ActivityLog(
        user_id=actor.user_id,
        user_email=actor.email,
        user_name=actor.name,
        action=action.value,
        module=module.value,
        entity_id=str(entity_id) if entity_id is not None else None,
        entity_name=entity_name,
        details=json.dumps(details, default=str) if details else None,
    )
    try:
        db.add(entry)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to record %s %s by user %s", action.value, module.value, actor.user_id)
