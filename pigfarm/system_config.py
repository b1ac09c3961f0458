"""
Process-wide system configuration.

The ``system_config`` row is the only source of truth. It is loaded at
startup (created from ``Settings`` defaults when missing) and read through on
every request; updates are validated and written straight to the row in one
commit. Nothing is cached in the process.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping

from sqlalchemy.orm import Session

from . import models
from .config import Settings, get_settings
from .errors import ValidationError

logger = logging.getLogger(__name__)

CONFIG_ID = "system_config"

# field -> (min, max); None = unbounded
_BOUNDS: dict[str, tuple[int, int | None]] = {
    "activity_log_retention_days": (1, 365),
    "max_login_attempts": (1, 20),
    "session_timeout_minutes": (1, None),
    "backup_frequency_days": (1, None),
}
_FLAGS = ("auto_backup_enabled", "maintenance_mode")


def load_system_config(db: Session, settings: Settings | None = None) -> models.SystemConfig:
    config = db.get(models.SystemConfig, CONFIG_ID)
    if config is None:
        settings = settings or get_settings()
        config = models.SystemConfig(
            config_id=CONFIG_ID,
            activity_log_retention_days=settings.activity_log_retention_days,
        )
        db.add(config)
        db.commit()
        db.refresh(config)
        logger.info("Created default system configuration")
    return config


def config_errors(changes: Mapping[str, Any]) -> dict[str, str]:
    errors: dict[str, str] = {}
    for name, (low, high) in _BOUNDS.items():
        if name not in changes:
            continue
        value = changes[name]
        if value is None or isinstance(value, bool) or not isinstance(value, int):
            errors[name] = "must be a whole number"
        elif value < low or (high is not None and value > high):
            errors[name] = f"must be between {low} and {high}" if high is not None else f"must be >= {low}"
    for name in _FLAGS:
        if name in changes and not isinstance(changes[name], bool):
            errors[name] = "must be true or false"
    return errors


def update_system_config(
    db: Session,
    changes: Mapping[str, Any],
    settings: Settings | None = None,
) -> models.SystemConfig:
    errors = config_errors(changes)
    if errors:
        raise ValidationError("Invalid system configuration", details=errors)

    config = load_system_config(db, settings)
    for name, value in changes.items():
        if name in _BOUNDS or name in _FLAGS:
            setattr(config, name, value)
    db.commit()
    db.refresh(config)
    logger.info("System configuration updated: %s", ", ".join(sorted(changes)) or "no changes")
    return config


def retention_days(db: Session) -> int:
    return load_system_config(db).activity_log_retention_days
