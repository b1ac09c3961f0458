from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..activity import Action, Module, log_activity
from ..config import Settings
from ..database import get_db
from ..deps import get_actor, get_app_settings
from ..system_config import load_system_config, update_system_config
from .. import models, schemas

router = APIRouter(prefix="/system-config", tags=["settings"])


@router.get("/", response_model=schemas.SystemConfigOut)
def get_system_config(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    return load_system_config(db, settings)


@router.put("/", response_model=schemas.SystemConfigOut)
def put_system_config(
    payload: schemas.SystemConfigUpdate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    actor: models.User | None = Depends(get_actor),
):
    changes = payload.model_dump(exclude_unset=True)
    config = update_system_config(db, changes, settings)

    log_activity(
        db, actor, Action.UPDATE, Module.SETTINGS,
        entity_id=config.config_id, entity_name="System configuration", details=changes,
    )
    return config
