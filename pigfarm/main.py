from __future__ import annotations

# IMPORTANT:
# Correct command:
#   python -m uvicorn pigfarm.main:app --reload

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Query
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from . import database, models, schemas
from .config import Settings, get_settings
from .database import Base, get_db, make_engine
from .datetime_utils import utcnow
from .error_handlers import register_error_handlers
from .metrics import farm_summary, monthly_summary
from .routers import (
    activity_logs,
    alerts,
    boars,
    breedings,
    farrowings,
    feed_records,
    growth_records,
    health_records,
    options,
    pens,
    piglets,
    reports,
    sows,
    users,
)
from .routers import system_config as system_config_router
from .system_config import load_system_config

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=app.state.engine)
    db = app.state.session_factory()
    try:
        config = load_system_config(db, app.state.settings)
        logger.info(
            "Pig farm API ready (%s), activity log retention %d days",
            app.state.settings.environment,
            config.activity_log_retention_days,
        )
    finally:
        db.close()
    yield


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    root = logging.getLogger()
    # Avoid adding duplicate handlers on reload
    if not any(isinstance(h, logging.StreamHandler) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
        root.addHandler(handler)
    root.setLevel(level)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(level)


def create_app(*, settings: Settings | None = None, engine: Engine | None = None) -> FastAPI:
    settings = settings or get_settings()
    _configure_logging(settings.log_level)

    if engine is None:
        if settings.database_url == database.DATABASE_URL:
            engine = database.engine
        else:
            engine = make_engine(settings.database_url)

    app = FastAPI(title="Pig Farm Tracker", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    register_error_handlers(app)

    # -----------------------------
    # API ROUTERS
    # -----------------------------
    app.include_router(sows.router)
    app.include_router(boars.router)
    app.include_router(breedings.router)
    app.include_router(farrowings.router)
    app.include_router(piglets.router)
    app.include_router(pens.router)
    app.include_router(health_records.router)
    app.include_router(feed_records.router)
    app.include_router(growth_records.router)
    app.include_router(users.router)
    app.include_router(activity_logs.router)
    app.include_router(system_config_router.router)
    app.include_router(reports.router)
    app.include_router(options.router)
    app.include_router(alerts.router)

    # -----------------------------
    # DASHBOARD
    # -----------------------------
    @app.get("/analytics", response_model=schemas.FarmSummary)
    def analytics(
        upcoming_days: int = Query(default=30, ge=1, le=120),
        db: Session = Depends(get_db),
    ):
        return farm_summary(
            sows=db.query(models.Sow).all(),
            boars=db.query(models.Boar).all(),
            piglets=db.query(models.Piglet).all(),
            pens=db.query(models.Pen).all(),
            breedings=db.query(models.Breeding).all(),
            farrowings=db.query(models.Farrowing).all(),
            health_records=db.query(models.HealthRecord).all(),
            now=utcnow(),
            upcoming_days=upcoming_days,
        )

    @app.get("/analytics/yearly", response_model=list[schemas.MonthlySummary])
    def analytics_yearly(
        months: int = Query(default=12, ge=1, le=36),
        db: Session = Depends(get_db),
    ):
        return monthly_summary(
            breedings=db.query(models.Breeding).all(),
            farrowings=db.query(models.Farrowing).all(),
            now=utcnow(),
            months=months,
        )

    @app.get("/")
    def root():
        return {"status": "ok", "analytics": "/analytics", "docs": "/docs"}

    return app


app = create_app()
