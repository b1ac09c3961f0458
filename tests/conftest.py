from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pigfarm import models  # noqa: F401  registers the tables on Base.metadata
from pigfarm.config import Settings
from pigfarm.database import Base
from pigfarm.main import create_app


@pytest.fixture()
def test_settings() -> Settings:
    return Settings(
        database_url="sqlite://",
        log_level="WARNING",
        environment="test",
        activity_log_retention_days=90,
    )


@pytest.fixture()
def engine():
    # One shared in-memory connection so the app and the test see the same data
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def app(test_settings, engine):
    return create_app(settings=test_settings, engine=engine)


@pytest.fixture()
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()
