from __future__ import annotations

import pytest

from pigfarm import models
from pigfarm.config import Settings
from pigfarm.errors import ValidationError
from pigfarm.system_config import (
    CONFIG_ID,
    config_errors,
    load_system_config,
    retention_days,
    update_system_config,
)


@pytest.fixture()
def settings():
    return Settings(database_url="sqlite://", environment="test", activity_log_retention_days=45)


def test_load_creates_default_row_once(db, settings):
    assert db.get(models.SystemConfig, CONFIG_ID) is None

    config = load_system_config(db, settings)
    assert config.activity_log_retention_days == 45
    assert config.max_login_attempts == 5
    assert config.maintenance_mode is False

    again = load_system_config(db, settings)
    assert again.config_id == config.config_id
    assert db.query(models.SystemConfig).count() == 1


@pytest.mark.parametrize(
    "changes,field",
    [
        ({"activity_log_retention_days": 0}, "activity_log_retention_days"),
        ({"activity_log_retention_days": 366}, "activity_log_retention_days"),
        ({"activity_log_retention_days": None}, "activity_log_retention_days"),
        ({"max_login_attempts": 0}, "max_login_attempts"),
        ({"max_login_attempts": 21}, "max_login_attempts"),
        ({"session_timeout_minutes": 0}, "session_timeout_minutes"),
        ({"backup_frequency_days": True}, "backup_frequency_days"),
        ({"maintenance_mode": "yes"}, "maintenance_mode"),
    ],
)
def test_config_errors(changes, field):
    assert field in config_errors(changes)


def test_config_errors_accepts_bounds():
    assert config_errors({"activity_log_retention_days": 1, "max_login_attempts": 20}) == {}
    assert config_errors({"activity_log_retention_days": 365, "auto_backup_enabled": False}) == {}


def test_update_rejects_and_leaves_row_untouched(db, settings):
    load_system_config(db, settings)
    with pytest.raises(ValidationError) as exc:
        update_system_config(db, {"activity_log_retention_days": 400, "max_login_attempts": 3}, settings)
    assert "activity_log_retention_days" in exc.value.details

    config = load_system_config(db, settings)
    assert config.activity_log_retention_days == 45
    assert config.max_login_attempts == 5


def test_update_writes_through(db, settings):
    load_system_config(db, settings)
    update_system_config(db, {"activity_log_retention_days": 120, "maintenance_mode": True}, settings)

    db.expire_all()
    assert retention_days(db) == 120
    assert db.get(models.SystemConfig, CONFIG_ID).maintenance_mode is True


def test_put_system_config(client):
    r = client.put("/system-config/", json={"max_login_attempts": 10, "auto_backup_enabled": False})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["max_login_attempts"] == 10
    assert body["auto_backup_enabled"] is False
    assert body["activity_log_retention_days"] == 90

    assert client.get("/system-config/").json()["max_login_attempts"] == 10


def test_put_system_config_rejects_bad_value(client):
    r = client.put("/system-config/", json={"activity_log_retention_days": 0})
    assert r.status_code == 422
    body = r.json()
    assert body["code"] == "validation_error"
    assert "activity_log_retention_days" in body["details"]

    assert client.get("/system-config/").json()["activity_log_retention_days"] == 90


def test_settings_update_is_logged_for_actor(client):
    user = client.post("/users/", json={"email": "admin@farm.local", "role": "ADMIN"}).json()
    r = client.put(
        "/system-config/",
        json={"session_timeout_minutes": 60},
        headers={"X-User-Id": str(user["user_id"])},
    )
    assert r.status_code == 200, r.text

    logs = client.get("/activity-logs/?module=SETTINGS").json()
    assert logs["total"] == 1
    assert logs["items"][0]["action"] == "UPDATE"
