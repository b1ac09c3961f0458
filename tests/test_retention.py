from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from pigfarm import models
from pigfarm.routers import activity_logs
from pigfarm.datetime_utils import utcnow
from pigfarm.errors import ValidationError
from pigfarm.retention import purge_older_than, retention_cutoff


def _log(db, created_at, entity_name="entry"):
    entry = models.ActivityLog(
        user_email="keeper@farm.local",
        action="CREATE",
        module="SOWS",
        entity_name=entity_name,
        created_at=created_at,
    )
    db.add(entry)
    db.commit()
    return entry


def test_purge_deletes_only_logs_before_cutoff(db):
    now = datetime(2026, 6, 1, 12, 0)
    _log(db, now - timedelta(days=200), "old")
    _log(db, now - timedelta(days=100), "older than window")
    _log(db, now - timedelta(days=10), "recent")

    assert purge_older_than(db, 90, now) == 2
    assert [log.entity_name for log in db.query(models.ActivityLog).all()] == ["recent"]

    # Same cutoff again: nothing left to remove
    assert purge_older_than(db, 90, now) == 0


def test_log_exactly_at_cutoff_is_kept(db):
    now = datetime(2026, 6, 1, 12, 0)
    _log(db, now - timedelta(days=90))
    assert purge_older_than(db, 90, now) == 0


def test_retention_cutoff():
    now = datetime(2026, 6, 1, 12, 0)
    assert retention_cutoff(30, now) == datetime(2026, 5, 2, 12, 0)
    with pytest.raises(ValidationError):
        retention_cutoff(-1, now)


def _keeper(client):
    r = client.post("/users/", json={"email": "keeper@farm.local", "name": "Keeper"})
    assert r.status_code == 200, r.text
    return {"X-User-Id": str(r.json()["user_id"])}


def test_purge_endpoint_with_explicit_window(client, db):
    headers = _keeper(client)
    now = utcnow()
    _log(db, now - timedelta(days=200))
    _log(db, now - timedelta(days=100))
    _log(db, now - timedelta(days=10))

    r = client.delete("/activity-logs/?retention_days=90", headers=headers)
    assert r.status_code == 200, r.text
    assert r.json() == {"deleted_count": 2}

    remaining = client.get("/activity-logs/").json()
    assert remaining["total"] == 2
    names = {item["entity_name"] for item in remaining["items"]}
    assert "Cleanup older than 90 days" in names


def test_purge_endpoint_defaults_to_configured_window(client, db):
    r = client.put("/system-config/", json={"activity_log_retention_days": 150})
    assert r.status_code == 200, r.text

    now = utcnow()
    _log(db, now - timedelta(days=200))
    _log(db, now - timedelta(days=100))

    r = client.delete("/activity-logs/")
    assert r.status_code == 200, r.text
    assert r.json() == {"deleted_count": 1}


def test_purge_endpoint_rejects_out_of_range_window(client):
    assert client.delete("/activity-logs/?retention_days=0").status_code == 422
    assert client.delete("/activity-logs/?retention_days=400").status_code == 422


def test_failed_purge_records_no_cleanup(app, db, monkeypatch):
    def failing_purge(session, retention_days, now):
        raise RuntimeError("database is locked")

    monkeypatch.setattr(activity_logs, "purge_older_than", failing_purge)

    with TestClient(app, raise_server_exceptions=False) as client:
        headers = _keeper(client)
        _log(db, utcnow() - timedelta(days=200))

        r = client.delete("/activity-logs/?retention_days=90", headers=headers)
        assert r.status_code == 500
        assert r.json()["code"] == "infrastructure_error"

    db.expire_all()
    assert db.query(models.ActivityLog).filter(models.ActivityLog.module == "ACTIVITY_LOGS").count() == 0
    assert db.query(models.ActivityLog).count() == 1
