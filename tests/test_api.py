from __future__ import annotations

from datetime import date, timedelta

from pigfarm.datetime_utils import utcnow


def _sow(client, tag="S1", **extra):
    r = client.post("/sows/", json={"tag_number": tag, "breed": "Landrace", "birth_date": "2024-01-01", **extra})
    assert r.status_code == 200, r.text
    return r.json()


def _boar(client, tag="B1"):
    r = client.post("/boars/", json={"tag_number": tag, "breed": "Duroc", "birth_date": "2023-06-01"})
    assert r.status_code == 200, r.text
    return r.json()


def _breeding(client, sow, boar, breeding_date="2026-01-01", **extra):
    r = client.post(
        "/breedings/",
        json={"sow_id": sow["sow_id"], "boar_id": boar["boar_id"], "breeding_date": breeding_date, **extra},
    )
    assert r.status_code == 200, r.text
    return r.json()


def _farrowing(client, breeding, born_alive=8, total_born=10, **extra):
    return client.post(
        "/farrowings/",
        json={
            "sow_id": breeding["sow_id"],
            "breeding_id": breeding["breeding_id"],
            "farrowing_date": "2026-04-25",
            "total_born": total_born,
            "born_alive": born_alive,
            "stillborn": total_born - born_alive,
            "average_birth_weight": 1.4,
            **extra,
        },
    )


def _pen(client, number="N-01", capacity=10):
    r = client.post("/pens/", json={"pen_number": number, "pen_type": "NURSERY", "capacity": capacity})
    assert r.status_code == 200, r.text
    return r.json()


def test_root_and_system_config_created_at_startup(client):
    r = client.get("/")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"

    cfg = client.get("/system-config/")
    assert cfg.status_code == 200, cfg.text
    assert cfg.json()["activity_log_retention_days"] == 90


def test_create_sow_and_list(client):
    sow = _sow(client, "S-100")
    assert sow["status"] == "ACTIVE"
    assert sow["age_months"] >= 0

    r = client.get("/sows/")
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["total"] == 1
    assert data["page"] == 1
    assert data["items"][0]["tag_number"] == "S-100"


def test_duplicate_sow_tag_is_conflict(client):
    _sow(client, "DUP")
    r = client.post("/sows/", json={"tag_number": "DUP", "breed": "X", "birth_date": "2024-01-01"})
    assert r.status_code == 409
    assert r.json()["code"] == "conflict"


def test_blank_sow_tag_is_validation_error(client):
    r = client.post("/sows/", json={"tag_number": "  ", "breed": "X", "birth_date": "2024-01-01"})
    assert r.status_code == 422
    body = r.json()
    assert body["code"] == "validation_error"
    assert body["details"]["tag_number"] == "required"


def test_breeding_sets_expected_farrow_date(client):
    breeding = _breeding(client, _sow(client), _boar(client), "2026-01-01")
    assert breeding["expected_farrow_date"] == str(date(2026, 1, 1) + timedelta(days=114))
    assert breeding["success"] is None
    assert breeding["sow_tag_number"] == "S1"
    assert breeding["farrowing_id"] is None


def test_breeding_with_unknown_boar_is_reference_error(client):
    sow = _sow(client)
    r = client.post("/breedings/", json={"sow_id": sow["sow_id"], "boar_id": 999, "breeding_date": "2026-01-01"})
    assert r.status_code == 404
    assert r.json()["code"] == "reference_error"


def test_breeding_farrowing_piglets_flow(client):
    sow = _sow(client)
    boar = _boar(client)
    breeding = _breeding(client, sow, boar)

    opts = client.get("/options/breedings")
    assert opts.status_code == 200
    assert [o["id"] for o in opts.json()] == [breeding["breeding_id"]]

    f = _farrowing(client, breeding, born_alive=8, total_born=10)
    assert f.status_code == 200, f.text
    farrowing = f.json()
    assert farrowing["piglet_count"] == 8
    assert farrowing["sow_tag_number"] == "S1"

    piglets = client.get(f"/farrowings/{farrowing['farrowing_id']}/piglets").json()
    assert len(piglets) == 8
    assert all(p["status"] == "NURSING" and p["birth_weight"] == 1.4 for p in piglets)

    assert client.get(f"/sows/{sow['sow_id']}").json()["status"] == "LACTATING"
    assert client.get(f"/breedings/{breeding['breeding_id']}").json()["success"] is True

    # No longer eligible, and a second farrowing is rejected
    assert client.get("/options/breedings").json() == []
    again = _farrowing(client, breeding)
    assert again.status_code == 409
    assert again.json()["code"] == "conflict"


def test_farrowing_for_failed_breeding_is_state_error(client):
    breeding = _breeding(client, _sow(client), _boar(client), success=False)
    r = _farrowing(client, breeding)
    assert r.status_code == 409
    assert r.json()["code"] == "invalid_state"


def test_farrowing_for_unknown_breeding_is_reference_error(client):
    sow = _sow(client)
    r = _farrowing(client, {"sow_id": sow["sow_id"], "breeding_id": 42})
    assert r.status_code == 404
    assert r.json()["code"] == "reference_error"


def test_farrowing_counts_validated(client):
    breeding = _breeding(client, _sow(client), _boar(client))
    r = client.post(
        "/farrowings/",
        json={
            "sow_id": breeding["sow_id"],
            "breeding_id": breeding["breeding_id"],
            "farrowing_date": "2026-04-25",
            "total_born": 5,
            "born_alive": 7,
        },
    )
    assert r.status_code == 422

    r2 = client.post(
        "/farrowings/",
        json={
            "sow_id": breeding["sow_id"],
            "breeding_id": breeding["breeding_id"],
            "farrowing_date": "2026-04-25",
            "total_born": -1,
            "born_alive": 0,
        },
    )
    assert r2.status_code == 422


def test_marking_farrowed_breeding_failed_is_state_error(client):
    breeding = _breeding(client, _sow(client), _boar(client))
    assert _farrowing(client, breeding).status_code == 200

    r = client.patch(f"/breedings/{breeding['breeding_id']}", json={"success": False})
    assert r.status_code == 409
    assert r.json()["code"] == "invalid_state"


def test_delete_farrowing_cascades_piglets(client):
    sow = _sow(client)
    breeding = _breeding(client, sow, _boar(client))
    farrowing = _farrowing(client, breeding, born_alive=6, total_born=6).json()
    pen = _pen(client)

    piglets = client.get(f"/farrowings/{farrowing['farrowing_id']}/piglets").json()
    t = client.post(
        "/piglets/transfer",
        json={"piglet_ids": [p["piglet_id"] for p in piglets[:3]], "to_pen_id": pen["pen_id"], "transfer_date": "2026-05-01"},
    )
    assert t.status_code == 200, t.text
    assert client.get(f"/pens/{pen['pen_id']}").json()["current_count"] == 3

    r = client.delete(f"/farrowings/{farrowing['farrowing_id']}")
    assert r.status_code == 200, r.text
    assert r.json() == {"deleted_count": 1, "piglets_deleted": 6}

    assert client.get(f"/piglets/?farrowing_id={farrowing['farrowing_id']}").json()["total"] == 0
    assert client.get(f"/pens/{pen['pen_id']}").json()["current_count"] == 0
    assert client.get(f"/sows/{sow['sow_id']}").json()["status"] == "PREGNANT"
    assert client.get(f"/farrowings/{farrowing['farrowing_id']}").status_code == 404

    # The breeding can farrow again
    assert [o["id"] for o in client.get("/options/breedings").json()] == [breeding["breeding_id"]]


def test_delete_missing_farrowing_is_not_found(client):
    r = client.delete("/farrowings/999")
    assert r.status_code == 404
    assert r.json()["code"] == "not_found"


def test_piglet_status_transitions(client):
    breeding = _breeding(client, _sow(client), _boar(client))
    farrowing = _farrowing(client, breeding, born_alive=2, total_born=2).json()
    p1, p2 = client.get(f"/farrowings/{farrowing['farrowing_id']}/piglets").json()

    bad = client.patch(f"/piglets/{p1['piglet_id']}", json={"status": "SOLD"})
    assert bad.status_code == 409
    assert bad.json()["code"] == "invalid_state"

    dead = client.patch(
        f"/piglets/{p1['piglet_id']}", json={"status": "DEAD", "death_cause": "Crushed by sow"}
    )
    assert dead.status_code == 200, dead.text
    assert dead.json()["death_date"] == str(date.today())

    # Terminal
    back = client.patch(f"/piglets/{p1['piglet_id']}", json={"status": "NURSING"})
    assert back.status_code == 409

    for status in ("WEANED", "GROWING", "READY", "SOLD"):
        r = client.patch(f"/piglets/{p2['piglet_id']}", json={"status": status})
        assert r.status_code == 200, r.text
        assert r.json()["status"] == status


def test_create_piglet_requires_tag_and_farrowing(client):
    breeding = _breeding(client, _sow(client), _boar(client))
    farrowing = _farrowing(client, breeding, born_alive=0, total_born=1).json()

    blank = client.post("/piglets/", json={"tag_number": " ", "farrowing_id": farrowing["farrowing_id"]})
    assert blank.status_code == 422
    assert blank.json()["details"]["tag_number"] == "required"

    missing = client.post("/piglets/", json={"tag_number": "P-1", "farrowing_id": 999})
    assert missing.status_code == 404
    assert missing.json()["code"] == "reference_error"

    ok = client.post("/piglets/", json={"tag_number": "P-1", "farrowing_id": farrowing["farrowing_id"], "gender": "MALE"})
    assert ok.status_code == 200, ok.text
    assert ok.json()["farrowing_date"] == "2026-04-25"


def test_wean_piglets_and_sow(client):
    sow = _sow(client)
    breeding = _breeding(client, sow, _boar(client))
    farrowing = _farrowing(client, breeding, born_alive=3, total_born=3).json()
    ids = [p["piglet_id"] for p in client.get(f"/farrowings/{farrowing['farrowing_id']}/piglets").json()]

    r = client.post("/piglets/wean", json={"piglet_ids": ids, "weaning_date": "2026-05-20", "sow_id": sow["sow_id"]})
    assert r.status_code == 200, r.text
    assert r.json()["updated"] == 3

    assert client.get("/piglets/?status=WEANED").json()["total"] == 3
    assert client.get(f"/sows/{sow['sow_id']}").json()["status"] == "WEANED"


def test_sow_status_edit_follows_transition_table(client):
    sow = _sow(client)
    r = client.patch(f"/sows/{sow['sow_id']}", json={"status": "LACTATING"})
    assert r.status_code == 409
    assert r.json()["code"] == "invalid_state"

    assert client.patch(f"/sows/{sow['sow_id']}", json={"status": "CULLED"}).status_code == 200
    assert client.patch(f"/sows/{sow['sow_id']}", json={"status": "ACTIVE"}).status_code == 409


def test_sow_with_breeding_cannot_be_deleted(client):
    sow = _sow(client)
    _breeding(client, sow, _boar(client))
    r = client.delete(f"/sows/{sow['sow_id']}")
    assert r.status_code == 409

    lone = _sow(client, "LONE")
    r2 = client.delete(f"/sows/{lone['sow_id']}")
    assert r2.status_code == 200
    assert r2.json() == {"deleted_count": 1}


def test_health_record_subject_rules(client):
    sow = _sow(client)
    boar = _boar(client)

    both = client.post(
        "/health-records/",
        json={"record_type": "VACCINATION", "record_date": "2026-02-01", "sow_id": sow["sow_id"], "boar_id": boar["boar_id"]},
    )
    assert both.status_code == 422

    unknown = client.post(
        "/health-records/", json={"record_type": "TREATMENT", "record_date": "2026-02-01", "sow_id": 999}
    )
    assert unknown.status_code == 404

    ok = client.post(
        "/health-records/",
        json={"record_type": "VACCINATION", "record_date": "2026-02-01", "sow_id": sow["sow_id"], "medicine": "PRRS"},
    )
    assert ok.status_code == 200, ok.text

    listed = client.get("/health-records/?q=s1").json()
    assert listed["total"] == 1


def test_pen_occupancy_and_feed_records(client):
    pen = _pen(client, "G-01", capacity=10)
    upd = client.patch(f"/pens/{pen['pen_id']}", json={"current_count": 9})
    assert upd.status_code == 200
    assert upd.json()["occupancy_pct"] == 90.0
    assert upd.json()["occupancy_level"] == "critical"

    fr = client.post(
        "/feed-records/",
        json={"record_date": "2026-03-01", "pen_id": pen["pen_id"], "feed_type": "Grower", "quantity": 50},
    )
    assert fr.status_code == 200, fr.text
    assert fr.json()["unit"] == "kg"

    blocked = client.delete(f"/pens/{pen['pen_id']}")
    assert blocked.status_code == 409

    missing_pen = client.post(
        "/feed-records/",
        json={"record_date": "2026-03-01", "pen_id": 999, "feed_type": "Grower", "quantity": 50},
    )
    assert missing_pen.status_code == 404


def test_list_search_sort_and_page_clamp(client):
    for i in range(12):
        _sow(client, f"T-{i:02d}", breed="Duroc" if i % 2 else "Landrace")

    r = client.get("/sows/?page_size=5&page=99")
    data = r.json()
    assert data["total"] == 12
    assert data["total_pages"] == 3
    assert data["page"] == 3
    assert len(data["items"]) == 2

    desc = client.get("/sows/?sort=tag_number&direction=desc&page_size=3").json()
    assert [s["tag_number"] for s in desc["items"]] == ["T-11", "T-10", "T-09"]

    duroc = client.get("/sows/?q=duroc&page_size=100").json()
    assert duroc["total"] == 6

    bad = client.get("/sows/?sort=nope")
    assert bad.status_code == 422
    assert bad.json()["code"] == "validation_error"

    too_big = client.get("/sows/?page_size=1000")
    assert too_big.status_code == 422


def test_activity_is_logged_for_known_actor_only(client):
    user = client.post("/users/", json={"email": "Keeper@Farm.local", "name": "Keeper"})
    assert user.status_code == 200, user.text
    user = user.json()
    assert user["email"] == "keeper@farm.local"

    _sow(client, "ANON")
    r = client.post(
        "/sows/",
        json={"tag_number": "LOGGED", "breed": "Landrace", "birth_date": "2024-01-01"},
        headers={"X-User-Id": str(user["user_id"])},
    )
    assert r.status_code == 200, r.text

    logs = client.get("/activity-logs/").json()
    assert logs["total"] == 1
    entry = logs["items"][0]
    assert entry["action"] == "CREATE"
    assert entry["module"] == "SOWS"
    assert entry["entity_name"] == "LOGGED"
    assert entry["user_email"] == "keeper@farm.local"

    stats = client.get("/activity-logs/stats").json()
    assert stats["total_logs"] == 1
    assert stats["today_logs"] == 1
    assert stats["by_module"] == [{"key": "SOWS", "count": 1}]


def test_reports_and_csv(client):
    sow = _sow(client)
    breeding = _breeding(client, sow, _boar(client))
    farrowing = _farrowing(client, breeding, born_alive=4, total_born=5).json()
    piglet = client.get(f"/farrowings/{farrowing['farrowing_id']}/piglets").json()[0]
    client.patch(f"/piglets/{piglet['piglet_id']}", json={"status": "DEAD", "death_cause": "Diarrhea"})

    perf = client.get("/reports/sow-performance").json()
    assert perf[0]["tag_number"] == "S1"
    assert perf[0]["survival_rate"] == 75.0
    assert perf[0]["mortality_rate"] == 25.0

    stats = client.get(f"/sows/{sow['sow_id']}/stats").json()
    assert stats["dead_post_farrowing"] == 1
    assert stats["death_details"][0]["cause"] == "Diarrhea"

    batches = client.get("/reports/batch-survival").json()
    assert batches[0]["survivors"] == 3

    causes = client.get("/reports/death-causes").json()
    assert causes == {"total_deaths": 1, "causes": [{"cause": "Diarrhea", "count": 1, "percentage": 100.0}]}

    csv_r = client.get("/reports/sow-performance.csv")
    assert csv_r.status_code == 200
    assert csv_r.headers["content-type"].startswith("text/csv")
    lines = csv_r.text.strip().splitlines()
    assert lines[0].startswith("sow_id,tag_number,breed")
    assert len(lines) == 2

    batch_csv = client.get("/reports/batch-survival.csv")
    assert batch_csv.status_code == 200
    assert "farrowing_id" in batch_csv.text.splitlines()[0]


def test_analytics_summary(client):
    sow = _sow(client)
    today = date.today()
    _breeding(client, sow, _boar(client), str(today - timedelta(days=100)))

    r = client.get("/analytics")
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["total_sows"] == 1
    assert data["total_boars"] == 1
    assert len(data["upcoming_farrowings"]) == 1
    assert data["upcoming_farrowings"][0]["sow_tag_number"] == "S1"


def test_breeding_created_as_successful_marks_sow_pregnant(client):
    sow = _sow(client)
    breeding = _breeding(client, sow, _boar(client), success=True)
    assert breeding["success"] is True
    assert client.get(f"/sows/{sow['sow_id']}").json()["status"] == "PREGNANT"


def test_farrowing_rejected_for_culled_sow(client):
    sow = _sow(client)
    breeding = _breeding(client, sow, _boar(client))
    r = client.patch(f"/sows/{sow['sow_id']}", json={"status": "CULLED"})
    assert r.status_code == 200, r.text

    f = _farrowing(client, breeding)
    assert f.status_code == 409
    assert f.json()["code"] == "invalid_state"
    assert client.get(f"/sows/{sow['sow_id']}").json()["status"] == "CULLED"


def test_growth_records_track_age_and_daily_gain(client):
    breeding = _breeding(client, _sow(client), _boar(client))
    farrowing = _farrowing(client, breeding, born_alive=2, total_born=2).json()
    piglet = client.get(f"/farrowings/{farrowing['farrowing_id']}/piglets").json()[0]

    first = client.post(
        "/growth-records/",
        json={"piglet_id": piglet["piglet_id"], "record_date": "2026-05-05", "weight": 4.4},
    )
    assert first.status_code == 200, first.text
    assert first.json()["age_in_days"] == 10
    # From the 1.4 kg birth weight over 10 days
    assert first.json()["adg"] == 0.3

    second = client.post(
        "/growth-records/",
        json={"piglet_id": piglet["piglet_id"], "record_date": "2026-05-15", "weight": 6.4},
    )
    assert second.status_code == 200, second.text
    assert second.json()["age_in_days"] == 20
    assert second.json()["adg"] == 0.2

    listed = client.get(f"/growth-records/?piglet_id={piglet['piglet_id']}").json()
    assert listed["total"] == 2
    assert [r["record_date"] for r in listed["items"]] == ["2026-05-15", "2026-05-05"]

    edited = client.patch(f"/growth-records/{second.json()['growth_record_id']}", json={"weight": 7.4})
    assert edited.status_code == 200, edited.text
    assert edited.json()["adg"] == 0.3


def test_growth_record_rules(client):
    breeding = _breeding(client, _sow(client), _boar(client))
    farrowing = _farrowing(client, breeding, born_alive=1, total_born=1).json()
    piglet = client.get(f"/farrowings/{farrowing['farrowing_id']}/piglets").json()[0]

    unknown = client.post("/growth-records/", json={"piglet_id": 999, "record_date": "2026-05-05", "weight": 3})
    assert unknown.status_code == 404
    assert unknown.json()["code"] == "reference_error"

    before_birth = client.post(
        "/growth-records/", json={"piglet_id": piglet["piglet_id"], "record_date": "2026-04-20", "weight": 3}
    )
    assert before_birth.status_code == 422
    assert "record_date" in before_birth.json()["details"]

    r = client.post(
        "/growth-records/", json={"piglet_id": piglet["piglet_id"], "record_date": "2026-05-01", "weight": 3}
    )
    assert r.status_code == 200, r.text

    # Deleting the litter takes the weighings with it
    assert client.delete(f"/farrowings/{farrowing['farrowing_id']}").status_code == 200
    assert client.get("/growth-records/").json()["total"] == 0


def test_yearly_analytics(client):
    today = utcnow().date()
    sow = _sow(client)
    boar = _boar(client)
    bred = _breeding(client, sow, boar, str(today))
    _breeding(client, sow, boar, str(today), success=False)
    f = _farrowing(client, bred, born_alive=8, total_born=10, farrowing_date=str(today))
    assert f.status_code == 200, f.text

    r = client.get("/analytics/yearly")
    assert r.status_code == 200, r.text
    months = r.json()
    assert len(months) == 12
    assert months[-1]["month"] == today.strftime("%Y-%m")
    assert months[-1]["total_breedings"] == 2
    assert months[-1]["successful_breedings"] == 1
    assert months[-1]["breeding_success_rate"] == 50.0
    assert months[-1]["total_farrowings"] == 1
    assert months[-1]["avg_piglets_per_litter"] == 8.0
    assert months[-1]["live_birth_rate"] == 80.0
    assert all(m["total_breedings"] == 0 for m in months[:-1])


def test_piglet_death_alert(client):
    breeding = _breeding(client, _sow(client), _boar(client))
    farrowing = _farrowing(client, breeding, born_alive=3, total_born=3).json()
    first, second, _ = client.get(f"/farrowings/{farrowing['farrowing_id']}/piglets").json()

    client.patch(f"/piglets/{first['piglet_id']}", json={"status": "DEAD"})
    client.patch(f"/piglets/{second['piglet_id']}", json={"status": "DEAD", "death_date": "2026-04-27"})

    today = client.get("/alerts/piglet-deaths").json()
    assert today == {"day": str(date.today()), "count": 1}

    earlier = client.get("/alerts/piglet-deaths?day=2026-04-27").json()
    assert earlier["count"] == 1
