"""
pigfarm/seed_db.py
------------------
Populates the database with realistic-looking demo data covering
all entity types: sows, boars, pens, breedings, farrowings, piglets,
health and feed records, users and a few weeks of activity logs.

Run from the project root:
    python -m pigfarm.seed_db

Pass --reset to wipe the database first:
    python -m pigfarm.seed_db --reset
"""
from __future__ import annotations

import json
import os
import sys
import random
from datetime import date, datetime, timedelta
from urllib.parse import urlparse

from .database import Base, engine, SessionLocal, DATABASE_URL
from .datetime_utils import utcnow
from .lifecycle import move_piglet
from .metrics import average_daily_gain
from .models import HealthRecordType, PigletStatus, SowStatus
from .routers.breedings import GESTATION_DAYS
from .system_config import load_system_config
from . import models


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _days_ago(n: int) -> date:
    return date.today() - timedelta(days=n)


def _hours_ago(n: int) -> datetime:
    return utcnow() - timedelta(hours=n)


def _sqlite_file_path(url: str) -> str | None:
    """Filesystem path of a SQLite URL, or None for in-memory and other backends."""
    parsed = urlparse(url)
    if not parsed.scheme.startswith("sqlite"):
        return None
    # sqlite:///./foo.db -> path=/./foo.db, sqlite:////data/foo.db -> path=//data/foo.db
    path = parsed.path[1:] if parsed.path.startswith("/") else parsed.path
    if not path or path == ":memory:":
        return None
    return path


def _remove_sqlite_file_if_local() -> None:
    """Delete the SQLite file so we start completely fresh."""
    path = _sqlite_file_path(DATABASE_URL)
    if path and os.path.exists(path):
        os.remove(path)
        print(f"  Removed existing database: {path}")


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------

BREEDS = ["Large White", "Landrace", "Duroc", "Pietrain"]
DEATH_CAUSES = ["Crushed by sow", "Diarrhea", "Weak at birth", None]

PENS = [
    # (pen_number, pen_type, capacity)
    ("F-01", "FARROWING", 14),
    ("F-02", "FARROWING", 14),
    ("N-01", "NURSERY", 40),
    ("G-01", "GROWING", 60),
]

FEED_PLAN = [
    # (pen_idx, feed_type, quantity_kg, cost)
    (0, "Lactation ration", 120.0, 66.00),
    (1, "Lactation ration", 115.0, 63.25),
    (2, "Creep feed", 45.0, 40.50),
    (2, "Starter pellets", 80.0, 52.00),
    (3, "Grower ration", 250.0, 112.50),
    (3, "Grower ration", 260.0, 117.00),
]


def seed(db) -> None:
    random.seed(42)      # reproducible

    # ------------------------------------------------------------------
    # 1. Configuration and users
    # ------------------------------------------------------------------
    print("  Creating users and system configuration...")

    load_system_config(db)
    admin = models.User(email="admin@farm.local", name="Farm Admin", role="ADMIN")
    keeper = models.User(email="keeper@farm.local", name="Stock Keeper", role="USER")
    db.add_all([admin, keeper])
    db.flush()

    # ------------------------------------------------------------------
    # 2. Breeding stock: 4 sows, 2 boars, 4 pens
    # ------------------------------------------------------------------
    print("  Creating breeding stock and pens...")

    sows = [
        models.Sow(tag_number=f"S-{100 + i}", breed=BREEDS[i % 2], birth_date=_days_ago(600 - i * 45))
        for i in range(4)
    ]
    boars = [
        models.Boar(tag_number="B-01", breed=BREEDS[2], birth_date=_days_ago(720)),
        models.Boar(tag_number="B-02", breed=BREEDS[3], birth_date=_days_ago(650)),
    ]
    pens = [models.Pen(pen_number=n, pen_type=t, capacity=c) for n, t, c in PENS]
    db.add_all(sows + boars + pens)
    db.flush()

    # ------------------------------------------------------------------
    # 3. Breedings: 3 farrowed, 1 failed, 1 open (upcoming farrowing)
    # ------------------------------------------------------------------
    print("  Creating breedings...")

    breeding_plan = [
        # (sow_idx, boar_idx, days_ago_bred, success)
        (0, 0, 200, True),
        (1, 1, 170, True),
        (2, 0, 140, True),
        (3, 1, 130, False),
        (3, 0, 100, None),
    ]

    breedings = []
    for sow_i, boar_i, days_ago, success in breeding_plan:
        bred = _days_ago(days_ago)
        b = models.Breeding(
            sow_id=sows[sow_i].sow_id,
            boar_id=boars[boar_i].boar_id,
            breeding_date=bred,
            method=random.choice(["NATURAL", "AI"]),
            expected_farrow_date=bred + timedelta(days=GESTATION_DAYS),
            success=success,
        )
        db.add(b)
        db.flush()
        breedings.append(b)
    sows[3].status = SowStatus.PREGNANT.value

    # ------------------------------------------------------------------
    # 4. Farrowings and their litters
    # ------------------------------------------------------------------
    print("  Creating farrowings and piglets...")

    farrowed = [b for b in breedings if b.success is True]
    for i, b in enumerate(farrowed):
        born_alive = random.randint(9, 13)
        stillborn = random.randint(0, 2)
        mummified = random.randint(0, 1)
        avg_weight = round(random.uniform(1.2, 1.6), 2)
        farrowing_date = b.breeding_date + timedelta(days=GESTATION_DAYS)

        farrowing = models.Farrowing(
            sow_id=b.sow_id,
            breeding_id=b.breeding_id,
            farrowing_date=farrowing_date,
            total_born=born_alive + stillborn + mummified,
            born_alive=born_alive,
            stillborn=stillborn,
            mummified=mummified,
            average_birth_weight=avg_weight,
        )
        db.add(farrowing)
        db.flush()

        # Litters older than four weeks are weaned into the nursery
        weaned = (date.today() - farrowing_date).days >= 28
        pen = pens[2] if weaned else pens[i % 2]
        sow = db.get(models.Sow, b.sow_id)
        sow.status = SowStatus.WEANED.value if weaned else SowStatus.LACTATING.value
        deaths = random.randint(0, 2)

        for n in range(1, born_alive + 1):
            piglet = models.Piglet(
                tag_number=f"{sow.tag_number}-{n:02d}",
                farrowing_id=farrowing.farrowing_id,
                birth_weight=round(avg_weight + random.uniform(-0.3, 0.3), 2),
                status=PigletStatus.WEANED.value if weaned else PigletStatus.NURSING.value,
                gender=random.choice(["MALE", "FEMALE"]),
            )
            db.add(piglet)

            if n <= deaths:
                piglet.status = PigletStatus.DEAD.value
                piglet.death_date = farrowing_date + timedelta(days=random.randint(1, 10))
                piglet.death_cause = random.choice(DEATH_CAUSES)
            else:
                move_piglet(piglet, pen)

    db.flush()

    # ------------------------------------------------------------------
    # 5. Health records
    # ------------------------------------------------------------------
    print("  Creating health and feed records...")

    for sow in sows:
        db.add(models.HealthRecord(
            record_type=HealthRecordType.VACCINATION.value,
            record_date=_days_ago(random.randint(20, 90)),
            sow_id=sow.sow_id,
            medicine="PRRS vaccine",
            veterinarian="Dr. Somchai",
            cost=12.5,
        ))
    dead = db.query(models.Piglet).filter(models.Piglet.status == PigletStatus.DEAD.value).all()
    for piglet in dead:
        db.add(models.HealthRecord(
            record_type=HealthRecordType.MORTALITY.value,
            record_date=piglet.death_date,
            piglet_id=piglet.piglet_id,
            death_cause=piglet.death_cause,
        ))

    # ------------------------------------------------------------------
    # 5b. Weekly weighings for the surviving piglets
    # ------------------------------------------------------------------
    alive = db.query(models.Piglet).filter(models.Piglet.status != PigletStatus.DEAD.value).all()
    for piglet in alive:
        weight, previous = piglet.birth_weight, None
        for week in range(1, 7):
            when = piglet.farrowing_date + timedelta(days=7 * week)
            if when > date.today():
                break
            weight = round(weight + random.uniform(1.4, 2.1), 2)
            db.add(models.GrowthRecord(
                piglet_id=piglet.piglet_id,
                record_date=when,
                weight=weight,
                age_in_days=7 * week,
                adg=average_daily_gain(
                    weight, when,
                    previous=previous,
                    farrowing_date=piglet.farrowing_date,
                    birth_weight=piglet.birth_weight,
                ),
            ))
            previous = (when, weight)

    # ------------------------------------------------------------------
    # 6. Feed records, roughly fortnightly
    # ------------------------------------------------------------------
    for i, (pen_i, feed_type, qty, cost) in enumerate(FEED_PLAN):
        db.add(models.FeedRecord(
            record_date=_days_ago(84 - i * 14),
            pen_id=pens[pen_i].pen_id,
            feed_type=feed_type,
            quantity=qty,
            cost=cost,
        ))

    # ------------------------------------------------------------------
    # 7. Activity logs, some older than the default retention window
    # ------------------------------------------------------------------
    print("  Creating activity logs...")

    for hours in (24 * 200, 24 * 120, 24 * 45, 24 * 6, 3):
        user = random.choice([admin, keeper])
        sow = random.choice(sows)
        db.add(models.ActivityLog(
            user_id=user.user_id,
            user_email=user.email,
            user_name=user.name,
            action="UPDATE",
            module="SOWS",
            entity_id=str(sow.sow_id),
            entity_name=sow.tag_number,
            details=json.dumps({"notes": "routine check"}),
            created_at=_hours_ago(hours),
        ))

    db.commit()

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------
    print(f"\n  ✓ Sows:          {db.query(models.Sow).count()}")
    print(f"  ✓ Boars:         {db.query(models.Boar).count()}")
    print(f"  ✓ Pens:          {db.query(models.Pen).count()}")
    print(f"  ✓ Breedings:     {len(breedings)}")
    print(f"  ✓ Farrowings:    {db.query(models.Farrowing).count()}")
    print(f"  ✓ Piglets:       {db.query(models.Piglet).count()}")
    print(f"  ✓ Health:        {db.query(models.HealthRecord).count()}")
    print(f"  ✓ Weighings:     {db.query(models.GrowthRecord).count()}")
    print(f"  ✓ Feed records:  {db.query(models.FeedRecord).count()}")
    print(f"  ✓ Activity logs: {db.query(models.ActivityLog).count()}")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main() -> None:
    reset = "--reset" in sys.argv

    if reset:
        print("Resetting database...")
        _remove_sqlite_file_if_local()

    print("Creating tables...")
    Base.metadata.create_all(bind=engine)

    print("Seeding data...")
    db = SessionLocal()
    try:
        seed(db)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

    print("\nDone. Run the app with:")
    print("  python -m uvicorn pigfarm.main:app --reload")


if __name__ == "__main__":
    main()
