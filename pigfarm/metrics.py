"""
Derived statistics over the breeding graph.

Every function here is pure: it reads the records it is given (ORM rows or
any object with the same attributes) and returns new values. Nothing is
cached, so results are safe to recompute on every read.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Iterable

from .datetime_utils import as_date, as_datetime, start_of_day
from .models import BoarStatus, HealthRecordType, PigletStatus, SowStatus

DAYS_PER_MONTH = 30
OCCUPANCY_WARNING_PCT = 70
OCCUPANCY_CRITICAL_PCT = 90
UNSPECIFIED_CAUSE = "Unspecified"


def _rate(part: float, whole: float) -> float:
    """Percentage rounded to one decimal; 0.0 when there is nothing to divide by."""
    if not whole or whole <= 0:
        return 0.0
    return round(part / whole * 100, 1)


# -----------------------------
# Ages
# -----------------------------
def age_in_days(farrowing_date: date | datetime, now: date | datetime) -> int:
    return (as_date(now) - as_date(farrowing_date)).days


def age_in_months(birth_date: date | datetime, now: date | datetime) -> int:
    # 30-day buckets, not calendar months
    return age_in_days(birth_date, now) // DAYS_PER_MONTH


# -----------------------------
# Pens
# -----------------------------
def occupancy_pct(current_count: int, capacity: int) -> float:
    if not capacity or capacity <= 0:
        return 0.0
    return (current_count or 0) * 100 / capacity


def occupancy_level(pct: float) -> str:
    if pct >= OCCUPANCY_CRITICAL_PCT:
        return "critical"
    if pct >= OCCUPANCY_WARNING_PCT:
        return "warning"
    return "normal"


# -----------------------------
# Sow performance
# -----------------------------
@dataclass
class DeathDetail:
    farrowing_id: Any
    batch_date: date
    death_date: date | None
    cause: str | None


@dataclass
class SowLifetimeStats:
    total_litters: int = 0
    total_born: int = 0
    total_born_alive: int = 0
    total_stillborn: int = 0
    dead_post_farrowing: int = 0
    survivors: int = 0
    survival_rate: float = 0.0
    mortality_rate: float = 0.0
    avg_born_per_litter: float = 0.0
    avg_birth_weight: float = 0.0
    death_details: list[DeathDetail] = field(default_factory=list)


def _dead_piglets(farrowing) -> list:
    return [p for p in (farrowing.piglets or []) if p.status == PigletStatus.DEAD.value]


def sow_lifetime_stats(farrowings: Iterable) -> SowLifetimeStats:
    stats = SowLifetimeStats()
    weights: list[float] = []

    for f in farrowings:
        stats.total_litters += 1
        stats.total_born += f.total_born or 0
        stats.total_born_alive += f.born_alive or 0
        stats.total_stillborn += f.stillborn or 0
        if f.average_birth_weight is not None:
            weights.append(f.average_birth_weight)
        for p in _dead_piglets(f):
            stats.death_details.append(
                DeathDetail(
                    farrowing_id=f.farrowing_id,
                    batch_date=f.farrowing_date,
                    death_date=p.death_date,
                    cause=p.death_cause,
                )
            )

    stats.dead_post_farrowing = len(stats.death_details)
    # Manually added piglets can outnumber born_alive; rates stay within 0..100
    counted_dead = min(stats.dead_post_farrowing, stats.total_born_alive)
    stats.survivors = stats.total_born_alive - counted_dead
    stats.survival_rate = _rate(stats.survivors, stats.total_born_alive)
    stats.mortality_rate = _rate(counted_dead, stats.total_born_alive)
    if stats.total_litters:
        stats.avg_born_per_litter = round(stats.total_born / stats.total_litters, 2)
    if weights:
        stats.avg_birth_weight = round(sum(weights) / len(weights), 2)
    return stats


@dataclass
class LitterSurvival:
    farrowing_id: Any
    sow_tag_number: str | None
    batch_date: date
    born_alive: int
    stillborn: int
    mummified: int
    dead_post_farrowing: int
    survivors: int
    survival_rate: float


def litter_survival(farrowing) -> LitterSurvival:
    born_alive = farrowing.born_alive or 0
    dead = len(_dead_piglets(farrowing))
    survivors = born_alive - min(dead, born_alive)
    sow = getattr(farrowing, "sow", None)
    return LitterSurvival(
        farrowing_id=farrowing.farrowing_id,
        sow_tag_number=sow.tag_number if sow is not None else None,
        batch_date=farrowing.farrowing_date,
        born_alive=born_alive,
        stillborn=farrowing.stillborn or 0,
        mummified=farrowing.mummified or 0,
        dead_post_farrowing=dead,
        survivors=survivors,
        survival_rate=_rate(survivors, born_alive),
    )


@dataclass
class CauseCount:
    cause: str
    count: int
    percentage: float


@dataclass
class DeathCauseSummary:
    total_deaths: int
    causes: list[CauseCount]


def death_cause_summary(piglets: Iterable) -> DeathCauseSummary:
    dead = [p for p in piglets if p.status == PigletStatus.DEAD.value]
    counts = Counter((p.death_cause or "").strip() or UNSPECIFIED_CAUSE for p in dead)
    causes = [
        CauseCount(cause=cause, count=n, percentage=_rate(n, len(dead)))
        for cause, n in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    ]
    return DeathCauseSummary(total_deaths=len(dead), causes=causes)


# -----------------------------
# Activity log
# -----------------------------
@dataclass
class KeyCount:
    key: str | None
    count: int


@dataclass
class UserCount:
    user_id: int | None
    user_email: str
    user_name: str | None
    count: int


@dataclass
class ActivityStats:
    total_logs: int
    today_logs: int
    last_7_days_logs: int
    last_30_days_logs: int
    by_action: list[KeyCount]
    by_module: list[KeyCount]
    by_user: list[UserCount]


def _key_counts(counter: Counter) -> list[KeyCount]:
    return [KeyCount(key=k, count=n) for k, n in counter.most_common()]


def activity_stats(logs: Iterable, now: datetime, top_users: int = 10) -> ActivityStats:
    today = start_of_day(now)
    week_start = today - timedelta(days=7)
    month_start = today - timedelta(days=30)

    total = today_n = week_n = 0
    recent = []
    for log in logs:
        total += 1
        created = as_datetime(log.created_at)
        if created >= today:
            today_n += 1
        if created >= week_start:
            week_n += 1
        if created >= month_start:
            recent.append(log)

    users: Counter = Counter()
    user_info: dict[Any, tuple[str, str | None]] = {}
    for log in recent:
        users[log.user_id] += 1
        user_info.setdefault(log.user_id, (log.user_email, log.user_name))

    return ActivityStats(
        total_logs=total,
        today_logs=today_n,
        last_7_days_logs=week_n,
        last_30_days_logs=len(recent),
        by_action=_key_counts(Counter(log.action for log in recent)),
        by_module=_key_counts(Counter(log.module for log in recent)),
        by_user=[
            UserCount(user_id=uid, user_email=user_info[uid][0], user_name=user_info[uid][1], count=n)
            for uid, n in users.most_common(top_users)
        ],
    )


# -----------------------------
# Dashboard
# -----------------------------
@dataclass
class UpcomingFarrowing:
    breeding_id: Any
    sow_tag_number: str | None
    boar_tag_number: str | None
    breeding_date: date
    expected_farrow_date: date


@dataclass
class FarmSummary:
    as_of: date
    total_sows: int
    total_boars: int
    total_piglets: int
    total_pens: int
    sows_by_status: dict[str, int]
    piglets_by_status: dict[str, int]
    breeding_success_rate: float
    total_farrowings: int
    avg_born_alive_per_litter: float
    live_birth_rate: float
    recent_piglet_deaths: int
    recent_mortality_records: int
    upcoming_farrowings: list[UpcomingFarrowing]


_INACTIVE_SOW = {SowStatus.CULLED.value, SowStatus.SOLD.value}
_INACTIVE_BOAR = {BoarStatus.CULLED.value, BoarStatus.SOLD.value}
_GONE_PIGLET = {PigletStatus.DEAD.value, PigletStatus.SOLD.value}


def farm_summary(
    *,
    sows: Iterable,
    boars: Iterable,
    piglets: Iterable,
    pens: Iterable,
    breedings: Iterable,
    farrowings: Iterable,
    health_records: Iterable,
    now: date | datetime,
    lookback_days: int = 182,
    recent_days: int = 30,
    upcoming_days: int = 30,
    upcoming_limit: int = 10,
) -> FarmSummary:
    today = as_date(now)
    lookback = today - timedelta(days=lookback_days)
    recent = today - timedelta(days=recent_days)
    horizon = today + timedelta(days=upcoming_days)

    herd_sows = [s for s in sows if s.status not in _INACTIVE_SOW]
    herd_boars = [b for b in boars if b.status not in _INACTIVE_BOAR]
    piglets = list(piglets)
    live_piglets = [p for p in piglets if p.status not in _GONE_PIGLET]
    breedings = list(breedings)

    recent_breedings = [b for b in breedings if b.breeding_date >= lookback]
    successful = [b for b in recent_breedings if b.success is True]

    recent_farrowings = [f for f in farrowings if f.farrowing_date >= lookback]
    born = sum(f.total_born or 0 for f in recent_farrowings)
    born_alive = sum(f.born_alive or 0 for f in recent_farrowings)

    upcoming = sorted(
        (
            b for b in breedings
            if b.farrowing is None
            and b.success is not False
            and b.expected_farrow_date is not None
            and today <= b.expected_farrow_date <= horizon
        ),
        key=lambda b: b.expected_farrow_date,
    )[:upcoming_limit]

    return FarmSummary(
        as_of=today,
        total_sows=len(herd_sows),
        total_boars=len(herd_boars),
        total_piglets=len(live_piglets),
        total_pens=len(list(pens)),
        sows_by_status=dict(Counter(s.status for s in herd_sows)),
        piglets_by_status=dict(Counter(p.status for p in live_piglets)),
        breeding_success_rate=_rate(len(successful), len(recent_breedings)),
        total_farrowings=len(recent_farrowings),
        avg_born_alive_per_litter=(
            round(born_alive / len(recent_farrowings), 2) if recent_farrowings else 0.0
        ),
        live_birth_rate=_rate(born_alive, born),
        recent_piglet_deaths=sum(
            1 for p in piglets
            if p.status == PigletStatus.DEAD.value and p.death_date is not None and p.death_date >= recent
        ),
        recent_mortality_records=sum(
            1 for r in health_records
            if r.record_type == HealthRecordType.MORTALITY.value and r.record_date >= recent
        ),
        upcoming_farrowings=[
            UpcomingFarrowing(
                breeding_id=b.breeding_id,
                sow_tag_number=b.sow.tag_number if b.sow is not None else None,
                boar_tag_number=b.boar.tag_number if b.boar is not None else None,
                breeding_date=b.breeding_date,
                expected_farrow_date=b.expected_farrow_date,
            )
            for b in upcoming
        ],
    )


# -----------------------------
# Growth
# -----------------------------
def average_daily_gain(
    weight: float,
    record_date: date,
    *,
    previous: tuple[date, float] | None = None,
    farrowing_date: date | None = None,
    birth_weight: float | None = None,
) -> float | None:
    """
    Average daily gain in kg/day for a weighing.

    Measured against ``previous`` (date, weight) when the piglet has an
    earlier weighing, otherwise against its birth weight over its age.
    None when there is no baseline or no elapsed day to divide by.
    """
    if previous is not None:
        start_date, start_weight = previous
    elif birth_weight is not None and farrowing_date is not None:
        start_date, start_weight = farrowing_date, birth_weight
    else:
        return None

    days = age_in_days(start_date, record_date)
    if days <= 0:
        return None
    return round((weight - start_weight) / days, 3)


# -----------------------------
# Yearly trend
# -----------------------------
@dataclass
class MonthlySummary:
    month: str  # YYYY-MM
    label: str
    total_breedings: int
    successful_breedings: int
    breeding_success_rate: float
    total_farrowings: int
    total_born: int
    total_born_alive: int
    avg_piglets_per_litter: float
    live_birth_rate: float


def _month_start(day: date, back: int) -> date:
    year, month = divmod(day.year * 12 + day.month - 1 - back, 12)
    return date(year, month + 1, 1)


def monthly_summary(
    breedings: Iterable,
    farrowings: Iterable,
    now: date | datetime,
    months: int = 12,
) -> list[MonthlySummary]:
    """One entry per calendar month, oldest first, ending with the month of ``now``."""
    today = as_date(now)
    breedings = list(breedings)
    farrowings = list(farrowings)

    series = []
    for back in range(months - 1, -1, -1):
        start = _month_start(today, back)
        end = _month_start(today, back - 1)

        in_month = [b for b in breedings if start <= b.breeding_date < end]
        successful = sum(1 for b in in_month if b.success is True)
        litters = [f for f in farrowings if start <= f.farrowing_date < end]
        born = sum(f.total_born or 0 for f in litters)
        born_alive = sum(f.born_alive or 0 for f in litters)

        series.append(
            MonthlySummary(
                month=start.strftime("%Y-%m"),
                label=start.strftime("%b %y"),
                total_breedings=len(in_month),
                successful_breedings=successful,
                breeding_success_rate=_rate(successful, len(in_month)),
                total_farrowings=len(litters),
                total_born=born,
                total_born_alive=born_alive,
                avg_piglets_per_litter=round(born_alive / len(litters), 1) if litters else 0.0,
                live_birth_rate=_rate(born_alive, born),
            )
        )
    return series


def deaths_on(piglets: Iterable, day: date | datetime) -> int:
    """Piglets whose recorded death date falls on ``day``."""
    target = as_date(day)
    return sum(1 for p in piglets if p.death_date is not None and as_date(p.death_date) == target)
