from __future__ import annotations

from datetime import date, datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field, model_validator

from .models import (
    BoarStatus,
    BreedingMethod,
    Gender,
    HealthRecordType,
    PenType,
    PigletStatus,
    SowStatus,
    UserRole,
)

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    items: List[T]
    total: int
    total_pages: int
    page: int
    page_size: int


class DeleteResult(BaseModel):
    deleted_count: int


class OptionItem(BaseModel):
    id: int
    label: str


# -----------------------------
# Sows / Boars
# -----------------------------
class SowCreate(BaseModel):
    tag_number: str
    breed: str
    birth_date: date
    status: SowStatus = SowStatus.ACTIVE
    notes: Optional[str] = None


class SowUpdate(BaseModel):
    tag_number: Optional[str] = None
    breed: Optional[str] = None
    birth_date: Optional[date] = None
    status: Optional[SowStatus] = None
    notes: Optional[str] = None


class SowOut(SowCreate):
    sow_id: int
    age_months: Optional[int] = None

    class Config:
        from_attributes = True


class BoarCreate(BaseModel):
    tag_number: str
    breed: str
    birth_date: date
    status: BoarStatus = BoarStatus.ACTIVE
    notes: Optional[str] = None


class BoarUpdate(BaseModel):
    tag_number: Optional[str] = None
    breed: Optional[str] = None
    birth_date: Optional[date] = None
    status: Optional[BoarStatus] = None
    notes: Optional[str] = None


class BoarOut(BoarCreate):
    boar_id: int
    age_months: Optional[int] = None

    class Config:
        from_attributes = True


# -----------------------------
# Breedings
# -----------------------------
class BreedingCreate(BaseModel):
    sow_id: int
    boar_id: int
    breeding_date: date
    method: BreedingMethod = BreedingMethod.NATURAL
    success: Optional[bool] = None
    notes: Optional[str] = None


class BreedingUpdate(BaseModel):
    breeding_date: Optional[date] = None
    method: Optional[BreedingMethod] = None
    success: Optional[bool] = None   # explicit null resets to "unknown"
    notes: Optional[str] = None


class BreedingOut(BaseModel):
    breeding_id: int
    sow_id: int
    boar_id: int
    breeding_date: date
    method: BreedingMethod
    expected_farrow_date: Optional[date]
    success: Optional[bool]
    notes: Optional[str] = None
    sow_tag_number: Optional[str] = None
    boar_tag_number: Optional[str] = None
    farrowing_id: Optional[int] = None

    class Config:
        from_attributes = True


# -----------------------------
# Farrowings
# -----------------------------
class FarrowingCreate(BaseModel):
    sow_id: int
    breeding_id: int
    farrowing_date: date
    total_born: int = Field(ge=0)
    born_alive: int = Field(ge=0)
    stillborn: int = Field(default=0, ge=0)
    mummified: int = Field(default=0, ge=0)
    average_birth_weight: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def validate_counts(self):
        if self.born_alive > self.total_born:
            raise ValueError("born_alive cannot exceed total_born")
        return self


class FarrowingUpdate(BaseModel):
    farrowing_date: Optional[date] = None
    total_born: Optional[int] = Field(default=None, ge=0)
    born_alive: Optional[int] = Field(default=None, ge=0)
    stillborn: Optional[int] = Field(default=None, ge=0)
    mummified: Optional[int] = Field(default=None, ge=0)
    average_birth_weight: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None


class FarrowingOut(FarrowingCreate):
    farrowing_id: int
    sow_tag_number: Optional[str] = None
    piglet_count: int = 0

    class Config:
        from_attributes = True


class FarrowingDeleteResult(DeleteResult):
    piglets_deleted: int


# -----------------------------
# Piglets
# -----------------------------
class PigletCreate(BaseModel):
    tag_number: str
    farrowing_id: int
    birth_weight: Optional[float] = Field(default=None, ge=0)
    current_pen_id: Optional[int] = None
    status: PigletStatus = PigletStatus.NURSING
    gender: Optional[Gender] = None
    notes: Optional[str] = None


class PigletUpdate(BaseModel):
    tag_number: Optional[str] = None
    birth_weight: Optional[float] = Field(default=None, ge=0)
    current_pen_id: Optional[int] = None
    status: Optional[PigletStatus] = None
    gender: Optional[Gender] = None
    death_date: Optional[date] = None
    death_cause: Optional[str] = None
    notes: Optional[str] = None


class PigletOut(BaseModel):
    piglet_id: int
    tag_number: Optional[str] = None
    farrowing_id: int
    birth_weight: Optional[float] = None
    current_pen_id: Optional[int] = None
    status: PigletStatus
    gender: Optional[Gender] = None
    death_date: Optional[date] = None
    death_cause: Optional[str] = None
    notes: Optional[str] = None
    farrowing_date: Optional[date] = None
    age_days: Optional[int] = None

    class Config:
        from_attributes = True


class WeanRequest(BaseModel):
    piglet_ids: List[int] = Field(min_length=1)
    weaning_date: date
    sow_id: Optional[int] = None


class TransferRequest(BaseModel):
    piglet_ids: List[int] = Field(min_length=1)
    to_pen_id: int
    transfer_date: date
    reason: Optional[str] = None


class BatchResult(BaseModel):
    updated: int
    piglet_ids: List[int]


# -----------------------------
# Growth records
# -----------------------------
class GrowthRecordCreate(BaseModel):
    piglet_id: int
    record_date: date
    weight: float = Field(gt=0)
    notes: Optional[str] = None


class GrowthRecordUpdate(BaseModel):
    record_date: Optional[date] = None
    weight: Optional[float] = Field(default=None, gt=0)
    notes: Optional[str] = None


class GrowthRecordOut(GrowthRecordCreate):
    growth_record_id: int
    piglet_tag_number: Optional[str] = None
    age_in_days: int
    adg: Optional[float] = None

    class Config:
        from_attributes = True


# -----------------------------
# Pens
# -----------------------------
class PenCreate(BaseModel):
    pen_number: str
    pen_type: PenType
    capacity: int = Field(ge=0)
    current_count: int = Field(default=0, ge=0)
    notes: Optional[str] = None


class PenUpdate(BaseModel):
    pen_number: Optional[str] = None
    pen_type: Optional[PenType] = None
    capacity: Optional[int] = Field(default=None, ge=0)
    current_count: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None


class PenOut(PenCreate):
    pen_id: int
    occupancy_pct: float = 0.0
    occupancy_level: str = "normal"

    class Config:
        from_attributes = True


# -----------------------------
# Health records
# -----------------------------
class HealthRecordCreate(BaseModel):
    record_type: HealthRecordType
    record_date: date
    # Exactly one of these must be provided
    sow_id: Optional[int] = None
    boar_id: Optional[int] = None
    piglet_id: Optional[int] = None
    disease: Optional[str] = None
    treatment: Optional[str] = None
    medicine: Optional[str] = None
    death_cause: Optional[str] = None
    veterinarian: Optional[str] = None
    cost: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def validate_subject(self):
        subjects = [s for s in (self.sow_id, self.boar_id, self.piglet_id) if s is not None]
        if len(subjects) > 1:
            raise ValueError("Provide only one of sow_id, boar_id or piglet_id")
        if not subjects:
            raise ValueError("One of sow_id, boar_id or piglet_id is required")
        return self


class HealthRecordUpdate(BaseModel):
    record_type: Optional[HealthRecordType] = None
    record_date: Optional[date] = None
    disease: Optional[str] = None
    treatment: Optional[str] = None
    medicine: Optional[str] = None
    death_cause: Optional[str] = None
    veterinarian: Optional[str] = None
    cost: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None


class HealthRecordOut(HealthRecordCreate):
    health_record_id: int

    class Config:
        from_attributes = True


# -----------------------------
# Feed records
# -----------------------------
class FeedRecordCreate(BaseModel):
    record_date: date
    pen_id: int
    feed_type: str
    quantity: float = Field(ge=0)
    unit: str = "kg"
    cost: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None


class FeedRecordUpdate(BaseModel):
    record_date: Optional[date] = None
    pen_id: Optional[int] = None
    feed_type: Optional[str] = None
    quantity: Optional[float] = Field(default=None, ge=0)
    unit: Optional[str] = None
    cost: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None


class FeedRecordOut(FeedRecordCreate):
    feed_record_id: int

    class Config:
        from_attributes = True


# -----------------------------
# Users / activity log
# -----------------------------
class UserCreate(BaseModel):
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+$")
    name: Optional[str] = None
    role: UserRole = UserRole.USER
    is_active: bool = True


class UserUpdate(BaseModel):
    email: Optional[str] = Field(default=None, pattern=r"^[^@\s]+@[^@\s]+$")
    name: Optional[str] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None


class UserOut(UserCreate):
    user_id: int
    created_at: datetime

    class Config:
        from_attributes = True


class ActivityLogOut(BaseModel):
    activity_log_id: int
    user_id: Optional[int] = None
    user_email: str
    user_name: Optional[str] = None
    action: str
    module: str
    entity_id: Optional[str] = None
    entity_name: Optional[str] = None
    details: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class KeyCount(BaseModel):
    key: Optional[str] = None
    count: int

    class Config:
        from_attributes = True


class UserCount(BaseModel):
    user_id: Optional[int] = None
    user_email: str
    user_name: Optional[str] = None
    count: int

    class Config:
        from_attributes = True


class ActivityStatsOut(BaseModel):
    total_logs: int
    today_logs: int
    last_7_days_logs: int
    last_30_days_logs: int
    by_action: List[KeyCount]
    by_module: List[KeyCount]
    by_user: List[UserCount]

    class Config:
        from_attributes = True


class SystemConfigOut(BaseModel):
    activity_log_retention_days: int
    max_login_attempts: int
    session_timeout_minutes: int
    auto_backup_enabled: bool
    backup_frequency_days: int
    maintenance_mode: bool
    updated_at: datetime

    class Config:
        from_attributes = True


class SystemConfigUpdate(BaseModel):
    activity_log_retention_days: Optional[int] = None
    max_login_attempts: Optional[int] = None
    session_timeout_minutes: Optional[int] = None
    auto_backup_enabled: Optional[bool] = None
    backup_frequency_days: Optional[int] = None
    maintenance_mode: Optional[bool] = None


# -----------------------------
# Reports
# -----------------------------
class DeathDetail(BaseModel):
    farrowing_id: int
    batch_date: date
    death_date: Optional[date] = None
    cause: Optional[str] = None

    class Config:
        from_attributes = True


class SowLifetimeStats(BaseModel):
    total_litters: int
    total_born: int
    total_born_alive: int
    total_stillborn: int
    dead_post_farrowing: int
    survivors: int
    survival_rate: float
    mortality_rate: float
    avg_born_per_litter: float
    avg_birth_weight: float
    death_details: List[DeathDetail]

    class Config:
        from_attributes = True


class SowPerformanceRow(SowLifetimeStats):
    sow_id: int
    tag_number: str
    breed: str


class LitterSurvival(BaseModel):
    farrowing_id: int
    sow_tag_number: Optional[str] = None
    batch_date: date
    born_alive: int
    stillborn: int
    mummified: int
    dead_post_farrowing: int
    survivors: int
    survival_rate: float

    class Config:
        from_attributes = True


class CauseCount(BaseModel):
    cause: str
    count: int
    percentage: float

    class Config:
        from_attributes = True


class DeathCauseSummary(BaseModel):
    total_deaths: int
    causes: List[CauseCount]

    class Config:
        from_attributes = True


class UpcomingFarrowing(BaseModel):
    breeding_id: int
    sow_tag_number: Optional[str] = None
    boar_tag_number: Optional[str] = None
    breeding_date: date
    expected_farrow_date: date

    class Config:
        from_attributes = True


class FarmSummary(BaseModel):
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
    upcoming_farrowings: List[UpcomingFarrowing]

    class Config:
        from_attributes = True


class MonthlySummary(BaseModel):
    month: str
    label: str
    total_breedings: int
    successful_breedings: int
    breeding_success_rate: float
    total_farrowings: int
    total_born: int
    total_born_alive: int
    avg_piglets_per_litter: float
    live_birth_rate: float

    class Config:
        from_attributes = True


class PigletDeathAlert(BaseModel):
    day: date
    count: int
