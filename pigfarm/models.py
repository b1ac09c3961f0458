from __future__ import annotations

from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base
from .datetime_utils import utcnow


class SowStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PREGNANT = "PREGNANT"
    LACTATING = "LACTATING"
    WEANED = "WEANED"
    CULLED = "CULLED"
    SOLD = "SOLD"


class BoarStatus(str, Enum):
    ACTIVE = "ACTIVE"
    RESTING = "RESTING"
    CULLED = "CULLED"
    SOLD = "SOLD"


class PigletStatus(str, Enum):
    NURSING = "NURSING"
    WEANED = "WEANED"
    GROWING = "GROWING"
    READY = "READY"
    SOLD = "SOLD"
    DEAD = "DEAD"


class Gender(str, Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"


class BreedingMethod(str, Enum):
    NATURAL = "NATURAL"
    AI = "AI"


class PenType(str, Enum):
    FARROWING = "FARROWING"
    NURSERY = "NURSERY"
    GROWING = "GROWING"
    FINISHING = "FINISHING"


class HealthRecordType(str, Enum):
    VACCINATION = "VACCINATION"
    TREATMENT = "TREATMENT"
    DISEASE = "DISEASE"
    MORTALITY = "MORTALITY"


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    USER = "USER"


class Sow(Base):
    __tablename__ = "sows"

    sow_id = Column(Integer, primary_key=True, index=True)
    tag_number = Column(String, unique=True, nullable=False)
    breed = Column(String, nullable=False)
    birth_date = Column(Date, nullable=False)
    status = Column(String, nullable=False, default=SowStatus.ACTIVE.value)
    notes = Column(Text)

    breedings = relationship("Breeding", back_populates="sow")
    farrowings = relationship("Farrowing", back_populates="sow")


class Boar(Base):
    __tablename__ = "boars"

    boar_id = Column(Integer, primary_key=True, index=True)
    tag_number = Column(String, unique=True, nullable=False)
    breed = Column(String, nullable=False)
    birth_date = Column(Date, nullable=False)
    status = Column(String, nullable=False, default=BoarStatus.ACTIVE.value)
    notes = Column(Text)

    breedings = relationship("Breeding", back_populates="boar")


class Breeding(Base):
    __tablename__ = "breedings"

    breeding_id = Column(Integer, primary_key=True, index=True)
    sow_id = Column(Integer, ForeignKey("sows.sow_id"), nullable=False, index=True)
    boar_id = Column(Integer, ForeignKey("boars.boar_id"), nullable=False, index=True)
    breeding_date = Column(Date, nullable=False)
    method = Column(String, nullable=False, default=BreedingMethod.NATURAL.value)
    expected_farrow_date = Column(Date)
    success = Column(Boolean, nullable=True)  # None = not yet known
    notes = Column(Text)

    sow = relationship("Sow", back_populates="breedings")
    boar = relationship("Boar", back_populates="breedings")
    farrowing = relationship("Farrowing", back_populates="breeding", uselist=False)

    @property
    def sow_tag_number(self):
        return self.sow.tag_number if self.sow is not None else None

    @property
    def boar_tag_number(self):
        return self.boar.tag_number if self.boar is not None else None

    @property
    def farrowing_id(self):
        return self.farrowing.farrowing_id if self.farrowing is not None else None


class Farrowing(Base):
    __tablename__ = "farrowings"
    __table_args__ = (
        # One farrowing per breeding, enforced by the store so concurrent
        # creations cannot both succeed.
        UniqueConstraint("breeding_id", name="uq_farrowings_breeding_id"),
        CheckConstraint(
            "total_born >= 0 AND born_alive >= 0 AND stillborn >= 0 AND mummified >= 0",
            name="ck_farrowings_counts_non_negative",
        ),
        CheckConstraint("total_born >= born_alive", name="ck_farrowings_total_ge_alive"),
    )

    farrowing_id = Column(Integer, primary_key=True, index=True)
    sow_id = Column(Integer, ForeignKey("sows.sow_id"), nullable=False, index=True)
    breeding_id = Column(Integer, ForeignKey("breedings.breeding_id"), nullable=False)
    farrowing_date = Column(Date, nullable=False)
    total_born = Column(Integer, nullable=False)
    born_alive = Column(Integer, nullable=False)
    stillborn = Column(Integer, nullable=False, default=0)
    mummified = Column(Integer, nullable=False, default=0)
    average_birth_weight = Column(Float)
    notes = Column(Text)

    sow = relationship("Sow", back_populates="farrowings")
    breeding = relationship("Breeding", back_populates="farrowing")
    # Piglets are removed explicitly by lifecycle.cascade_delete_farrowing
    piglets = relationship("Piglet", back_populates="farrowing", passive_deletes="all")

    @property
    def sow_tag_number(self):
        return self.sow.tag_number if self.sow is not None else None

    @property
    def piglet_count(self):
        return len(self.piglets)


class Piglet(Base):
    __tablename__ = "piglets"

    piglet_id = Column(Integer, primary_key=True, index=True)
    tag_number = Column(String, nullable=True)
    farrowing_id = Column(Integer, ForeignKey("farrowings.farrowing_id"), nullable=False, index=True)
    birth_weight = Column(Float)
    current_pen_id = Column(Integer, ForeignKey("pens.pen_id"), nullable=True, index=True)
    status = Column(String, nullable=False, default=PigletStatus.NURSING.value)
    gender = Column(String, nullable=True)
    death_date = Column(Date)
    death_cause = Column(Text)
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    farrowing = relationship("Farrowing", back_populates="piglets")
    current_pen = relationship("Pen", back_populates="piglets")
    growth_records = relationship("GrowthRecord", back_populates="piglet", passive_deletes="all")

    @property
    def farrowing_date(self):
        # Littermates share one birth instant: the farrowing date
        return self.farrowing.farrowing_date if self.farrowing is not None else None


class GrowthRecord(Base):
    __tablename__ = "growth_records"
    __table_args__ = (
        CheckConstraint("weight >= 0", name="ck_growth_records_weight_non_negative"),
    )

    growth_record_id = Column(Integer, primary_key=True, index=True)
    piglet_id = Column(Integer, ForeignKey("piglets.piglet_id"), nullable=False, index=True)
    record_date = Column(Date, nullable=False)
    weight = Column(Float, nullable=False)
    # Derived when the record is written
    age_in_days = Column(Integer, nullable=False)
    adg = Column(Float)  # kg/day, None when there is nothing to compare against
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    piglet = relationship("Piglet", back_populates="growth_records")

    @property
    def piglet_tag_number(self):
        return self.piglet.tag_number if self.piglet is not None else None


class Pen(Base):
    __tablename__ = "pens"
    __table_args__ = (
        CheckConstraint("current_count >= 0", name="ck_pens_current_count_non_negative"),
        CheckConstraint("capacity >= 0", name="ck_pens_capacity_non_negative"),
    )

    pen_id = Column(Integer, primary_key=True, index=True)
    pen_number = Column(String, unique=True, nullable=False)
    pen_type = Column(String, nullable=False)
    capacity = Column(Integer, nullable=False)
    current_count = Column(Integer, nullable=False, default=0)
    notes = Column(Text)

    piglets = relationship("Piglet", back_populates="current_pen")


class HealthRecord(Base):
    __tablename__ = "health_records"

    health_record_id = Column(Integer, primary_key=True, index=True)
    record_type = Column(String, nullable=False)
    record_date = Column(Date, nullable=False)

    # Exactly one of sow_id, boar_id or piglet_id must be set
    sow_id = Column(Integer, ForeignKey("sows.sow_id"), nullable=True)
    boar_id = Column(Integer, ForeignKey("boars.boar_id"), nullable=True)
    piglet_id = Column(Integer, ForeignKey("piglets.piglet_id"), nullable=True)

    disease = Column(String)
    treatment = Column(String)
    medicine = Column(String)
    death_cause = Column(String)
    veterinarian = Column(String)
    cost = Column(Float)
    notes = Column(Text)

    sow = relationship("Sow")
    boar = relationship("Boar")
    piglet = relationship("Piglet")


class FeedRecord(Base):
    __tablename__ = "feed_records"

    feed_record_id = Column(Integer, primary_key=True, index=True)
    record_date = Column(Date, nullable=False)
    pen_id = Column(Integer, ForeignKey("pens.pen_id"), nullable=False, index=True)
    feed_type = Column(String, nullable=False)
    quantity = Column(Float, nullable=False)
    unit = Column(String, nullable=False, default="kg")
    cost = Column(Float)
    notes = Column(Text)

    pen = relationship("Pen")


class User(Base):
    __tablename__ = "users"

    user_id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False)
    name = Column(String)
    role = Column(String, nullable=False, default=UserRole.USER.value)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    activity_log_id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True, index=True)
    # Snapshot of the actor, kept after the user row is gone
    user_email = Column(String, nullable=False)
    user_name = Column(String)
    action = Column(String, nullable=False)
    module = Column(String, nullable=False)
    entity_id = Column(String)
    entity_name = Column(String)
    details = Column(Text)  # JSON
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)


class SystemConfig(Base):
    __tablename__ = "system_config"

    config_id = Column(String, primary_key=True, default="system_config")
    activity_log_retention_days = Column(Integer, nullable=False)
    max_login_attempts = Column(Integer, nullable=False, default=5)
    session_timeout_minutes = Column(Integer, nullable=False, default=30)
    auto_backup_enabled = Column(Boolean, nullable=False, default=True)
    backup_frequency_days = Column(Integer, nullable=False, default=7)
    maintenance_mode = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
