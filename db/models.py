from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    Text,
    Enum as SAEnum,
    ForeignKey,
    Boolean,
    Index,
    Integer,
    Float,
    Uuid,
    CheckConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy import DateTime as SADateTime

from constants.types import (
    AccessType,
    BudgetStatus,
    JobStatus,
    SoilType,
    TeamStatus,
    TravelPricingType,
)
from db.session import engine, Session

class Base(DeclarativeBase):
    pass

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def _enum(cls, name: str) -> SAEnum:
    return SAEnum(cls, name=name, create_constraint=False, native_enum=False)

# ---------- Models ----------
class Team(Base):
    __tablename__ = "teams"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text)
    status: Mapped[TeamStatus] = mapped_column(_enum(TeamStatus, "team_status"), default=TeamStatus.ativa)
    leader: Mapped[Optional[str]] = mapped_column(Text)

class CatalogItem(Base):
    __tablename__ = "catalog_items"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text)
    description: Mapped[Optional[str]] = mapped_column(Text)
    category: Mapped[Optional[str]] = mapped_column(Text)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    price_variations: Mapped[List["PriceVariation"]] = relationship(
        back_populates="catalog_item", cascade="all, delete-orphan", lazy="selectin"
    )

class PriceVariation(Base):
    __tablename__ = "price_variations"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    catalog_item_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("catalog_items.id", ondelete="CASCADE"))
    diameter: Mapped[int] = mapped_column(Integer)  # cm
    soil_type: Mapped[SoilType] = mapped_column(_enum(SoilType, "soil_type"))
    access: Mapped[AccessType] = mapped_column(_enum(AccessType, "machine_access"))
    price: Mapped[float] = mapped_column(Float)
    execution_time: Mapped[Optional[float]] = mapped_column(Float)  # minutes per meter
    catalog_item: Mapped[CatalogItem] = relationship(back_populates="price_variations")

class Job(Base):
    __tablename__ = "jobs"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    seq: Mapped[int] = mapped_column(Integer, index=True)
    title: Mapped[str] = mapped_column(Text)
    client_name: Mapped[Optional[str]] = mapped_column(Text)
    site: Mapped[Optional[str]] = mapped_column(Text)
    team_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("teams.id", ondelete="SET NULL"))
    status: Mapped[JobStatus] = mapped_column(_enum(JobStatus, "job_status"), default=JobStatus.pendente)
    # Naive wall-clock time in the company timezone.
    planned_date: Mapped[Optional[datetime]] = mapped_column(SADateTime(timezone=False))
    estimated_duration_minutes: Mapped[Optional[int]] = mapped_column(Integer)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    value: Mapped[Optional[float]] = mapped_column(Float)
    discount_percent: Mapped[Optional[float]] = mapped_column(Float)
    discount_value: Mapped[Optional[float]] = mapped_column(Float)
    final_value: Mapped[Optional[float]] = mapped_column(Float)
    travel_distance_km: Mapped[Optional[float]] = mapped_column(Float)
    travel_price: Mapped[Optional[float]] = mapped_column(Float)
    travel_description: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(SADateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(SADateTime(timezone=True), default=utcnow, onupdate=utcnow)
    services: Mapped[List["ServiceLine"]] = relationship(
        foreign_keys="ServiceLine.job_id",
        cascade="all, delete-orphan",
        order_by="ServiceLine.position",
        lazy="selectin",
    )

class Budget(Base):
    __tablename__ = "budgets"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    seq: Mapped[int] = mapped_column(Integer, index=True)
    title: Mapped[str] = mapped_column(Text)
    client_name: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[BudgetStatus] = mapped_column(_enum(BudgetStatus, "budget_status"), default=BudgetStatus.pendente)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    estimated_duration_minutes: Mapped[Optional[int]] = mapped_column(Integer)
    value: Mapped[Optional[float]] = mapped_column(Float)
    discount_percent: Mapped[Optional[float]] = mapped_column(Float)
    discount_value: Mapped[Optional[float]] = mapped_column(Float)
    final_value: Mapped[Optional[float]] = mapped_column(Float)
    travel_distance_km: Mapped[Optional[float]] = mapped_column(Float)
    travel_price: Mapped[Optional[float]] = mapped_column(Float)
    travel_description: Mapped[Optional[str]] = mapped_column(Text)
    job_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("jobs.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(SADateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(SADateTime(timezone=True), default=utcnow, onupdate=utcnow)
    services: Mapped[List["ServiceLine"]] = relationship(
        foreign_keys="ServiceLine.budget_id",
        cascade="all, delete-orphan",
        order_by="ServiceLine.position",
        lazy="selectin",
    )

class ServiceLine(Base):
    __tablename__ = "service_lines"
    __table_args__ = (
        CheckConstraint(
            "(job_id IS NULL) <> (budget_id IS NULL)", name="ck_service_lines_single_owner"
        ),
    )
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    job_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("jobs.id", ondelete="CASCADE"))
    budget_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("budgets.id", ondelete="CASCADE"))
    position: Mapped[int] = mapped_column(Integer, default=0)
    catalog_item_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("catalog_items.id", ondelete="SET NULL")
    )
    service: Mapped[str] = mapped_column(Text, default="")
    diameter: Mapped[Optional[int]] = mapped_column(Integer)
    soil_type: Mapped[Optional[SoilType]] = mapped_column(_enum(SoilType, "soil_type"))
    access: Mapped[Optional[AccessType]] = mapped_column(_enum(AccessType, "machine_access"))
    quantity: Mapped[Optional[float]] = mapped_column(Float)
    depth: Mapped[Optional[float]] = mapped_column(Float)
    manual_value: Mapped[Optional[float]] = mapped_column(Float)
    # Snapshots at save time; never recalculated when catalog prices change.
    value: Mapped[Optional[float]] = mapped_column(Float)
    discount_percent: Mapped[float] = mapped_column(Float, default=0.0)
    discount_value: Mapped[Optional[float]] = mapped_column(Float)
    final_value: Mapped[Optional[float]] = mapped_column(Float)
    execution_time: Mapped[Optional[float]] = mapped_column(Float)

class TravelPricingRule(Base):
    __tablename__ = "travel_pricing_rules"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    up_to_km: Mapped[Optional[float]] = mapped_column(Float)  # None = open-ended ("Acima de X km")
    type: Mapped[TravelPricingType] = mapped_column(_enum(TravelPricingType, "travel_pricing_type"))
    price_per_km: Mapped[Optional[float]] = mapped_column(Float)
    fixed_price: Mapped[Optional[float]] = mapped_column(Float)
    description: Mapped[str] = mapped_column(Text)
    round_trip: Mapped[bool] = mapped_column(Boolean, default=True)
    order: Mapped[int] = mapped_column(Integer, default=0)

Index("ix_jobs_team_planned", Job.team_id, Job.planned_date)
Index("ix_price_variations_lookup", PriceVariation.catalog_item_id, PriceVariation.diameter)

async def init_db() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

__all__ = [
    "engine",
    "Session",
    "Base",
    "Team",
    "CatalogItem",
    "PriceVariation",
    "Job",
    "Budget",
    "ServiceLine",
    "TravelPricingRule",
    "JobStatus",
    "BudgetStatus",
    "SoilType",
    "AccessType",
    "TeamStatus",
    "TravelPricingType",
    "init_db",
]
