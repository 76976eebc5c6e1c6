from __future__ import annotations
from datetime import date
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, field_validator
# --- Project imports ---
from common.models import ServiceLine
from common.utils import normalize_access, normalize_diameter, normalize_soil_type, parse_number
from constants.types import AccessType, BudgetStatus, JobStatus, SoilType


# ---------------------------
# Service lines
# ---------------------------
class ServiceLineIn(BaseModel):
    service: str = ""
    catalog_id: Optional[str] = None
    diameter: Optional[int] = None
    soil_type: Optional[SoilType] = None
    access: Optional[AccessType] = None
    quantity: Optional[float] = Field(default=None, ge=0)
    depth: Optional[float] = Field(default=None, ge=0)
    manual_value: Optional[float] = Field(default=None, ge=0)
    discount_percent: float = Field(default=0.0, ge=0, le=100)
    execution_time: Optional[float] = Field(default=None, ge=0)

    # Labels arrive in several spellings ("Terra comum", "fácil", "25cm", "2,5");
    # they are normalized here once and travel as enums/numbers from then on.
    @field_validator("diameter", mode="before")
    @classmethod
    def _diameter(cls, v):
        return normalize_diameter(v)

    @field_validator("soil_type", mode="before")
    @classmethod
    def _soil_type(cls, v):
        return normalize_soil_type(v)

    @field_validator("access", mode="before")
    @classmethod
    def _access(cls, v):
        return normalize_access(v)

    @field_validator("quantity", "depth", mode="before")
    @classmethod
    def _number(cls, v, info):
        return parse_number(v, info.field_name)

    @field_validator("catalog_id", mode="before")
    @classmethod
    def _blank_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def to_line(self) -> ServiceLine:
        return ServiceLine(
            service=self.service,
            catalog_id=self.catalog_id,
            diameter=self.diameter,
            soil_type=self.soil_type,
            access=self.access,
            quantity=self.quantity,
            depth=self.depth,
            manual_value=self.manual_value,
            discount_percent=self.discount_percent,
            execution_time=self.execution_time,
        )


def to_lines(items: List[ServiceLineIn]) -> List[ServiceLine]:
    return [s.to_line() for s in items]


class ServiceLineOut(BaseModel):
    id: str
    position: int
    catalog_id: Optional[str] = None
    service: str
    diameter: Optional[int] = None
    soil_type: Optional[SoilType] = None
    access: Optional[AccessType] = None
    quantity: Optional[float] = None
    depth: Optional[float] = None
    manual_value: Optional[float] = None
    value: Optional[float] = None
    discount_percent: float = 0.0
    discount_value: Optional[float] = None
    final_value: Optional[float] = None
    execution_time: Optional[float] = None


# ---------------------------
# Catalog
# ---------------------------
class VariationOut(BaseModel):
    diameter: int
    soil_type: SoilType
    access: AccessType
    price: float
    execution_time: Optional[float] = None


class VariationLookupOut(BaseModel):
    catalog_id: str
    diameter: Optional[int] = None
    soil_type: Optional[SoilType] = None
    access: Optional[AccessType] = None
    variation: Optional[VariationOut] = None  # null = no exact match


# ---------------------------
# Recompute
# ---------------------------
class EstimateIn(BaseModel):
    services: List[ServiceLineIn] = Field(default_factory=list)
    travel_price: Optional[float] = Field(default=None, ge=0)
    value: Optional[float] = Field(default=None, ge=0)
    discount_percent: Optional[float] = Field(default=None, ge=0, le=100)


class LineEstimateOut(BaseModel):
    status: str
    value: Optional[float] = None
    discount_percent: float = 0.0
    discount_value: Optional[float] = None
    final_value: Optional[float] = None
    duration_minutes: Optional[float] = None
    unit_price: Optional[float] = None
    execution_time: Optional[float] = None
    missing: List[str] = Field(default_factory=list)


class TotalsOut(BaseModel):
    value: Optional[float] = None
    discount_percent: float
    discount_value: float
    final_value: Optional[float] = None
    services_value: float
    travel_price: float
    derived: bool


class EstimateOut(BaseModel):
    lines: List[LineEstimateOut]
    totals: TotalsOut
    duration_minutes: Optional[float] = None
    estimated_duration_minutes: Optional[int] = None
    duration_text: Optional[str] = None


# ---------------------------
# Availability / gate
# ---------------------------
class AvailabilityOut(BaseModel):
    team_id: str
    day: date = Field(serialization_alias="date")
    available: List[str]
    booked: List[str]
    estimated_duration: int = Field(serialization_alias="estimatedDuration")
    duration_text: str = Field(serialization_alias="durationText")
    duration_is_default: bool = Field(default=False, serialization_alias="durationIsDefault")
    conflict: bool = False
    conflicting_job_ids: List[str] = Field(default_factory=list, serialization_alias="conflictingJobIds")


class BookingCheckIn(BaseModel):
    team_id: str
    planned_date: Optional[str] = None
    day: Optional[date] = None
    services: List[ServiceLineIn] = Field(default_factory=list)
    job_id: Optional[str] = None  # set when editing; the job never conflicts with itself


class BookingOut(BaseModel):
    job_id: str
    start: str
    end: str
    duration: int
    status: JobStatus


class TeamAvailabilityOut(BaseModel):
    team_id: str
    team_name: str
    availability: Dict[str, List[BookingOut]]


class SlotOut(BaseModel):
    time: str
    busy: bool
    job_id: Optional[str] = None
    status: Optional[JobStatus] = None


# ---------------------------
# Jobs / budgets
# ---------------------------
class JobIn(BaseModel):
    client_name: Optional[str] = None
    site: Optional[str] = None
    team_id: Optional[str] = None
    status: JobStatus = JobStatus.pendente
    planned_date: Optional[str] = None
    notes: Optional[str] = None
    services: List[ServiceLineIn] = Field(min_length=1)
    value: Optional[float] = Field(default=None, ge=0)
    discount_percent: Optional[float] = Field(default=None, ge=0, le=100)
    travel_distance_km: Optional[float] = Field(default=None, ge=0)
    travel_price: Optional[float] = Field(default=None, ge=0)
    travel_description: Optional[str] = None
    confirm_conflict: bool = Field(
        default=False,
        description="Save even when the team is already booked at that time.",
    )

    @field_validator("team_id", "planned_date", mode="before")
    @classmethod
    def _blank_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class JobOut(BaseModel):
    id: str
    seq: int
    title: str
    client_name: Optional[str] = None
    site: Optional[str] = None
    team_id: Optional[str] = None
    status: JobStatus
    planned_date: Optional[str] = None
    estimated_duration_minutes: Optional[int] = None
    duration_text: Optional[str] = None
    notes: Optional[str] = None
    value: Optional[float] = None
    discount_percent: Optional[float] = None
    discount_value: Optional[float] = None
    final_value: Optional[float] = None
    travel_distance_km: Optional[float] = None
    travel_price: Optional[float] = None
    travel_description: Optional[str] = None
    services: List[ServiceLineOut] = Field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class BudgetIn(BaseModel):
    client_name: str
    status: Optional[BudgetStatus] = None
    notes: Optional[str] = None
    services: List[ServiceLineIn] = Field(min_length=1)
    value: Optional[float] = Field(default=None, ge=0)
    discount_percent: Optional[float] = Field(default=None, ge=0, le=100)
    travel_distance_km: Optional[float] = Field(default=None, ge=0)
    travel_price: Optional[float] = Field(default=None, ge=0)
    travel_description: Optional[str] = None


class BudgetOut(BaseModel):
    id: str
    seq: int
    title: str
    client_name: Optional[str] = None
    status: BudgetStatus
    notes: Optional[str] = None
    estimated_duration_minutes: Optional[int] = None
    duration_text: Optional[str] = None
    value: Optional[float] = None
    discount_percent: Optional[float] = None
    discount_value: Optional[float] = None
    final_value: Optional[float] = None
    travel_distance_km: Optional[float] = None
    travel_price: Optional[float] = None
    travel_description: Optional[str] = None
    job_id: Optional[str] = None
    services: List[ServiceLineOut] = Field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ConvertIn(BaseModel):
    team_id: str
    planned_date: str
    site: Optional[str] = None
    notes: Optional[str] = None
    confirm_conflict: bool = False


class ConvertOut(BaseModel):
    job: JobOut
    budget: BudgetOut


# ---------------------------
# Travel
# ---------------------------
class TravelQuoteIn(BaseModel):
    address: Optional[str] = None
    distance_km: Optional[float] = Field(default=None, ge=0)


class TravelQuoteOut(BaseModel):
    distance_km: float = Field(serialization_alias="distanceKm")
    travel_price: float = Field(serialization_alias="travelPrice")
    travel_description: str = Field(serialization_alias="travelDescription")
