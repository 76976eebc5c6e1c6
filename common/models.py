## common/models.py

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional
import yaml

from constants.types import AccessType, JobStatus, LineStatus, SoilType, TravelPricingType


# ---------- Catalog ----------
@dataclass(frozen=True)
class PriceVariation:
    diameter: int
    soil_type: SoilType
    access: AccessType
    price: float
    execution_time: Optional[float] = None  # minutes per meter


@dataclass
class CatalogItem:
    id: Optional[str]
    name: str
    category: Optional[str] = None
    price_variations: List[PriceVariation] = field(default_factory=list)


# ---------- Job / Budget editing ----------
@dataclass
class ServiceLine:
    service: str = ""
    catalog_id: Optional[str] = None
    diameter: Optional[int] = None
    soil_type: Optional[SoilType] = None
    access: Optional[AccessType] = None
    quantity: Optional[float] = None
    depth: Optional[float] = None
    manual_value: Optional[float] = None
    discount_percent: float = 0.0
    # Snapshot taken at save time; only read for legacy bookings.
    execution_time: Optional[float] = None

    def missing_fields(self) -> List[str]:
        names = ("diameter", "soil_type", "access", "quantity", "depth")
        return [n for n in names if getattr(self, n) is None]

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()


@dataclass
class LineEstimate:
    status: LineStatus
    value: Optional[float] = None
    discount_percent: float = 0.0
    discount_value: Optional[float] = None
    final_value: Optional[float] = None
    duration_minutes: Optional[float] = None
    unit_price: Optional[float] = None
    execution_time: Optional[float] = None
    missing: List[str] = field(default_factory=list)


@dataclass
class JobTotals:
    value: Optional[float]
    discount_percent: float
    discount_value: float
    final_value: Optional[float]
    services_value: float
    travel_price: float
    derived: bool  # top-level value/discount are read-only when True

    def summarize(self) -> str:
        data = {
            "value": None if self.value is None else round(self.value, 2),
            "services_value": round(self.services_value, 2),
            "travel_price": round(self.travel_price, 2),
            "discount": {
                "percent": round(self.discount_percent, 4),
                "value": round(self.discount_value, 2),
            },
            "final_value": None if self.final_value is None else round(self.final_value, 2),
            "derived": self.derived,
        }
        return yaml.dump(data, sort_keys=False)


@dataclass
class EstimateResult:
    lines: List[LineEstimate]
    totals: JobTotals
    duration_minutes: Optional[float]            # unrounded; None = no complete service
    estimated_duration_minutes: Optional[int]    # what gets persisted
    duration_text: Optional[str]


# ---------- Scheduling ----------
@dataclass
class JobSnapshot:
    """What the availability calculator needs from a stored job."""
    id: str
    team_id: Optional[str]
    status: JobStatus
    planned_date: Optional[datetime]
    estimated_duration_minutes: Optional[int] = None
    services: List[ServiceLine] = field(default_factory=list)


@dataclass(frozen=True)
class Booking:
    team_id: str
    job_id: str
    start: datetime
    end: datetime
    duration: int
    status: JobStatus


@dataclass(frozen=True)
class Slot:
    time: str  # HH:MM
    busy: bool
    job_id: Optional[str] = None
    status: Optional[JobStatus] = None


@dataclass
class GateResult:
    team_id: str
    date: date
    available: List[str]
    booked: List[str]
    duration_minutes: int
    duration_text: str
    conflict: bool
    conflicting_job_ids: List[str] = field(default_factory=list)
    duration_is_default: bool = False


# ---------- Travel ----------
@dataclass(frozen=True)
class TravelRule:
    type: TravelPricingType
    description: str
    up_to_km: Optional[float] = None  # None = open-ended
    price_per_km: Optional[float] = None
    fixed_price: Optional[float] = None
    round_trip: bool = True
    order: int = 0


@dataclass
class TravelQuote:
    distance_km: float
    travel_price: float
    travel_description: str


__all__ = [
    "PriceVariation",
    "CatalogItem",
    "ServiceLine",
    "LineEstimate",
    "JobTotals",
    "EstimateResult",
    "JobSnapshot",
    "Booking",
    "Slot",
    "GateResult",
    "TravelRule",
    "TravelQuote",
]
