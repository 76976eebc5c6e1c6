from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import date, datetime
from typing import List, Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import TypeAdapter, ValidationError as PydanticValidationError
from zoneinfo import ZoneInfo

# --- Project imports ---
from common.config_loader import scheduling_settings
from common.errors import BookingConflictWarning, NetworkError, NotFoundError, ValidationError
from common.logging_config import configure_logging
from common.models import Booking, EstimateResult, GateResult, ServiceLine
from common.utils import normalize_access, normalize_diameter, normalize_soil_type
from constants.types import BudgetStatus
from db.models import init_db, engine
from db.session import ping
from api.utils import (
    AvailabilityOut,
    BookingCheckIn,
    BookingOut,
    BudgetIn,
    BudgetOut,
    ConvertIn,
    ConvertOut,
    EstimateIn,
    EstimateOut,
    JobIn,
    JobOut,
    ServiceLineIn,
    SlotOut,
    TeamAvailabilityOut,
    TravelQuoteIn,
    TravelQuoteOut,
    VariationLookupOut,
    VariationOut,
    to_lines,
)
from services.booking_service import check_availability
from services.budget_service import convert_budget, create_budget, get_budget, update_budget
from services.catalog_service import get_catalog_item, resolve_variation
from services.estimate_service import recompute_with_catalog
from services.job_service import create_job, get_job, update_job
from services.schedule_service import get_team_availability, get_team_slots
from services.travel_service import quote_travel

settings = scheduling_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    # Initialize DB once at startup
    await init_db()
    yield
    await engine.dispose()


app = FastAPI(
    lifespan=lifespan,
    title="Drilling Operations Scheduling API",
    version="0.1.0",
)


# ---------------------------
# Error mapping
# ---------------------------
@app.exception_handler(ValidationError)
async def _on_validation_error(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc), "field": exc.field})


@app.exception_handler(NotFoundError)
async def _on_not_found(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(NetworkError)
async def _on_network_error(request: Request, exc: NetworkError):
    return JSONResponse(status_code=502, content={"detail": str(exc)})


@app.exception_handler(BookingConflictWarning)
async def _on_booking_conflict(request: Request, exc: BookingConflictWarning):
    # Advisory: resend with confirm_conflict=true to book anyway.
    return JSONResponse(
        status_code=409,
        content={
            "detail": str(exc),
            "gate": _gate_out(exc.gate).model_dump(mode="json", by_alias=True),
        },
    )


# ---------------------------
# Helpers
# ---------------------------
_SERVICES_ADAPTER = TypeAdapter(List[ServiceLineIn])


def _services_param(raw: Optional[str]) -> List[ServiceLine]:
    """`services` query parameter: a JSON array of service lines."""
    if not raw:
        return []
    try:
        return to_lines(_SERVICES_ADAPTER.validate_json(raw))
    except PydanticValidationError as e:
        raise ValidationError(
            f"services must be a JSON array of service lines ({e.error_count()} errors)",
            field="services",
        ) from e


def _gate_out(g: GateResult) -> AvailabilityOut:
    return AvailabilityOut(
        team_id=g.team_id,
        day=g.date,
        available=g.available,
        booked=g.booked,
        estimated_duration=g.duration_minutes,
        duration_text=g.duration_text,
        duration_is_default=g.duration_is_default,
        conflict=g.conflict,
        conflicting_job_ids=g.conflicting_job_ids,
    )


def _estimate_out(est: EstimateResult) -> EstimateOut:
    return EstimateOut(**asdict(est))


def _booking_out(b: Booking) -> BookingOut:
    return BookingOut(
        job_id=b.job_id,
        start=b.start.isoformat(),
        end=b.end.isoformat(),
        duration=b.duration,
        status=b.status,
    )


def _today() -> date:
    return datetime.now(ZoneInfo(settings.timezone)).date()


# ---------------------------
# Health
# ---------------------------
@app.get("/health")
async def health():
    return {"ok": True, "db": await ping()}


# ---------------------------
# Catalog
# ---------------------------
@app.get(
    "/catalog/{catalog_id}/variation",
    response_model=VariationLookupOut,
)
async def lookup_variation(
    catalog_id: str,
    diameter: Optional[str] = None,
    soil_type: Optional[str] = None,
    access: Optional[str] = None,
):
    """Exact (diameter, soil, access) match; `variation` is null when there is none."""
    d = normalize_diameter(diameter)
    s = normalize_soil_type(soil_type)
    a = normalize_access(access)
    item = await get_catalog_item(catalog_id)
    if item is None:
        raise NotFoundError("Catalog item not found")
    pv = resolve_variation(item, d, s, a)
    return VariationLookupOut(
        catalog_id=catalog_id,
        diameter=d,
        soil_type=s,
        access=a,
        variation=(VariationOut(**asdict(pv)) if pv else None),
    )


# ---------------------------
# Recompute (stateless)
# ---------------------------
@app.post("/estimates/recompute", response_model=EstimateOut)
async def recompute_estimate(body: EstimateIn):
    est = await recompute_with_catalog(
        to_lines(body.services),
        travel_price=body.travel_price,
        manual_value=body.value,
        manual_discount_percent=body.discount_percent,
        settings=settings,
    )
    return _estimate_out(est)


# ---------------------------
# Availability / booking gate
# (declared before /jobs/{job_id})
# ---------------------------
@app.get("/jobs/availability", response_model=AvailabilityOut)
async def job_availability(
    team_id: str = Query(..., alias="team"),
    day: date = Query(..., alias="date"),
    services: Optional[str] = Query(default=None, description="JSON array of service lines"),
    exclude_job_id: Optional[str] = None,
):
    """
    Available/booked start times for a job of the given services on that team/day.
    The response echoes team and date so callers can drop superseded answers.
    """
    gate = await check_availability(
        team_id=team_id,
        day=day,
        services=_services_param(services),
        job_id=exclude_job_id,
        settings=settings,
    )
    return _gate_out(gate)


@app.post("/jobs/booking-check", response_model=AvailabilityOut)
async def booking_check(body: BookingCheckIn):
    gate = await check_availability(
        team_id=body.team_id,
        day=body.day,
        services=to_lines(body.services),
        planned_date=body.planned_date,
        job_id=body.job_id,
        settings=settings,
    )
    return _gate_out(gate)


@app.get("/jobs/team-availability", response_model=List[TeamAvailabilityOut])
async def team_availability(
    date_from: Optional[date] = Query(default=None, alias="dateFrom"),
    date_to: Optional[date] = Query(default=None, alias="dateTo"),
):
    rows = await get_team_availability(
        date_from=date_from or _today(),
        date_to=date_to,
        settings=settings,
    )
    return [
        TeamAvailabilityOut(
            team_id=r["team_id"],
            team_name=r["team_name"],
            availability={d: [_booking_out(b) for b in bs] for d, bs in r["availability"].items()},
        )
        for r in rows
    ]


@app.get("/teams/{team_id}/slots", response_model=List[SlotOut])
async def team_slots(team_id: str, day: date = Query(..., alias="date")):
    grid = await get_team_slots(team_id=team_id, day=day, settings=settings)
    return [SlotOut(**asdict(s)) for s in grid]


# ---------------------------
# Jobs
# ---------------------------
@app.post("/jobs", response_model=JobOut, status_code=201)
async def create_job_endpoint(body: JobIn):
    return JobOut(
        **await create_job(
            services=to_lines(body.services),
            client_name=body.client_name,
            site=body.site,
            team_id=body.team_id,
            status=body.status,
            planned_date=body.planned_date,
            notes=body.notes,
            value=body.value,
            discount_percent=body.discount_percent,
            travel_distance_km=body.travel_distance_km,
            travel_price=body.travel_price,
            travel_description=body.travel_description,
            confirm_conflict=body.confirm_conflict,
            settings=settings,
        )
    )


@app.put("/jobs/{job_id}", response_model=JobOut)
async def update_job_endpoint(job_id: str, body: JobIn):
    return JobOut(
        **await update_job(
            job_id,
            services=to_lines(body.services),
            client_name=body.client_name,
            site=body.site,
            team_id=body.team_id,
            status=body.status,
            planned_date=body.planned_date,
            notes=body.notes,
            value=body.value,
            discount_percent=body.discount_percent,
            travel_distance_km=body.travel_distance_km,
            travel_price=body.travel_price,
            travel_description=body.travel_description,
            confirm_conflict=body.confirm_conflict,
            settings=settings,
        )
    )


@app.get("/jobs/{job_id}", response_model=JobOut)
async def get_job_endpoint(job_id: str):
    return JobOut(**await get_job(job_id))


# ---------------------------
# Budgets
# ---------------------------
@app.post("/budgets", response_model=BudgetOut, status_code=201)
async def create_budget_endpoint(body: BudgetIn):
    return BudgetOut(
        **await create_budget(
            client_name=body.client_name,
            services=to_lines(body.services),
            status=body.status or BudgetStatus.pendente,
            notes=body.notes,
            value=body.value,
            discount_percent=body.discount_percent,
            travel_distance_km=body.travel_distance_km,
            travel_price=body.travel_price,
            travel_description=body.travel_description,
            settings=settings,
        )
    )


@app.put("/budgets/{budget_id}", response_model=BudgetOut)
async def update_budget_endpoint(budget_id: str, body: BudgetIn):
    return BudgetOut(
        **await update_budget(
            budget_id,
            client_name=body.client_name,
            services=to_lines(body.services),
            status=body.status,
            notes=body.notes,
            value=body.value,
            discount_percent=body.discount_percent,
            travel_distance_km=body.travel_distance_km,
            travel_price=body.travel_price,
            travel_description=body.travel_description,
            settings=settings,
        )
    )


@app.get("/budgets/{budget_id}", response_model=BudgetOut)
async def get_budget_endpoint(budget_id: str):
    return BudgetOut(**await get_budget(budget_id))


@app.post("/budgets/{budget_id}/convert", response_model=ConvertOut)
async def convert_budget_endpoint(budget_id: str, body: ConvertIn):
    out = await convert_budget(
        budget_id,
        team_id=body.team_id,
        planned_date=body.planned_date,
        site=body.site,
        notes=body.notes,
        confirm_conflict=body.confirm_conflict,
        settings=settings,
    )
    return ConvertOut(job=JobOut(**out["job"]), budget=BudgetOut(**out["budget"]))


# ---------------------------
# Travel
# ---------------------------
@app.post("/travel/quote", response_model=TravelQuoteOut)
async def travel_quote(body: TravelQuoteIn):
    q = await quote_travel(address=body.address, distance_km=body.distance_km)
    return TravelQuoteOut(**asdict(q))
