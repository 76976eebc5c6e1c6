"""
Budget data access layer (async)
--------------------------------
Budgets (orçamentos) share the estimation core with jobs: same line snapshots,
same roll-up, same duration. They never occupy a team until converted.

Conversion copies the service snapshots, travel and totals into a new job,
assigns a team and planned date and runs the booking gate. A budget that already
produced a job can only be converted again after it was modified.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence, Union

from sqlalchemy import func, select

from common.config_loader import DEFAULT_SETTINGS, SchedulingSettings
from common.errors import NotFoundError, ValidationError
from common.models import ServiceLine
from common.utils import _iso, _local_dt, _parse_uuid
from constants.types import BudgetStatus, JobStatus
from db.models import Session, Budget, Job, utcnow
from services.duration_service import format_duration
from services.estimate_service import recompute_with_catalog
from services.job_service import (
    apply_estimate,
    check_lines,
    copy_rows,
    estimate_lines,
    format_title,
    gate_job,
    get_job,
    line_dict,
    line_from_row,
    next_job_seq,
    require_team,
    snapshot_rows,
)

logger = logging.getLogger("drillops")


def format_budget_title(client_name: str, seq: int) -> str:
    return f"Orçamento {client_name} - ORC{seq:06d}"


def _naive_utc(dt: Optional[datetime]) -> datetime:
    # sqlite hands timestamps back naive, postgres aware
    if dt is None:
        return datetime.min
    if dt.tzinfo is not None:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _budget_dict(b: Budget) -> Dict[str, Any]:
    return {
        "id": str(b.id),
        "seq": b.seq,
        "title": b.title,
        "client_name": b.client_name,
        "status": b.status,
        "notes": b.notes,
        "estimated_duration_minutes": b.estimated_duration_minutes,
        "duration_text": format_duration(b.estimated_duration_minutes),
        "value": b.value,
        "discount_percent": b.discount_percent,
        "discount_value": b.discount_value,
        "final_value": b.final_value,
        "travel_distance_km": b.travel_distance_km,
        "travel_price": b.travel_price,
        "travel_description": b.travel_description,
        "job_id": (str(b.job_id) if b.job_id else None),
        "services": [line_dict(s) for s in b.services],
        "created_at": _iso(b.created_at),
        "updated_at": _iso(b.updated_at),
    }


def _require_client(client_name: Optional[str]) -> str:
    name = (client_name or "").strip()
    if not name:
        raise ValidationError("client_name is required", field="client_name")
    return name


# ---------- public API ----------
async def create_budget(
    *,
    client_name: str,
    services: Sequence[ServiceLine],
    status: BudgetStatus = BudgetStatus.pendente,
    notes: Optional[str] = None,
    value: Optional[float] = None,
    discount_percent: Optional[float] = None,
    travel_distance_km: Optional[float] = None,
    travel_price: Optional[float] = None,
    travel_description: Optional[str] = None,
    settings: SchedulingSettings = DEFAULT_SETTINGS,
) -> Dict[str, Any]:
    name = _require_client(client_name)
    check_lines(services)
    est, catalog = await estimate_lines(
        services,
        travel_price=travel_price,
        value=value,
        discount_percent=discount_percent,
        settings=settings,
    )

    async with Session() as db:
        current = (await db.execute(select(func.coalesce(func.max(Budget.seq), 0)))).scalar_one()
        seq = int(current) + 1
        b = Budget(
            seq=seq,
            title=format_budget_title(name, seq),
            client_name=name,
            status=status,
            notes=notes,
            travel_distance_km=travel_distance_km,
            travel_price=travel_price,
            travel_description=travel_description,
        )
        apply_estimate(b, est)
        b.services = snapshot_rows(services, est, catalog)
        db.add(b)
        await db.commit()
        budget_id = str(b.id)

    logger.info("budget %s created (seq=%d)", budget_id, seq)
    return await get_budget(budget_id)


async def update_budget(
    budget_id: str,
    *,
    client_name: str,
    services: Sequence[ServiceLine],
    status: Optional[BudgetStatus] = None,
    notes: Optional[str] = None,
    value: Optional[float] = None,
    discount_percent: Optional[float] = None,
    travel_distance_km: Optional[float] = None,
    travel_price: Optional[float] = None,
    travel_description: Optional[str] = None,
    settings: SchedulingSettings = DEFAULT_SETTINGS,
) -> Dict[str, Any]:
    bid = _parse_uuid(budget_id, "budget_id")
    name = _require_client(client_name)
    check_lines(services)
    est, catalog = await estimate_lines(
        services,
        travel_price=travel_price,
        value=value,
        discount_percent=discount_percent,
        settings=settings,
    )

    async with Session() as db:
        b = await db.get(Budget, bid)
        if b is None:
            raise NotFoundError("Budget not found")
        b.client_name = name
        b.title = format_budget_title(name, b.seq or 0)
        if status is not None:
            b.status = status
        b.notes = notes
        b.travel_distance_km = travel_distance_km
        b.travel_price = travel_price
        b.travel_description = travel_description
        apply_estimate(b, est)
        b.services.clear()
        await db.flush()
        b.services.extend(snapshot_rows(services, est, catalog))
        # line-only edits leave the budget row itself unchanged
        b.updated_at = utcnow()
        await db.commit()

    return await get_budget(str(bid))


async def get_budget(budget_id: str) -> Dict[str, Any]:
    async with Session() as db:
        b = await db.get(Budget, _parse_uuid(budget_id, "budget_id"))
        if b is None:
            raise NotFoundError("Budget not found")
        return _budget_dict(b)


async def convert_budget(
    budget_id: str,
    *,
    team_id: str,
    planned_date: Union[str, datetime],
    site: Optional[str] = None,
    notes: Optional[str] = None,
    confirm_conflict: bool = False,
    settings: SchedulingSettings = DEFAULT_SETTINGS,
) -> Dict[str, Any]:
    """
    Budget -> job. Returns {"job": ..., "budget": ...}.
    Money snapshots are copied as they are; the duration is the budget's stored
    estimate, recomputed from the lines when the budget has none.
    """
    bid = _parse_uuid(budget_id, "budget_id")
    if not team_id:
        raise ValidationError("team_id is required", field="team_id")
    planned = _local_dt(planned_date, settings.timezone)
    if planned is None:
        raise ValidationError("planned_date is required", field="planned_date")

    async with Session() as db:
        b = await db.get(Budget, bid)
        if b is None:
            raise NotFoundError("Budget not found")
        team_uuid = await require_team(db, team_id)

        if b.job_id is not None:
            existing = await db.get(Job, b.job_id)
            if existing is not None and _naive_utc(b.updated_at) <= _naive_utc(existing.created_at):
                raise ValidationError(
                    "Budget was already converted and has not been modified since",
                    field="budget_id",
                )
        lines = [line_from_row(s) for s in b.services]
        minutes = b.estimated_duration_minutes

    if minutes is None:
        est = await recompute_with_catalog(lines, settings=settings)
        minutes = est.estimated_duration_minutes

    await gate_job(
        team_id=team_id,
        planned=planned,
        status=JobStatus.pendente,
        duration_minutes=minutes,
        job_id=None,
        confirm_conflict=confirm_conflict,
        settings=settings,
    )

    async with Session() as db:
        b = await db.get(Budget, bid)
        seq = await next_job_seq(db)
        j = Job(
            seq=seq,
            title=format_title(b.client_name, planned, seq),
            client_name=b.client_name,
            site=site,
            team_id=team_uuid,
            status=JobStatus.pendente,
            planned_date=planned,
            estimated_duration_minutes=minutes,
            notes=(notes or b.notes),
            value=b.value,
            discount_percent=b.discount_percent,
            discount_value=b.discount_value,
            final_value=b.final_value,
            travel_distance_km=b.travel_distance_km,
            travel_price=b.travel_price,
            travel_description=b.travel_description,
        )
        j.services = copy_rows(b.services)
        db.add(j)
        await db.flush()

        b.status = BudgetStatus.convertido
        b.job_id = j.id
        # conversion itself must not count as a later modification
        b.updated_at = j.created_at
        await db.commit()
        job_id = str(j.id)

    logger.info("budget %s converted into job %s", bid, job_id)
    return {"job": await get_job(job_id), "budget": await get_budget(str(bid))}


__all__ = [
    "format_budget_title",
    "create_budget",
    "update_budget",
    "get_budget",
    "convert_budget",
]
