"""
Job data access layer (async)
-----------------------------
Functions:
  - create_job(...)
  - update_job(job_id, ...)      full replacement of the editable fields (PUT)
  - get_job(job_id)

Every save recomputes line values and the job duration against the current
catalog and snapshots them on the rows; later catalog price changes never touch
a saved job. Saving a job with a team and planned date runs the booking gate:
an overlap raises BookingConflictWarning unless confirm_conflict is set.

Notes:
  - planned_date is naive wall-clock time in the company timezone.
  - Responses are plain dicts with ISO 8601 strings for datetimes.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from sqlalchemy import func, select

from common.config_loader import DEFAULT_SETTINGS, SchedulingSettings
from common.errors import BookingConflictWarning, NotFoundError, ValidationError
from common.models import CatalogItem, EstimateResult, GateResult, ServiceLine
from common.utils import _iso, _local_dt, _parse_uuid
from constants.types import ACTIVE_JOB_STATUSES, JobStatus
from db.models import Session, Job, Team, ServiceLine as LineRow
from services.booking_service import gate_planned
from services.catalog_service import load_catalog
from services.duration_service import format_duration, legacy_duration
from services.estimate_service import recompute

logger = logging.getLogger("drillops")

NO_CLIENT_LABEL = "Cliente não informado"


# ---------- helpers ----------


def format_title(client_name: Optional[str], planned: Optional[datetime], seq: int) -> str:
    """'Cliente - 01/05/2024 09:00 - 000042', or 'sem-data' when unscheduled."""
    label = planned.strftime("%d/%m/%Y %H:%M") if planned else "sem-data"
    client = (client_name or "").strip() or NO_CLIENT_LABEL
    return f"{client} - {label} - {seq:06d}"


def check_lines(lines: Sequence[ServiceLine]) -> None:
    if not lines:
        raise ValidationError("At least one service is required", field="services")
    for i, line in enumerate(lines):
        if not (line.service or "").strip():
            raise ValidationError(f"services[{i}].service is required", field="services")


def snapshot_rows(
    lines: Sequence[ServiceLine],
    est: EstimateResult,
    catalog: Mapping[str, CatalogItem],
) -> List[LineRow]:
    """Service rows carrying the values computed now (never recalculated later)."""
    rows = []
    for pos, (line, le) in enumerate(zip(lines, est.lines)):
        known = line.catalog_id is not None and str(line.catalog_id) in catalog
        rows.append(
            LineRow(
                position=pos,
                catalog_item_id=(uuid.UUID(str(line.catalog_id)) if known else None),
                service=line.service.strip(),
                diameter=line.diameter,
                soil_type=line.soil_type,
                access=line.access,
                quantity=line.quantity,
                depth=line.depth,
                manual_value=line.manual_value,
                value=le.value,
                discount_percent=le.discount_percent,
                discount_value=le.discount_value,
                final_value=le.final_value,
                execution_time=(le.execution_time if le.execution_time is not None else line.execution_time),
            )
        )
    return rows


def copy_rows(rows: Sequence[LineRow]) -> List[LineRow]:
    """Detached copies of stored lines (budget -> job keeps the snapshots as they are)."""
    return [
        LineRow(
            position=r.position,
            catalog_item_id=r.catalog_item_id,
            service=r.service,
            diameter=r.diameter,
            soil_type=r.soil_type,
            access=r.access,
            quantity=r.quantity,
            depth=r.depth,
            manual_value=r.manual_value,
            value=r.value,
            discount_percent=r.discount_percent,
            discount_value=r.discount_value,
            final_value=r.final_value,
            execution_time=r.execution_time,
        )
        for r in rows
    ]


def line_from_row(r: LineRow) -> ServiceLine:
    return ServiceLine(
        service=r.service,
        catalog_id=(str(r.catalog_item_id) if r.catalog_item_id else None),
        diameter=r.diameter,
        soil_type=r.soil_type,
        access=r.access,
        quantity=r.quantity,
        depth=r.depth,
        manual_value=r.manual_value,
        discount_percent=r.discount_percent or 0.0,
        execution_time=r.execution_time,
    )


def line_dict(r: LineRow) -> Dict[str, Any]:
    return {
        "id": str(r.id),
        "position": r.position,
        "catalog_id": (str(r.catalog_item_id) if r.catalog_item_id else None),
        "service": r.service,
        "diameter": r.diameter,
        "soil_type": r.soil_type,
        "access": r.access,
        "quantity": r.quantity,
        "depth": r.depth,
        "manual_value": r.manual_value,
        "value": r.value,
        "discount_percent": r.discount_percent,
        "discount_value": r.discount_value,
        "final_value": r.final_value,
        "execution_time": r.execution_time,
    }


def apply_estimate(row, est: EstimateResult) -> None:
    """Copy totals and duration onto a Job/Budget row."""
    t = est.totals
    row.value = t.value
    row.discount_percent = t.discount_percent
    row.discount_value = t.discount_value
    row.final_value = t.final_value
    row.estimated_duration_minutes = est.estimated_duration_minutes


async def estimate_lines(
    lines: Sequence[ServiceLine],
    *,
    travel_price: Optional[float],
    value: Optional[float],
    discount_percent: Optional[float],
    settings: SchedulingSettings,
) -> Tuple[EstimateResult, Dict[str, CatalogItem]]:
    catalog = await load_catalog(line.catalog_id for line in lines)
    est = recompute(
        lines,
        catalog,
        travel_price=travel_price,
        manual_value=value,
        manual_discount_percent=discount_percent,
        settings=settings,
    )
    return est, catalog


def _job_dict(j: Job) -> Dict[str, Any]:
    minutes = j.estimated_duration_minutes
    if minutes is None:
        minutes = legacy_duration([line_from_row(s) for s in j.services])
    return {
        "id": str(j.id),
        "seq": j.seq,
        "title": j.title,
        "client_name": j.client_name,
        "site": j.site,
        "team_id": (str(j.team_id) if j.team_id else None),
        "status": j.status,
        "planned_date": _iso(j.planned_date),
        "estimated_duration_minutes": j.estimated_duration_minutes,
        "duration_text": format_duration(minutes),
        "notes": j.notes,
        "value": j.value,
        "discount_percent": j.discount_percent,
        "discount_value": j.discount_value,
        "final_value": j.final_value,
        "travel_distance_km": j.travel_distance_km,
        "travel_price": j.travel_price,
        "travel_description": j.travel_description,
        "services": [line_dict(s) for s in j.services],
        "created_at": _iso(j.created_at),
        "updated_at": _iso(j.updated_at),
    }


async def require_team(db, team_id: Optional[str]) -> Optional[uuid.UUID]:
    if not team_id:
        return None
    t = await db.get(Team, _parse_uuid(team_id, "team_id"))
    if t is None:
        raise ValidationError("Team not found", field="team_id")
    return t.id


async def next_job_seq(db) -> int:
    current = (await db.execute(select(func.coalesce(func.max(Job.seq), 0)))).scalar_one()
    return int(current) + 1


async def gate_job(
    *,
    team_id: Optional[str],
    planned: Optional[datetime],
    status: JobStatus,
    duration_minutes: Optional[float],
    job_id: Optional[str],
    confirm_conflict: bool,
    settings: SchedulingSettings,
) -> Optional[GateResult]:
    """Only scheduled, active jobs occupy a team. Raises on an unconfirmed overlap."""
    if not team_id or planned is None or status not in ACTIVE_JOB_STATUSES:
        return None
    gate = await gate_planned(
        team_id=str(team_id),
        day=planned.date(),
        duration_minutes=duration_minutes,
        planned=planned,
        job_id=job_id,
        settings=settings,
    )
    if gate.conflict:
        if not confirm_conflict:
            raise BookingConflictWarning(gate)
        logger.warning(
            "double booking confirmed: team=%s at %s overlaps %s",
            team_id,
            planned.isoformat(),
            ", ".join(gate.conflicting_job_ids),
        )
    return gate


# ---------- public API ----------
async def create_job(
    *,
    services: Sequence[ServiceLine],
    client_name: Optional[str] = None,
    site: Optional[str] = None,
    team_id: Optional[str] = None,
    status: JobStatus = JobStatus.pendente,
    planned_date: Optional[Union[str, datetime]] = None,
    notes: Optional[str] = None,
    value: Optional[float] = None,
    discount_percent: Optional[float] = None,
    travel_distance_km: Optional[float] = None,
    travel_price: Optional[float] = None,
    travel_description: Optional[str] = None,
    confirm_conflict: bool = False,
    settings: SchedulingSettings = DEFAULT_SETTINGS,
) -> Dict[str, Any]:
    check_lines(services)
    planned = _local_dt(planned_date, settings.timezone)
    est, catalog = await estimate_lines(
        services,
        travel_price=travel_price,
        value=value,
        discount_percent=discount_percent,
        settings=settings,
    )

    async with Session() as db:
        team_uuid = await require_team(db, team_id)

    await gate_job(
        team_id=team_id,
        planned=planned,
        status=status,
        duration_minutes=est.duration_minutes,
        job_id=None,
        confirm_conflict=confirm_conflict,
        settings=settings,
    )

    async with Session() as db:
        seq = await next_job_seq(db)
        j = Job(
            seq=seq,
            title=format_title(client_name, planned, seq),
            client_name=(client_name.strip() if client_name else None),
            site=site,
            team_id=team_uuid,
            status=status,
            planned_date=planned,
            notes=notes,
            travel_distance_km=travel_distance_km,
            travel_price=travel_price,
            travel_description=travel_description,
        )
        apply_estimate(j, est)
        j.services = snapshot_rows(services, est, catalog)
        db.add(j)
        await db.commit()
        job_id = str(j.id)

    logger.info("job %s created (seq=%d, duration=%s)", job_id, seq, est.duration_text)
    return await get_job(job_id)


async def update_job(
    job_id: str,
    *,
    services: Sequence[ServiceLine],
    client_name: Optional[str] = None,
    site: Optional[str] = None,
    team_id: Optional[str] = None,
    status: JobStatus = JobStatus.pendente,
    planned_date: Optional[Union[str, datetime]] = None,
    notes: Optional[str] = None,
    value: Optional[float] = None,
    discount_percent: Optional[float] = None,
    travel_distance_km: Optional[float] = None,
    travel_price: Optional[float] = None,
    travel_description: Optional[str] = None,
    confirm_conflict: bool = False,
    settings: SchedulingSettings = DEFAULT_SETTINGS,
) -> Dict[str, Any]:
    jid = _parse_uuid(job_id, "job_id")
    check_lines(services)
    planned = _local_dt(planned_date, settings.timezone)
    est, catalog = await estimate_lines(
        services,
        travel_price=travel_price,
        value=value,
        discount_percent=discount_percent,
        settings=settings,
    )

    async with Session() as db:
        if await db.get(Job, jid) is None:
            raise NotFoundError("Job not found")
        team_uuid = await require_team(db, team_id)

    # the job's own booking never conflicts with itself
    await gate_job(
        team_id=team_id,
        planned=planned,
        status=status,
        duration_minutes=est.duration_minutes,
        job_id=str(jid),
        confirm_conflict=confirm_conflict,
        settings=settings,
    )

    async with Session() as db:
        j = await db.get(Job, jid)
        if j is None:
            raise NotFoundError("Job not found")
        j.title = format_title(client_name, planned, j.seq or 0)
        j.client_name = client_name.strip() if client_name else None
        j.site = site
        j.team_id = team_uuid
        j.status = status
        j.planned_date = planned
        j.notes = notes
        j.travel_distance_km = travel_distance_km
        j.travel_price = travel_price
        j.travel_description = travel_description
        apply_estimate(j, est)
        j.services.clear()
        await db.flush()
        j.services.extend(snapshot_rows(services, est, catalog))
        await db.commit()

    logger.info("job %s updated (duration=%s)", jid, est.duration_text)
    return await get_job(str(jid))


async def get_job(job_id: str) -> Dict[str, Any]:
    async with Session() as db:
        j = await db.get(Job, _parse_uuid(job_id, "job_id"))
        if j is None:
            raise NotFoundError("Job not found")
        return _job_dict(j)


__all__ = [
    "format_title",
    "check_lines",
    "snapshot_rows",
    "copy_rows",
    "line_from_row",
    "line_dict",
    "apply_estimate",
    "estimate_lines",
    "require_team",
    "next_job_seq",
    "gate_job",
    "create_job",
    "update_job",
    "get_job",
]
