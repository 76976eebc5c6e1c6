"""
Booking conflict gate
---------------------
Runs on every change to {team, planned date, services} of a job being edited:

  1. recompute the job duration from its service lines
  2. project the team's bookings for that day (the job's own booking excluded)
  3. list available/booked start times and flag an overlap with the planned slot

Conflicts are advisory. The gate reports them; job_service decides whether the
caller confirmed the double-booking.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Optional, Sequence, Tuple, Union

from common.config_loader import DEFAULT_SETTINGS, SchedulingSettings
from common.errors import ValidationError
from common.models import GateResult, JobSnapshot, ServiceLine
from common.utils import _date_of, _local_dt
from services.duration_service import format_duration, round_minutes
from services.estimate_service import recompute_with_catalog
from services.schedule_service import (
    Interval,
    evaluate_candidates,
    find_conflicts,
    load_jobs,
    project_bookings,
)

logger = logging.getLogger("drillops")


def candidate_minutes(
    duration_minutes: Optional[float],
    settings: SchedulingSettings = DEFAULT_SETTINGS,
) -> Tuple[int, bool]:
    """(minutes, is_default). No complete service means the default job length."""
    if duration_minutes is None or duration_minutes <= 0:
        return settings.default_job_duration_minutes, True
    return round_minutes(duration_minutes), False


def check_booking(
    *,
    team_id: str,
    day: date,
    jobs: Sequence[JobSnapshot],
    duration_minutes: Optional[float],
    planned: Optional[datetime] = None,
    exclude_job_id: Optional[str] = None,
    settings: SchedulingSettings = DEFAULT_SETTINGS,
) -> GateResult:
    minutes, is_default = candidate_minutes(duration_minutes, settings)
    bookings = project_bookings(
        jobs,
        team_id=team_id,
        day=day,
        exclude_job_id=exclude_job_id,
        settings=settings,
    )
    available, booked = evaluate_candidates(day, bookings, minutes, settings)

    conflicting = []
    if planned is not None:
        candidate = Interval(planned, planned + timedelta(minutes=minutes))
        conflicting = [b.job_id for b in find_conflicts(candidate, bookings)]

    return GateResult(
        team_id=str(team_id),
        date=day,
        available=available,
        booked=booked,
        duration_minutes=minutes,
        duration_text=format_duration(minutes),
        conflict=bool(conflicting),
        conflicting_job_ids=conflicting,
        duration_is_default=is_default,
    )


async def gate_planned(
    *,
    team_id: str,
    day: date,
    duration_minutes: Optional[float],
    planned: Optional[datetime] = None,
    job_id: Optional[str] = None,
    settings: SchedulingSettings = DEFAULT_SETTINGS,
) -> GateResult:
    """Gate against the stored job collection for a duration that is already known."""
    jobs = await load_jobs(date_from=day, date_to=day, team_id=team_id)
    gate = check_booking(
        team_id=team_id,
        day=day,
        jobs=jobs,
        duration_minutes=duration_minutes,
        planned=planned,
        exclude_job_id=job_id,
        settings=settings,
    )
    logger.info(
        "booking gate team=%s date=%s duration=%s conflict=%s available=%d booked=%d",
        team_id,
        day.isoformat(),
        gate.duration_text,
        gate.conflict,
        len(gate.available),
        len(gate.booked),
    )
    return gate


async def check_availability(
    *,
    team_id: str,
    day: Optional[Union[str, date]] = None,
    services: Sequence[ServiceLine] = (),
    planned_date: Optional[Union[str, datetime]] = None,
    job_id: Optional[str] = None,
    settings: SchedulingSettings = DEFAULT_SETTINGS,
) -> GateResult:
    """
    Recompute the duration of `services` and gate it. Either `day` or
    `planned_date` is required; with both, the planned date wins.
    """
    planned = _local_dt(planned_date, settings.timezone) if planned_date else None
    if planned is not None:
        day = planned.date()
    elif day is not None:
        day = _date_of(day)
    else:
        raise ValidationError("date or planned_date is required", field="date")

    est = await recompute_with_catalog(services, settings=settings)
    return await gate_planned(
        team_id=team_id,
        day=day,
        duration_minutes=est.duration_minutes,
        planned=planned,
        job_id=job_id,
        settings=settings,
    )


__all__ = ["candidate_minutes", "check_booking", "gate_planned", "check_availability"]
