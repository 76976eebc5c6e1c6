"""
Scheduling service: team availability over the job collection
--------------------------------------------------------------

Bookings are never stored: they are projected on every query from jobs that are
still active (pendente / em_execucao) and have a planned date.

Pure exports:
  - project_bookings(...)        jobs -> Booking[] for a team/day
  - team_availability(...)       per-date busy intervals for one team
  - slots(...)                   the fixed 06:00–19:30 grid (28 ticks), busy/free
  - evaluate_candidates(...)     available/booked start times for a job of N minutes
  - find_conflicts(...)          bookings overlapping a candidate interval

DB-backed:
  - load_jobs(...)
  - get_team_availability(...)   every active team over a date range
  - get_team_slots(...)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import select

from common.config_loader import DEFAULT_SETTINGS, SchedulingSettings
from common.errors import NotFoundError, ValidationError
from common.models import Booking, JobSnapshot, ServiceLine, Slot
from common.utils import _hhmm, _parse_uuid
from constants.types import ACTIVE_JOB_STATUSES, JobStatus, TeamStatus
from db.models import Session, Job, Team
from services.duration_service import legacy_duration, round_minutes

logger = logging.getLogger("drillops")


# --------------- Interval utils ---------------
@dataclass
class Interval:
    start: datetime
    end: datetime


def _overlaps(a: Interval, b: Interval) -> bool:
    return a.start < b.end and b.start < a.end


# --------------- Projection ---------------
def booking_duration(job: JobSnapshot, settings: SchedulingSettings = DEFAULT_SETTINGS) -> int:
    """Stored estimate first, then the line snapshots (older jobs), then the default."""
    if job.estimated_duration_minutes:
        return int(job.estimated_duration_minutes)
    legacy = legacy_duration(job.services, settings)
    if legacy is not None:
        return round_minutes(legacy)
    return settings.default_job_duration_minutes


def project_bookings(
    jobs: Iterable[JobSnapshot],
    *,
    team_id: Optional[str] = None,
    day: Optional[date] = None,
    exclude_job_id: Optional[str] = None,
    settings: SchedulingSettings = DEFAULT_SETTINGS,
) -> List[Booking]:
    out: List[Booking] = []
    for job in jobs:
        if job.status not in ACTIVE_JOB_STATUSES:
            continue
        if job.planned_date is None or not job.team_id:
            continue
        if team_id is not None and str(job.team_id) != str(team_id):
            continue
        if day is not None and job.planned_date.date() != day:
            continue
        if exclude_job_id is not None and str(job.id) == str(exclude_job_id):
            continue
        minutes = booking_duration(job, settings)
        out.append(
            Booking(
                team_id=str(job.team_id),
                job_id=str(job.id),
                start=job.planned_date,
                end=job.planned_date + timedelta(minutes=minutes),
                duration=minutes,
                status=job.status,
            )
        )
    out.sort(key=lambda b: b.start)
    return out


def date_range(date_from: date, date_to: date) -> List[date]:
    if date_to < date_from:
        raise ValidationError("date_to must be >= date_from", field="date_to")
    days = []
    cur = date_from
    while cur <= date_to:
        days.append(cur)
        cur = cur + timedelta(days=1)
    return days


def team_availability(
    jobs: Sequence[JobSnapshot],
    team_id: str,
    days: Iterable[date],
    settings: SchedulingSettings = DEFAULT_SETTINGS,
) -> Dict[str, List[Booking]]:
    """Busy intervals per ISO date. Days without bookings map to an empty list."""
    bookings = project_bookings(jobs, team_id=team_id, settings=settings)
    by_day: Dict[str, List[Booking]] = {d.isoformat(): [] for d in days}
    for b in bookings:
        key = b.start.date().isoformat()
        if key in by_day:
            by_day[key].append(b)
    return by_day


# --------------- Slot grid ---------------
def _ticks(day: date, settings: SchedulingSettings = DEFAULT_SETTINGS) -> List[datetime]:
    first = datetime.combine(day, settings.workday_start)
    step = timedelta(minutes=settings.slot_minutes)
    return [first + i * step for i in range(settings.slot_count)]


def slots(
    day: date,
    bookings: Sequence[Booking],
    settings: SchedulingSettings = DEFAULT_SETTINGS,
) -> List[Slot]:
    """One entry per tick regardless of how many bookings exist; busy iff tick ∈ [start, end)."""
    out: List[Slot] = []
    for tick in _ticks(day, settings):
        hit = next((b for b in bookings if b.start <= tick < b.end), None)
        out.append(
            Slot(
                time=_hhmm(tick),
                busy=hit is not None,
                job_id=(hit.job_id if hit else None),
                status=(hit.status if hit else None),
            )
        )
    return out


def find_conflicts(candidate: Interval, bookings: Sequence[Booking]) -> List[Booking]:
    return [b for b in bookings if _overlaps(candidate, Interval(b.start, b.end))]


def evaluate_candidates(
    day: date,
    bookings: Sequence[Booking],
    duration_minutes: int,
    settings: SchedulingSettings = DEFAULT_SETTINGS,
) -> Tuple[List[str], List[str]]:
    """
    Test every tick as the start of a job lasting duration_minutes.
    Returns (available, booked) as HH:MM lists. Ticks whose job would run past
    the last slot of the day are out of hours and appear in neither list.
    """
    end_of_day = datetime.combine(day, settings.workday_last_slot)
    length = timedelta(minutes=duration_minutes)
    available: List[str] = []
    booked: List[str] = []
    for tick in _ticks(day, settings):
        candidate = Interval(tick, tick + length)
        if candidate.end > end_of_day:
            continue
        if find_conflicts(candidate, bookings):
            booked.append(_hhmm(tick))
        else:
            available.append(_hhmm(tick))
    return available, booked


# --------------- DB-backed ---------------
def job_snapshot(job: Job) -> JobSnapshot:
    return JobSnapshot(
        id=str(job.id),
        team_id=(str(job.team_id) if job.team_id else None),
        status=JobStatus(job.status),
        planned_date=job.planned_date,
        estimated_duration_minutes=job.estimated_duration_minutes,
        services=[
            ServiceLine(
                service=s.service,
                quantity=s.quantity,
                depth=s.depth,
                execution_time=s.execution_time,
            )
            for s in job.services
        ],
    )


async def load_jobs(
    *,
    date_from: date,
    date_to: date,
    team_id: Optional[str] = None,
) -> List[JobSnapshot]:
    """Active jobs with a planned date inside [date_from, date_to] (whole days)."""
    start_h = datetime.combine(date_from, time.min)
    end_h = datetime.combine(date_to + timedelta(days=1), time.min)
    stmt = select(Job).where(
        Job.status.in_(list(ACTIVE_JOB_STATUSES)),
        Job.planned_date.is_not(None),
        Job.planned_date >= start_h,
        Job.planned_date < end_h,
    )
    if team_id is not None:
        stmt = stmt.where(Job.team_id == _parse_uuid(team_id, "team_id"))
    async with Session() as db:
        rows = (await db.execute(stmt.order_by(Job.planned_date))).scalars().all()
        return [job_snapshot(j) for j in rows]


async def get_team_availability(
    *,
    date_from: date,
    date_to: Optional[date] = None,
    settings: SchedulingSettings = DEFAULT_SETTINGS,
) -> List[dict]:
    """Calendar feed: every active team, busy intervals per day. Defaults to a 7-day window."""
    date_to = date_to or (date_from + timedelta(days=6))
    days = date_range(date_from, date_to)
    async with Session() as db:
        teams = (
            await db.execute(select(Team).where(Team.status == TeamStatus.ativa).order_by(Team.name))
        ).scalars().all()
    jobs = await load_jobs(date_from=date_from, date_to=date_to)

    out = []
    for t in teams:
        out.append(
            {
                "team_id": str(t.id),
                "team_name": t.name,
                "availability": team_availability(jobs, str(t.id), days, settings),
            }
        )
    return out


async def get_team_slots(
    *,
    team_id: str,
    day: date,
    settings: SchedulingSettings = DEFAULT_SETTINGS,
) -> List[Slot]:
    async with Session() as db:
        team = await db.get(Team, _parse_uuid(team_id, "team_id"))
        if team is None:
            raise NotFoundError("Team not found")
    jobs = await load_jobs(date_from=day, date_to=day, team_id=team_id)
    bookings = project_bookings(jobs, team_id=team_id, day=day, settings=settings)
    return slots(day, bookings, settings)


__all__ = [
    "Interval",
    "booking_duration",
    "project_bookings",
    "date_range",
    "team_availability",
    "slots",
    "find_conflicts",
    "evaluate_candidates",
    "job_snapshot",
    "load_jobs",
    "get_team_availability",
    "get_team_slots",
]
