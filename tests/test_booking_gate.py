# tests/test_booking_gate.py
from __future__ import annotations

from datetime import date, datetime

import pytest

from common.models import JobSnapshot, ServiceLine
from constants.types import AccessType, JobStatus, SoilType
from db.models import Job
from services.booking_service import check_availability, check_booking

DAY = date(2024, 5, 1)
TEAM = "team-a"

# Existing booking 08:00-10:00 on 2024-05-01
EXISTING = JobSnapshot(
    id="J",
    team_id=TEAM,
    status=JobStatus.pendente,
    planned_date=datetime(2024, 5, 1, 8, 0),
    estimated_duration_minutes=120,
)


def _gate(planned: datetime, minutes, exclude=None):
    return check_booking(
        team_id=TEAM,
        day=DAY,
        jobs=[EXISTING],
        duration_minutes=minutes,
        planned=planned,
        exclude_job_id=exclude,
    )


def test_overlapping_planned_time_is_a_conflict():
    gate = _gate(datetime(2024, 5, 1, 9, 0), 60)
    assert gate.conflict is True
    assert gate.conflicting_job_ids == ["J"]
    assert "09:00" in gate.booked


def test_free_planned_time_is_not_a_conflict_and_listed_available():
    gate = _gate(datetime(2024, 5, 1, 11, 0), 60)
    assert gate.conflict is False
    assert "11:00" in gate.available
    assert gate.duration_text == "1h"


def test_back_to_back_is_allowed():
    assert _gate(datetime(2024, 5, 1, 10, 0), 60).conflict is False
    assert _gate(datetime(2024, 5, 1, 7, 0), 60).conflict is False


def test_editing_a_job_never_conflicts_with_itself():
    gate = _gate(datetime(2024, 5, 1, 8, 0), 120, exclude="J")
    assert gate.conflict is False
    assert "08:00" in gate.available


def test_missing_duration_uses_the_default_job_length():
    gate = _gate(datetime(2024, 5, 1, 10, 30), None)
    assert gate.duration_minutes == 120
    assert gate.duration_is_default is True
    assert gate.duration_text == "2h"
    assert gate.available[-1] == "17:30"


def test_gate_without_planned_time_only_lists_slots():
    gate = check_booking(team_id=TEAM, day=DAY, jobs=[EXISTING], duration_minutes=60)
    assert gate.conflict is False
    assert gate.booked == ["07:30", "08:00", "08:30", "09:00", "09:30"]
    assert gate.team_id == TEAM and gate.date == DAY


def test_gate_is_idempotent():
    planned = datetime(2024, 5, 1, 9, 0)
    assert _gate(planned, 90) == _gate(planned, 90)


# ----------------------------- DB-backed -----------------------------
async def _add_job(db_sessionmaker, team, planned, minutes=120, status=JobStatus.pendente) -> str:
    async with db_sessionmaker() as db:
        j = Job(
            seq=1,
            title="seed",
            team_id=team.id,
            status=status,
            planned_date=planned,
            estimated_duration_minutes=minutes,
        )
        db.add(j)
        await db.commit()
        return str(j.id)


@pytest.mark.asyncio
async def test_check_availability_recomputes_duration_from_services(db_sessionmaker, team, catalog_item):
    existing = await _add_job(db_sessionmaker, team, datetime(2024, 5, 1, 8, 0))
    services = [
        ServiceLine(
            service="Estaca",
            catalog_id=catalog_item.id,
            diameter=30,
            soil_type=SoilType.argiloso,
            access=AccessType.livre,
            quantity=10,
            depth=2,
        )
    ]  # 60 min + 30 buffer

    gate = await check_availability(
        team_id=str(team.id),
        services=services,
        planned_date="2024-05-01T09:00",
    )
    assert gate.duration_minutes == 90
    assert gate.duration_text == "1h 30min"
    assert gate.conflict is True
    assert gate.conflicting_job_ids == [existing]

    edit = await check_availability(
        team_id=str(team.id),
        services=services,
        planned_date="2024-05-01T08:00",
        job_id=existing,
    )
    assert edit.conflict is False


@pytest.mark.asyncio
async def test_finished_jobs_free_their_slot(db_sessionmaker, team):
    await _add_job(db_sessionmaker, team, datetime(2024, 5, 1, 8, 0), status=JobStatus.concluida)
    gate = await check_availability(team_id=str(team.id), planned_date="2024-05-01 08:00")
    assert gate.conflict is False
    assert gate.booked == []


@pytest.mark.asyncio
async def test_other_teams_do_not_block(db_sessionmaker, team, other_team):
    await _add_job(db_sessionmaker, other_team, datetime(2024, 5, 1, 8, 0))
    gate = await check_availability(team_id=str(team.id), day="2024-05-01")
    assert gate.booked == []
    assert len(gate.available) == 24  # 06:00..17:30 for the 2h default
