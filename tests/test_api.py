# tests/test_api.py
from __future__ import annotations

import json
import uuid

import httpx
import pytest
import pytest_asyncio

from api.main import app

pytestmark = pytest.mark.asyncio

ESTACA = {
    "service": "Estaca escavada",
    "diameter": "30cm",
    "soil_type": "Argiloso",
    "access": "fácil",
    "quantity": "10",
    "depth": "2",
}


@pytest_asyncio.fixture
async def client(db_sessionmaker):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


def _line(catalog_item, **kw):
    return {**ESTACA, "catalog_id": catalog_item.id, **kw}


async def test_health(client):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json()["ok"] is True


async def test_variation_lookup(client, catalog_item):
    r = await client.get(
        f"/catalog/{catalog_item.id}/variation",
        params={"diameter": "30", "soil_type": "argiloso", "access": "livre"},
    )
    assert r.status_code == 200
    assert r.json()["variation"]["price"] == 50.0

    miss = await client.get(
        f"/catalog/{catalog_item.id}/variation",
        params={"diameter": "33", "soil_type": "argiloso", "access": "livre"},
    )
    assert miss.status_code == 200
    assert miss.json()["variation"] is None

    gone = await client.get(f"/catalog/{uuid.uuid4()}/variation")
    assert gone.status_code == 404

    fractional = await client.get(
        f"/catalog/{catalog_item.id}/variation",
        params={"diameter": "30.5", "soil_type": "argiloso", "access": "livre"},
    )
    assert fractional.status_code == 400
    assert fractional.json()["field"] == "diameter"


async def test_recompute_rejects_fractional_diameter(client, catalog_item):
    r = await client.post(
        "/estimates/recompute",
        json={"services": [_line(catalog_item, diameter=30.5)]},
    )
    assert r.status_code == 422


async def test_recompute(client, catalog_item):
    r = await client.post(
        "/estimates/recompute",
        json={"services": [_line(catalog_item, discount_percent=10)], "travel_price": 50},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["lines"][0]["status"] == "complete"
    assert body["totals"]["value"] == pytest.approx(1050.0)
    assert body["totals"]["final_value"] == pytest.approx(950.0)
    assert body["duration_text"] == "1h 30min"


async def test_availability_echoes_team_and_date(client, team, catalog_item):
    r = await client.get(
        "/jobs/availability",
        params={
            "team": str(team.id),
            "date": "2024-05-01",
            "services": json.dumps([_line(catalog_item)]),
        },
    )
    assert r.status_code == 200
    body = r.json()
    assert body["team_id"] == str(team.id)
    assert body["date"] == "2024-05-01"
    assert body["estimatedDuration"] == 90
    assert body["durationText"] == "1h 30min"
    assert body["durationIsDefault"] is False
    assert body["booked"] == []
    assert body["available"][0] == "06:00"

    bad = await client.get(
        "/jobs/availability",
        params={"team": str(team.id), "date": "2024-05-01", "services": "not json"},
    )
    assert bad.status_code == 400


async def test_job_conflict_flow(client, team, catalog_item):
    payload = {
        "client_name": "Construtora X",
        "team_id": str(team.id),
        "planned_date": "2024-05-01T08:00",
        "services": [_line(catalog_item)],
    }
    first = await client.post("/jobs", json=payload)
    assert first.status_code == 201
    job = first.json()
    assert job["title"] == "Construtora X - 01/05/2024 08:00 - 000001"

    check = await client.post(
        "/jobs/booking-check",
        json={"team_id": str(team.id), "planned_date": "2024-05-01T09:00", "services": [_line(catalog_item)]},
    )
    assert check.status_code == 200
    assert check.json()["conflict"] is True
    assert check.json()["conflictingJobIds"] == [job["id"]]

    clash = await client.post("/jobs", json={**payload, "planned_date": "2024-05-01T09:00"})
    assert clash.status_code == 409
    assert clash.json()["gate"]["conflictingJobIds"] == [job["id"]]

    forced = await client.post(
        "/jobs", json={**payload, "planned_date": "2024-05-01T09:00", "confirm_conflict": True}
    )
    assert forced.status_code == 201

    same_slot = await client.put(f"/jobs/{job['id']}", json={**payload, "notes": "trazer água"})
    assert same_slot.status_code == 409  # the forced job now overlaps it

    slots = await client.get(f"/teams/{team.id}/slots", params={"date": "2024-05-01"})
    assert slots.status_code == 200
    assert len(slots.json()) == 28


async def test_job_errors(client, catalog_item):
    unknown_team = await client.post(
        "/jobs", json={"team_id": str(uuid.uuid4()), "services": [_line(catalog_item)]}
    )
    assert unknown_team.status_code == 400
    assert unknown_team.json()["field"] == "team_id"

    bad_discount = await client.post("/jobs", json={"services": [_line(catalog_item, discount_percent=150)]})
    assert bad_discount.status_code == 422

    no_services = await client.post("/jobs", json={"services": []})
    assert no_services.status_code == 422

    missing = await client.get(f"/jobs/{uuid.uuid4()}")
    assert missing.status_code == 404


async def test_budget_convert(client, team, catalog_item):
    r = await client.post("/budgets", json={"client_name": "Cliente Y", "services": [_line(catalog_item)]})
    assert r.status_code == 201
    budget = r.json()
    assert budget["title"] == "Orçamento Cliente Y - ORC000001"

    conv = await client.post(
        f"/budgets/{budget['id']}/convert",
        json={"team_id": str(team.id), "planned_date": "2024-05-02T07:00"},
    )
    assert conv.status_code == 200
    assert conv.json()["budget"]["status"] == "convertido"

    again = await client.post(
        f"/budgets/{budget['id']}/convert",
        json={"team_id": str(team.id), "planned_date": "2024-05-03T07:00"},
    )
    assert again.status_code == 400


async def test_travel_quote(client):
    r = await client.post("/travel/quote", json={"distance_km": 12})
    assert r.status_code == 200
    assert r.json() == {
        "distanceKm": 12.0,
        "travelPrice": 0.0,
        "travelDescription": "12km (sem regra de preço configurada)",
    }
