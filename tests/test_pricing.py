# tests/test_pricing.py
from __future__ import annotations

import pytest

from common.errors import ValidationError
from common.models import CatalogItem, LineEstimate, PriceVariation, ServiceLine
from constants.types import AccessType, SoilType
from services.estimate_service import recompute
from services.pricing_service import job_totals, price_line, service_final, service_value

PV = PriceVariation(30, SoilType.argiloso, AccessType.livre, 50.0, 3.0)


def _line(**kw) -> ServiceLine:
    base = dict(
        service="Estaca",
        catalog_id="c1",
        diameter=30,
        soil_type=SoilType.argiloso,
        access=AccessType.livre,
        quantity=10.0,
        depth=2.0,
    )
    base.update(kw)
    return ServiceLine(**base)


def _priced(value: float, pct: float = 0.0) -> LineEstimate:
    dv, final = service_final(value, pct)
    return LineEstimate(status="manual", value=value, discount_percent=pct, discount_value=dv, final_value=final)


# ----------------------------- per line -----------------------------
def test_value_is_qty_depth_price():
    assert service_value(_line(), PV) == pytest.approx(1000.0)


def test_manual_override_without_variation():
    assert service_value(_line(manual_value=321.0), None) == 321.0
    assert service_value(_line(), None) is None


def test_service_final():
    assert service_final(1000.0, 10) == (pytest.approx(100.0), pytest.approx(900.0))
    assert service_final(1000.0, 0) == (0.0, 1000.0)
    assert service_final(1000.0, 100) == (pytest.approx(1000.0), pytest.approx(0.0))


@pytest.mark.parametrize("pct", [-0.01, 100.01, 150])
def test_discount_outside_range_is_rejected(pct):
    with pytest.raises(ValidationError) as ei:
        service_final(100.0, pct)
    assert ei.value.field == "discount_percent"


def test_price_line_statuses():
    assert price_line(_line(), PV).status == "complete"
    assert price_line(_line(manual_value=10.0), None).status == "manual"

    inc = price_line(_line(depth=None), None)
    assert inc.status == "incomplete"
    assert inc.value is None and inc.final_value is None
    assert inc.missing == ["depth"]


def test_price_line_snapshot_fields():
    est = price_line(_line(discount_percent=10), PV)
    assert est.value == pytest.approx(1000.0)
    assert est.discount_value == pytest.approx(100.0)
    assert est.final_value == pytest.approx(900.0)
    assert est.unit_price == 50.0
    assert est.execution_time == 3.0


# ----------------------------- roll-up -----------------------------
def test_aggregate_discount_percent_is_derived():
    totals = job_totals([_priced(100, 10), _priced(200, 0)])
    assert totals.discount_percent == pytest.approx(10 / 300 * 100)
    assert totals.discount_percent == pytest.approx(3.33, abs=0.01)
    assert totals.final_value == pytest.approx(290.0)
    assert totals.derived is True


def test_travel_is_added_but_never_discounted():
    totals = job_totals([_priced(100, 10), _priced(200, 0)], travel_price=50)
    assert totals.value == pytest.approx(350.0)
    assert totals.discount_value == pytest.approx(10.0)
    assert totals.final_value == pytest.approx(340.0)
    assert totals.services_value == pytest.approx(300.0)


def test_incomplete_lines_are_excluded_not_zeroed():
    inc = LineEstimate(status="incomplete")
    totals = job_totals([_priced(100, 0), inc])
    assert totals.value == pytest.approx(100.0)


def test_derived_totals_ignore_manual_fields():
    totals = job_totals([_priced(100, 0)], manual_value=999, manual_discount_percent=50)
    assert totals.value == pytest.approx(100.0)
    assert totals.discount_percent == 0.0
    assert totals.derived is True


def test_no_data_is_not_zero():
    totals = job_totals([LineEstimate(status="incomplete")])
    assert totals.value is None
    assert totals.final_value is None
    assert totals.derived is False


def test_manual_top_level_value_when_no_line_has_value():
    totals = job_totals([], travel_price=20, manual_value=500, manual_discount_percent=10)
    assert totals.value == pytest.approx(520.0)
    assert totals.discount_value == pytest.approx(50.0)
    assert totals.final_value == pytest.approx(470.0)
    assert totals.derived is False


def test_manual_discount_is_validated():
    with pytest.raises(ValidationError):
        job_totals([], manual_value=100, manual_discount_percent=120)


def test_job_totals_is_idempotent():
    lines = [_priced(123.45, 7.5), _priced(67.8, 0)]
    assert job_totals(lines, 33.3) == job_totals(lines, 33.3)


# ----------------------------- recompute -----------------------------
def test_recompute_end_to_end(catalog_variations):
    catalog = {"c1": CatalogItem(id="c1", name="Estaca", price_variations=catalog_variations)}
    lines = [
        _line(),  # 1000, 60 min
        _line(diameter=33),  # no such diameter -> incomplete
        _line(catalog_id=None, service="Mobilização", manual_value=200.0, diameter=None),
    ]
    est = recompute(lines, catalog, travel_price=80)

    assert [ln.status for ln in est.lines] == ["complete", "incomplete", "manual"]
    assert est.lines[0].duration_minutes == pytest.approx(60.0)
    assert est.totals.value == pytest.approx(1280.0)
    assert est.totals.final_value == pytest.approx(1280.0)
    assert est.duration_minutes == pytest.approx(90.0)
    assert est.estimated_duration_minutes == 90
    assert est.duration_text == "1h 30min"


def test_recompute_without_complete_lines_has_no_duration():
    est = recompute([_line(depth=None)], {})
    assert est.duration_minutes is None
    assert est.duration_text is None
    assert est.totals.value is None
