# tests/test_normalize.py
from __future__ import annotations

from datetime import date, datetime, timezone
import uuid

import pydantic
import pytest

from api.utils import ServiceLineIn
from common.errors import ValidationError
from common.utils import (
    _date_of,
    _iso,
    _local_dt,
    _parse_uuid,
    normalize_access,
    normalize_diameter,
    normalize_soil_type,
    parse_number,
)
from constants.types import AccessType, SoilType


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("argiloso", SoilType.argiloso),
        ("  Arenoso ", SoilType.arenoso),
        ("Terra comum", SoilType.misturado),
        ("Não sei informar", SoilType.outro),
        (SoilType.rochoso, SoilType.rochoso),
    ],
)
def test_soil_type_labels(raw, expected):
    assert normalize_soil_type(raw) is expected


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("fácil", AccessType.livre),
        ("facil", AccessType.livre),
        ("Médio", AccessType.limitado),
        ("Acesso restrito ou complicado", AccessType.restrito),
    ],
)
def test_access_labels(raw, expected):
    assert normalize_access(raw) is expected


def test_blank_label_is_missing_not_an_error():
    assert normalize_soil_type("  ") is None
    assert normalize_access("") is None
    assert normalize_access(None) is None


def test_unknown_label_is_rejected():
    with pytest.raises(ValidationError) as ei:
        normalize_soil_type("lama")
    assert ei.value.field == "soil_type"
    with pytest.raises(ValidationError):
        normalize_access("impossível")


@pytest.mark.parametrize("raw", ["25cm", "25 cm", "25", " 25CM ", "25.0", "25,00cm", 25, 25.0])
def test_diameter_forms(raw):
    assert normalize_diameter(raw) == 25


@pytest.mark.parametrize("raw", [30.5, 30.9, "30.5cm", "30,9", "30cm40", True])
def test_fractional_diameter_is_never_truncated(raw):
    with pytest.raises(ValidationError) as ei:
        normalize_diameter(raw)
    assert ei.value.field == "diameter"


def test_diameter_blank_and_garbage():
    assert normalize_diameter("") is None
    with pytest.raises(ValidationError):
        normalize_diameter("grande")


def test_decimal_comma():
    assert parse_number("2,5", "depth") == 2.5
    assert parse_number("", "depth") is None
    assert parse_number(3, "quantity") == 3.0
    with pytest.raises(ValidationError) as ei:
        parse_number("dois", "quantity")
    assert ei.value.field == "quantity"


def test_local_datetime_is_naive_wall_clock():
    assert _local_dt("2024-05-01T09:00") == datetime(2024, 5, 1, 9, 0)
    assert _local_dt("2024-05-01 09:00:45") == datetime(2024, 5, 1, 9, 0)
    # 12:00 UTC is 09:00 in São Paulo (UTC-3, no DST since 2019)
    assert _local_dt("2024-05-01T12:00:00Z") == datetime(2024, 5, 1, 9, 0)
    assert _local_dt(datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)) == datetime(2024, 5, 1, 9, 0)
    assert _local_dt("") is None
    with pytest.raises(ValidationError):
        _local_dt("amanhã cedo")


def test_date_of():
    assert _date_of("2024-05-01") == date(2024, 5, 1)
    assert _date_of("2024-05-01T10:00:00") == date(2024, 5, 1)
    with pytest.raises(ValidationError):
        _date_of("01/05/2024")


def test_service_line_schema_normalizes_form_input():
    line = ServiceLineIn(
        service="Estaca",
        catalog_id="  ",
        diameter="30cm",
        soil_type="Terra comum",
        access="fácil",
        quantity="10",
        depth="2,5",
    ).to_line()
    assert line.catalog_id is None
    assert line.diameter == 30
    assert line.soil_type is SoilType.misturado
    assert line.access is AccessType.livre
    assert line.quantity == 10.0
    assert line.depth == 2.5
    assert line.is_complete


def test_service_line_schema_rejects_unknown_labels():
    with pytest.raises(pydantic.ValidationError):
        ServiceLineIn(service="Estaca", soil_type="lama")


@pytest.mark.parametrize("diameter", [30.5, "30.5cm", "30,9"])
def test_service_line_schema_rejects_fractional_diameter(diameter):
    # 30.5 must not be priced with the 30cm variation
    with pytest.raises(pydantic.ValidationError):
        ServiceLineIn(
            service="Estaca",
            diameter=diameter,
            soil_type="argiloso",
            access="livre",
            quantity=10,
            depth=2,
        )


def test_shared_id_and_timestamp_helpers():
    u = uuid.uuid4()
    assert _parse_uuid(str(u), "job_id") == u
    with pytest.raises(ValidationError) as ei:
        _parse_uuid("42", "job_id")
    assert ei.value.field == "job_id"
    assert _iso(datetime(2024, 5, 1, 9, 0)) == "2024-05-01T09:00:00"
    assert _iso(None) is None
