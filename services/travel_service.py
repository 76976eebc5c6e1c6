"""
Travel pricing
--------------
Distance comes from an external distance service (opaque to us: headquarters ->
client address, answers with kilometres). The price comes from an ordered list
of rules; the first rule whose `up_to_km` covers the distance wins, a rule with
no limit matches anything.

  per_km : km · price_per_km     "{km}km × R$ {rate}/km (ida e volta)"
  fixed  : fixed_price           "{description} (ida e volta)"
  no rule: 0                     "{km}km (sem regra de preço configurada)"
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

import httpx
from sqlalchemy import select

from common.config_loader import TravelSettings, travel_settings
from common.errors import NetworkError, ValidationError
from common.models import TravelQuote, TravelRule
from constants.types import TravelPricingType
from db.models import Session, TravelPricingRule

logger = logging.getLogger("drillops")

ROUND_TRIP_SUFFIX = " (ida e volta)"


def _fmt_km(km: float) -> str:
    return f"{km:g}"


def select_rule(distance_km: float, rules: Iterable[TravelRule]) -> Optional[TravelRule]:
    for rule in sorted(rules, key=lambda r: r.order):
        if rule.up_to_km is None or distance_km <= rule.up_to_km:
            return rule
    return None


def price_travel(distance_km: float, rules: Sequence[TravelRule]) -> TravelQuote:
    if distance_km is None or distance_km < 0:
        raise ValidationError("distance_km must be >= 0", field="distance_km")

    rule = select_rule(distance_km, rules)
    if rule is None:
        return TravelQuote(
            distance_km=distance_km,
            travel_price=0.0,
            travel_description=f"{_fmt_km(distance_km)}km (sem regra de preço configurada)",
        )

    suffix = ROUND_TRIP_SUFFIX if rule.round_trip else ""
    if rule.type == TravelPricingType.per_km:
        rate = float(rule.price_per_km or 0.0)
        return TravelQuote(
            distance_km=distance_km,
            travel_price=distance_km * rate,
            travel_description=f"{_fmt_km(distance_km)}km × R$ {rate:.2f}/km{suffix}",
        )
    return TravelQuote(
        distance_km=distance_km,
        travel_price=float(rule.fixed_price or 0.0),
        travel_description=f"{rule.description}{suffix}",
    )


# --------------- distance client ---------------
async def fetch_distance_km(
    destination: str,
    *,
    settings: Optional[TravelSettings] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> float:
    """
    Ask the distance service for the driving distance headquarters -> destination.
    Expects JSON with `distance_km` (or `distance_meters`). Rounded to whole km.
    Transport failures and non-OK answers raise NetworkError; nothing is retried here.
    """
    settings = settings or travel_settings()
    if not settings.distance_service_url:
        raise NetworkError("Distance service URL is not configured")
    if not settings.headquarters_address:
        raise ValidationError("Headquarters address is not configured", field="headquarters_address")

    params = {"origin": settings.headquarters_address, "destination": destination}
    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=settings.timeout_seconds)
    try:
        resp = await client.get(settings.distance_service_url, params=params)
    except httpx.HTTPError as e:
        logger.warning("Distance service unreachable: %s", e)
        raise NetworkError(f"Distance service unreachable: {e}") from e
    finally:
        if owns_client:
            await client.aclose()

    if resp.status_code >= 400:
        logger.warning("Distance service error %s: %s", resp.status_code, resp.text[:200])
        raise NetworkError(f"Distance service answered {resp.status_code}")

    try:
        data = resp.json()
    except ValueError as e:
        raise NetworkError("Distance service returned invalid JSON") from e

    if data.get("distance_km") is not None:
        km = float(data["distance_km"])
    elif data.get("distance_meters") is not None:
        km = float(data["distance_meters"]) / 1000.0
    else:
        raise NetworkError(f"Could not compute route: {data.get('status') or 'no distance'}")
    return float(int(km + 0.5))


# --------------- rules (DB) ---------------
def _rule_from_row(row: TravelPricingRule) -> TravelRule:
    return TravelRule(
        type=TravelPricingType(row.type),
        description=row.description,
        up_to_km=row.up_to_km,
        price_per_km=row.price_per_km,
        fixed_price=row.fixed_price,
        round_trip=row.round_trip,
        order=row.order,
    )


async def load_rules() -> List[TravelRule]:
    async with Session() as db:
        rows = (
            await db.execute(select(TravelPricingRule).order_by(TravelPricingRule.order))
        ).scalars().all()
        return [_rule_from_row(r) for r in rows]


async def create_rule(rule: TravelRule) -> TravelRule:
    if rule.type == TravelPricingType.per_km and not rule.price_per_km:
        raise ValidationError("price_per_km is required for per_km rules", field="price_per_km")
    if rule.type == TravelPricingType.fixed and not rule.fixed_price:
        raise ValidationError("fixed_price is required for fixed rules", field="fixed_price")
    async with Session() as db:
        row = TravelPricingRule(
            type=rule.type,
            description=rule.description.strip(),
            up_to_km=rule.up_to_km,
            price_per_km=rule.price_per_km,
            fixed_price=rule.fixed_price,
            round_trip=rule.round_trip,
            order=rule.order,
        )
        db.add(row)
        await db.commit()
        await db.refresh(row)
        return _rule_from_row(row)


async def quote_travel(
    *,
    address: Optional[str] = None,
    distance_km: Optional[float] = None,
    settings: Optional[TravelSettings] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> TravelQuote:
    """Explicit distance wins; otherwise the distance service is asked for `address`."""
    if distance_km is None:
        if not address or not address.strip():
            raise ValidationError("address or distance_km is required", field="address")
        distance_km = await fetch_distance_km(address.strip(), settings=settings, client=client)
    quote = price_travel(distance_km, await load_rules())
    logger.info("travel quote %skm -> R$ %.2f", _fmt_km(quote.distance_km), quote.travel_price)
    return quote


__all__ = [
    "select_rule",
    "price_travel",
    "fetch_distance_km",
    "load_rules",
    "create_rule",
    "quote_travel",
]
