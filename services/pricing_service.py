"""
Pricing engine
--------------
Per-line value/discount/final and the job/budget roll-up.

  value(line)  = quantity · depth · price      when a catalog variation resolves
               = manual override               otherwise (non-catalog / legacy lines)
  final        = value − value · discount% / 100,   discount% ∈ [0, 100]
  job value    = Σ line values + travel price   (travel is never discounted)

As soon as any line carries a value > 0 the top-level value and discount are
derived from the lines and are read-only for the caller.
"""
from __future__ import annotations

from typing import Iterable, Optional, Tuple

from common.errors import ValidationError
from common.models import JobTotals, LineEstimate, PriceVariation, ServiceLine


def _check_percent(discount_percent: Optional[float], field: str = "discount_percent") -> float:
    pct = float(discount_percent or 0.0)
    if pct < 0 or pct > 100:
        raise ValidationError(f"{field} must be within [0, 100], got {pct}", field=field)
    return pct


def service_value(line: ServiceLine, variation: Optional[PriceVariation]) -> Optional[float]:
    if variation is not None:
        return (line.quantity or 0.0) * (line.depth or 0.0) * float(variation.price)
    return line.manual_value


def service_final(value: float, discount_percent: Optional[float]) -> Tuple[float, float]:
    """Return (discount_value, final_value)."""
    pct = _check_percent(discount_percent)
    discount_value = value * pct / 100.0
    return discount_value, value - discount_value


def price_line(line: ServiceLine, variation: Optional[PriceVariation]) -> LineEstimate:
    pct = _check_percent(line.discount_percent)
    value = service_value(line, variation)
    if variation is not None:
        status = "complete"
    elif value is not None:
        status = "manual"
    else:
        status = "incomplete"
    est = LineEstimate(
        status=status,
        value=value,
        discount_percent=pct,
        unit_price=(float(variation.price) if variation is not None else None),
        execution_time=(variation.execution_time if variation is not None else None),
        missing=line.missing_fields(),
    )
    if value is not None:
        est.discount_value, est.final_value = service_final(value, pct)
    return est


def job_totals(
    lines: Iterable[LineEstimate],
    travel_price: Optional[float] = None,
    *,
    manual_value: Optional[float] = None,
    manual_discount_percent: Optional[float] = None,
) -> JobTotals:
    """
    Roll line estimates up into job/budget totals. Incomplete lines (value None)
    are left out, never counted as zero.

    manual_value / manual_discount_percent are the operator-entered top-level
    fields; they only apply while no line carries a value.
    """
    travel = float(travel_price or 0.0)
    if travel < 0:
        raise ValidationError("travel_price must be >= 0", field="travel_price")

    priced = [ln for ln in lines if ln.value is not None]
    services_value = sum(ln.value for ln in priced)
    services_discount = sum(ln.discount_value or 0.0 for ln in priced)

    if services_value > 0:
        value = services_value + travel
        return JobTotals(
            value=value,
            discount_percent=services_discount / services_value * 100.0,
            discount_value=services_discount,
            final_value=value - services_discount,
            services_value=services_value,
            travel_price=travel,
            derived=True,
        )

    pct = _check_percent(manual_discount_percent)
    if manual_value is None and not priced and travel == 0:
        # nothing to price yet
        return JobTotals(
            value=None,
            discount_percent=pct,
            discount_value=0.0,
            final_value=None,
            services_value=0.0,
            travel_price=0.0,
            derived=False,
        )

    base = float(manual_value) if manual_value is not None else 0.0
    if base < 0:
        raise ValidationError("value must be >= 0", field="value")
    discount_value = base * pct / 100.0
    value = base + travel
    return JobTotals(
        value=value,
        discount_percent=pct,
        discount_value=discount_value,
        final_value=value - discount_value,
        services_value=0.0,
        travel_price=travel,
        derived=False,
    )


__all__ = ["service_value", "service_final", "price_line", "job_totals"]
