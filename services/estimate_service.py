"""
Stateless recompute for the job/budget editors.

recompute(draft) -> EstimateResult is pure: same input, same output, no shared
state. The UI calls it on every field change (debounced on its side) and keeps
only the latest answer.
"""
from __future__ import annotations

import logging
from typing import List, Mapping, Optional, Sequence, Tuple

from common.config_loader import DEFAULT_SETTINGS, SchedulingSettings
from common.models import CatalogItem, EstimateResult, PriceVariation, ServiceLine
from services.catalog_service import load_catalog, resolve_variation
from services.duration_service import format_duration, job_duration, round_minutes, service_duration
from services.pricing_service import job_totals, price_line

logger = logging.getLogger("drillops")


def pair_variations(
    lines: Sequence[ServiceLine],
    catalog: Mapping[str, CatalogItem],
) -> List[Tuple[ServiceLine, Optional[PriceVariation]]]:
    """Resolve each line against its catalog item. Incomplete lines get None."""
    out: List[Tuple[ServiceLine, Optional[PriceVariation]]] = []
    for line in lines:
        variation = None
        if line.is_complete and line.catalog_id:
            variation = resolve_variation(
                catalog.get(str(line.catalog_id)), line.diameter, line.soil_type, line.access
            )
        out.append((line, variation))
    return out


def recompute(
    lines: Sequence[ServiceLine],
    catalog: Mapping[str, CatalogItem],
    *,
    travel_price: Optional[float] = None,
    manual_value: Optional[float] = None,
    manual_discount_percent: Optional[float] = None,
    settings: SchedulingSettings = DEFAULT_SETTINGS,
) -> EstimateResult:
    pairs = pair_variations(lines, catalog)

    estimates = []
    for line, variation in pairs:
        est = price_line(line, variation)
        if variation is not None:
            est.duration_minutes = service_duration(line, variation)
        estimates.append(est)

    totals = job_totals(
        estimates,
        travel_price,
        manual_value=manual_value,
        manual_discount_percent=manual_discount_percent,
    )
    minutes = job_duration(pairs, settings)

    incomplete = sum(1 for e in estimates if e.status == "incomplete")
    if incomplete:
        logger.debug("recompute: %d of %d service lines incomplete", incomplete, len(estimates))
    logger.debug("recompute totals:\n%s", totals.summarize())

    return EstimateResult(
        lines=estimates,
        totals=totals,
        duration_minutes=minutes,
        estimated_duration_minutes=round_minutes(minutes),
        duration_text=format_duration(minutes),
    )


async def recompute_with_catalog(
    lines: Sequence[ServiceLine],
    *,
    travel_price: Optional[float] = None,
    manual_value: Optional[float] = None,
    manual_discount_percent: Optional[float] = None,
    settings: SchedulingSettings = DEFAULT_SETTINGS,
) -> EstimateResult:
    """Same as recompute(), reading the referenced catalog items from the database first."""
    catalog = await load_catalog(line.catalog_id for line in lines)
    return recompute(
        lines,
        catalog,
        travel_price=travel_price,
        manual_value=manual_value,
        manual_discount_percent=manual_discount_percent,
        settings=settings,
    )


__all__ = ["pair_variations", "recompute", "recompute_with_catalog"]
