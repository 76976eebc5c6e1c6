from __future__ import annotations

import math
from typing import Iterable, Optional, Sequence, Tuple

from common.config_loader import DEFAULT_SETTINGS, SchedulingSettings
from common.models import PriceVariation, ServiceLine


def service_duration(line: ServiceLine, variation: Optional[PriceVariation]) -> float:
    """quantity · depth · minutes-per-meter; 0 without a variation or with non-positive quantity/depth."""
    if variation is None or not variation.execution_time:
        return 0.0
    qty = line.quantity or 0.0
    depth = line.depth or 0.0
    if qty <= 0 or depth <= 0:
        return 0.0
    return qty * depth * float(variation.execution_time)


def job_duration(
    lines: Iterable[Tuple[ServiceLine, Optional[PriceVariation]]],
    settings: SchedulingSettings = DEFAULT_SETTINGS,
) -> Optional[float]:
    """
    Sum of service durations plus the setup buffer (only when the sum is > 0).
    Lines without a resolved variation are skipped. Returns None when no line
    resolved at all, so "no data" never reads as a zero-minute job.
    """
    total = 0.0
    resolved = 0
    for line, variation in lines:
        if variation is None:
            continue
        resolved += 1
        total += service_duration(line, variation)
    if not resolved:
        return None
    if total > 0:
        total += settings.setup_buffer_minutes
    return total


def legacy_duration(
    services: Sequence[ServiceLine],
    settings: SchedulingSettings = DEFAULT_SETTINGS,
) -> Optional[float]:
    """
    Duration of a stored job that predates estimated_duration_minutes, from the
    execution_time snapshots on its lines. Unparseable quantity/depth count as 1.
    """
    total = 0.0
    for s in services:
        if s.execution_time and s.quantity:
            qty = s.quantity if s.quantity > 0 else 1.0
            depth = s.depth if s.depth and s.depth > 0 else 1.0
            total += float(s.execution_time) * qty * depth
    if total <= 0:
        return None
    return total + settings.setup_buffer_minutes


def round_minutes(minutes: Optional[float]) -> Optional[int]:
    if minutes is None:
        return None
    # half-up; Python's round() would send 90.5 to 90
    return int(math.floor(minutes + 0.5))


def format_duration(minutes: Optional[float]) -> Optional[str]:
    """120 -> '2h', 150 -> '2h 30min', 45 -> '45min'."""
    m = round_minutes(minutes)
    if m is None:
        return None
    hours, rest = divmod(m, 60)
    if hours > 0:
        return f"{hours}h" + (f" {rest}min" if rest > 0 else "")
    return f"{rest}min"


__all__ = [
    "service_duration",
    "job_duration",
    "legacy_duration",
    "round_minutes",
    "format_duration",
]
