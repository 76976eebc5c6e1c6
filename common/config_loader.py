# common/config_loader.py
import os
import yaml
import logging
from dataclasses import dataclass
from datetime import time
from pathlib import Path
from typing import Any, Dict, Optional

_log = logging.getLogger("drillops")

def load_config() -> Dict[str, Any]:
    """Load YAML from CONFIG_PATH or ./config.yaml, with safe defaults."""
    config_path = Path(os.getenv("CONFIG_PATH", "config.yaml"))
    if not config_path.exists():
        _log.warning("Config file not found at %s. Using built-in defaults.", config_path)
        return {}
    try:
        with config_path.open("r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except Exception as e:  # noqa: BLE001
        _log.error("Failed to parse %s: %s. Using built-in defaults.", config_path, e)
        return {}

def cfg_get(d: Dict[str, Any], path: str, default=None):
    """Safely fetch a nested key via dotted path, e.g. cfg_get(cfg, 'scheduling.slot_minutes')."""
    cur = d
    for part in path.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return default
        cur = cur[part]
    return cur


def _hhmm(value: Any, default: time) -> time:
    if isinstance(value, time):
        return value
    try:
        h, m = str(value).strip().split(":")
        return time(int(h), int(m))
    except (ValueError, AttributeError):
        _log.warning("Invalid HH:MM value %r in config. Using %s.", value, default.strftime("%H:%M"))
        return default


@dataclass(frozen=True)
class SchedulingSettings:
    workday_start: time = time(6, 0)
    workday_last_slot: time = time(19, 30)
    slot_minutes: int = 30
    setup_buffer_minutes: int = 30
    default_job_duration_minutes: int = 120
    timezone: str = "America/Sao_Paulo"

    @property
    def slot_count(self) -> int:
        start = self.workday_start.hour * 60 + self.workday_start.minute
        last = self.workday_last_slot.hour * 60 + self.workday_last_slot.minute
        return (last - start) // self.slot_minutes + 1


@dataclass(frozen=True)
class TravelSettings:
    headquarters_address: Optional[str] = None
    distance_service_url: Optional[str] = None
    timeout_seconds: float = 10.0


DEFAULT_SETTINGS = SchedulingSettings()


def scheduling_settings(cfg: Optional[Dict[str, Any]] = None) -> SchedulingSettings:
    cfg = load_config() if cfg is None else cfg
    d = DEFAULT_SETTINGS
    return SchedulingSettings(
        workday_start=_hhmm(cfg_get(cfg, "scheduling.workday_start"), d.workday_start),
        workday_last_slot=_hhmm(cfg_get(cfg, "scheduling.workday_last_slot"), d.workday_last_slot),
        slot_minutes=int(cfg_get(cfg, "scheduling.slot_minutes", d.slot_minutes)),
        setup_buffer_minutes=int(cfg_get(cfg, "scheduling.setup_buffer_minutes", d.setup_buffer_minutes)),
        default_job_duration_minutes=int(
            cfg_get(cfg, "scheduling.default_job_duration_minutes", d.default_job_duration_minutes)
        ),
        timezone=str(cfg_get(cfg, "scheduling.timezone", d.timezone)),
    )


def travel_settings(cfg: Optional[Dict[str, Any]] = None) -> TravelSettings:
    cfg = load_config() if cfg is None else cfg
    return TravelSettings(
        headquarters_address=cfg_get(cfg, "travel.headquarters_address"),
        distance_service_url=os.getenv("DISTANCE_SERVICE_URL") or cfg_get(cfg, "travel.distance_service_url"),
        timeout_seconds=float(cfg_get(cfg, "travel.timeout_seconds", 10.0)),
    )
