## common/utils.py

import logging
import re
import uuid
from datetime import date, datetime, time
from zoneinfo import ZoneInfo
from typing import Optional, Union

from common.errors import ValidationError
from constants.labels import ACCESS_SYNONYMS, SOIL_TYPE_SYNONYMS
from constants.types import AccessType, SoilType

logger = logging.getLogger("drillops")

# '30', '30cm', '30 CM', '30.0', '30,00cm'
_DIAMETER_RE = re.compile(r"^(\d+)(?:[.,]0+)?\s*(?:cm)?$", re.IGNORECASE)


def _local_dt(s: Optional[Union[str, datetime]], tz: str = "America/Sao_Paulo") -> Optional[datetime]:
    """
    Parse s into a naive wall-clock datetime in the company timezone.
    Accepts:
      - datetime (naive is kept as-is; tz-aware is converted to `tz`)
      - ISO strings (with or without 'Z' / offset)
      - 'YYYY-MM-DD HH:MM' / 'YYYY-MM-DDTHH:MM' / 'YYYY-MM-DD HH:MM:SS'
    Planned dates are entered as local time by operators, so naive input is never shifted.
    """
    if s is None or s == "":
        return None

    if isinstance(s, datetime):
        dt = s
    else:
        s2 = str(s).strip()
        if s2.endswith("Z"):
            s2 = s2[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(s2)
        except ValueError:
            for fmt in ("%Y-%m-%d %H:%M", "%Y-%m-%dT%H:%M", "%Y-%m-%d %H:%M:%S"):
                try:
                    dt = datetime.strptime(s2, fmt)
                    break
                except ValueError:
                    continue
            else:
                raise ValidationError(f"Unparseable datetime: {s!r}", field="planned_date")

    if dt.tzinfo is not None:
        dt = dt.astimezone(ZoneInfo(tz)).replace(tzinfo=None)
    return dt.replace(second=0, microsecond=0)


def _date_of(s: Union[str, date, datetime]) -> date:
    if isinstance(s, datetime):
        return s.date()
    if isinstance(s, date):
        return s
    m = re.match(r"^(\d{4}-\d{2}-\d{2})", str(s).strip())
    if not m:
        raise ValidationError(f"Invalid date {s!r}. Expected YYYY-MM-DD.", field="date")
    return datetime.strptime(m.group(1), "%Y-%m-%d").date()


def _hhmm(dt: Union[datetime, time]) -> str:
    return dt.strftime("%H:%M")


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if isinstance(dt, datetime) else None


def _parse_uuid(value: str, field: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        raise ValidationError(f"{field} must be a UUID", field=field) from None


# ---------- boundary normalization ----------
def normalize_soil_type(value: Optional[Union[str, SoilType]]) -> Optional[SoilType]:
    if value is None or isinstance(value, SoilType):
        return value
    key = str(value).strip().lower()
    if not key:
        return None
    try:
        return SOIL_TYPE_SYNONYMS[key]
    except KeyError:
        raise ValidationError(f"Unknown soil type {value!r}", field="soil_type") from None


def normalize_access(value: Optional[Union[str, AccessType]]) -> Optional[AccessType]:
    if value is None or isinstance(value, AccessType):
        return value
    key = str(value).strip().lower()
    if not key:
        return None
    try:
        return ACCESS_SYNONYMS[key]
    except KeyError:
        raise ValidationError(f"Unknown access type {value!r}", field="access") from None


def normalize_diameter(value: Optional[Union[str, int, float]]) -> Optional[int]:
    """
    '25cm', '25 cm', '25' and 25 all become 25. Blank becomes None.
    Only whole centimetres: 30.5 or '30,9cm' is rejected, never truncated to 30.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"Invalid diameter {value!r}", field="diameter")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"Diameter must be a whole number of cm: {value!r}", field="diameter")
        return int(value)
    s = str(value).strip()
    if not s:
        return None
    m = _DIAMETER_RE.match(s)
    if not m:
        raise ValidationError(f"Invalid diameter {value!r}", field="diameter")
    return int(m.group(1))


def parse_number(value: Optional[Union[str, int, float]], field: str) -> Optional[float]:
    """Quantities and depths arrive as form strings, sometimes with a decimal comma."""
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    s = str(value).strip().replace(",", ".")
    if not s:
        return None
    try:
        return float(s)
    except ValueError:
        raise ValidationError(f"Invalid number {value!r}", field=field) from None


__all__ = [
    "_local_dt",
    "_date_of",
    "_hhmm",
    "_iso",
    "_parse_uuid",
    "normalize_soil_type",
    "normalize_access",
    "normalize_diameter",
    "parse_number",
]
