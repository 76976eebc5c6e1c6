## common/errors.py

from __future__ import annotations
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from common.models import GateResult


class ValidationError(ValueError):
    """Bad input: discount outside [0,100], unknown labels, missing fields on save."""

    def __init__(self, message: str, *, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFoundError(LookupError):
    pass


class NetworkError(RuntimeError):
    """The travel/distance service could not be reached or refused the request."""


class BookingConflictWarning(Exception):
    """
    Advisory: the proposed slot overlaps another booking of the same team.
    Raised on save only when the caller has not confirmed the double-booking.
    """

    def __init__(self, gate: "GateResult"):
        ids = ", ".join(gate.conflicting_job_ids) or "?"
        super().__init__(f"Team {gate.team_id} already booked on {gate.date} (jobs: {ids})")
        self.gate = gate


__all__ = ["ValidationError", "NotFoundError", "NetworkError", "BookingConflictWarning"]
