"""Validation for client-reported session input."""

import math
from decimal import Decimal
from numbers import Real
from typing import Any

from pomotrack.core.errors import InvalidDurationError, InvalidSessionKindError
from pomotrack.models.session import SESSION_KINDS

MAX_SESSION_SECONDS = 12 * 3600


def _coerce_number(raw: Any) -> float:
    # bool is an int subclass; True must not mean one second
    if isinstance(raw, bool) or raw is None:
        raise InvalidDurationError("Invalid duration (expected seconds)")
    if isinstance(raw, str):
        try:
            return float(raw.strip())
        except ValueError:
            raise InvalidDurationError("Invalid duration (expected seconds)")
    if isinstance(raw, (Real, Decimal)):
        try:
            return float(raw)
        except (OverflowError, ValueError):
            raise InvalidDurationError("Invalid duration (expected seconds)")
    raise InvalidDurationError("Invalid duration (expected seconds)")


def normalize_duration(raw: Any) -> int:
    """Coerce a client duration to whole seconds.

    The value is always read as seconds. It is rounded half-up and must land
    in (0, MAX_SESSION_SECONDS].
    """
    value = _coerce_number(raw)
    if not math.isfinite(value) or value <= 0:
        raise InvalidDurationError("Invalid duration (expected a positive number of seconds)")

    seconds = int(math.floor(value + 0.5))
    if seconds <= 0:
        raise InvalidDurationError("Invalid duration (rounds to zero seconds)")
    if seconds > MAX_SESSION_SECONDS:
        raise InvalidDurationError(f"Invalid duration (max {MAX_SESSION_SECONDS} seconds per session)")
    return seconds


def validate_kind(raw: Any) -> str:
    if not isinstance(raw, str) or raw not in SESSION_KINDS:
        raise InvalidSessionKindError(f"Invalid type: must be one of {', '.join(SESSION_KINDS)}")
    return raw
