"""Duration and session kind validation."""

import math
from decimal import Decimal

import pytest

from pomotrack.core.errors import InvalidDurationError, InvalidSessionKindError, ValidationError
from pomotrack.features.sessions.validators import MAX_SESSION_SECONDS, normalize_duration, validate_kind


@pytest.mark.parametrize(
    "raw,expected",
    [
        (1500, 1500),
        (1, 1),
        (1.5, 2),
        (2.49, 2),
        (0.5, 1),
        ("1500", 1500),
        (" 300 ", 300),
        (Decimal("59.5"), 60),
        (43200, 43200),
        (43200.4, 43200),
    ],
)
def test_accepts_and_rounds_half_up(raw, expected):
    assert normalize_duration(raw) == expected


@pytest.mark.parametrize(
    "raw",
    [0, -5, 50000, 43200.5, 0.4, math.nan, math.inf, -math.inf, True, False, None, "abc", "", [1500], {"s": 1}, int("9" * 400), Decimal("sNaN")],
)
def test_rejects_unusable_values(raw):
    with pytest.raises(InvalidDurationError) as exc:
        normalize_duration(raw)
    assert exc.value.code == "invalid_duration"
    assert exc.value.status_code == 400


def test_cap_is_twelve_hours():
    assert MAX_SESSION_SECONDS == 43200


def test_invalid_duration_is_a_validation_error():
    assert issubclass(InvalidDurationError, ValidationError)


@pytest.mark.parametrize("kind", ["focus", "break"])
def test_kind_accepted(kind):
    assert validate_kind(kind) == kind


@pytest.mark.parametrize("kind", ["Focus", "nap", "", None, 1])
def test_kind_rejected(kind):
    with pytest.raises(InvalidSessionKindError) as exc:
        validate_kind(kind)
    assert exc.value.code == "invalid_session_kind"
