"""Date arithmetic and leave-balance formulas.

Everything here is pure: no store access, no clock. Callers pass ``today`` or
``now`` explicitly so the results are deterministic under test.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

_ONE_DAY = timedelta(days=1)
_SATURDAY = 5

FULL_ANNUAL_ENTITLEMENT = 21

# Share of earned days that go to each bucket; personal takes the remainder.
_ANNUAL_SHARE = Decimal("0.6")
_SICK_SHARE = Decimal("0.3")


@dataclass(frozen=True)
class AccrualSplit:
    """Leave earned from elapsed employment time."""

    days_since_hire: int
    leave_days_earned: int
    annual: int
    sick: int
    personal: int


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def normalize_timestamp(value: Any) -> datetime:
    """Coerce any supported timestamp representation to an aware UTC datetime.

    Accepts datetimes, dates, ISO-8601 strings, epoch seconds, and store-native
    ``{"seconds": n, "nanoseconds": m}`` mappings.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    if isinstance(value, bool):
        msg = f"Unsupported timestamp value: {value!r}"
        raise ValueError(msg)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=UTC)
    if isinstance(value, dict) and "seconds" in value:
        seconds = value["seconds"] + value.get("nanoseconds", 0) / 1_000_000_000
        return datetime.fromtimestamp(seconds, tz=UTC)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    msg = f"Unsupported timestamp value: {value!r}"
    raise ValueError(msg)


def normalize_date(value: Any) -> date:
    """Coerce any supported date representation to a calendar date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and len(value.strip()) == 10:
        return date.fromisoformat(value.strip())
    return normalize_timestamp(value).date()


def parse_optional_date(value: Any) -> date | None:
    """Like :func:`normalize_date` but returns None for missing or unparseable input."""
    if value is None or value == "":
        return None
    try:
        return normalize_date(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring unparseable date value %r", value)
        return None


# ---------------------------------------------------------------------------
# Calendar helpers
# ---------------------------------------------------------------------------


def is_weekend(day: date) -> bool:
    return day.weekday() >= _SATURDAY


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every calendar date from start to end inclusive."""
    current = start
    while current <= end:
        yield current
        current += _ONE_DAY


def business_days_between(start: date, end: date) -> int:
    """Count Monday-Friday dates in the closed interval [start, end].

    A reversed range counts zero days.
    """
    return sum(1 for day in iter_days(start, end) if not is_weekend(day))


def next_business_day_after(day: date) -> date:
    candidate = day + _ONE_DAY
    while is_weekend(candidate):
        candidate += _ONE_DAY
    return candidate


# ---------------------------------------------------------------------------
# Entitlement and accrual
# ---------------------------------------------------------------------------


def prorated_annual_entitlement(
    hire_date: date,
    today: date,
    full_entitlement: int = FULL_ANNUAL_ENTITLEMENT,
) -> int:
    """Annual leave for the current year given a hire date.

    Hired in an earlier year: the full entitlement. Hired this year: the
    entitlement scaled by the months remaining including the hire month,
    rounded half-up and never below one day.
    """
    if hire_date.year < today.year:
        return full_entitlement

    months_remaining = 12 - (hire_date.month - 1)
    prorated = (Decimal(full_entitlement) / 12 * months_remaining).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return max(1, int(prorated))


def accrual_from_elapsed_days(hire_date: date | None, now: datetime) -> AccrualSplit:
    """Leave earned at one day per two days employed.

    Earned days are split 60/30 between annual and sick (each floored) and the
    remainder goes to personal, so the three always sum to the earned total.
    A missing hire date or one in the future earns nothing.
    """
    if hire_date is None:
        return AccrualSplit(days_since_hire=0, leave_days_earned=0, annual=0, sick=0, personal=0)

    hired_at = datetime(hire_date.year, hire_date.month, hire_date.day, tzinfo=UTC)
    days_since_hire = max(0, (normalize_timestamp(now) - hired_at).days)
    earned = days_since_hire // 2

    annual = int(earned * _ANNUAL_SHARE)
    sick = int(earned * _SICK_SHARE)
    personal = earned - annual - sick

    return AccrualSplit(
        days_since_hire=days_since_hire,
        leave_days_earned=earned,
        annual=annual,
        sick=sick,
        personal=personal,
    )
