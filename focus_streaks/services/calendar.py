"""
Calendar provider: timezone-aware conversions between absolute instants and
civil (wall-clock) time in a named IANA zone.

Conventions
-----------
- Instants are timezone-aware datetimes. Naive input is rejected.
- Civil datetimes are naive datetimes interpreted in a given zone.
- Civil days are half-open: [00:00, next day's 00:00). end_of_civil_day()
  therefore returns the start of the following day.

DST policy
----------
Local times produced by DST transitions are resolved with fold=0:
  - nonexistent times (spring-forward gap) are shifted forward by the
    length of the gap, e.g. 02:30 on a US spring-forward day becomes 03:30;
  - ambiguous times (fall-back overlap) resolve to the earlier offset,
    i.e. the first occurrence of the wall-clock time.

None of these functions read the current time.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from focus_streaks.core.errors import InvalidDateError, InvalidTimezoneError

_ONE_MINUTE = timedelta(minutes=1)


@lru_cache(maxsize=512)
def get_zone(tz: str) -> ZoneInfo:
    if not isinstance(tz, str) or not tz.strip():
        raise InvalidTimezoneError(str(tz))
    try:
        return ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidTimezoneError(tz) from exc


def _require_aware(instant: datetime) -> None:
    if not isinstance(instant, datetime):
        raise InvalidDateError(instant, "expected a datetime")
    if instant.tzinfo is None or instant.utcoffset() is None:
        raise InvalidDateError(instant, "instant must be timezone-aware")


def to_civil(instant: datetime, tz: str) -> datetime:
    """Wall-clock time of `instant` in zone `tz`, as a naive datetime."""
    _require_aware(instant)
    return instant.astimezone(get_zone(tz)).replace(tzinfo=None)


def from_civil(civil: datetime, tz: str) -> datetime:
    """Absolute UTC instant for wall-clock `civil` in zone `tz`."""
    if not isinstance(civil, datetime):
        raise InvalidDateError(civil, "expected a datetime")
    if civil.tzinfo is not None:
        raise InvalidDateError(civil, "civil datetime must be naive")
    local = civil.replace(tzinfo=get_zone(tz), fold=0)
    return local.astimezone(timezone.utc)


def start_of_civil_day(civil: datetime) -> datetime:
    return datetime.combine(civil.date(), time.min)


def end_of_civil_day(civil: datetime) -> datetime:
    """Exclusive end of the civil day containing `civil`."""
    return start_of_civil_day(civil) + timedelta(days=1)


def civil_date_of(instant: datetime, tz: str) -> date:
    return to_civil(instant, tz).date()


def calendar_day_diff(a: date, b: date) -> int:
    """Signed number of calendar days from `b` to `a`."""
    return (_as_date(a) - _as_date(b)).days


def minutes_between(a: datetime, b: datetime) -> int:
    """Whole minutes from `a` to `b`, truncated toward zero."""
    _require_aware(a)
    _require_aware(b)
    return int((b - a) / _ONE_MINUTE)


def parse_civil_date(value: str | date) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as exc:
        raise InvalidDateError(value) from exc


def _as_date(value: date) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise InvalidDateError(value, "expected a date")
