"""Day boundaries and window bounds.

Timestamps are stored as naive UTC. Calendar days are cut at local midnight
in ``settings.BUSINESS_TZ``; naive datetimes coming from callers are read in
that zone too.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator, NamedTuple, Optional, Union
from zoneinfo import ZoneInfo

from intrack import settings
from intrack.errors import ValidationError

DateLike = Union[date, datetime]


class Window(NamedTuple):
    """Timestamp bounds in naive UTC. ``start`` is always inclusive."""
    start: Optional[datetime]
    end: Optional[datetime]
    end_inclusive: bool = True


def business_tz() -> ZoneInfo:
    return ZoneInfo(settings.BUSINESS_TZ)


def to_utc_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=business_tz())
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def from_utc_naive(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc)


def local_midnight(day: date) -> datetime:
    return to_utc_naive(datetime.combine(day, time.min))


def local_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.date()
        return value.astimezone(business_tz()).date()
    return value


def today() -> date:
    return datetime.now(business_tz()).date()


def day_window(day: DateLike) -> Window:
    d = local_date(day)
    return Window(local_midnight(d), local_midnight(d + timedelta(days=1)), end_inclusive=False)


def range_window(start: Optional[DateLike], end: Optional[DateLike]) -> Window:
    """Bounds for an inclusive range.

    A calendar date covers its whole day; a datetime is taken as an exact
    instant. Either side may be omitted for an open-ended window.
    """
    lo = hi = None
    inclusive = True
    if start is not None:
        lo = to_utc_naive(start) if isinstance(start, datetime) else local_midnight(start)
    if end is not None:
        if isinstance(end, datetime):
            hi = to_utc_naive(end)
        else:
            hi = local_midnight(end + timedelta(days=1))
            inclusive = False
    if lo is not None and hi is not None and (lo > hi or (lo == hi and not inclusive)):
        raise ValidationError("start_date must not be after end_date")
    return Window(lo, hi, inclusive)


def iter_days(start: date, end: date) -> Iterator[date]:
    d = start
    while d <= end:
        yield d
        d += timedelta(days=1)
