from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from dateutil import parser as dt_parser

# Organization wall clock (IST). Every local<->UTC conversion goes through this offset.
ORG_UTC_OFFSET_MINUTES = 330
ORG_TZ = timezone(timedelta(minutes=ORG_UTC_OFFSET_MINUTES))


def org_timezone(offset_minutes: int = ORG_UTC_OFFSET_MINUTES) -> timezone:
    if int(offset_minutes) == ORG_UTC_OFFSET_MINUTES:
        return ORG_TZ
    return timezone(timedelta(minutes=int(offset_minutes)))


def iso_utc_now() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def iso_utc(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def to_utc(local: datetime, tz: timezone = ORG_TZ) -> datetime:
    """Naive wall clock in ``tz`` -> aware UTC instant. Aware values are only converted."""
    if local.tzinfo is None:
        local = local.replace(tzinfo=tz)
    return local.astimezone(timezone.utc)


def to_local(instant: datetime, tz: timezone = ORG_TZ) -> datetime:
    """Aware instant -> naive wall clock in ``tz``. Naive input is taken as UTC."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(tz).replace(tzinfo=None)


def local_iso(instant: datetime | None, tz: timezone = ORG_TZ) -> str | None:
    if instant is None:
        return None
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(tz).isoformat()


def parse_instant(value: Any) -> datetime | None:
    """Parse a stored/transported timestamp. Naive strings are UTC, as on the wire."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, time(0, 0))
    else:
        try:
            dt = dt_parser.isoparse(str(value).strip())
        except (ValueError, OverflowError):
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_local_date(value: Any, tz: timezone = ORG_TZ) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.date()
        return to_local(value, tz).date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    try:
        parsed = dt_parser.isoparse(s)
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is None:
        return parsed.date()
    return to_local(parsed, tz).date()
