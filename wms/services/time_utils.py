from __future__ import annotations

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from wms.config import settings


def as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything we store is UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def epoch_ms(value: datetime | None) -> int | None:
    value = as_utc(value)
    if value is None:
        return None
    return int(value.timestamp() * 1000)


def resolve_timezone(name: str | None) -> ZoneInfo:
    for candidate in (name, settings.default_timezone, 'UTC'):
        if not candidate:
            continue
        try:
            return ZoneInfo(candidate)
        except ZoneInfoNotFoundError:
            continue
    return ZoneInfo('UTC')


def local_day_window(moment: datetime, tz_name: str | None) -> tuple[datetime, datetime, str]:
    """Return the UTC bounds [start, next_start) of the local day holding `moment`, plus its YYYYMMDD stamp."""
    tz = resolve_timezone(tz_name)
    local = as_utc(moment).astimezone(tz)
    start_local = datetime(local.year, local.month, local.day, tzinfo=tz)
    next_local = start_local + timedelta(days=1)
    next_local = datetime(next_local.year, next_local.month, next_local.day, tzinfo=tz)
    return (
        start_local.astimezone(timezone.utc),
        next_local.astimezone(timezone.utc),
        start_local.strftime('%Y%m%d'),
    )
