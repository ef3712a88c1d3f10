"""Time helpers for the broker's date formats and the market timezone."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Iterator, Union

SMARTAPI_DATETIME_FORMAT = "%Y-%m-%d %H:%M"

DateLike = Union[date, datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def market_tz(utc_offset_minutes: int) -> timezone:
    return timezone(timedelta(minutes=utc_offset_minutes))


def market_today(utc_offset_minutes: int) -> date:
    return utc_now().astimezone(market_tz(utc_offset_minutes)).date()


def format_range_start(value: DateLike) -> str:
    """Calendar dates start at 00:00; datetimes are kept as given."""
    if isinstance(value, datetime):
        return value.strftime(SMARTAPI_DATETIME_FORMAT)
    return f"{value.isoformat()} 00:00"


def format_range_end(value: DateLike) -> str:
    """Calendar dates end at 23:59 so the range is inclusive."""
    if isinstance(value, datetime):
        return value.strftime(SMARTAPI_DATETIME_FORMAT)
    return f"{value.isoformat()} 23:59"


def parse_date_or_datetime(raw: str) -> DateLike:
    """Accept 'YYYY-MM-DD' or 'YYYY-MM-DD HH:MM' (the broker's own format)."""
    raw = str(raw).strip()
    try:
        return datetime.strptime(raw, SMARTAPI_DATETIME_FORMAT)
    except ValueError:
        return date.fromisoformat(raw)


def previous_days(anchor: date, limit: int) -> Iterator[date]:
    """Lazily yield up to `limit` calendar days before `anchor`, newest first."""
    for offset in range(1, limit + 1):
        yield anchor - timedelta(days=offset)
