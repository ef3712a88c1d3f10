"""Historical candles from SmartAPI getCandleData, parsed into Candle records."""

from __future__ import annotations

from typing import Any, List, Optional

from market_gateway.infrastructure.logging.logging import get_logger
from market_gateway.infrastructure.utils.timeutils import DateLike, format_range_end, format_range_start
from market_gateway.models.market_models import Candle
from market_gateway.models.session_models import Session

log = get_logger("history")

INTERVALS = (
    "ONE_MINUTE",
    "THREE_MINUTE",
    "FIVE_MINUTE",
    "TEN_MINUTE",
    "FIFTEEN_MINUTE",
    "THIRTY_MINUTE",
    "ONE_HOUR",
    "ONE_DAY",
)

INTERVAL_ALIASES = {
    "1m": "ONE_MINUTE",
    "3m": "THREE_MINUTE",
    "5m": "FIVE_MINUTE",
    "10m": "TEN_MINUTE",
    "15m": "FIFTEEN_MINUTE",
    "30m": "THIRTY_MINUTE",
    "1h": "ONE_HOUR",
    "60m": "ONE_HOUR",
    "1d": "ONE_DAY",
    "day": "ONE_DAY",
}


def normalize_interval(raw: str) -> Optional[str]:
    """Broker interval name for `raw`, or None when it is not one we know."""
    value = str(raw or "").strip()
    if value.upper() in INTERVALS:
        return value.upper()
    return INTERVAL_ALIASES.get(value.lower())


def _parse_row(row: Any) -> Optional[Candle]:
    # Row layout: [timestamp, open, high, low, close, volume]
    if not isinstance(row, (list, tuple)) or len(row) < 5:
        return None
    try:
        volume = int(float(row[5])) if len(row) > 5 and row[5] is not None else 0
        return Candle(
            timestamp=str(row[0]),
            open=float(row[1]),
            high=float(row[2]),
            low=float(row[3]),
            close=float(row[4]),
            volume=volume,
        )
    except (TypeError, ValueError):
        return None


def parse_candles(raw: Any) -> List[Candle]:
    """
    Convert the getCandleData payload into candles, oldest first.
    Anything that is not a list yields an empty list; malformed rows are skipped.
    """
    if not isinstance(raw, list):
        return []
    candles = [c for c in (_parse_row(r) for r in raw) if c is not None]
    skipped = len(raw) - len(candles)
    if skipped:
        log.warning("candle_rows_skipped", skipped=skipped, total=len(raw))
    # ISO timestamps with the same offset sort chronologically as strings.
    return sorted(candles, key=lambda c: c.timestamp)


async def fetch_candles(
    client: Any,
    session: Session,
    exchange: str,
    symbol_token: str,
    interval: str,
    from_date: DateLike,
    to_date: DateLike,
) -> List[Candle]:
    """
    Fetch candles for an inclusive date range. client must provide
    get_candle_data(session, exchange, symbol_token, interval, from, to).
    Upstream errors propagate as UpstreamError; a non-list payload is an empty result.
    """
    raw = await client.get_candle_data(
        session,
        exchange,
        symbol_token,
        interval,
        format_range_start(from_date),
        format_range_end(to_date),
    )
    if not isinstance(raw, list):
        log.warning(
            "candle_payload_not_list",
            exchange=exchange,
            symbol_token=symbol_token,
            payload_type=type(raw).__name__,
        )
        return []

    candles = parse_candles(raw)
    log.debug("candles_loaded", exchange=exchange, symbol_token=symbol_token, interval=interval, candles=len(candles))
    return candles


def closing_prices(candles: List[Candle]) -> List[float]:
    return [c.close for c in candles]
