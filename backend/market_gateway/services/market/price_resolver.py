"""Current price and day change: live quote first, historical closes as fallback.

TryLive  -> LTP quote; on a usable price, look back for the previous trading
            day's close (bounded) and compute the change against it.
Fallback -> quote failed or had no price; use the last two closes of the
            one-year daily series instead.

resolve_price never raises: outside market hours the quote endpoint may be
unusable and the caller still gets the best historical approximation.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Optional, Sequence, Tuple

from market_gateway.infrastructure.logging.logging import get_logger
from market_gateway.infrastructure.utils.timeutils import previous_days
from market_gateway.models.market_models import PriceResolution
from market_gateway.models.session_models import Session
from market_gateway.services.market.history import fetch_candles

log = get_logger("price_resolver")


def compute_change(current: Optional[float], previous: Optional[float]) -> Tuple[float, float]:
    """(net_change, percent_change); both 0 when either side is missing or previous is 0."""
    if current is None or previous is None or previous == 0:
        return 0.0, 0.0
    net = current - previous
    return net, net / previous * 100


async def find_previous_close(
    client: Any,
    session: Session,
    exchange: str,
    symbol_token: str,
    today: date,
    max_lookback_days: int = 5,
) -> Optional[float]:
    """Close of the most recent day before `today` that has a daily candle."""
    for day in previous_days(today, max_lookback_days):
        try:
            candles = await fetch_candles(client, session, exchange, symbol_token, "ONE_DAY", day, day)
        except Exception as e:
            log.warning("prev_close_lookup_failed", day=day.isoformat(), symbol_token=symbol_token, error=str(e))
            continue
        if candles:
            log.debug("prev_close_found", day=day.isoformat(), symbol_token=symbol_token, close=candles[-1].close)
            return candles[-1].close
    log.warning("prev_close_not_found", symbol_token=symbol_token, lookback_days=max_lookback_days)
    return None


def historical_resolution(closes: Sequence[float]) -> PriceResolution:
    current = float(closes[-1]) if closes else None
    previous = float(closes[-2]) if len(closes) >= 2 else None
    net, pct = compute_change(current, previous)
    return PriceResolution(
        current_price=current,
        previous_close=previous,
        net_change=net,
        percent_change=pct,
        source="historical",
    )


async def resolve_price(
    client: Any,
    session: Session,
    exchange: str,
    symbol_token: str,
    closes: Sequence[float],
    today: date,
    max_lookback_days: int = 5,
) -> PriceResolution:
    # TryLive
    try:
        ltp = await client.get_ltp(session, exchange, symbol_token)
    except Exception as e:
        log.warning("ltp_unavailable", symbol_token=symbol_token, error=str(e))
        ltp = None

    if ltp is None:
        # Fallback
        log.info("price_fallback_historical", symbol_token=symbol_token, closes=len(closes))
        return historical_resolution(closes)

    prev_close = await find_previous_close(client, session, exchange, symbol_token, today, max_lookback_days)
    net, pct = compute_change(ltp, prev_close)
    return PriceResolution(
        current_price=ltp,
        previous_close=prev_close,
        net_change=net,
        percent_change=pct,
        source="live",
    )
