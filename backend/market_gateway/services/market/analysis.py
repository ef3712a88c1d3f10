"""Stock analysis: one year of daily closes -> indicators + resolved price."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Optional

from market_gateway.infrastructure.logging.logging import get_logger
from market_gateway.infrastructure.utils.config import IndicatorConfig
from market_gateway.infrastructure.utils.timeutils import market_today
from market_gateway.models.market_models import IndicatorSnapshot, Indicators, PriceResolution
from market_gateway.models.session_models import Session
from market_gateway.services.market.history import closing_prices, fetch_candles
from market_gateway.services.market.indicators import IndicatorEngine
from market_gateway.services.market.price_resolver import resolve_price

log = get_logger("analysis")


def compose_snapshot(indicators: Indicators, price: PriceResolution) -> IndicatorSnapshot:
    return IndicatorSnapshot(
        current_price=price.current_price,
        net_change=price.net_change,
        percent_change=price.percent_change,
        rsi=indicators.rsi,
        dma20=indicators.dma20,
        dma50=indicators.dma50,
        dma200=indicators.dma200,
        previous_close=price.previous_close,
        price_source=price.source,
    )


async def analyze_stock(
    client: Any,
    session: Session,
    exchange: str,
    symbol_token: str,
    settings: IndicatorConfig,
    *,
    utc_offset_minutes: int = 330,
    today: Optional[date] = None,
) -> IndicatorSnapshot:
    today = today or market_today(utc_offset_minutes)
    from_date = today - timedelta(days=settings.history_days)

    candles = await fetch_candles(client, session, exchange, symbol_token, "ONE_DAY", from_date, today)
    closes = closing_prices(candles)

    engine = IndicatorEngine(rsi_period=settings.rsi_period, sma_periods=list(settings.sma_periods))
    indicators = engine.compute(closes)

    price = await resolve_price(
        client,
        session,
        exchange,
        symbol_token,
        closes,
        today,
        max_lookback_days=settings.prev_close_lookback_days,
    )

    log.info(
        "stock_analysis_ready",
        exchange=exchange,
        symbol_token=symbol_token,
        closes=len(closes),
        price_source=price.source,
        complete=len(closes) >= engine.min_points(),
    )
    return compose_snapshot(indicators, price)
