import asyncio
from datetime import date

import pytest

from conftest import FakeBroker, daily_rows
from market_gateway.models.errors import UpstreamError
from market_gateway.services.market.price_resolver import compute_change, find_previous_close, resolve_price

TODAY = date(2025, 3, 10)  # a Monday


def test_compute_change_formulas():
    net, pct = compute_change(110.0, 100.0)
    assert net == 110.0 - 100.0
    assert pct == net / 100.0 * 100


@pytest.mark.parametrize("current,previous", [(110.0, 0.0), (110.0, None), (None, 100.0)])
def test_compute_change_guards(current, previous):
    assert compute_change(current, previous) == (0.0, 0.0)


def test_live_price_with_previous_close_from_weekend_walk(session):
    # Sunday and Saturday have no candles; Friday does.
    broker = FakeBroker(ltp=1523.4, candles_by_day={"2025-03-07": daily_rows([1500.0])})
    res = asyncio.run(resolve_price(broker, session, "NSE", "3045", [1.0, 2.0], TODAY))

    assert res.source == "live"
    assert res.current_price == 1523.4
    assert res.previous_close == 1500.0
    assert res.net_change == 1523.4 - 1500.0
    assert res.percent_change == res.net_change / 1500.0 * 100
    assert [c[3][:10] for c in broker.candle_calls] == ["2025-03-09", "2025-03-08", "2025-03-07"]


def test_previous_close_lookback_is_bounded(session):
    broker = FakeBroker(ltp=100.0)
    res = asyncio.run(resolve_price(broker, session, "NSE", "3045", [1.0, 2.0], TODAY, max_lookback_days=5))

    assert len(broker.candle_calls) == 5
    assert res.source == "live"
    assert res.previous_close is None
    assert (res.net_change, res.percent_change) == (0.0, 0.0)


def test_previous_close_lookup_error_moves_to_next_day(session):
    broker = FakeBroker(candle_error_days={"2025-03-09"}, candles_by_day={"2025-03-08": daily_rows([99.0])})
    close = asyncio.run(find_previous_close(broker, session, "NSE", "1", TODAY))
    assert close == 99.0


def test_zero_previous_close_never_divides(session):
    broker = FakeBroker(ltp=5.0, candles_by_day={"2025-03-09": daily_rows([0.0])})
    res = asyncio.run(resolve_price(broker, session, "NSE", "1", [], TODAY))
    assert (res.net_change, res.percent_change) == (0.0, 0.0)


def test_quote_failure_falls_back_to_last_two_closes(session):
    broker = FakeBroker(ltp_error=UpstreamError("market closed"))
    closes = [90.0, 95.0, 100.0, 104.0]
    res = asyncio.run(resolve_price(broker, session, "NSE", "1", closes, TODAY))

    assert res.source == "historical"
    assert res.current_price == 104.0
    assert res.previous_close == 100.0
    assert res.net_change == 4.0
    assert res.percent_change == 4.0 / 100.0 * 100
    assert broker.candle_calls == []


def test_null_price_falls_back_too(session):
    broker = FakeBroker(ltp=None)
    res = asyncio.run(resolve_price(broker, session, "NSE", "1", [50.0, 55.0], TODAY))
    assert res.source == "historical"
    assert res.current_price == 55.0


@pytest.mark.parametrize("closes,current", [([], None), ([42.0], 42.0)])
def test_fallback_with_too_few_points(session, closes, current):
    broker = FakeBroker(ltp_error=RuntimeError("socket closed"))
    res = asyncio.run(resolve_price(broker, session, "NSE", "1", closes, TODAY))
    assert res.current_price == current
    assert (res.net_change, res.percent_change) == (0.0, 0.0)
