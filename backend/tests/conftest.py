import json
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from market_gateway.infrastructure.utils.config import GatewayConfig
from market_gateway.models.session_models import Session

BROKER_ENV = {
    "SMARTAPI__API_KEY": "test-private-key",
    "SMARTAPI__CLIENT_CODE": "A123456",
    "SMARTAPI__PASSWORD": "1234",
    "GEMINI_API_KEY": "test-gemini-key",
}


@pytest.fixture
def config() -> GatewayConfig:
    return GatewayConfig.from_yaml(None, environ=dict(BROKER_ENV))


@pytest.fixture
def bare_config() -> GatewayConfig:
    """No credentials at all."""
    return GatewayConfig.from_yaml(None, environ={})


@pytest.fixture
def session() -> Session:
    return Session(client_code="A123456", auth_token="jwt-abc", feed_token="feed", refresh_token="refresh",
                   profile={"name": "TEST USER"})


def daily_rows(closes: List[float], start: date = date(2025, 1, 1)) -> List[list]:
    rows = []
    for i, c in enumerate(closes):
        ts = f"{(start + timedelta(days=i)).isoformat()}T00:00:00+05:30"
        rows.append([ts, c, c + 1, c - 1, c, 1000 + i])
    return rows


class FakeBroker:
    """Duck-typed stand-in for SmartApiClient used by the service tests."""

    def __init__(
        self,
        *,
        ltp: Any = None,
        ltp_error: Optional[Exception] = None,
        candles_by_day: Optional[Dict[str, Any]] = None,
        default_candles: Any = None,
        candle_error_days: Optional[set] = None,
        quotes: Optional[List[dict]] = None,
    ) -> None:
        self.ltp = ltp
        self.ltp_error = ltp_error
        self.candles_by_day = candles_by_day or {}
        self.default_candles = default_candles
        self.candle_error_days = candle_error_days or set()
        self.quotes = quotes or []
        self.candle_calls: List[tuple] = []
        self.quote_calls: List[tuple] = []

    async def get_candle_data(self, session, exchange, symbol_token, interval, from_date, to_date):
        self.candle_calls.append((exchange, symbol_token, interval, from_date, to_date))
        day = from_date[:10]
        if day in self.candle_error_days:
            from market_gateway.models.errors import UpstreamError

            raise UpstreamError("boom")
        if from_date[:10] == to_date[:10]:
            return self.candles_by_day.get(day, [])
        return self.default_candles

    async def get_ltp(self, session, exchange, symbol_token):
        if self.ltp_error is not None:
            raise self.ltp_error
        return self.ltp

    async def get_quotes(self, session, mode, exchange_tokens):
        self.quote_calls.append((mode, exchange_tokens))
        wanted = {t for tokens in exchange_tokens.values() for t in tokens}
        return [q for q in self.quotes if q.get("symbolToken") in wanted]


class Upstream:
    """httpx.MockTransport handler routing by URL path; records every request."""

    def __init__(self) -> None:
        self.routes: Dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: List[httpx.Request] = []

    def on(self, path_fragment: str, handler: Callable[[httpx.Request], httpx.Response]) -> "Upstream":
        self.routes[path_fragment] = handler
        return self

    def json(self, path_fragment: str, body: Any, status_code: int = 200) -> "Upstream":
        return self.on(path_fragment, lambda request: httpx.Response(status_code, json=body))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for fragment, handler in self.routes.items():
            if fragment in request.url.path:
                return handler(request)
        return httpx.Response(404, json={"message": f"no route for {request.url.path}"})

    def calls_to(self, path_fragment: str) -> List[httpx.Request]:
        return [r for r in self.requests if path_fragment in r.url.path]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def body_of(request: httpx.Request) -> Any:
    return json.loads(request.content.decode("utf-8"))


def gemini_reply(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}], "role": "model"}}]}


@pytest.fixture
def upstream() -> Upstream:
    return Upstream()
