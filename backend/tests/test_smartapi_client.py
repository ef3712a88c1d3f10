import asyncio

import httpx
import pytest

from conftest import body_of
from market_gateway.infrastructure.smartapi.smartapi_client import SmartApiClient, SmartApiError
from market_gateway.models.errors import ConfigurationError

LOGIN_OK = {
    "status": True,
    "message": "SUCCESS",
    "errorcode": "",
    "data": {"jwtToken": "Bearer-less-jwt", "refreshToken": "r1", "feedToken": "f1"},
}
PROFILE_OK = {"status": True, "message": "SUCCESS", "data": {"clientcode": "A123456", "name": "TEST USER"}}


def test_login_builds_session_with_profile(config, upstream):
    upstream.json("loginByPassword", LOGIN_OK).json("getProfile", PROFILE_OK)
    client = SmartApiClient(config.smartapi, http=upstream.client())

    session = asyncio.run(client.login("A123456", "1234", "654321"))

    assert session.auth_token == "Bearer-less-jwt"
    assert session.feed_token == "f1"
    assert session.refresh_token == "r1"
    assert session.display_name == "TEST USER"

    login_req = upstream.calls_to("loginByPassword")[0]
    assert body_of(login_req) == {"clientcode": "A123456", "password": "1234", "totp": "654321"}
    assert login_req.headers["X-PrivateKey"] == "test-private-key"
    assert login_req.headers["X-UserType"] == "USER"
    assert "Authorization" not in login_req.headers

    profile_req = upstream.calls_to("getProfile")[0]
    assert profile_req.headers["Authorization"] == "Bearer Bearer-less-jwt"


def test_rejected_envelope_raises_with_body(config, upstream):
    rejected = {"status": False, "message": "Invalid totp", "errorcode": "AB1050", "data": None}
    upstream.json("loginByPassword", rejected)
    client = SmartApiClient(config.smartapi, http=upstream.client())

    with pytest.raises(SmartApiError) as exc:
        asyncio.run(client.login("A123456", "1234", "000000"))
    assert exc.value.message == "Invalid totp"
    assert exc.value.details == rejected


def test_http_error_passes_upstream_body_through(config, upstream, session):
    upstream.json("getCandleData", {"message": "Too many requests"}, status_code=429)
    client = SmartApiClient(config.smartapi, http=upstream.client())

    with pytest.raises(SmartApiError) as exc:
        asyncio.run(client.get_candle_data(session, "NSE", "3045", "ONE_DAY", "2025-01-01 00:00", "2025-01-02 23:59"))
    assert exc.value.upstream_status == 429
    assert exc.value.details == {"message": "Too many requests"}


def test_transport_error_is_upstream_error(config, session):
    def explode(request):
        raise httpx.ConnectError("refused", request=request)

    http = httpx.AsyncClient(transport=httpx.MockTransport(explode))
    client = SmartApiClient(config.smartapi, http=http)
    with pytest.raises(SmartApiError):
        asyncio.run(client.get_ltp(session, "NSE", "3045"))


def test_get_ltp_parses_quote(config, upstream, session):
    upstream.json(
        "quote",
        {"status": True, "data": {"fetched": [{"exchange": "NSE", "symbolToken": "3045", "ltp": 812.35}], "unfetched": []}},
    )
    client = SmartApiClient(config.smartapi, http=upstream.client())

    assert asyncio.run(client.get_ltp(session, "NSE", "3045")) == 812.35
    assert body_of(upstream.requests[0]) == {"mode": "LTP", "exchangeTokens": {"NSE": ["3045"]}}


@pytest.mark.parametrize(
    "data",
    [
        {"fetched": [], "unfetched": [{"symbolToken": "3045"}]},
        {"fetched": [{"symbolToken": "3045", "ltp": None}]},
        {"fetched": [{"symbolToken": "3045", "ltp": "n/a"}]},
        {"fetched": [{"symbolToken": "3045", "ltp": "NaN"}]},
        {"fetched": [{"symbolToken": "3045", "ltp": "inf"}]},
        None,
    ],
)
def test_get_ltp_without_usable_price(config, upstream, session, data):
    upstream.json("quote", {"status": True, "data": data})
    client = SmartApiClient(config.smartapi, http=upstream.client())
    assert asyncio.run(client.get_ltp(session, "NSE", "3045")) is None


def test_missing_api_key_fails_before_network(bare_config, upstream):
    client = SmartApiClient(bare_config.smartapi, http=upstream.client())
    with pytest.raises(ConfigurationError):
        asyncio.run(client.login("A", "B", "C"))
    assert upstream.requests == []


def test_instrument_master_must_be_a_list(config, upstream):
    upstream.json("OpenAPIScripMaster.json", {"oops": True})
    client = SmartApiClient(config.smartapi, http=upstream.client())
    with pytest.raises(SmartApiError):
        asyncio.run(client.fetch_instrument_master())
