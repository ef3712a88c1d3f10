"""Angel One SmartAPI REST client (async, httpx).

Features:
- One place that builds the SmartAPI header set (private key, client/user info)
- Session-scoped calls add the bearer token of the Session passed in
- Every failure surfaces as SmartApiError (an UpstreamError) carrying the
  upstream body when there is one
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Optional

import httpx

from market_gateway.infrastructure.logging.logging import get_logger
from market_gateway.infrastructure.utils.config import SmartApiConfig
from market_gateway.infrastructure.utils.timeutils import utc_now
from market_gateway.models.errors import ConfigurationError, UpstreamError
from market_gateway.models.session_models import Session

JsonDict = Dict[str, Any]

LOGIN_PATH = "/rest/auth/angelbroking/user/v1/loginByPassword"
PROFILE_PATH = "/rest/secure/angelbroking/user/v1/getProfile"
LOGOUT_PATH = "/rest/secure/angelbroking/user/v1/logout"
CANDLE_PATH = "/rest/secure/angelbroking/historical/v1/getCandleData"
QUOTE_PATH = "/rest/secure/angelbroking/market/v1/quote/"


class SmartApiError(UpstreamError):
    pass


def _body_of(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text[:500] or None


class SmartApiClient:
    def __init__(self, config: SmartApiConfig, *, http: Optional[httpx.AsyncClient] = None) -> None:
        self._logger = get_logger("smartapi")
        self._config = config
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=config.timeout_seconds)

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    # --------- headers ---------
    def _headers(self, session: Optional[Session] = None) -> Dict[str, str]:
        if not self._config.api_key:
            raise ConfigurationError("Broker API key is not configured on the server.")
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "X-UserType": "USER",
            "X-SourceID": "WEB",
            "X-ClientLocalIP": self._config.client_local_ip,
            "X-ClientPublicIP": self._config.client_public_ip,
            "X-MACAddress": self._config.mac_address,
            "X-PrivateKey": self._config.api_key,
        }
        if session is not None:
            headers["Authorization"] = f"Bearer {session.auth_token}"
        return headers

    # --------- transport ---------
    async def _request(
        self,
        method: str,
        path: str,
        *,
        session: Optional[Session] = None,
        payload: Optional[JsonDict] = None,
    ) -> JsonDict:
        url = f"{self._config.base_url.rstrip('/')}{path}"
        headers = self._headers(session)
        try:
            response = await self._http.request(method, url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            self._logger.error("smartapi_transport_error", path=path, error=str(e))
            raise SmartApiError(f"SmartAPI request failed: {e}") from e

        if response.status_code >= 400:
            body = _body_of(response)
            self._logger.error("smartapi_http_error", path=path, status=response.status_code)
            raise SmartApiError(
                f"SmartAPI returned HTTP {response.status_code}",
                details=body,
                upstream_status=response.status_code,
            )

        body = _body_of(response)
        if not isinstance(body, dict):
            raise SmartApiError("SmartAPI returned a non-JSON payload", details=body)

        # Envelope: {"status": bool, "message": str, "errorcode": str, "data": ...}
        if body.get("status") is False:
            self._logger.warning(
                "smartapi_rejected", path=path, errorcode=body.get("errorcode"), message=body.get("message")
            )
            raise SmartApiError(str(body.get("message") or "SmartAPI rejected the request"), details=body)

        return body

    # --------- auth ---------
    async def login(self, client_code: str, password: str, totp: str) -> Session:
        body = await self._request(
            "POST",
            LOGIN_PATH,
            payload={"clientcode": client_code, "password": password, "totp": totp},
        )
        data = body.get("data") or {}
        token = data.get("jwtToken")
        if not token:
            raise SmartApiError("SmartAPI login response carried no token", details=body)

        session = Session(
            client_code=client_code,
            auth_token=str(token),
            feed_token=data.get("feedToken"),
            refresh_token=data.get("refreshToken"),
            created_at=utc_now(),
        )
        profile = await self.get_profile(session)
        self._logger.info("login_ok", client_code=client_code)
        return Session(
            client_code=session.client_code,
            auth_token=session.auth_token,
            feed_token=session.feed_token,
            refresh_token=session.refresh_token,
            profile=profile,
            created_at=session.created_at,
        )

    async def get_profile(self, session: Session) -> JsonDict:
        body = await self._request("GET", PROFILE_PATH, session=session)
        data = body.get("data")
        return data if isinstance(data, dict) else {}

    async def logout(self, session: Session) -> None:
        await self._request("POST", LOGOUT_PATH, session=session, payload={"clientcode": session.client_code})
        self._logger.info("logout_ok", client_code=session.client_code)

    # --------- market data ---------
    async def get_candle_data(
        self,
        session: Session,
        exchange: str,
        symbol_token: str,
        interval: str,
        from_date: str,
        to_date: str,
    ) -> Any:
        """Raw `data` of getCandleData: normally a list of [ts, o, h, l, c, v] rows."""
        body = await self._request(
            "POST",
            CANDLE_PATH,
            session=session,
            payload={
                "exchange": exchange,
                "symboltoken": str(symbol_token),
                "interval": interval,
                "fromdate": from_date,
                "todate": to_date,
            },
        )
        return body.get("data")

    async def get_quotes(self, session: Session, mode: str, exchange_tokens: Dict[str, List[str]]) -> List[JsonDict]:
        """Market quote in LTP / OHLC / FULL mode. Returns the `fetched` rows."""
        body = await self._request(
            "POST",
            QUOTE_PATH,
            session=session,
            payload={"mode": mode, "exchangeTokens": exchange_tokens},
        )
        data = body.get("data") or {}
        fetched = data.get("fetched") if isinstance(data, dict) else None
        if not isinstance(fetched, list):
            return []
        return [row for row in fetched if isinstance(row, dict)]

    async def get_ltp(self, session: Session, exchange: str, symbol_token: str) -> Optional[float]:
        """Last traded price, or None when the quote carries no usable price."""
        rows = await self.get_quotes(session, "LTP", {exchange: [str(symbol_token)]})
        for row in rows:
            token = row.get("symbolToken")
            if token is not None and str(token) != str(symbol_token):
                continue
            ltp = row.get("ltp")
            if ltp is None:
                return None
            try:
                price = float(ltp)
            except (TypeError, ValueError):
                return None
            return price if math.isfinite(price) else None
        return None

    async def fetch_instrument_master(self) -> List[Any]:
        """Public scrip master (no auth headers)."""
        url = self._config.instrument_master_url
        try:
            response = await self._http.get(url)
        except httpx.HTTPError as e:
            self._logger.error("instrument_master_transport_error", error=str(e))
            raise SmartApiError(f"Instrument master download failed: {e}") from e

        if response.status_code >= 400:
            raise SmartApiError(
                f"Instrument master returned HTTP {response.status_code}",
                details=_body_of(response),
                upstream_status=response.status_code,
            )
        body = _body_of(response)
        if not isinstance(body, list):
            raise SmartApiError("Instrument master payload is not a list")
        return body
