from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from market_gateway.api.state import AppState, get_state, require_session
from market_gateway.infrastructure.logging.logging import get_logger
from market_gateway.infrastructure.utils.config import require_broker_credentials, require_gemini_key
from market_gateway.infrastructure.utils.timeutils import parse_date_or_datetime
from market_gateway.models.errors import UpstreamError, ValidationError
from market_gateway.models.session_models import Session
from market_gateway.services.ai import insights
from market_gateway.services.market.analysis import analyze_stock
from market_gateway.services.market.history import fetch_candles, normalize_interval
from market_gateway.services.market.instruments import filter_equities
from market_gateway.services.market.market_overview import market_overview

JsonDict = Dict[str, Any]

log = get_logger("api_controller")

router = APIRouter()


# --------- Schemas ---------
class LoginPayload(BaseModel):
    totp: Optional[str] = None


class HistoricalPayload(BaseModel):
    symboltoken: Optional[Union[str, int]] = None
    exchange: Optional[str] = None
    timeframe: Optional[str] = None
    fromdate: Optional[str] = None
    todate: Optional[str] = None


class InstrumentPayload(BaseModel):
    symboltoken: Optional[Union[str, int]] = None
    exchange: Optional[str] = None


class CompanyPayload(BaseModel):
    companyName: Optional[str] = None


# --------- helpers ---------
def _required(value: Optional[Union[str, int]], name: str) -> str:
    value = str(value or "").strip()
    if not value:
        raise ValidationError(f"{name} is required.")
    return value


def _instrument(payload: Optional[InstrumentPayload], state: AppState) -> tuple[str, str]:
    token = _required(payload.symboltoken if payload else None, "symboltoken")
    exchange = str((payload.exchange if payload else None) or state.config.market.exchange_segment).strip().upper()
    return exchange, token


# --------- Routes ---------
@router.get("/")
def root() -> JsonDict:
    return {"message": "Market gateway is running."}


@router.get("/health")
def health(state: AppState = Depends(get_state)) -> JsonDict:
    return {
        "ok": True,
        "logged_in": state.sessions.current is not None,
        "broker_configured": bool(state.config.smartapi.api_key),
        "ai_configured": bool(state.config.gemini.api_key),
    }


@router.post("/api/login")
async def login(payload: Optional[LoginPayload] = None, state: AppState = Depends(get_state)) -> JsonDict:
    creds = require_broker_credentials(state.config)
    totp = _required(payload.totp if payload else None, "totp")
    try:
        session = await state.broker.login(creds.client_code, creds.password, totp)
    except UpstreamError as e:
        raise e.rewrap("Login failed.") from e

    state.sessions.replace(session)
    return {
        "status": True,
        "message": "Login successful",
        "data": {"name": session.display_name, "clientcode": session.client_code},
    }


@router.post("/api/logout")
async def logout(
    session: Session = Depends(require_session),
    state: AppState = Depends(get_state),
) -> JsonDict:
    try:
        await state.broker.logout(session)
    except UpstreamError as e:
        # The local session goes away regardless; the broker token simply expires.
        log.warning("broker_logout_failed", error=e.message)
    state.sessions.clear()
    return {"status": True, "message": "Logged out"}


@router.get("/api/profile")
def profile(session: Session = Depends(require_session)) -> JsonDict:
    return {"status": True, "data": {**session.profile, "clientcode": session.client_code}}


@router.get("/api/instruments")
async def instruments(state: AppState = Depends(get_state)) -> List[JsonDict]:
    market = state.config.market
    try:
        master = await state.broker.fetch_instrument_master()
    except UpstreamError as e:
        raise e.rewrap("Failed to fetch instruments.") from e
    out = filter_equities(master, market.exchange_segment, market.equity_suffix)
    log.info("instruments_filtered", total=len(master), kept=len(out))
    return out


@router.post("/api/historical-data")
async def historical_data(
    payload: Optional[HistoricalPayload] = None,
    session: Session = Depends(require_session),
    state: AppState = Depends(get_state),
) -> List[JsonDict]:
    p = payload or HistoricalPayload()
    token = _required(p.symboltoken, "symboltoken")
    exchange = _required(p.exchange, "exchange").upper()
    interval = normalize_interval(_required(p.timeframe, "timeframe"))
    if interval is None:
        raise ValidationError(f"Unsupported timeframe: {p.timeframe}")
    try:
        from_date = parse_date_or_datetime(_required(p.fromdate, "fromdate"))
        to_date = parse_date_or_datetime(_required(p.todate, "todate"))
    except ValueError:
        raise ValidationError("fromdate/todate must be 'YYYY-MM-DD' or 'YYYY-MM-DD HH:MM'.")

    try:
        candles = await fetch_candles(state.broker, session, exchange, token, interval, from_date, to_date)
    except UpstreamError as e:
        raise e.rewrap("Failed to fetch historical data.") from e
    return [c.to_dict() for c in candles]


async def _analysis(payload: Optional[InstrumentPayload], session: Session, state: AppState) -> JsonDict:
    exchange, token = _instrument(payload, state)
    try:
        snapshot = await analyze_stock(
            state.broker,
            session,
            exchange,
            token,
            state.config.indicators,
            utc_offset_minutes=state.config.market.utc_offset_minutes,
        )
    except UpstreamError as e:
        raise e.rewrap("Failed to compute technical indicators.") from e
    return snapshot.to_dict()


@router.post("/api/stock-analysis")
async def stock_analysis(
    payload: Optional[InstrumentPayload] = None,
    session: Session = Depends(require_session),
    state: AppState = Depends(get_state),
) -> JsonDict:
    return await _analysis(payload, session, state)


@router.post("/api/technical-indicators")
async def technical_indicators(
    payload: Optional[InstrumentPayload] = None,
    session: Session = Depends(require_session),
    state: AppState = Depends(get_state),
) -> JsonDict:
    return await _analysis(payload, session, state)


@router.get("/api/market-data")
async def market_data(
    session: Session = Depends(require_session),
    state: AppState = Depends(get_state),
) -> JsonDict:
    try:
        return await market_overview(state.broker, session, state.config.market)
    except UpstreamError as e:
        raise e.rewrap("Failed to fetch market data.") from e


# --------- AI routes ---------
@router.get("/api/market-news")
async def market_news(state: AppState = Depends(get_state)) -> JsonDict:
    require_gemini_key(state.config)
    try:
        return await insights.market_news(state.ai)
    except UpstreamError as e:
        raise e.rewrap("Failed to generate market news.") from e


@router.post("/api/company-details")
async def company_details(payload: Optional[CompanyPayload] = None, state: AppState = Depends(get_state)) -> JsonDict:
    require_gemini_key(state.config)
    company = insights.require_company_name(payload.companyName if payload else None)
    try:
        return await insights.company_details(state.ai, company)
    except UpstreamError as e:
        raise e.rewrap("Failed to generate company details.") from e


@router.post("/api/chart-data")
async def chart_data(payload: Optional[CompanyPayload] = None, state: AppState = Depends(get_state)) -> JsonDict:
    require_gemini_key(state.config)
    company = insights.require_company_name(payload.companyName if payload else None)
    try:
        return await insights.chart_data(state.ai, company)
    except UpstreamError as e:
        raise e.rewrap("Failed to generate chart data.") from e


@router.post("/api/ai/technical-indicators")
async def ai_technical_indicators(
    payload: Optional[CompanyPayload] = None,
    state: AppState = Depends(get_state),
) -> JsonDict:
    require_gemini_key(state.config)
    company = insights.require_company_name(payload.companyName if payload else None)
    try:
        return await insights.simulated_technicals(state.ai, company)
    except UpstreamError as e:
        raise e.rewrap("Failed to generate technical indicators.") from e


@router.get("/api/top-performers")
async def top_performers(state: AppState = Depends(get_state)) -> JsonDict:
    require_gemini_key(state.config)
    try:
        return await insights.top_performers(state.ai, state.config.market.top_performers_count)
    except UpstreamError as e:
        raise e.rewrap("Failed to fetch top performers.") from e
