# market_gateway/api/state.py
from __future__ import annotations

from dataclasses import dataclass, field

from fastapi import Depends, Request

from market_gateway.infrastructure.gemini.gemini_client import GeminiClient
from market_gateway.infrastructure.smartapi.smartapi_client import SmartApiClient
from market_gateway.infrastructure.utils.config import GatewayConfig
from market_gateway.models.errors import AuthRequiredError
from market_gateway.models.session_models import Session, SessionStore


@dataclass
class AppState:
    config: GatewayConfig
    broker: SmartApiClient
    ai: GeminiClient
    sessions: SessionStore = field(default_factory=SessionStore)

    async def aclose(self) -> None:
        await self.broker.aclose()
        await self.ai.aclose()


def get_state(request: Request) -> AppState:
    state = getattr(request.app.state, "gateway", None)
    if state is None:
        raise RuntimeError("API state not initialized. Build the app with create_app().")
    return state


def require_session(state: AppState = Depends(get_state)) -> Session:
    session = state.sessions.current
    if session is None:
        raise AuthRequiredError("Not logged in. Please log in first.")
    return session
