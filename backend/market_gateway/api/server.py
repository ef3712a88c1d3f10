# market_gateway/api/server.py
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from market_gateway.api.state import AppState
from market_gateway.controllers.api_controller import router
from market_gateway.infrastructure.gemini.gemini_client import GeminiClient
from market_gateway.infrastructure.logging.logging import (
    bind_request_context,
    clear_request_context,
    configure_logging,
    get_logger,
)
from market_gateway.infrastructure.smartapi.smartapi_client import SmartApiClient
from market_gateway.infrastructure.utils.config import GatewayConfig, load_config
from market_gateway.models.errors import GatewayError

log = get_logger("api")


async def _gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    level = log.error if exc.status_code >= 500 else log.warning
    level("request_failed", error_type=type(exc).__name__, status=exc.status_code, message=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]
    return JSONResponse(status_code=400, content={"message": "Invalid request body.", "error": errors})


def create_app(
    config: Optional[GatewayConfig] = None,
    *,
    broker: Optional[SmartApiClient] = None,
    ai: Optional[GeminiClient] = None,
) -> FastAPI:
    if config is None:
        config = load_config()
    configure_logging(config.log_level)

    state = AppState(
        config=config,
        broker=broker or SmartApiClient(config.smartapi),
        ai=ai or GeminiClient(config.gemini),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info("api_started", port=config.api.port, gemini_model=config.gemini.model)
        try:
            yield
        finally:
            await state.aclose()
            log.info("api_stopped")

    app = FastAPI(title="Market Gateway API", version="0.1.0", lifespan=lifespan)
    app.state.gateway = state

    # CORS (frontend)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        bind_request_context(request.method, request.url.path, request.headers.get("x-request-id"))
        started = time.perf_counter()
        try:
            response = await call_next(request)
            log.info(
                "request_completed",
                status=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            )
            return response
        finally:
            clear_request_context()

    app.add_exception_handler(GatewayError, _gateway_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.include_router(router)
    return app
