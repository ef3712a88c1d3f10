"""Configuration management for the market gateway.

Rules:
- YAML provides defaults for non-secret config.
- Secrets (SmartAPI key, client password, Gemini key) come from .env / environment
  variables and must override YAML.
- Missing secrets are NOT a load error: endpoints that need them answer 500
  with an explanatory message instead (see require_* helpers).
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from market_gateway.models.errors import ConfigurationError
from market_gateway.models.market_models import REPORTED_SMA_PERIODS


class SmartApiConfig(BaseModel):
    """Angel One SmartAPI (broker) configuration."""

    api_key: Optional[str] = Field(default=None, description="SmartAPI private key (X-PrivateKey)")
    client_code: Optional[str] = Field(default=None, description="Broker client code used for login")
    password: Optional[str] = Field(default=None, description="Broker login PIN/password")
    base_url: str = Field(default="https://apiconnect.angelone.in")
    instrument_master_url: str = Field(
        default="https://margincalculator.angelbroking.com/OpenAPI_File/files/OpenAPIScripMaster.json",
    )
    client_local_ip: str = Field(default="127.0.0.1")
    client_public_ip: str = Field(default="127.0.0.1")
    mac_address: str = Field(default="00:00:00:00:00:00")
    timeout_seconds: float = Field(default=30.0, gt=0, le=600)

    @field_validator("api_key", "client_code", "password")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class GeminiConfig(BaseModel):
    """Google Gemini generateContent configuration."""

    api_key: Optional[str] = Field(default=None)
    model: str = Field(default="gemini-2.0-flash")
    base_url: str = Field(default="https://generativelanguage.googleapis.com/v1beta")
    timeout_seconds: float = Field(default=60.0, gt=0, le=600)

    @field_validator("api_key")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class IndexConfig(BaseModel):
    name: str
    exchange: str
    token: str


class WatchlistEntry(BaseModel):
    symbol: str
    token: str


def _default_indices() -> List[IndexConfig]:
    return [
        IndexConfig(name="NIFTY 50", exchange="NSE", token="99926000"),
        IndexConfig(name="NIFTY BANK", exchange="NSE", token="99926009"),
        IndexConfig(name="SENSEX", exchange="BSE", token="99919000"),
    ]


def _default_watchlist() -> List[WatchlistEntry]:
    return [
        WatchlistEntry(symbol="RELIANCE-EQ", token="2885"),
        WatchlistEntry(symbol="TCS-EQ", token="11536"),
        WatchlistEntry(symbol="HDFCBANK-EQ", token="1333"),
        WatchlistEntry(symbol="INFY-EQ", token="1594"),
        WatchlistEntry(symbol="ICICIBANK-EQ", token="4963"),
        WatchlistEntry(symbol="SBIN-EQ", token="3045"),
        WatchlistEntry(symbol="ITC-EQ", token="1660"),
        WatchlistEntry(symbol="LT-EQ", token="11483"),
        WatchlistEntry(symbol="BHARTIARTL-EQ", token="10604"),
        WatchlistEntry(symbol="HINDUNILVR-EQ", token="1394"),
    ]


class MarketConfig(BaseModel):
    """Which slice of the instrument master counts as 'equity' and what the overview shows."""

    exchange_segment: str = Field(default="NSE")
    equity_suffix: str = Field(default="-EQ")
    utc_offset_minutes: int = Field(default=330, ge=-720, le=840, description="Market timezone (IST = +05:30)")
    indices: List[IndexConfig] = Field(default_factory=_default_indices)
    watchlist_exchange: str = Field(default="NSE")
    watchlist: List[WatchlistEntry] = Field(default_factory=_default_watchlist)
    top_performers_count: int = Field(default=5, ge=1, le=50)

    @field_validator("exchange_segment", "watchlist_exchange")
    @classmethod
    def upper(cls, v: str) -> str:
        return str(v).strip().upper()


class IndicatorConfig(BaseModel):
    rsi_period: int = Field(default=14, ge=2, le=100)
    sma_periods: List[int] = Field(default=[20, 50, 200])
    history_days: int = Field(default=365, ge=30, le=2000)
    prev_close_lookback_days: int = Field(default=5, ge=1, le=15)

    @field_validator("sma_periods")
    @classmethod
    def validate_sma_periods(cls, v: List[int]) -> List[int]:
        out = sorted({int(p) for p in v})
        if not out or not set(out) <= set(REPORTED_SMA_PERIODS):
            raise ValueError(f"sma_periods must be a non-empty subset of {list(REPORTED_SMA_PERIODS)}")
        return out


class APIConfig(BaseModel):
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3001, ge=1, le=65535)
    cors_origins: List[str] = Field(default=["http://localhost:3000", "http://localhost:5173"])


class GatewayConfig(BaseSettings):
    """Main configuration class for the gateway.

    YAML is parsed as base config, then env overrides are re-applied for secrets.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    log_level: str = Field(default="INFO")

    smartapi: SmartApiConfig = Field(default_factory=SmartApiConfig)
    gemini: GeminiConfig = Field(default_factory=GeminiConfig)
    market: MarketConfig = Field(default_factory=MarketConfig)
    indicators: IndicatorConfig = Field(default_factory=IndicatorConfig)
    api: APIConfig = Field(default_factory=APIConfig)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if str(v).upper() not in valid:
            raise ValueError(f"Log level must be one of: {sorted(valid)}")
        return str(v).upper()

    @classmethod
    def from_yaml(cls, yaml_path: Optional[Path], environ: Optional[Dict[str, str]] = None) -> "GatewayConfig":
        """Load configuration from YAML (optional) and apply env overrides on top.

        Steps:
        1) Parse YAML -> base config dict (empty when no file)
        2) Validate into model
        3) Apply env overrides (SMARTAPI__API_KEY, GEMINI_API_KEY, etc.)
        """
        data: Dict = {}
        if yaml_path is not None:
            if not yaml_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {yaml_path}")
            try:
                with open(yaml_path, "r", encoding="utf-8") as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in configuration file: {e}")

        try:
            base = cls.model_validate(data)
        except ValidationError as e:
            raise ValueError(f"Configuration validation error: {e}")

        env = os.environ if environ is None else environ
        _apply_env_overrides(base, env)
        return base


def _first(env: Dict[str, str], *names: str) -> Optional[str]:
    for name in names:
        value = env.get(name)
        if value:
            return value
    return None


def _apply_env_overrides(base: GatewayConfig, env: Dict[str, str]) -> None:
    # Nested names first, then the flat names the frontend deployment already uses.
    api_key = _first(env, "SMARTAPI__API_KEY", "SMARTAPI_API_KEY")
    if api_key:
        base.smartapi.api_key = api_key

    client_code = _first(env, "SMARTAPI__CLIENT_CODE", "SMARTAPI_CLIENT_CODE")
    if client_code:
        base.smartapi.client_code = client_code

    password = _first(env, "SMARTAPI__PASSWORD", "SMARTAPI_PASSWORD")
    if password:
        base.smartapi.password = password

    gemini_key = _first(env, "GEMINI__API_KEY", "GEMINI_API_KEY")
    if gemini_key:
        base.gemini.api_key = gemini_key

    gemini_model = _first(env, "GEMINI__MODEL", "GEMINI_MODEL")
    if gemini_model:
        base.gemini.model = gemini_model

    log_level = env.get("LOG_LEVEL")
    if log_level:
        if log_level.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"LOG_LEVEL not recognised: {log_level!r}")
        base.log_level = log_level.upper()

    port = _first(env, "API__PORT", "PORT")
    if port:
        try:
            base.api.port = int(port)
        except ValueError:
            raise ValueError(f"PORT must be an integer, got {port!r}")


def load_config(config_path: Optional[Path] = None, environ: Optional[Dict[str, str]] = None) -> GatewayConfig:
    """Load configuration from YAML + .env (env wins for secrets)."""

    if environ is None:
        load_dotenv(dotenv_path=Path(".env"))

    if config_path is None:
        possible_paths = [Path("config/default.yaml"), Path("config/config.yaml"), Path("config.yaml")]
        for path in possible_paths:
            if path.exists():
                config_path = path
                break

    return GatewayConfig.from_yaml(config_path, environ=environ)


def require_broker_credentials(config: GatewayConfig) -> SmartApiConfig:
    """Fail before any network call when the broker login cannot possibly succeed."""
    sa = config.smartapi
    missing = [name for name, value in (
        ("SMARTAPI__API_KEY", sa.api_key),
        ("SMARTAPI__CLIENT_CODE", sa.client_code),
        ("SMARTAPI__PASSWORD", sa.password),
    ) if not value]
    if missing:
        raise ConfigurationError(
            "Broker credentials are not configured on the server.",
            details={"missing": missing},
        )
    return sa


def require_gemini_key(config: GatewayConfig) -> str:
    if not config.gemini.api_key:
        raise ConfigurationError("AI API key is not configured on the server.")
    return config.gemini.api_key
