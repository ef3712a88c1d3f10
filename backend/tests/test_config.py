import pytest

from market_gateway.infrastructure.utils.config import (
    GatewayConfig,
    load_config,
    require_broker_credentials,
    require_gemini_key,
)
from market_gateway.models.errors import ConfigurationError


def test_defaults_without_yaml(bare_config):
    assert bare_config.log_level == "INFO"
    assert bare_config.market.exchange_segment == "NSE"
    assert bare_config.market.equity_suffix == "-EQ"
    assert bare_config.indicators.sma_periods == [20, 50, 200]
    assert bare_config.indicators.prev_close_lookback_days == 5
    assert bare_config.smartapi.api_key is None


def test_env_overrides_secrets(config):
    assert config.smartapi.api_key == "test-private-key"
    assert config.smartapi.client_code == "A123456"
    assert config.gemini.api_key == "test-gemini-key"


def test_flat_port_and_log_level():
    cfg = GatewayConfig.from_yaml(None, environ={"PORT": "8080", "LOG_LEVEL": "debug"})
    assert cfg.api.port == 8080
    assert cfg.log_level == "DEBUG"


def test_bad_log_level_rejected():
    with pytest.raises(ValueError):
        GatewayConfig.from_yaml(None, environ={"LOG_LEVEL": "chatty"})


def test_yaml_then_env(tmp_path):
    path = tmp_path / "gateway.yaml"
    path.write_text(
        "smartapi:\n  api_key: from-yaml\n  client_code: C1\n"
        "market:\n  exchange_segment: bse\n"
        "indicators:\n  sma_periods: [50, 20, 20]\n",
        encoding="utf-8",
    )
    cfg = load_config(path, environ={"SMARTAPI__API_KEY": "from-env"})
    assert cfg.smartapi.api_key == "from-env"
    assert cfg.smartapi.client_code == "C1"
    assert cfg.market.exchange_segment == "BSE"
    assert cfg.indicators.sma_periods == [20, 50]


def test_missing_yaml_path_is_an_error(tmp_path):
    with pytest.raises(FileNotFoundError):
        GatewayConfig.from_yaml(tmp_path / "nope.yaml", environ={})


def test_invalid_yaml_values(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("indicators:\n  history_days: 3\n", encoding="utf-8")
    with pytest.raises(ValueError):
        GatewayConfig.from_yaml(path, environ={})


def test_require_helpers(bare_config, config):
    with pytest.raises(ConfigurationError) as exc:
        require_broker_credentials(bare_config)
    assert set(exc.value.details["missing"]) == {
        "SMARTAPI__API_KEY", "SMARTAPI__CLIENT_CODE", "SMARTAPI__PASSWORD",
    }
    with pytest.raises(ConfigurationError):
        require_gemini_key(bare_config)

    assert require_broker_credentials(config).password == "1234"
    assert require_gemini_key(config) == "test-gemini-key"


def test_sma_periods_limited_to_reported_fields(tmp_path):
    path = tmp_path / "periods.yaml"
    path.write_text("indicators:\n  sma_periods: [21, 50]\n", encoding="utf-8")
    with pytest.raises(ValueError):
        GatewayConfig.from_yaml(path, environ={})
