"""Entrypoint.

Usage:
  python -m market_gateway.app.main api                       # run FastAPI server
  python -m market_gateway.app.main analyze --token 3045 --totp 123456
                                                              # one-shot stock analysis (JSON on stdout)
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

import uvicorn

from market_gateway.infrastructure.logging.logging import configure_logging, get_logger
from market_gateway.infrastructure.smartapi.smartapi_client import SmartApiClient
from market_gateway.infrastructure.utils.config import load_config, require_broker_credentials
from market_gateway.models.errors import GatewayError
from market_gateway.services.market.analysis import analyze_stock


async def run_analysis(token: str, exchange: str, totp: str) -> int:
    config = load_config()
    configure_logging(config.log_level)
    log = get_logger("cli")

    client = SmartApiClient(config.smartapi)
    try:
        creds = require_broker_credentials(config)
        session = await client.login(creds.client_code, creds.password, totp)
        snapshot = await analyze_stock(
            client,
            session,
            exchange,
            token,
            config.indicators,
            utc_offset_minutes=config.market.utc_offset_minutes,
        )
    except GatewayError as e:
        log.error("analysis_failed", error=e.message, details=e.details)
        return 1
    finally:
        await client.aclose()

    print(json.dumps(snapshot.to_dict(), indent=2))
    return 0


def main() -> None:
    parser = argparse.ArgumentParser("market-gateway")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("api", help="Run the HTTP API")

    analyze = sub.add_parser("analyze", help="Compute indicators for one instrument")
    analyze.add_argument("--token", required=True, help="Instrument (symbol) token, e.g. 3045")
    analyze.add_argument("--exchange", default="NSE")
    analyze.add_argument("--totp", required=True, help="Current TOTP code for the broker login")

    args = parser.parse_args()

    if args.command == "api":
        config = load_config()
        uvicorn.run(
            "market_gateway.api.server:create_app",
            factory=True,
            host=config.api.host,
            port=config.api.port,
            reload=False,
        )
        return

    if args.command == "analyze":
        sys.exit(asyncio.run(run_analysis(args.token, args.exchange.upper(), args.totp)))


if __name__ == "__main__":
    main()
