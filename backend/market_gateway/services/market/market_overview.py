"""Index levels and top gainers of a watchlist, from FULL-mode market quotes."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Dict, List, Optional

from market_gateway.infrastructure.logging.logging import get_logger
from market_gateway.infrastructure.utils.config import MarketConfig
from market_gateway.models.session_models import Session

log = get_logger("market_overview")

JsonDict = Dict[str, Any]


def _num(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _by_token(rows: List[JsonDict]) -> Dict[str, JsonDict]:
    return {str(r.get("symbolToken")): r for r in rows if r.get("symbolToken") is not None}


async def fetch_indices(client: Any, session: Session, market: MarketConfig) -> List[JsonDict]:
    exchange_tokens: Dict[str, List[str]] = defaultdict(list)
    for idx in market.indices:
        exchange_tokens[idx.exchange].append(idx.token)
    if not exchange_tokens:
        return []

    rows = _by_token(await client.get_quotes(session, "FULL", dict(exchange_tokens)))
    out: List[JsonDict] = []
    for idx in market.indices:
        row = rows.get(idx.token)
        if row is None:
            log.warning("index_quote_missing", name=idx.name, token=idx.token)
            continue
        out.append(
            {
                "name": idx.name,
                "ltp": _num(row.get("ltp")),
                "netChange": _num(row.get("netChange")),
                "percentChange": _num(row.get("percentChange")),
            }
        )
    return out


async def fetch_top_performers(client: Any, session: Session, market: MarketConfig) -> List[JsonDict]:
    if not market.watchlist:
        return []
    tokens = [w.token for w in market.watchlist]
    rows = _by_token(await client.get_quotes(session, "FULL", {market.watchlist_exchange: tokens}))

    performers: List[JsonDict] = []
    for entry in market.watchlist:
        row = rows.get(entry.token)
        if row is None:
            continue
        pct = _num(row.get("percentChange"))
        if pct is None:
            continue
        performers.append(
            {
                "symbol": row.get("tradingSymbol") or entry.symbol,
                "token": entry.token,
                "ltp": _num(row.get("ltp")),
                "netChange": _num(row.get("netChange")),
                "percentChange": pct,
            }
        )
    performers.sort(key=lambda p: p["percentChange"], reverse=True)
    return performers[: market.top_performers_count]


async def market_overview(client: Any, session: Session, market: MarketConfig) -> JsonDict:
    indices = await fetch_indices(client, session, market)
    top = await fetch_top_performers(client, session, market)
    return {"indices": indices, "topPerformers": top}
