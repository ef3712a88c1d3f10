"""Instrument master filtering."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List

JsonDict = Dict[str, Any]


def is_equity(instrument: Any, exchange_segment: str, symbol_suffix: str) -> bool:
    if not isinstance(instrument, dict):
        return False
    segment = instrument.get("exch_seg")
    symbol = instrument.get("symbol")
    if not isinstance(segment, str) or not isinstance(symbol, str):
        return False
    return segment == exchange_segment and symbol.endswith(symbol_suffix)


def filter_equities(instruments: Iterable[Any], exchange_segment: str = "NSE", symbol_suffix: str = "-EQ") -> List[JsonDict]:
    """Keep only cash-equity rows of one exchange segment (e.g. NSE + '-EQ')."""
    return [i for i in instruments if is_equity(i, exchange_segment, symbol_suffix)]
