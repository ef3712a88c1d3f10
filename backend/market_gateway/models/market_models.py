"""Market domain models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

# Moving-average periods that have a field on Indicators (dma20, dma50, dma200)
REPORTED_SMA_PERIODS = (20, 50, 200)


@dataclass(frozen=True)
class Candle:
    timestamp: str
    open: float
    high: float
    low: float
    close: float
    volume: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }


@dataclass
class Indicators:
    rsi: Optional[float] = None
    dma20: Optional[float] = None
    dma50: Optional[float] = None
    dma200: Optional[float] = None


@dataclass(frozen=True)
class PriceResolution:
    current_price: Optional[float]
    previous_close: Optional[float]
    net_change: float
    percent_change: float
    source: str             # "live" | "historical"


@dataclass
class IndicatorSnapshot:
    current_price: Optional[float] = None
    net_change: Optional[float] = None
    percent_change: Optional[float] = None
    rsi: Optional[float] = None
    dma20: Optional[float] = None
    dma50: Optional[float] = None
    dma200: Optional[float] = None
    previous_close: Optional[float] = None
    price_source: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currentPrice": self.current_price,
            "netChange": self.net_change,
            "percentChange": self.percent_change,
            "rsi": self.rsi,
            "dma20": self.dma20,
            "dma50": self.dma50,
            "dma200": self.dma200,
            "previousClose": self.previous_close,
            "priceSource": self.price_source,
        }
