"""RSI (Wilder) and simple moving averages over a closing-price series.

Each indicator needs a minimum number of closes; with fewer, its field stays None.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from market_gateway.models.market_models import REPORTED_SMA_PERIODS, Indicators


def sma(closes: Sequence[float], period: int) -> Optional[float]:
    """Mean of the trailing `period` closes."""
    if period <= 0 or len(closes) < period:
        return None
    window = closes[-period:]
    return float(sum(window)) / period


def rsi(closes: Sequence[float], period: int = 14) -> Optional[float]:
    """Latest RSI value with Wilder smoothing. Needs period + 1 closes."""
    if period <= 1 or len(closes) < period + 1:
        return None

    changes = [float(closes[i]) - float(closes[i - 1]) for i in range(1, len(closes))]

    # Seed with simple averages of the first `period` moves
    seed = changes[:period]
    avg_gain = sum(max(c, 0.0) for c in seed) / period
    avg_loss = sum(max(-c, 0.0) for c in seed) / period

    for change in changes[period:]:
        avg_gain = (avg_gain * (period - 1) + max(change, 0.0)) / period
        avg_loss = (avg_loss * (period - 1) + max(-change, 0.0)) / period

    if avg_loss == 0.0:
        # Flat series: no momentum either way
        return 50.0 if avg_gain == 0.0 else 100.0
    rs = avg_gain / avg_loss
    return 100.0 - (100.0 / (1.0 + rs))


@dataclass
class IndicatorEngine:
    rsi_period: int = 14
    sma_periods: List[int] = field(default_factory=lambda: [20, 50, 200])

    def _validate_periods(self) -> None:
        if self.rsi_period <= 1:
            raise ValueError("rsi_period must be > 1")
        for p in self.sma_periods:
            if p not in REPORTED_SMA_PERIODS:
                raise ValueError(f"sma period {p} has no Indicators field; use {list(REPORTED_SMA_PERIODS)}")

    def min_points(self) -> int:
        """Closes needed before every indicator is populated."""
        return max([self.rsi_period + 1, *self.sma_periods])

    def compute(self, closes: Sequence[float]) -> Indicators:
        self._validate_periods()
        averages = {p: sma(closes, p) for p in self.sma_periods}
        return Indicators(
            rsi=rsi(closes, self.rsi_period),
            dma20=averages.get(20),
            dma50=averages.get(50),
            dma200=averages.get(200),
        )


def compute_indicators(closes: Sequence[float]) -> Indicators:
    return IndicatorEngine().compute(closes)
