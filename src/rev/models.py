from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

Tier = Literal["none", "some", "lots"]


@dataclass(frozen=True)
class ReadinessStatus:
    token_id: int
    tier: Tier
    ready_for_analysis: bool
    has_ticker: bool
    has_metadata: bool
    has_candles: bool
    ticker_count: int
    metadata_count: int
    candle_count: int
    last_updated: datetime | None

    @property
    def available_sources(self) -> int:
        return sum((self.has_ticker, self.has_metadata, self.has_candles))

    def availability(self) -> dict[str, bool]:
        return {
            "has_ticker": self.has_ticker,
            "has_metadata": self.has_metadata,
            "has_candles": self.has_candles,
        }
