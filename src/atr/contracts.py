from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Protocol

from sst.models import CandleSnapshot, MetadataSnapshot, TickerSnapshot


@dataclass(frozen=True)
class KeyDetails:
    current_price: Decimal | None = None
    volume_24h: Decimal | None = None
    liquidity: Decimal | None = None
    price_change_24h: Decimal | None = None
    market_cap: Decimal | None = None

    def as_dict(self) -> dict[str, str | None]:
        return {
            "current_price": _text(self.current_price),
            "volume_24h": _text(self.volume_24h),
            "liquidity": _text(self.liquidity),
            "price_change_24h": _text(self.price_change_24h),
            "market_cap": _text(self.market_cap),
        }


def _text(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


@dataclass(frozen=True)
class SnapshotBundle:
    ticker: TickerSnapshot | None
    base_metadata: MetadataSnapshot | None
    quote_metadata: MetadataSnapshot | None
    minute_candles: tuple[CandleSnapshot, ...]
    quarter_hour_candles: tuple[CandleSnapshot, ...]
    details: KeyDetails


@dataclass(frozen=True)
class AnalysisRequest:
    token_id: int
    chain_id: str
    pool_address: str
    symbol: str | None
    quote_symbol: str | None
    reference_price: Decimal | None
    bundle: SnapshotBundle


@dataclass(frozen=True)
class AnalysisResult:
    summary: str
    insights: tuple[str, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)
    generated_at: datetime | None = None


class AnalysisProvider(Protocol):
    def analyze(self, request: AnalysisRequest) -> AnalysisResult:
        ...


class NotificationSink(Protocol):
    def publish(self, topic: str, payload: dict[str, Any]) -> None:
        ...


Subscriber = Callable[[str, dict[str, Any]], None]


def token_topic(token_id: int) -> str:
    return f"token_status:{token_id}"
