from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal, Protocol

Timeframe = Literal["minute", "hour", "day"]
MetadataRole = Literal["base", "quote"]

SUPPORTED_CANDLE_SERIES: tuple[tuple[Timeframe, int], ...] = (
    ("minute", 1),
    ("minute", 15),
    ("hour", 4),
    ("day", 1),
)


@dataclass(frozen=True)
class TickerRecord:
    chain_id: str
    pair_address: str
    dex_id: str | None
    url: str | None
    price_usd: Decimal | None
    price_native: Decimal | None
    liquidity_usd: Decimal | None
    volume_24h: Decimal | None
    price_change_24h: Decimal | None
    fdv: Decimal | None
    market_cap: Decimal | None
    txns_24h_buys: int | None
    txns_24h_sells: int | None
    pair_created_at: datetime | None
    base_symbol: str | None = None
    quote_symbol: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MetadataRecord:
    role: MetadataRole
    address: str | None
    name: str | None
    symbol: str | None
    decimals: int | None
    coingecko_coin_id: str | None
    image_url: str | None
    price_usd: Decimal | None
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CandleRecord:
    timestamp: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal


@dataclass(frozen=True)
class CandleRequest:
    chain_id: str
    pool_address: str
    timeframe: Timeframe
    aggregate: int
    from_timestamp: int | None
    before_timestamp: int
    limit: int = 1000


class TickerClient(Protocol):
    def fetch_pair(self, *, chain_id: str, pool_address: str) -> TickerRecord | None: ...


class MetadataClient(Protocol):
    def fetch_pool_tokens(self, *, chain_id: str, pool_address: str) -> list[MetadataRecord] | None: ...


class CandleClient(Protocol):
    def fetch_candles(self, req: CandleRequest) -> list[CandleRecord] | None: ...
