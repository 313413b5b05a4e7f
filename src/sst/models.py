from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

SourceType = Literal["ticker", "metadata", "candle"]
MetadataRole = Literal["base", "quote"]


@dataclass(frozen=True)
class Token:
    id: int
    chain_id: str
    pool_address: str
    user_id: str
    symbol: str | None
    quote_symbol: str | None
    token_url: str | None
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class TickerSnapshot:
    id: int
    token_id: int
    chain_id: str | None
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
    fetched_at: datetime
    created_at: datetime
    payload: dict[str, Any] = field(default_factory=dict)

    def buy_sell_ratio(self) -> Decimal | None:
        if not self.txns_24h_buys or not self.txns_24h_sells:
            return None
        return Decimal(self.txns_24h_buys) / Decimal(self.txns_24h_sells)


@dataclass(frozen=True)
class MetadataSnapshot:
    id: int
    token_id: int
    role: MetadataRole
    address: str | None
    name: str | None
    symbol: str | None
    decimals: int | None
    coingecko_coin_id: str | None
    image_url: str | None
    price_usd: Decimal | None
    fetched_at: datetime
    created_at: datetime
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CandleSnapshot:
    id: int
    token_id: int
    timeframe: str
    aggregate: int
    candle_timestamp: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal
    fetched_at: datetime
    created_at: datetime


@dataclass(frozen=True)
class LedgerTransaction:
    id: int
    token_id: int
    user_id: str
    transaction_type: Literal["buy", "sell"]
    amount: Decimal
    unit_price: Decimal
    tx_hash: str | None
    note: str | None
    created_at: datetime

    @property
    def total_value(self) -> Decimal:
        return self.amount * self.unit_price
