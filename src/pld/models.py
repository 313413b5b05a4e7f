from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Literal

TransactionType = Literal["buy", "sell"]


@dataclass(frozen=True)
class TransactionInput:
    transaction_type: TransactionType
    amount: Decimal
    unit_price: Decimal
    tx_hash: str | None = None
    note: str | None = None


@dataclass(frozen=True)
class PositionSummary:
    token_id: int
    user_id: str
    transaction_count: int
    total_bought: Decimal
    total_sold: Decimal
    net_holdings: Decimal
    average_buy_price: Decimal | None
    total_invested: Decimal
    realized_pnl: Decimal
    unrealized_pnl: Decimal
    total_pnl: Decimal
    pnl_percentage: Decimal
    current_price: Decimal | None
    current_value: Decimal
