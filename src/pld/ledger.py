from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Iterable, Protocol

from .models import PositionSummary

ZERO = Decimal("0")
HUNDRED = Decimal("100")
PERCENT_Q = Decimal("0.0001")


class LedgerEntry(Protocol):
    transaction_type: str
    amount: Decimal
    unit_price: Decimal


def q_percent(value: Decimal) -> Decimal:
    # quantize needs room for every integer digit plus four places
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() + 6)
        return value.quantize(PERCENT_Q, rounding=ROUND_HALF_UP)


def _buys(entries: Iterable[LedgerEntry]) -> list[LedgerEntry]:
    return [entry for entry in entries if entry.transaction_type == "buy"]


def _sells(entries: Iterable[LedgerEntry]) -> list[LedgerEntry]:
    return [entry for entry in entries if entry.transaction_type == "sell"]


def total_bought(entries: list[LedgerEntry]) -> Decimal:
    return sum((entry.amount for entry in _buys(entries)), ZERO)


def total_sold(entries: list[LedgerEntry]) -> Decimal:
    return sum((entry.amount for entry in _sells(entries)), ZERO)


def average_buy_price(entries: list[LedgerEntry]) -> Decimal | None:
    buys = _buys(entries)
    bought = sum((entry.amount for entry in buys), ZERO)
    if bought == ZERO:
        return None
    cost = sum((entry.amount * entry.unit_price for entry in buys), ZERO)
    return cost / bought


def current_position(entries: list[LedgerEntry]) -> Decimal:
    # may go negative when sells exceed buys; reported as-is
    return total_bought(entries) - total_sold(entries)


def total_invested(entries: list[LedgerEntry]) -> Decimal:
    bought_value = sum((entry.amount * entry.unit_price for entry in _buys(entries)), ZERO)
    sold_value = sum((entry.amount * entry.unit_price for entry in _sells(entries)), ZERO)
    return bought_value - sold_value


def realized_pnl(entries: list[LedgerEntry]) -> Decimal:
    average = average_buy_price(entries)
    if average is None:
        return ZERO
    return sum(((entry.unit_price - average) * entry.amount for entry in _sells(entries)), ZERO)


def unrealized_pnl(entries: list[LedgerEntry], current_price: Decimal | None) -> Decimal:
    if current_price is None or current_price == ZERO:
        return ZERO
    position = current_position(entries)
    if position <= ZERO:
        return ZERO
    average = average_buy_price(entries)
    if average is None:
        return ZERO
    return (current_price - average) * position


def total_pnl(entries: list[LedgerEntry], current_price: Decimal | None) -> Decimal:
    return realized_pnl(entries) + unrealized_pnl(entries, current_price)


def pnl_percentage(entries: list[LedgerEntry], current_price: Decimal | None) -> Decimal:
    invested = total_invested(entries)
    if invested == ZERO:
        return ZERO
    return q_percent(total_pnl(entries, current_price) / invested * HUNDRED)


def current_value(entries: list[LedgerEntry], current_price: Decimal | None) -> Decimal:
    if current_price is None:
        return ZERO
    return current_position(entries) * current_price


def build_position(
    token_id: int,
    user_id: str,
    entries: list[LedgerEntry],
    current_price: Decimal | None,
) -> PositionSummary:
    return PositionSummary(
        token_id=token_id,
        user_id=user_id,
        transaction_count=len(entries),
        total_bought=total_bought(entries),
        total_sold=total_sold(entries),
        net_holdings=current_position(entries),
        average_buy_price=average_buy_price(entries),
        total_invested=total_invested(entries),
        realized_pnl=realized_pnl(entries),
        unrealized_pnl=unrealized_pnl(entries, current_price),
        total_pnl=total_pnl(entries, current_price),
        pnl_percentage=pnl_percentage(entries, current_price),
        current_price=current_price,
        current_value=current_value(entries, current_price),
    )
