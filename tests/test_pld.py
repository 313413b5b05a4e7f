from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from itertools import permutations
from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from mdc.contracts import MetadataRecord, TickerRecord
from pld.errors import (
    PldAmountNotPositiveError,
    PldDecimalInvalidError,
    PldRequiredFieldMissingError,
    PldTransactionTypeInvalidError,
    PldUnitPriceNotPositiveError,
)
from pld.ledger import (
    average_buy_price,
    build_position,
    current_position,
    pnl_percentage,
    realized_pnl,
    total_invested,
    unrealized_pnl,
)
from pld.service import LedgerService
from pld.validators import normalize_transaction
from sst.bootstrap import get_connection, run_migrations
from sst.errors import TokenNotFoundError
from sst.repository import SnapshotRepository


@dataclass(frozen=True)
class _Entry:
    transaction_type: str
    amount: Decimal
    unit_price: Decimal


def _buy(amount: str, price: str) -> _Entry:
    return _Entry("buy", Decimal(amount), Decimal(price))


def _sell(amount: str, price: str) -> _Entry:
    return _Entry("sell", Decimal(amount), Decimal(price))


def create_service() -> tuple[LedgerService, SnapshotRepository]:
    conn = get_connection(":memory:")
    run_migrations(conn)
    repo = SnapshotRepository(conn=conn, now_fn=lambda: datetime(2026, 3, 2, tzinfo=timezone.utc))
    return LedgerService(repo), repo


def test_buy_then_partial_sell_reference_case() -> None:
    entries = [_buy("10", "1.0"), _sell("4", "1.5")]

    assert average_buy_price(entries) == Decimal("1.0")
    assert current_position(entries) == Decimal("6")
    assert realized_pnl(entries) == Decimal("2.0")
    assert total_invested(entries) == Decimal("4.0")
    assert unrealized_pnl(entries, None) == Decimal("0")
    assert pnl_percentage(entries, None) == Decimal("50")


def test_weighted_average_and_unrealized() -> None:
    entries = [_buy("2", "10"), _buy("6", "20")]

    assert average_buy_price(entries) == Decimal("17.5")
    assert unrealized_pnl(entries, Decimal("20")) == Decimal("20")
    position = build_position(1, "alice", entries, Decimal("20"))
    assert position.total_pnl == Decimal("20")
    assert position.current_value == Decimal("160")
    assert position.pnl_percentage == Decimal("14.2857")


def test_position_is_order_independent() -> None:
    entries = [_buy("5", "1"), _sell("2", "3"), _buy("1", "4"), _sell("1", "1")]
    for ordering in permutations(entries):
        assert current_position(list(ordering)) == Decimal("3")


def test_unrealized_is_zero_when_flat_or_short() -> None:
    flat = [_buy("1", "2"), _sell("1", "3")]
    short = [_buy("1", "2"), _sell("3", "3")]

    assert unrealized_pnl(flat, Decimal("5")) == Decimal("0")
    assert unrealized_pnl(short, Decimal("5")) == Decimal("0")
    assert current_position(short) == Decimal("-2")
    assert unrealized_pnl([_buy("1", "2")], Decimal("0")) == Decimal("0")


def test_sells_without_buys_have_no_average() -> None:
    entries = [_sell("1", "2")]

    assert average_buy_price(entries) is None
    assert realized_pnl(entries) == Decimal("0")


def test_pnl_percentage_zero_when_nothing_invested() -> None:
    entries = [_buy("2", "5"), _sell("2", "5")]
    assert total_invested(entries) == Decimal("0")
    assert pnl_percentage(entries, Decimal("7")) == Decimal("0")
    assert pnl_percentage([], None) == Decimal("0")


def test_pnl_percentage_quantizes_large_ratios() -> None:
    entries = [_buy("1", "1e-30")]

    percentage = pnl_percentage(entries, Decimal("1e30"))

    assert percentage.as_tuple().exponent == -4
    assert percentage > Decimal("1e61")


def test_normalize_transaction_accepts_valid_payload() -> None:
    tx = normalize_transaction(
        {"transactionType": " BUY ", "amount": "1.5", "unitPrice": 0.25, "txHash": " 0xhash ", "note": ""}
    )
    assert tx.transaction_type == "buy"
    assert tx.amount == Decimal("1.5")
    assert tx.unit_price == Decimal("0.25")
    assert tx.tx_hash == "0xhash"
    assert tx.note is None


@pytest.mark.parametrize(
    ("payload", "error_type", "field"),
    [
        ({"transactionType": "hold", "amount": "1", "unitPrice": "1"}, PldTransactionTypeInvalidError, "transactionType"),
        ({"amount": "1", "unitPrice": "1"}, PldRequiredFieldMissingError, "transactionType"),
        ({"transactionType": "buy", "amount": "0", "unitPrice": "1"}, PldAmountNotPositiveError, "amount"),
        ({"transactionType": "sell", "amount": "-2", "unitPrice": "1"}, PldAmountNotPositiveError, "amount"),
        ({"transactionType": "buy", "amount": "1", "unitPrice": "0"}, PldUnitPriceNotPositiveError, "unitPrice"),
        ({"transactionType": "buy", "amount": "abc", "unitPrice": "1"}, PldDecimalInvalidError, "amount"),
        ({"transactionType": "buy", "amount": "NaN", "unitPrice": "1"}, PldDecimalInvalidError, "amount"),
        ({"transactionType": "buy", "amount": "1"}, PldRequiredFieldMissingError, "unitPrice"),
        ({"transactionType": "buy", "amount": "1e600000", "unitPrice": "1"}, PldDecimalInvalidError, "amount"),
        ({"transactionType": "buy", "amount": "1", "unitPrice": "1e-600000"}, PldDecimalInvalidError, "unitPrice"),
        ({"transactionType": "buy", "amount": "1" * 41, "unitPrice": "1"}, PldDecimalInvalidError, "amount"),
    ],
)
def test_normalize_transaction_rejects_invalid_payload(payload, error_type, field) -> None:
    with pytest.raises(error_type) as exc_info:
        normalize_transaction(payload)
    assert exc_info.value.field == field


def test_service_rejects_before_persisting() -> None:
    service, repo = create_service()
    try:
        token, _ = repo.upsert_token(chain_id="ethereum", pool_address="0xpool", user_id="alice")
        with pytest.raises(PldAmountNotPositiveError):
            service.record_transaction(token.id, "alice", {"transactionType": "buy", "amount": "0", "unitPrice": "1"})
        assert repo.list_transactions(token.id, "alice") == []

        with pytest.raises(TokenNotFoundError):
            service.record_transaction(404, "alice", {"transactionType": "buy", "amount": "1", "unitPrice": "1"})
    finally:
        repo.close()


def test_oversized_values_are_rejected_so_summary_stays_computable() -> None:
    service, repo = create_service()
    try:
        token, _ = repo.upsert_token(chain_id="ethereum", pool_address="0xpool", user_id="alice")
        with pytest.raises(PldDecimalInvalidError):
            service.record_transaction(
                token.id, "alice", {"transactionType": "buy", "amount": "1e600000", "unitPrice": "1e600000"}
            )
        assert repo.list_transactions(token.id, "alice") == []

        service.record_transaction(
            token.id, "alice", {"transactionType": "buy", "amount": "1e30", "unitPrice": "1e30"}
        )
        summary, entries = service.position_summary(token.id, "alice", Decimal("1e30"))
        assert len(entries) == 1
        assert summary.total_invested == Decimal("1e60")
    finally:
        repo.close()


def test_position_summary_falls_back_to_latest_prices() -> None:
    service, repo = create_service()
    try:
        token, _ = repo.upsert_token(chain_id="ethereum", pool_address="0xpool", user_id="alice")
        service.record_transaction(token.id, "alice", {"transactionType": "buy", "amount": "10", "unitPrice": "1"})

        summary, entries = service.position_summary(token.id, "alice")
        assert len(entries) == 1
        assert summary.current_price is None
        assert summary.unrealized_pnl == Decimal("0")

        repo.insert_metadata_snapshot(
            token.id,
            MetadataRecord(
                role="base",
                address=None,
                name=None,
                symbol="PEPE",
                decimals=None,
                coingecko_coin_id=None,
                image_url=None,
                price_usd=Decimal("1.5"),
            ),
        )
        summary, _ = service.position_summary(token.id, "alice")
        assert summary.current_price == Decimal("1.5")
        assert summary.unrealized_pnl == Decimal("5.0")

        repo.insert_ticker_snapshot(
            token.id,
            TickerRecord(
                chain_id="ethereum",
                pair_address="0xpool",
                dex_id=None,
                url=None,
                price_usd=Decimal("2"),
                price_native=None,
                liquidity_usd=None,
                volume_24h=None,
                price_change_24h=None,
                fdv=None,
                market_cap=None,
                txns_24h_buys=None,
                txns_24h_sells=None,
                pair_created_at=None,
            ),
        )
        summary, _ = service.position_summary(token.id, "alice")
        assert summary.current_price == Decimal("2")
        assert summary.total_pnl == Decimal("10")

        explicit, _ = service.position_summary(token.id, "alice", Decimal("3"))
        assert explicit.unrealized_pnl == Decimal("20")
    finally:
        repo.close()
