from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
import sys
import threading

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from mdc.contracts import CandleRecord, MetadataRecord, TickerRecord
from sst.bootstrap import get_connection, run_migrations
from sst.errors import TokenNotFoundError
from sst.repository import SnapshotRepository

POOL = "0xAbCdEf0000000000000000000000000000000001"


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += timedelta(seconds=seconds)


def create_repo(clock: _Clock | None = None) -> SnapshotRepository:
    conn = get_connection(":memory:")
    run_migrations(conn)
    return SnapshotRepository(conn=conn, now_fn=clock or _Clock())


def _ticker(price: str = "1.25") -> TickerRecord:
    return TickerRecord(
        chain_id="ethereum",
        pair_address=POOL.lower(),
        dex_id="uniswap",
        url=None,
        price_usd=Decimal(price),
        price_native=None,
        liquidity_usd=Decimal("250000.10"),
        volume_24h=Decimal("1000"),
        price_change_24h=Decimal("-1.5"),
        fdv=None,
        market_cap=None,
        txns_24h_buys=10,
        txns_24h_sells=4,
        pair_created_at=None,
        payload={"priceUsd": price},
    )


def _candle(ts: int, close: str = "1.0") -> CandleRecord:
    value = Decimal(close)
    return CandleRecord(timestamp=ts, open=value, high=value, low=value, close=value, volume=Decimal("5"))


def test_upsert_token_is_idempotent_across_chain_aliases() -> None:
    repo = create_repo()
    try:
        first, created = repo.upsert_token(chain_id="eth", pool_address=POOL, user_id="alice")
        second, created_again = repo.upsert_token(
            chain_id="Ethereum",
            pool_address=POOL.lower(),
            user_id="bob",
            symbol="PEPE",
        )

        assert created is True
        assert created_again is False
        assert first.id == second.id
        assert second.chain_id == "ethereum"
        assert second.pool_address == POOL.lower()
        assert second.user_id == "alice"
        assert second.symbol == "PEPE"
        assert len(repo.list_tokens()) == 1
        assert repo.find_token("eth", POOL).id == first.id
        assert repo.find_token("bsc", POOL) is None
    finally:
        repo.close()


def test_fill_token_display_never_overwrites() -> None:
    repo = create_repo()
    try:
        token, _ = repo.upsert_token(chain_id="ethereum", pool_address=POOL, user_id="alice", symbol="PEPE")
        updated = repo.fill_token_display(token.id, symbol="OTHER", quote_symbol="WETH")
        assert updated.symbol == "PEPE"
        assert updated.quote_symbol == "WETH"
    finally:
        repo.close()


def test_get_token_raises_not_found() -> None:
    repo = create_repo()
    try:
        with pytest.raises(TokenNotFoundError) as exc_info:
            repo.get_token(999)
        assert exc_info.value.code == "SST_TOKEN_NOT_FOUND"
        with pytest.raises(TokenNotFoundError):
            repo.insert_ticker_snapshot(999, _ticker())
    finally:
        repo.close()


def test_latest_ticker_snapshot_orders_by_creation_then_id() -> None:
    clock = _Clock()
    repo = create_repo(clock)
    try:
        token, _ = repo.upsert_token(chain_id="ethereum", pool_address=POOL, user_id="alice")
        repo.insert_ticker_snapshot(token.id, _ticker("1.00"))
        clock.advance(60)
        repo.insert_ticker_snapshot(token.id, _ticker("1.10"))
        # same created_at: higher id wins
        repo.insert_ticker_snapshot(token.id, _ticker("1.20"))

        latest = repo.latest_ticker_snapshot(token.id)
        assert latest is not None
        assert latest.price_usd == Decimal("1.20")
        assert latest.liquidity_usd == Decimal("250000.10")
        assert latest.payload == {"priceUsd": "1.20"}
        assert latest.fetched_at == clock.now
        assert repo.count_ticker_snapshots(token.id) == 3
    finally:
        repo.close()


def test_latest_metadata_snapshot_filters_by_role() -> None:
    repo = create_repo()
    try:
        token, _ = repo.upsert_token(chain_id="ethereum", pool_address=POOL, user_id="alice")
        for role, symbol in (("base", "PEPE"), ("quote", "WETH")):
            repo.insert_metadata_snapshot(
                token.id,
                MetadataRecord(
                    role=role,
                    address=None,
                    name=None,
                    symbol=symbol,
                    decimals=18,
                    coingecko_coin_id=None,
                    image_url=None,
                    price_usd=None,
                ),
            )

        assert repo.latest_metadata_snapshot(token.id, role="base").symbol == "PEPE"
        assert repo.latest_metadata_snapshot(token.id).symbol == "WETH"
        assert repo.count_metadata_snapshots(token.id) == 2
        assert repo.count_metadata_snapshots(token.id, role="base") == 1
    finally:
        repo.close()


def test_insert_candles_counts_only_new_rows() -> None:
    repo = create_repo()
    try:
        token, _ = repo.upsert_token(chain_id="ethereum", pool_address=POOL, user_id="alice")
        first = repo.insert_candles(token.id, "minute", 1, [_candle(60), _candle(120), _candle(180)])
        second = repo.insert_candles(token.id, "minute", 1, [_candle(120), _candle(180), _candle(240)])
        again = repo.insert_candles(token.id, "minute", 1, [_candle(240)])
        other_series = repo.insert_candles(token.id, "minute", 15, [_candle(120)])

        assert (first, second, again, other_series) == (3, 1, 0, 1)
        assert repo.count_candles(token.id) == 5
        assert repo.latest_candle(token.id, "minute", 1).candle_timestamp == 240
        assert repo.insert_candles(token.id, "minute", 1, []) == 0
    finally:
        repo.close()


def _insert_from_threads(repos: list[SnapshotRepository], token_id: int, batch: list[CandleRecord]) -> list[int]:
    barrier = threading.Barrier(len(repos))

    def insert(repo: SnapshotRepository) -> int:
        barrier.wait(timeout=5)
        return repo.insert_candles(token_id, "minute", 1, batch)

    with ThreadPoolExecutor(max_workers=len(repos)) as pool:
        return list(pool.map(insert, repos))


def test_concurrent_duplicate_candle_inserts_keep_one_row() -> None:
    repo = create_repo()
    try:
        token, _ = repo.upsert_token(chain_id="ethereum", pool_address=POOL, user_id="alice")
        batch = [_candle(60 * step) for step in range(1, 21)]

        counts = _insert_from_threads([repo] * 8, token.id, batch)

        assert sum(counts) == 20
        assert repo.count_candles(token.id) == 20
    finally:
        repo.close()


def test_concurrent_inserts_across_connections_keep_one_row(tmp_path: Path) -> None:
    db_path = tmp_path / "state" / "dexiq.db"
    repos = []
    for _ in range(4):
        conn = get_connection(db_path)
        run_migrations(conn)
        repos.append(SnapshotRepository(conn=conn, now_fn=_Clock()))
    try:
        token, _ = repos[0].upsert_token(chain_id="ethereum", pool_address=POOL, user_id="alice")
        batch = [_candle(60 * step) for step in range(1, 11)] + [_candle(60)]

        counts = _insert_from_threads(repos, token.id, batch)

        assert sum(counts) == 10
        assert repos[1].count_candles(token.id) == 10
    finally:
        for repo in repos:
            repo.close()


def test_list_candles_returns_most_recent_oldest_first() -> None:
    repo = create_repo()
    try:
        token, _ = repo.upsert_token(chain_id="ethereum", pool_address=POOL, user_id="alice")
        repo.insert_candles(token.id, "minute", 1, [_candle(ts * 60, str(ts)) for ts in range(1, 11)])

        tail = repo.list_candles(token.id, "minute", 1, limit=3)
        assert [candle.candle_timestamp for candle in tail] == [480, 540, 600]
        assert tail[-1].close == Decimal("10")

        since = repo.list_candles(token.id, "minute", 1, since_timestamp=540, limit=60)
        assert [candle.candle_timestamp for candle in since] == [540, 600]
    finally:
        repo.close()


def test_transactions_are_listed_in_accounting_order() -> None:
    clock = _Clock()
    repo = create_repo(clock)
    try:
        token, _ = repo.upsert_token(chain_id="ethereum", pool_address=POOL, user_id="alice")
        repo.append_transaction(
            token_id=token.id,
            user_id="alice",
            transaction_type="sell",
            amount=Decimal("1"),
            unit_price=Decimal("2"),
            created_at=clock.now + timedelta(minutes=5),
        )
        repo.append_transaction(
            token_id=token.id,
            user_id="alice",
            transaction_type="buy",
            amount=Decimal("0.000000000000000001"),
            unit_price=Decimal("1.5"),
        )
        repo.append_transaction(
            token_id=token.id,
            user_id="bob",
            transaction_type="buy",
            amount=Decimal("3"),
            unit_price=Decimal("1"),
        )

        rows = repo.list_transactions(token.id, "alice")
        assert [row.transaction_type for row in rows] == ["buy", "sell"]
        assert rows[0].amount == Decimal("0.000000000000000001")
        assert str(rows[0].amount) == "1E-18"
        assert len(repo.list_transactions(token.id, "bob")) == 1
    finally:
        repo.close()


def test_migrations_are_rerunnable() -> None:
    conn = get_connection(":memory:")
    run_migrations(conn)
    run_migrations(conn)
    versions = conn.execute("SELECT COUNT(*) AS cnt FROM schema_version").fetchone()
    assert versions["cnt"] == 1
    conn.close()
