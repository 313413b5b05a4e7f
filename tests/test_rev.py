from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from mdc.contracts import CandleRecord, MetadataRecord, TickerRecord
from rev.service import ReadinessEvaluator, tier_for
from sst.bootstrap import get_connection, run_migrations
from sst.repository import SnapshotRepository

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def create_repo() -> SnapshotRepository:
    conn = get_connection(":memory:")
    run_migrations(conn)
    return SnapshotRepository(conn=conn, now_fn=lambda: NOW)


def _metadata(role: str) -> MetadataRecord:
    return MetadataRecord(
        role=role,  # type: ignore[arg-type]
        address=None,
        name=None,
        symbol=role.upper(),
        decimals=None,
        coingecko_coin_id=None,
        image_url=None,
        price_usd=None,
    )


def _ticker() -> TickerRecord:
    return TickerRecord(
        chain_id="ethereum",
        pair_address="0xpool",
        dex_id=None,
        url=None,
        price_usd=Decimal("1"),
        price_native=None,
        liquidity_usd=None,
        volume_24h=None,
        price_change_24h=None,
        fdv=None,
        market_cap=None,
        txns_24h_buys=None,
        txns_24h_sells=None,
        pair_created_at=None,
    )


def _candle(ts: int) -> CandleRecord:
    one = Decimal("1")
    return CandleRecord(timestamp=ts, open=one, high=one, low=one, close=one, volume=one)


def test_tier_thresholds() -> None:
    assert tier_for(0) == "none"
    assert tier_for(1) == "some"
    assert tier_for(2) == "some"
    assert tier_for(3) == "lots"


def test_token_without_snapshots_is_not_ready() -> None:
    repo = create_repo()
    try:
        token, _ = repo.upsert_token(chain_id="ethereum", pool_address="0xpool", user_id="alice")
        status = ReadinessEvaluator(repo).evaluate(token.id)

        assert status.tier == "none"
        assert status.ready_for_analysis is False
        assert status.last_updated is None
        assert status.availability() == {"has_ticker": False, "has_metadata": False, "has_candles": False}
    finally:
        repo.close()


def test_base_metadata_and_candles_without_ticker_is_ready() -> None:
    repo = create_repo()
    try:
        token, _ = repo.upsert_token(chain_id="ethereum", pool_address="0xpool", user_id="alice")
        repo.insert_metadata_snapshot(token.id, _metadata("base"), fetched_at=NOW - timedelta(minutes=3))
        repo.insert_candles(token.id, "minute", 1, [_candle(60)], fetched_at=NOW - timedelta(minutes=1))

        status = ReadinessEvaluator(repo).evaluate(token.id)

        assert status.tier == "some"
        assert status.ready_for_analysis is True
        assert status.has_ticker is False
        assert status.candle_count == 1
        assert status.last_updated == NOW - timedelta(minutes=1)
    finally:
        repo.close()


def test_quote_only_metadata_counts_toward_tier_but_not_gate() -> None:
    repo = create_repo()
    try:
        token, _ = repo.upsert_token(chain_id="ethereum", pool_address="0xpool", user_id="alice")
        repo.insert_metadata_snapshot(token.id, _metadata("quote"))
        repo.insert_candles(token.id, "minute", 1, [_candle(60)])

        status = ReadinessEvaluator(repo).evaluate(token.id)

        assert status.has_metadata is True
        assert status.metadata_count == 1
        assert status.tier == "some"
        assert status.ready_for_analysis is False
    finally:
        repo.close()


def test_single_quote_metadata_snapshot_is_tier_some() -> None:
    repo = create_repo()
    try:
        token, _ = repo.upsert_token(chain_id="ethereum", pool_address="0xpool", user_id="alice")
        repo.insert_metadata_snapshot(token.id, _metadata("quote"))

        status = ReadinessEvaluator(repo).evaluate(token.id)

        assert status.tier == "some"
        assert status.metadata_count == 1
        assert status.has_metadata is True
        assert status.ready_for_analysis is False
    finally:
        repo.close()


def test_all_sources_present_is_lots() -> None:
    repo = create_repo()
    try:
        token, _ = repo.upsert_token(chain_id="ethereum", pool_address="0xpool", user_id="alice")
        repo.insert_ticker_snapshot(token.id, _ticker(), fetched_at=NOW)
        repo.insert_metadata_snapshot(token.id, _metadata("base"))
        repo.insert_candles(token.id, "hour", 4, [_candle(3600)])

        status = ReadinessEvaluator(repo).evaluate(token.id)

        assert status.tier == "lots"
        assert status.ready_for_analysis is True
        assert status.available_sources == 3
    finally:
        repo.close()
