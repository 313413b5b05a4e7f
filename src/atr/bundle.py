from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any

from sst.models import MetadataSnapshot, TickerSnapshot
from sst.repository import SnapshotRepository

from .contracts import KeyDetails, SnapshotBundle

MINUTE_CANDLE_LIMIT = 60
QUARTER_HOUR_CANDLE_LIMIT = 24
MINUTE_WINDOW = timedelta(minutes=60)
QUARTER_HOUR_WINDOW = timedelta(hours=6)


def _decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = Decimal(str(value))
    except InvalidOperation:
        return None
    return parsed if parsed.is_finite() else None


def _pool_value(metadata: MetadataSnapshot | None, *path: str) -> Decimal | None:
    if metadata is None:
        return None
    current: Any = metadata.payload.get("pool")
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return _decimal(current)


def extract_key_details(ticker: TickerSnapshot | None, metadata: MetadataSnapshot | None) -> KeyDetails:
    """Headline metrics, preferring the ticker snapshot and falling back to
    the pool attributes carried by the base metadata snapshot."""

    def first(*values: Decimal | None) -> Decimal | None:
        for value in values:
            if value is not None:
                return value
        return None

    return KeyDetails(
        current_price=first(
            ticker.price_usd if ticker else None,
            metadata.price_usd if metadata else None,
        ),
        volume_24h=first(
            ticker.volume_24h if ticker else None,
            _pool_value(metadata, "volume_usd", "h24"),
        ),
        liquidity=first(
            ticker.liquidity_usd if ticker else None,
            _pool_value(metadata, "reserve_in_usd"),
        ),
        price_change_24h=first(
            ticker.price_change_24h if ticker else None,
            _pool_value(metadata, "price_change_percentage", "h24"),
        ),
        market_cap=first(
            ticker.fdv if ticker else None,
            ticker.market_cap if ticker else None,
            _pool_value(metadata, "market_cap_usd"),
            _pool_value(metadata, "fdv_usd"),
        ),
    )


def build_snapshot_bundle(repository: SnapshotRepository, token_id: int, now: datetime) -> SnapshotBundle:
    ticker = repository.latest_ticker_snapshot(token_id)
    base_metadata = repository.latest_metadata_snapshot(token_id, role="base")
    quote_metadata = repository.latest_metadata_snapshot(token_id, role="quote")
    minute_candles = repository.list_candles(
        token_id,
        "minute",
        1,
        since_timestamp=int((now - MINUTE_WINDOW).timestamp()),
        limit=MINUTE_CANDLE_LIMIT,
    )
    quarter_hour_candles = repository.list_candles(
        token_id,
        "minute",
        15,
        since_timestamp=int((now - QUARTER_HOUR_WINDOW).timestamp()),
        limit=QUARTER_HOUR_CANDLE_LIMIT,
    )
    return SnapshotBundle(
        ticker=ticker,
        base_metadata=base_metadata,
        quote_metadata=quote_metadata,
        minute_candles=tuple(minute_candles),
        quarter_hour_candles=tuple(quarter_hour_candles),
        details=extract_key_details(ticker, base_metadata),
    )
