from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Protocol

from mdc.contracts import SUPPORTED_CANDLE_SERIES, CandleClient, CandleRequest, MetadataClient, TickerClient
from mdc.errors import MdcError
from sst.models import SourceType, Token
from sst.repository import SnapshotRepository

from .models import SourceOutcome

_LOGGER = logging.getLogger("dexiq.ior.sources")

DEFAULT_STALE_AFTER_SECONDS = 300
DEFAULT_CANDLE_LIMIT = 1000


class SourceHandler(Protocol):
    source_type: SourceType

    def is_due(self, token: Token, now: datetime) -> bool:
        ...

    def ingest(self, token: Token, now: datetime) -> SourceOutcome:
        ...


def _is_stale(fetched_at: datetime | None, now: datetime, stale_after: timedelta) -> bool:
    if fetched_at is None:
        return True
    return now - fetched_at > stale_after


class TickerSource:
    source_type: SourceType = "ticker"

    def __init__(
        self,
        repository: SnapshotRepository,
        client: TickerClient,
        *,
        stale_after_seconds: int = DEFAULT_STALE_AFTER_SECONDS,
    ) -> None:
        self.repository = repository
        self.client = client
        self.stale_after = timedelta(seconds=stale_after_seconds)

    def is_due(self, token: Token, now: datetime) -> bool:
        latest = self.repository.latest_ticker_snapshot(token.id)
        return _is_stale(latest.fetched_at if latest else None, now, self.stale_after)

    def ingest(self, token: Token, now: datetime) -> SourceOutcome:
        record = self.client.fetch_pair(chain_id=token.chain_id, pool_address=token.pool_address)
        if record is None:
            return SourceOutcome(source_type=self.source_type, status="no_data")

        self.repository.insert_ticker_snapshot(token.id, record, fetched_at=now)
        if record.base_symbol or record.quote_symbol or record.url:
            self.repository.fill_token_display(
                token.id,
                symbol=record.base_symbol,
                quote_symbol=record.quote_symbol,
                token_url=record.url,
            )
        return SourceOutcome(source_type=self.source_type, status="fetched", rows_written=1)


class MetadataSource:
    source_type: SourceType = "metadata"

    def __init__(
        self,
        repository: SnapshotRepository,
        client: MetadataClient,
        *,
        stale_after_seconds: int = DEFAULT_STALE_AFTER_SECONDS,
    ) -> None:
        self.repository = repository
        self.client = client
        self.stale_after = timedelta(seconds=stale_after_seconds)

    def is_due(self, token: Token, now: datetime) -> bool:
        latest = self.repository.latest_metadata_snapshot(token.id)
        return _is_stale(latest.fetched_at if latest else None, now, self.stale_after)

    def ingest(self, token: Token, now: datetime) -> SourceOutcome:
        records = self.client.fetch_pool_tokens(chain_id=token.chain_id, pool_address=token.pool_address)
        if not records:
            return SourceOutcome(source_type=self.source_type, status="no_data")

        for record in records:
            self.repository.insert_metadata_snapshot(token.id, record, fetched_at=now)
        return SourceOutcome(source_type=self.source_type, status="fetched", rows_written=len(records))


class CandleSource:
    """Incremental OHLCV fetch across every supported series.

    Always due; each series asks only for buckets newer than the newest one
    already stored. One failing series does not stop the others, the source
    fails only when every series failed.
    """

    source_type: SourceType = "candle"

    def __init__(
        self,
        repository: SnapshotRepository,
        client: CandleClient,
        *,
        candle_limit: int = DEFAULT_CANDLE_LIMIT,
        series: tuple[tuple[str, int], ...] = SUPPORTED_CANDLE_SERIES,
    ) -> None:
        self.repository = repository
        self.client = client
        self.candle_limit = candle_limit
        self.series = series

    def is_due(self, token: Token, now: datetime) -> bool:
        return True

    def ingest(self, token: Token, now: datetime) -> SourceOutcome:
        inserted = 0
        errors: list[MdcError] = []
        before_timestamp = int(now.timestamp())

        for timeframe, aggregate in self.series:
            latest = self.repository.latest_candle(token.id, timeframe, aggregate)
            request = CandleRequest(
                chain_id=token.chain_id,
                pool_address=token.pool_address,
                timeframe=timeframe,  # type: ignore[arg-type]
                aggregate=aggregate,
                from_timestamp=latest.candle_timestamp + 1 if latest else None,
                before_timestamp=before_timestamp,
                limit=self.candle_limit,
            )
            try:
                candles = self.client.fetch_candles(request)
            except MdcError as exc:
                _LOGGER.warning(
                    "candle series failed token_id=%s series=%s/%s code=%s",
                    token.id,
                    timeframe,
                    aggregate,
                    exc.code,
                )
                errors.append(exc)
                continue
            if candles:
                inserted += self.repository.insert_candles(token.id, timeframe, aggregate, candles, fetched_at=now)

        if errors and len(errors) == len(self.series):
            raise errors[0]

        error = "; ".join(f"{exc.code}: {exc.payload.message}" for exc in errors) or None
        return SourceOutcome(
            source_type=self.source_type,
            status="fetched" if inserted > 0 else "no_data",
            rows_written=inserted,
            error=error,
            error_code=errors[0].code if errors else None,
        )
