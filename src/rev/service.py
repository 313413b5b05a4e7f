from __future__ import annotations

from datetime import datetime

from sst.repository import SnapshotRepository

from .models import ReadinessStatus, Tier


def tier_for(available_sources: int) -> Tier:
    if available_sources <= 0:
        return "none"
    if available_sources >= 3:
        return "lots"
    return "some"


def is_ready_for_analysis(has_base_metadata: bool, has_candles: bool) -> bool:
    return has_base_metadata and has_candles


class ReadinessEvaluator:
    """Read-only view of how much snapshot data a token has accumulated.

    Metadata of either role counts toward the tier. The analysis gate needs a
    ``base`` role snapshot; a quote-only token is not metadata-ready.
    """

    def __init__(self, repository: SnapshotRepository) -> None:
        self.repository = repository

    def evaluate(self, token_id: int) -> ReadinessStatus:
        repo = self.repository
        ticker_count = repo.count_ticker_snapshots(token_id)
        metadata_count = repo.count_metadata_snapshots(token_id)
        base_metadata_count = repo.count_metadata_snapshots(token_id, role="base")
        candle_count = repo.count_candles(token_id)

        has_ticker = ticker_count > 0
        has_metadata = metadata_count > 0
        has_base_metadata = base_metadata_count > 0
        has_candles = candle_count > 0

        fetched: list[datetime] = []
        if has_ticker:
            latest_ticker = repo.latest_ticker_snapshot(token_id)
            if latest_ticker is not None:
                fetched.append(latest_ticker.fetched_at)
        if has_metadata:
            latest_metadata = repo.latest_metadata_snapshot(token_id)
            if latest_metadata is not None:
                fetched.append(latest_metadata.fetched_at)
        if has_candles:
            candle_fetched = repo.latest_candle_fetched_at(token_id)
            if candle_fetched is not None:
                fetched.append(candle_fetched)

        return ReadinessStatus(
            token_id=token_id,
            tier=tier_for(sum((has_ticker, has_metadata, has_candles))),
            ready_for_analysis=is_ready_for_analysis(has_base_metadata, has_candles),
            has_ticker=has_ticker,
            has_metadata=has_metadata,
            has_candles=has_candles,
            ticker_count=ticker_count,
            metadata_count=metadata_count,
            candle_count=candle_count,
            last_updated=max(fetched) if fetched else None,
        )
