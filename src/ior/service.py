from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, Iterable

from atr.contracts import NotificationSink, token_topic
from atr.events import status_event
from mdc.contracts import CandleClient, MetadataClient, TickerClient
from mdc.errors import MdcError
from rev.service import ReadinessEvaluator
from sst.models import Token
from sst.repository import SnapshotRepository

from .models import IngestionBatchResult, IngestionPassResult, SourceOutcome
from .sources import (
    DEFAULT_CANDLE_LIMIT,
    DEFAULT_STALE_AFTER_SECONDS,
    CandleSource,
    MetadataSource,
    SourceHandler,
    TickerSource,
)

_LOGGER = logging.getLogger("dexiq.ior.service")

ReadyCallback = Callable[[int], None]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class IngestionOrchestrator:
    """Runs one ingestion pass per token over a fixed set of source handlers.

    Sources are isolated from each other: an upstream error or an unexpected
    exception in one handler is recorded on its outcome and never aborts the
    siblings. Only an unknown token fails the pass as a whole.
    """

    def __init__(
        self,
        repository: SnapshotRepository,
        evaluator: ReadinessEvaluator,
        handlers: tuple[SourceHandler, ...],
        sink: NotificationSink,
        *,
        on_ready: ReadyCallback | None = None,
        now_fn: Callable[[], datetime] = _utc_now,
        max_parallel_tokens: int = 4,
    ) -> None:
        self.repository = repository
        self.evaluator = evaluator
        self.handlers = handlers
        self.sink = sink
        self.on_ready = on_ready
        self._now_fn = now_fn
        self._max_parallel_tokens = max(1, max_parallel_tokens)

    @classmethod
    def with_clients(
        cls,
        repository: SnapshotRepository,
        evaluator: ReadinessEvaluator,
        sink: NotificationSink,
        *,
        ticker_client: TickerClient,
        metadata_client: MetadataClient,
        candle_client: CandleClient,
        stale_after_seconds: int = DEFAULT_STALE_AFTER_SECONDS,
        candle_limit: int = DEFAULT_CANDLE_LIMIT,
        on_ready: ReadyCallback | None = None,
        now_fn: Callable[[], datetime] = _utc_now,
        max_parallel_tokens: int = 4,
    ) -> "IngestionOrchestrator":
        handlers = (
            TickerSource(repository, ticker_client, stale_after_seconds=stale_after_seconds),
            MetadataSource(repository, metadata_client, stale_after_seconds=stale_after_seconds),
            CandleSource(repository, candle_client, candle_limit=candle_limit),
        )
        return cls(
            repository,
            evaluator,
            handlers,
            sink,
            on_ready=on_ready,
            now_fn=now_fn,
            max_parallel_tokens=max_parallel_tokens,
        )

    def run_pass(self, token_id: int, *, cancel: threading.Event | None = None) -> IngestionPassResult:
        token = self.repository.get_token(token_id)
        started_at = self._now_fn()

        with ThreadPoolExecutor(
            max_workers=max(1, len(self.handlers)),
            thread_name_prefix=f"ior-{token_id}",
        ) as pool:
            futures = [
                pool.submit(self._run_handler, handler, token, started_at, cancel)
                for handler in self.handlers
            ]
            outcomes = {future.result().source_type: future.result() for future in futures}

        cancelled = cancel is not None and cancel.is_set()
        readiness = self.evaluator.evaluate(token_id)
        all_failed = bool(outcomes) and all(outcome.status == "failed" for outcome in outcomes.values())
        error = None
        if all_failed:
            error = "; ".join(f"{name}: {outcome.error_code}" for name, outcome in outcomes.items())
        self.sink.publish(
            token_topic(token_id),
            status_event(
                status="error" if all_failed else "ready",
                stage="ingestion",
                readiness=readiness,
                timestamp=self._now_fn(),
                data={"sources": {name: outcome.status for name, outcome in outcomes.items()}},
                error=error,
            ),
        )

        handed_off = False
        if readiness.ready_for_analysis and not cancelled and self.on_ready is not None:
            handed_off = self._hand_off(self.on_ready, token_id)

        result = IngestionPassResult(
            token_id=token_id,
            outcomes=outcomes,
            readiness=readiness,
            handed_off=handed_off,
            cancelled=cancelled,
            started_at=started_at,
            finished_at=self._now_fn(),
        )
        _LOGGER.info(
            "ingestion pass token_id=%s tier=%s ready=%s rows=%s failed=%s",
            token_id,
            readiness.tier,
            readiness.ready_for_analysis,
            result.rows_written,
            ",".join(result.failed_sources) or "-",
        )
        return result

    def run_passes(
        self,
        token_ids: Iterable[int],
        *,
        cancel: threading.Event | None = None,
    ) -> IngestionBatchResult:
        batch = IngestionBatchResult()
        ids = list(dict.fromkeys(token_ids))
        if not ids:
            return batch

        with ThreadPoolExecutor(max_workers=min(self._max_parallel_tokens, len(ids)), thread_name_prefix="ior") as pool:
            futures = {token_id: pool.submit(self.run_pass, token_id, cancel=cancel) for token_id in ids}
            for token_id, future in futures.items():
                try:
                    batch.results[token_id] = future.result()
                except Exception as exc:
                    _LOGGER.warning("ingestion pass failed token_id=%s: %s", token_id, exc)
                    batch.errors[token_id] = str(exc)
        return batch

    def _run_handler(
        self,
        handler: SourceHandler,
        token: Token,
        now: datetime,
        cancel: threading.Event | None,
    ) -> SourceOutcome:
        if cancel is not None and cancel.is_set():
            return SourceOutcome(source_type=handler.source_type, status="cancelled")
        try:
            if not handler.is_due(token, now):
                return SourceOutcome(source_type=handler.source_type, status="skipped")
            return handler.ingest(token, now)
        except MdcError as exc:
            _LOGGER.warning(
                "source failed token_id=%s source=%s code=%s retryable=%s",
                token.id,
                handler.source_type,
                exc.code,
                exc.retryable,
            )
            return SourceOutcome(
                source_type=handler.source_type,
                status="failed",
                error=exc.payload.message,
                error_code=exc.code,
            )
        except Exception as exc:
            _LOGGER.exception("source crashed token_id=%s source=%s", token.id, handler.source_type)
            return SourceOutcome(
                source_type=handler.source_type,
                status="failed",
                error=str(exc),
                error_code=type(exc).__name__,
            )

    def _hand_off(self, callback: ReadyCallback, token_id: int) -> bool:
        try:
            callback(token_id)
        except Exception:
            _LOGGER.exception("analysis handoff failed token_id=%s", token_id)
            return False
        return True
