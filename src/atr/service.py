from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Literal

from rev.models import ReadinessStatus
from rev.service import ReadinessEvaluator
from sst.repository import SnapshotRepository

from .bundle import build_snapshot_bundle
from .cache import AnalysisCache
from .contracts import AnalysisProvider, AnalysisRequest, AnalysisResult, NotificationSink, token_topic
from .errors import AnalysisUnavailableError
from .events import status_event

_LOGGER = logging.getLogger("dexiq.atr.service")

PREVIEW_LENGTH = 280

TriggerStatus = Literal["analyzed", "cached", "skipped", "failed"]


@dataclass(frozen=True)
class TriggerOutcome:
    token_id: int
    status: TriggerStatus
    readiness: ReadinessStatus
    result: AnalysisResult | None = None
    error: str | None = None
    error_reason: str | None = None


def _preview(summary: str) -> str:
    if len(summary) <= PREVIEW_LENGTH:
        return summary
    return summary[: PREVIEW_LENGTH - 3].rstrip() + "..."


class AnalysisTrigger:
    def __init__(
        self,
        repository: SnapshotRepository,
        evaluator: ReadinessEvaluator,
        provider: AnalysisProvider,
        cache: AnalysisCache,
        sink: NotificationSink,
        *,
        now_fn: Callable[[], datetime] | None = None,
    ) -> None:
        self.repository = repository
        self.evaluator = evaluator
        self.provider = provider
        self.cache = cache
        self.sink = sink
        self._now_fn = now_fn or (lambda: datetime.now(timezone.utc))

    def trigger(
        self,
        token_id: int,
        reference_price: Decimal | None = None,
        *,
        symbol: str | None = None,
        quote_symbol: str | None = None,
    ) -> TriggerOutcome:
        token = self.repository.get_token(token_id)
        readiness = self.evaluator.evaluate(token_id)
        if not readiness.ready_for_analysis:
            _LOGGER.info("analysis skipped token_id=%s tier=%s (not ready)", token_id, readiness.tier)
            return TriggerOutcome(token_id=token_id, status="skipped", readiness=readiness)

        cached = self.cache.get(token_id, reference_price)
        if cached is not None:
            _LOGGER.debug("analysis cache hit token_id=%s", token_id)
            self._publish_ready(readiness, cached)
            return TriggerOutcome(token_id=token_id, status="cached", readiness=readiness, result=cached)

        try:
            request = AnalysisRequest(
                token_id=token.id,
                chain_id=token.chain_id,
                pool_address=token.pool_address,
                symbol=symbol or token.symbol,
                quote_symbol=quote_symbol or token.quote_symbol,
                reference_price=reference_price,
                bundle=build_snapshot_bundle(self.repository, token_id, self._now_fn()),
            )
            result = self.provider.analyze(request)
        except AnalysisUnavailableError as exc:
            _LOGGER.warning("analysis unavailable token_id=%s reason=%s: %s", token_id, exc.reason, exc.message)
            return self._fail(readiness, exc.message, exc.reason)
        except Exception as exc:
            _LOGGER.exception("analysis failed token_id=%s", token_id)
            return self._fail(readiness, f"{type(exc).__name__}: {exc}", "unexpected_error")

        self.cache.put(token_id, reference_price, result)
        self._publish_ready(readiness, result)
        _LOGGER.info("analysis complete token_id=%s insights=%s", token_id, len(result.insights))
        return TriggerOutcome(token_id=token_id, status="analyzed", readiness=readiness, result=result)

    def _fail(self, readiness: ReadinessStatus, message: str, reason: str) -> TriggerOutcome:
        self.sink.publish(
            token_topic(readiness.token_id),
            status_event(
                status="error",
                stage="analysis",
                readiness=readiness,
                timestamp=self._now_fn(),
                error=message,
            ),
        )
        return TriggerOutcome(
            token_id=readiness.token_id,
            status="failed",
            readiness=readiness,
            error=message,
            error_reason=reason,
        )

    def _publish_ready(self, readiness: ReadinessStatus, result: AnalysisResult) -> None:
        self.sink.publish(
            token_topic(readiness.token_id),
            status_event(
                status="ready",
                stage="analysis",
                readiness=readiness,
                timestamp=self._now_fn(),
                data={
                    "analysis_preview": _preview(result.summary),
                    "insights": list(result.insights),
                },
            ),
        )
