from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Mapping

from atr.cache import AnalysisCache
from atr.contracts import AnalysisProvider, token_topic
from atr.errors import AnalysisUnavailableError
from atr.heuristics import score_tokens
from atr.notifications import InMemoryNotificationHub
from atr.providers import ChatCompletionAnalysisProvider, UnconfiguredAnalysisProvider
from atr.service import AnalysisTrigger
from csm.errors import CsmValidationError
from csm.models import RuntimeSettings
from csm.repository import CsmRuntimeRepository
from csm.service import CsmService
from ior.service import IngestionOrchestrator
from jbq.jobs import JobQueue
from jbq.models import FETCH_TOKEN_DATA
from jbq.pipeline import register_token_pipeline
from mdc.api_client import HttpJsonClient, TransportFn, urllib_transport
from mdc.clients import GECKOTERMINAL_ACCEPT, DexscreenerClient, GeckoOhlcvClient, GeckoTerminalClient
from mdc.contracts import SUPPORTED_CANDLE_SERIES
from pld.service import LedgerService
from pld.validators import parse_decimal
from rev.service import ReadinessEvaluator
from sst.bootstrap import initialize_database
from sst.repository import SnapshotRepository

from .presenters import (
    candle_json,
    metadata_json,
    position_json,
    readiness_json,
    score_json,
    ticker_json,
    token_json,
    transaction_json,
    trigger_outcome_json,
)

DEFAULT_USER_ID = "local-user"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UagService:
    """Composition root behind the HTTP routes.

    Settings are read once at construction; saved changes to URLs, timeouts
    and worker counts apply on the next start.
    """

    def __init__(
        self,
        *,
        settings_path: str = "runtime/config/settings.local.json",
        credentials_path: str = "runtime/config/credentials.local.json",
        db_path: str | None = None,
        transport: TransportFn = urllib_transport,
        analysis_provider: AnalysisProvider | None = None,
        environ: Mapping[str, str] | None = None,
        now_fn: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._logger = logging.getLogger("dexiq.uag")
        self.csm_repository = CsmRuntimeRepository(settings_path=settings_path, credentials_path=credentials_path)
        self.csm_service = CsmService(repository=self.csm_repository, environ=environ)
        self.settings = self.csm_service.load_runtime_settings()

        conn = initialize_database(db_path or self.settings.db_path)
        self.snapshots = SnapshotRepository(conn=conn, now_fn=now_fn)
        self.evaluator = ReadinessEvaluator(self.snapshots)
        self.ledger = LedgerService(self.snapshots)
        self.notifications = InMemoryNotificationHub()
        self.analysis_cache = AnalysisCache(ttl_seconds=self.settings.analysis_cache_ttl_seconds, now_fn=now_fn)
        self.trigger = AnalysisTrigger(
            self.snapshots,
            self.evaluator,
            analysis_provider or self._build_analysis_provider(self.settings, transport),
            self.analysis_cache,
            self.notifications,
            now_fn=now_fn,
        )
        self.orchestrator = IngestionOrchestrator.with_clients(
            self.snapshots,
            self.evaluator,
            self.notifications,
            ticker_client=DexscreenerClient(self._http(self.settings.ticker_base_url, "DEXSCREENER", transport)),
            metadata_client=GeckoTerminalClient(
                self._http(self.settings.metadata_base_url, "GECKOTERMINAL", transport, accept=GECKOTERMINAL_ACCEPT)
            ),
            candle_client=GeckoOhlcvClient(
                self._http(self.settings.candle_base_url, "GECKOTERMINAL_OHLCV", transport, accept=GECKOTERMINAL_ACCEPT)
            ),
            stale_after_seconds=self.settings.stale_after_seconds,
            candle_limit=self.settings.candle_limit,
            now_fn=now_fn,
        )
        self.jobs = JobQueue()
        register_token_pipeline(self.jobs, self.orchestrator, self.trigger)

    def _http(self, base_url: str, source: str, transport: TransportFn, *, accept: str = "application/json") -> HttpJsonClient:
        return HttpJsonClient(
            base_url=base_url,
            source=source,
            transport=transport,
            default_headers={"Accept": accept},
            timeout_seconds=self.settings.timeout_seconds,
            connect_timeout_seconds=self.settings.connect_timeout_seconds,
        )

    def _build_analysis_provider(self, settings: RuntimeSettings, transport: TransportFn) -> AnalysisProvider:
        if not settings.analysis_configured:
            self._logger.warning("Analysis API key missing: pair analysis will report unavailable")
            return UnconfiguredAnalysisProvider()
        return ChatCompletionAnalysisProvider(
            HttpJsonClient(
                base_url=settings.analysis_endpoint,
                source="ANALYSIS",
                transport=transport,
                timeout_seconds=settings.timeout_seconds,
                connect_timeout_seconds=settings.connect_timeout_seconds,
            ),
            api_key=settings.analysis_api_key,
            model=settings.analysis_model,
        )

    # lifecycle

    def start_workers(self) -> None:
        self.jobs.start(self.settings.job_workers)

    def shutdown(self) -> None:
        self._logger.info("Shutdown requested: stopping job workers")
        self.jobs.stop()
        self.snapshots.close()

    # tokens

    def register_token(self, *, user_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        token, created = self.snapshots.upsert_token(
            chain_id=payload["chainId"],
            pool_address=payload["poolAddress"],
            user_id=user_id,
            symbol=payload.get("symbol") or None,
            quote_symbol=payload.get("quoteSymbol") or None,
            token_url=payload.get("tokenUrl") or None,
        )
        job = self.jobs.enqueue(FETCH_TOKEN_DATA, token.id)
        return {
            "token": token_json(token),
            "created": created,
            "jobId": job.job_id,
            "message": "Token created/found. Data fetch enqueued.",
        }

    def token_detail(self, token_id: int) -> dict[str, Any]:
        token = self.snapshots.get_token(token_id)
        latest_candles = [
            self.snapshots.latest_candle(token_id, timeframe, aggregate)
            for timeframe, aggregate in SUPPORTED_CANDLE_SERIES
        ]
        return {
            "token": token_json(token),
            "readiness": readiness_json(self.evaluator.evaluate(token_id)),
            "ticker": ticker_json(self.snapshots.latest_ticker_snapshot(token_id)),
            "baseMetadata": metadata_json(self.snapshots.latest_metadata_snapshot(token_id, role="base")),
            "quoteMetadata": metadata_json(self.snapshots.latest_metadata_snapshot(token_id, role="quote")),
            "latestCandles": [candle_json(candle) for candle in latest_candles if candle is not None],
        }

    def token_status(self, token_id: int) -> dict[str, Any]:
        self.snapshots.get_token(token_id)
        return readiness_json(self.evaluator.evaluate(token_id))

    def refresh_token(self, token_id: int) -> dict[str, Any]:
        self.snapshots.get_token(token_id)
        job = self.jobs.enqueue(FETCH_TOKEN_DATA, token_id)
        return {"tokenId": token_id, "jobId": job.job_id, "message": "Data fetch enqueued."}

    def token_events(self, token_id: int, limit: int = 20) -> dict[str, Any]:
        self.snapshots.get_token(token_id)
        return {"tokenId": token_id, "events": self.notifications.recent(token_topic(token_id), limit)}

    # analysis

    def analyse_pair(self, token_id: int, payload: dict[str, Any]) -> dict[str, Any]:
        raw_price = payload.get("purchasePrice")
        reference_price = parse_decimal("purchasePrice", raw_price) if raw_price not in (None, "") else None
        outcome = self.trigger.trigger(
            token_id,
            reference_price,
            symbol=payload.get("symbol") or None,
            quote_symbol=payload.get("quoteSymbol") or None,
        )
        if outcome.status == "failed":
            raise AnalysisUnavailableError(outcome.error or "analysis unavailable", reason=outcome.error_reason or "unavailable")
        return trigger_outcome_json(outcome)

    def analyse_tokens(self, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return [score_json(score) for score in score_tokens(rows)]

    # ledger

    def list_purchases(self, token_id: int, user_id: str, current_price: str | None = None) -> dict[str, Any]:
        price: Decimal | None = None
        if current_price not in (None, ""):
            price = parse_decimal("current_price", current_price)
        position, transactions = self.ledger.position_summary(token_id, user_id, price)
        return {
            "tokenId": token_id,
            "purchases": [transaction_json(tx) for tx in transactions],
            "position": position_json(position),
        }

    def create_purchase(self, token_id: int, user_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        stored = self.ledger.record_transaction(token_id, user_id, payload)
        position, _ = self.ledger.position_summary(token_id, user_id)
        return {
            "purchase": transaction_json(stored),
            "position": position_json(position),
            "message": "Transaction logged successfully",
        }

    # settings

    def get_settings(self) -> dict[str, Any]:
        return self.csm_service.get_settings()

    def save_settings(self, payload: dict[str, Any]) -> dict[str, Any]:
        return self.csm_service.save_settings(payload)


def map_csm_error(error: CsmValidationError) -> tuple[int, str]:
    if error.code == "CSM_VALUE_OUT_OF_RANGE":
        return 400, "Setting value is out of the allowed range."
    return 400, "Settings validation failed."
