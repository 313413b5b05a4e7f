from __future__ import annotations

import logging
from decimal import Decimal

from atr.service import AnalysisTrigger
from ior.service import IngestionOrchestrator

from .jobs import JobQueue
from .models import ANALYZE_TOKEN, FETCH_TOKEN_DATA, Job

_LOGGER = logging.getLogger("dexiq.jbq.pipeline")


def register_token_pipeline(
    jobs: JobQueue,
    orchestrator: IngestionOrchestrator,
    trigger: AnalysisTrigger,
) -> None:
    """Wire fetch -> analyze: a ready ingestion pass enqueues the analysis
    job instead of calling the trigger on its own stack."""

    def fetch_token_data(job: Job) -> None:
        orchestrator.run_pass(job.token_id)

    def analyze_token(job: Job) -> None:
        raw_price = job.payload.get("reference_price")
        reference_price = Decimal(str(raw_price)) if raw_price is not None else None
        outcome = trigger.trigger(job.token_id, reference_price)
        _LOGGER.info("analysis job done token_id=%s status=%s", job.token_id, outcome.status)

    def enqueue_analysis(token_id: int) -> None:
        jobs.enqueue(ANALYZE_TOKEN, token_id)

    jobs.register(FETCH_TOKEN_DATA, fetch_token_data)
    jobs.register(ANALYZE_TOKEN, analyze_token)
    orchestrator.on_ready = enqueue_analysis
