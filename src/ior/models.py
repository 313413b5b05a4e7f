from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from rev.models import ReadinessStatus
from sst.models import SourceType

OutcomeStatus = Literal["fetched", "no_data", "skipped", "failed", "cancelled"]


@dataclass(frozen=True)
class SourceOutcome:
    source_type: SourceType
    status: OutcomeStatus
    rows_written: int = 0
    error: str | None = None
    error_code: str | None = None


@dataclass(frozen=True)
class IngestionPassResult:
    token_id: int
    outcomes: dict[str, SourceOutcome]
    readiness: ReadinessStatus
    handed_off: bool
    cancelled: bool
    started_at: datetime
    finished_at: datetime

    @property
    def rows_written(self) -> int:
        return sum(outcome.rows_written for outcome in self.outcomes.values())

    @property
    def failed_sources(self) -> list[str]:
        return [name for name, outcome in self.outcomes.items() if outcome.status == "failed"]


@dataclass(frozen=True)
class IngestionBatchResult:
    results: dict[int, IngestionPassResult] = field(default_factory=dict)
    errors: dict[int, str] = field(default_factory=dict)
