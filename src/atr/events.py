from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from rev.models import ReadinessStatus

EventStatus = Literal["ready", "error"]
EventStage = Literal["ingestion", "analysis"]


def status_event(
    *,
    status: EventStatus,
    stage: EventStage,
    readiness: ReadinessStatus,
    timestamp: datetime,
    data: dict[str, Any] | None = None,
    error: str | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "status": status,
        "stage": stage,
        "token_id": readiness.token_id,
        "tier": readiness.tier,
        "timestamp": timestamp.isoformat(),
        "data": {
            **readiness.availability(),
            "ready_for_analysis": readiness.ready_for_analysis,
            **(data or {}),
        },
    }
    if error is not None:
        payload["error"] = error
    return payload
