from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

FETCH_TOKEN_DATA = "fetch_token_data"
ANALYZE_TOKEN = "analyze_token"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Job:
    kind: str
    token_id: int
    payload: dict[str, Any] = field(default_factory=dict)
    job_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    enqueued_at: datetime = field(default_factory=_utc_now)


JobHandler = Callable[[Job], None]
