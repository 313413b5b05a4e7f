from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable

from .contracts import AnalysisResult

DEFAULT_TTL_SECONDS = 900

CacheKey = tuple[int, str | None]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def cache_key(token_id: int, reference_price: Decimal | None) -> CacheKey:
    # normalize so 1.50 and 1.5 share an entry
    if reference_price is None:
        return (token_id, None)
    return (token_id, format(reference_price.normalize(), "f"))


class AnalysisCache:
    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        *,
        now_fn: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._ttl = timedelta(seconds=ttl_seconds)
        self._now_fn = now_fn
        self._entries: dict[CacheKey, tuple[datetime, AnalysisResult]] = {}
        self._lock = threading.Lock()

    def get(self, token_id: int, reference_price: Decimal | None) -> AnalysisResult | None:
        key = cache_key(token_id, reference_price)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, result = entry
            if self._now_fn() >= expires_at:
                del self._entries[key]
                return None
            return result

    def put(self, token_id: int, reference_price: Decimal | None, result: AnalysisResult) -> None:
        key = cache_key(token_id, reference_price)
        now = self._now_fn()
        with self._lock:
            # every distinct reference price is a new key; drop expired ones here
            expired = [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]
            for k in expired:
                del self._entries[k]
            self._entries[key] = (now + self._ttl, result)

    def invalidate(self, token_id: int) -> int:
        with self._lock:
            keys = [key for key in self._entries if key[0] == token_id]
            for key in keys:
                del self._entries[key]
        return len(keys)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
