from __future__ import annotations

import logging
import threading
from collections import defaultdict, deque
from typing import Any, Callable

from .contracts import Subscriber

_LOGGER = logging.getLogger("dexiq.atr.notifications")


class InMemoryNotificationHub:
    """Topic-keyed publish sink.

    Keeps the last ``history_limit`` payloads per topic for polling clients and
    fans each publish out to subscribers once. A failing subscriber is logged
    and skipped.
    """

    def __init__(self, history_limit: int = 50) -> None:
        self._history: dict[str, deque[dict[str, Any]]] = defaultdict(lambda: deque(maxlen=history_limit))
        self._subscribers: dict[str, list[Subscriber]] = defaultdict(list)
        self._lock = threading.Lock()

    def publish(self, topic: str, payload: dict[str, Any]) -> None:
        with self._lock:
            self._history[topic].append(payload)
            subscribers = list(self._subscribers.get(topic, ()))

        for subscriber in subscribers:
            try:
                subscriber(topic, payload)
            except Exception:
                _LOGGER.exception("notification subscriber failed topic=%s", topic)

    def subscribe(self, topic: str, callback: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subscribers[topic].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers.get(topic, []):
                    self._subscribers[topic].remove(callback)

        return unsubscribe

    def recent(self, topic: str, limit: int | None = None) -> list[dict[str, Any]]:
        with self._lock:
            events = list(self._history.get(topic, ()))
        if limit is not None:
            events = events[-limit:] if limit > 0 else []
        return events
