from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable
from urllib.error import HTTPError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from .error_mapper import map_exception, map_http_status
from .errors import MdcError
from .retry import execute_with_retry

TransportFn = Callable[
    [str, str, dict[str, str], dict[str, Any] | None, dict[str, str] | None, float],
    tuple[int, dict[str, Any]],
]

_LOGGER = logging.getLogger("dexiq.mdc.api_client")

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_CONNECT_TIMEOUT_SECONDS = 10.0


def _decode_body(raw: str) -> dict[str, Any]:
    if not raw.strip():
        return {}
    parsed = json.loads(raw)
    if isinstance(parsed, list):
        return {"items": parsed}
    return parsed


def urllib_transport(
    method: str,
    url: str,
    headers: dict[str, str],
    payload: dict[str, Any] | None,
    query: dict[str, str] | None,
    timeout_seconds: float,
) -> tuple[int, dict[str, Any]]:
    final_url = url
    if query:
        final_url = f"{url}?{urlencode(query)}"

    encoded_payload: bytes | None = None
    if payload is not None:
        encoded_payload = json.dumps(payload).encode("utf-8")

    request = Request(url=final_url, data=encoded_payload, method=method)
    for key, value in headers.items():
        request.add_header(key, value)

    try:
        with urlopen(request, timeout=timeout_seconds) as response:
            return int(response.getcode()), _decode_body(response.read().decode("utf-8"))
    except HTTPError as exc:
        try:
            body = _decode_body(exc.read().decode("utf-8"))
        except ValueError:
            body = {}
        return int(exc.code), body


class HttpJsonClient:
    """Small JSON-over-HTTP client shared by every upstream source.

    urllib applies one timeout to every socket operation, so
    ``connect_timeout_seconds`` is the per-operation bound and
    ``timeout_seconds`` is the overall budget: no retry starts once it is spent.
    """

    def __init__(
        self,
        *,
        base_url: str,
        source: str,
        transport: TransportFn = urllib_transport,
        default_headers: dict[str, str] | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        connect_timeout_seconds: float = DEFAULT_CONNECT_TIMEOUT_SECONDS,
        retry_attempts: int = 3,
        retry_base_delay_seconds: float = 0.5,
        retry_max_delay_seconds: float = 4.0,
        sleep_fn: Callable[[float], None] | None = None,
        rand_fn: Callable[[float, float], float] | None = None,
        monotonic_fn: Callable[[], float] | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._source = source
        self._transport = transport
        self._default_headers = dict(default_headers or {"Accept": "application/json"})
        self._timeout_seconds = timeout_seconds
        self._connect_timeout_seconds = connect_timeout_seconds
        self._retry_attempts = retry_attempts
        self._retry_base_delay_seconds = retry_base_delay_seconds
        self._retry_max_delay_seconds = retry_max_delay_seconds
        self._sleep_fn = sleep_fn or time.sleep
        self._rand_fn = rand_fn
        self._monotonic_fn = monotonic_fn or time.monotonic

    @property
    def source(self) -> str:
        return self._source

    def get_json(self, path: str, *, query: dict[str, str] | None = None) -> dict[str, Any]:
        return self.request_json("GET", path, query=query)

    def post_json(
        self,
        path: str,
        payload: dict[str, Any],
        *,
        headers: dict[str, str] | None = None,
        retry_attempts: int | None = None,
    ) -> dict[str, Any]:
        return self.request_json("POST", path, payload=payload, headers=headers, retry_attempts=retry_attempts)

    def request_json(
        self,
        method: str,
        path: str,
        *,
        payload: dict[str, Any] | None = None,
        query: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
        retry_attempts: int | None = None,
    ) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        merged_headers = {**self._default_headers, **(headers or {})}
        if payload is not None:
            merged_headers.setdefault("Content-Type", "application/json")
        deadline = self._monotonic_fn() + self._timeout_seconds

        def operation() -> dict[str, Any]:
            return self._send(method, url, merged_headers, payload, query, self._connect_timeout_seconds)

        def should_retry(exc: Exception, _attempt: int) -> bool:
            return isinstance(exc, MdcError) and exc.retryable and self._monotonic_fn() < deadline

        kwargs: dict[str, Any] = {}
        if self._rand_fn is not None:
            kwargs["rand_fn"] = self._rand_fn
        return execute_with_retry(
            operation,
            should_retry=should_retry,
            attempts=retry_attempts if retry_attempts is not None else self._retry_attempts,
            base_delay_seconds=self._retry_base_delay_seconds,
            max_delay_seconds=self._retry_max_delay_seconds,
            sleep_fn=self._sleep_fn,
            on_retry=self._log_retry,
            **kwargs,
        )

    def _send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        payload: dict[str, Any] | None,
        query: dict[str, str] | None,
        timeout_seconds: float,
    ) -> dict[str, Any]:
        try:
            status, response = self._transport(method, url, headers, payload, query, timeout_seconds)
        except Exception as exc:
            raise map_exception(exc, source=self._source) from exc

        if status < 200 or status >= 300:
            raise map_http_status(status, response if isinstance(response, dict) else None, source=self._source)
        if not isinstance(response, dict):
            raise map_exception(ValueError("response is not object"), source=self._source)
        return response

    def _log_retry(self, exc: Exception, attempt: int, delay: float) -> None:
        _LOGGER.warning(
            "Retrying upstream call: source=%s attempt=%s delay=%.2fs error=%s",
            self._source,
            attempt,
            delay,
            exc,
        )
