from __future__ import annotations

import json
from socket import timeout as socket_timeout
from typing import Any
from urllib.error import URLError

from .errors import MdcError, make_mdc_error


def map_http_status(status_code: int, body: dict[str, Any] | None = None, *, source: str = "MDC") -> MdcError:
    details = {"status": status_code, "body": body or {}}
    if status_code == 401:
        return make_mdc_error("MDC_AUTH_REJECTED", "Upstream rejected the credentials.", False, details, source=source)
    if status_code == 403:
        return make_mdc_error("MDC_AUTH_FORBIDDEN", "Upstream denied access to the resource.", False, details, source=source)
    if status_code == 404:
        return make_mdc_error("MDC_NOT_FOUND", "Upstream has no data for the requested pool.", False, details, source=source)
    if status_code == 429:
        return make_mdc_error("MDC_RATE_LIMITED", "Upstream rate limit exceeded.", True, details, source=source)
    if 500 <= status_code <= 599:
        return make_mdc_error("MDC_UPSTREAM_UNAVAILABLE", "Upstream market data API is unavailable.", True, details, source=source)
    return make_mdc_error("MDC_UNKNOWN", "Unexpected upstream response.", False, details, source=source)


def map_exception(exc: Exception, *, source: str = "MDC") -> MdcError:
    if isinstance(exc, MdcError):
        return exc
    if isinstance(exc, (TimeoutError, socket_timeout, URLError, ConnectionError)):
        return make_mdc_error("MDC_API_TIMEOUT", "Upstream did not answer in time.", True, {"error": str(exc)}, source=source)
    if isinstance(exc, (ValueError, json.JSONDecodeError)):
        return make_mdc_error("MDC_RESPONSE_INVALID", "Upstream response could not be parsed.", False, {"error": str(exc)}, source=source)
    return make_mdc_error("MDC_UNKNOWN", "Unexpected upstream failure.", False, {"error": str(exc)}, source=source)
