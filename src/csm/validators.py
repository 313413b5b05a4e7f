from __future__ import annotations

from urllib.parse import urlparse

from .errors import (
    CsmPositiveIntegerRequiredError,
    CsmRequiredFieldMissingError,
    CsmUrlInvalidError,
    CsmValueOutOfRangeError,
)

INTEGER_FIELDS = (
    "staleAfterSeconds",
    "candleLimit",
    "timeoutSeconds",
    "connectTimeoutSeconds",
    "analysisCacheTtlSeconds",
    "jobWorkers",
)
URL_FIELDS = ("tickerBaseUrl", "metadataBaseUrl", "candleBaseUrl", "analysisEndpoint")
TEXT_FIELDS = ("analysisModel", "dbPath")

MAX_CANDLE_LIMIT = 1000
MIN_JOB_WORKERS = 1
MAX_JOB_WORKERS = 32


def normalize_positive_int(field: str, value: object) -> int:
    if isinstance(value, bool):
        raise CsmPositiveIntegerRequiredError(field=field, value=value)
    if isinstance(value, str):
        value = value.strip()
    try:
        number = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise CsmPositiveIntegerRequiredError(field=field, value=value) from exc
    if isinstance(value, float) and value != number:
        raise CsmPositiveIntegerRequiredError(field=field, value=value)
    if number <= 0:
        raise CsmPositiveIntegerRequiredError(field=field, value=value)
    return number


def normalize_url(field: str, value: object) -> str:
    text = str(value or "").strip().rstrip("/")
    parsed = urlparse(text)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise CsmUrlInvalidError(field=field, value=value)
    return text


def normalize_text(field: str, value: object) -> str:
    text = str(value or "").strip()
    if not text:
        raise CsmRequiredFieldMissingError(field=field, value=value)
    return text


def validate_candle_limit(candle_limit: int) -> None:
    if candle_limit > MAX_CANDLE_LIMIT:
        raise CsmValueOutOfRangeError(field="candleLimit", value=candle_limit)


def validate_job_workers(job_workers: int) -> None:
    if job_workers < MIN_JOB_WORKERS or job_workers > MAX_JOB_WORKERS:
        raise CsmValueOutOfRangeError(field="jobWorkers", value=job_workers)


def validate_timeouts(timeout_seconds: int, connect_timeout_seconds: int) -> None:
    if connect_timeout_seconds > timeout_seconds:
        raise CsmValueOutOfRangeError(field="connectTimeoutSeconds", value=connect_timeout_seconds)


def normalize_settings(raw: dict[str, object]) -> dict[str, object]:
    """Normalize and validate a complete camelCase settings mapping."""
    normalized: dict[str, object] = {}
    for key in INTEGER_FIELDS:
        normalized[key] = normalize_positive_int(key, raw.get(key))
    for key in URL_FIELDS:
        normalized[key] = normalize_url(key, raw.get(key))
    for key in TEXT_FIELDS:
        normalized[key] = normalize_text(key, raw.get(key))

    validate_candle_limit(normalized["candleLimit"])  # type: ignore[arg-type]
    validate_job_workers(normalized["jobWorkers"])  # type: ignore[arg-type]
    validate_timeouts(normalized["timeoutSeconds"], normalized["connectTimeoutSeconds"])  # type: ignore[arg-type]
    return normalized
