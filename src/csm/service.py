from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Any, Mapping

from .masking import to_masked_credential
from .models import DEFAULT_SETTINGS, RuntimeSettings
from .repository import CsmRuntimeRepository
from .validators import normalize_settings

API_KEY_ENV = "DEXIQ_ANALYSIS_API_KEY"
CONFIG_VERSION = "v1"

_LOGGER = logging.getLogger("dexiq.csm.service")


class CsmService:
    def __init__(self, repository: CsmRuntimeRepository, *, environ: Mapping[str, str] | None = None) -> None:
        self.repository = repository
        self._environ = environ if environ is not None else os.environ

    def save_settings(self, request: dict[str, Any]) -> dict[str, Any]:
        """Merge ``request`` over the stored settings, validate, and persist.

        Keys left out of the request keep their stored (or default) values.
        ``analysisApiKey`` is written to the credentials file, never to the
        settings snapshot.
        """
        current = {**DEFAULT_SETTINGS, **self._stored_settings()}
        merged = {**current, **{key: value for key, value in request.items() if key in DEFAULT_SETTINGS}}
        normalized = normalize_settings(merged)

        now = datetime.now(timezone.utc).isoformat()
        settings = {"version": CONFIG_VERSION, "updatedAt": now, **normalized}

        credential = self._stored_credential()
        if "analysisApiKey" in request:
            credential = {"apiKey": str(request.get("analysisApiKey") or "").strip()}
            self.repository.write_credentials(
                {
                    "updatedAt": now,
                    "provider": "openai-compatible",
                    "credential": credential,
                }
            )
        self.repository.write_settings(settings)
        _LOGGER.info("settings saved keys=%s", ",".join(sorted(request)))
        return self._view(settings, credential)

    def get_settings(self) -> dict[str, Any]:
        settings = {"version": CONFIG_VERSION, "updatedAt": None, **DEFAULT_SETTINGS, **self._stored_settings()}
        return self._view(settings, self._stored_credential())

    def load_runtime_settings(self) -> RuntimeSettings:
        normalized = normalize_settings({**DEFAULT_SETTINGS, **self._stored_settings()})
        api_key = (self._environ.get(API_KEY_ENV) or "").strip() or self._stored_credential().get("apiKey", "")
        return RuntimeSettings(
            stale_after_seconds=normalized["staleAfterSeconds"],  # type: ignore[arg-type]
            candle_limit=normalized["candleLimit"],  # type: ignore[arg-type]
            timeout_seconds=normalized["timeoutSeconds"],  # type: ignore[arg-type]
            connect_timeout_seconds=normalized["connectTimeoutSeconds"],  # type: ignore[arg-type]
            analysis_cache_ttl_seconds=normalized["analysisCacheTtlSeconds"],  # type: ignore[arg-type]
            ticker_base_url=str(normalized["tickerBaseUrl"]),
            metadata_base_url=str(normalized["metadataBaseUrl"]),
            candle_base_url=str(normalized["candleBaseUrl"]),
            analysis_model=str(normalized["analysisModel"]),
            analysis_endpoint=str(normalized["analysisEndpoint"]),
            job_workers=normalized["jobWorkers"],  # type: ignore[arg-type]
            db_path=str(normalized["dbPath"]),
            analysis_api_key=api_key,
        )

    def _stored_settings(self) -> dict[str, Any]:
        stored = self.repository.read_settings()
        return {key: value for key, value in stored.items() if key in DEFAULT_SETTINGS}

    def _stored_credential(self) -> dict[str, str]:
        credential = self.repository.read_credentials().get("credential") or {}
        return {"apiKey": str(credential.get("apiKey") or "")}

    def _view(self, settings: dict[str, Any], credential: dict[str, str]) -> dict[str, Any]:
        env_override = bool((self._environ.get(API_KEY_ENV) or "").strip())
        return {
            "configVersion": settings.get("version"),
            "updatedAt": settings.get("updatedAt"),
            **{key: settings.get(key) for key in DEFAULT_SETTINGS},
            "credentialMasked": to_masked_credential(credential),
            "apiKeyFromEnvironment": env_override,
        }
