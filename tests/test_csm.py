from __future__ import annotations

import json
from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from csm.errors import (
    CsmPositiveIntegerRequiredError,
    CsmRequiredFieldMissingError,
    CsmUrlInvalidError,
    CsmValueOutOfRangeError,
)
from csm.masking import mask_api_key, to_masked_credential
from csm.models import DEFAULT_SETTINGS
from csm.repository import CsmRuntimeRepository
from csm.service import CsmService
from csm.validators import normalize_positive_int, normalize_settings, normalize_url


def create_service(tmp_path: Path, environ: dict[str, str] | None = None) -> CsmService:
    repo = CsmRuntimeRepository(
        settings_path=tmp_path / "runtime" / "config" / "settings.local.json",
        credentials_path=tmp_path / "runtime" / "config" / "credentials.local.json",
    )
    return CsmService(repository=repo, environ=environ or {})


def test_normalize_positive_int_constraints() -> None:
    assert normalize_positive_int("candleLimit", " 250 ") == 250
    assert normalize_positive_int("candleLimit", 5.0) == 5

    for bad in (0, -1, "abc", None, True, 2.5):
        with pytest.raises(CsmPositiveIntegerRequiredError):
            normalize_positive_int("candleLimit", bad)


def test_normalize_url_requires_http_scheme() -> None:
    assert normalize_url("tickerBaseUrl", " https://api.example.com/v1/ ") == "https://api.example.com/v1"

    with pytest.raises(CsmUrlInvalidError):
        normalize_url("tickerBaseUrl", "ftp://api.example.com")
    with pytest.raises(CsmUrlInvalidError):
        normalize_url("tickerBaseUrl", "not a url")


def test_normalize_settings_range_checks() -> None:
    with pytest.raises(CsmValueOutOfRangeError) as candle_exc:
        normalize_settings({**DEFAULT_SETTINGS, "candleLimit": 1001})
    assert candle_exc.value.field == "candleLimit"

    with pytest.raises(CsmValueOutOfRangeError) as workers_exc:
        normalize_settings({**DEFAULT_SETTINGS, "jobWorkers": 33})
    assert workers_exc.value.field == "jobWorkers"

    with pytest.raises(CsmValueOutOfRangeError) as timeout_exc:
        normalize_settings({**DEFAULT_SETTINGS, "timeoutSeconds": 5, "connectTimeoutSeconds": 10})
    assert timeout_exc.value.field == "connectTimeoutSeconds"

    with pytest.raises(CsmRequiredFieldMissingError):
        normalize_settings({**DEFAULT_SETTINGS, "analysisModel": "  "})


def test_mask_api_key() -> None:
    assert mask_api_key("") == ""
    assert mask_api_key("short") == "***masked***"
    assert mask_api_key("sk-0123456789abcd") == "***abcd"
    assert to_masked_credential({"apiKey": ""}) == {"apiKey": "", "configured": False}


def test_get_settings_returns_defaults_without_files(tmp_path: Path) -> None:
    service = create_service(tmp_path)

    view = service.get_settings()

    assert view["configVersion"] == "v1"
    assert view["updatedAt"] is None
    assert view["staleAfterSeconds"] == 300
    assert view["tickerBaseUrl"] == "https://api.dexscreener.com/latest/dex"
    assert view["credentialMasked"] == {"apiKey": "", "configured": False}
    assert view["apiKeyFromEnvironment"] is False


def test_save_settings_merges_and_writes_key_separately(tmp_path: Path) -> None:
    service = create_service(tmp_path)

    response = service.save_settings(
        {
            "staleAfterSeconds": "120",
            "candleBaseUrl": "https://ohlcv.example.com/api/",
            "analysisApiKey": " sk-0123456789abcd ",
        }
    )

    settings_path = tmp_path / "runtime" / "config" / "settings.local.json"
    credentials_path = tmp_path / "runtime" / "config" / "credentials.local.json"
    settings_payload = json.loads(settings_path.read_text(encoding="utf-8"))
    credentials_payload = json.loads(credentials_path.read_text(encoding="utf-8"))

    assert settings_payload["staleAfterSeconds"] == 120
    assert settings_payload["candleBaseUrl"] == "https://ohlcv.example.com/api"
    assert settings_payload["candleLimit"] == 1000
    assert "analysisApiKey" not in settings_payload
    assert "sk-0123456789abcd" not in settings_path.read_text(encoding="utf-8")
    assert credentials_payload["credential"]["apiKey"] == "sk-0123456789abcd"

    assert response["staleAfterSeconds"] == 120
    assert response["credentialMasked"] == {"apiKey": "***abcd", "configured": True}

    # a later save without the key keeps both the stored key and earlier values
    second = service.save_settings({"jobWorkers": 4})
    assert second["staleAfterSeconds"] == 120
    assert second["jobWorkers"] == 4
    assert second["credentialMasked"]["configured"] is True


def test_invalid_save_leaves_files_untouched(tmp_path: Path) -> None:
    service = create_service(tmp_path)
    service.save_settings({"candleLimit": 500})

    with pytest.raises(CsmValueOutOfRangeError):
        service.save_settings({"candleLimit": 5000})

    assert service.get_settings()["candleLimit"] == 500


def test_load_runtime_settings_prefers_environment_key(tmp_path: Path) -> None:
    service = create_service(tmp_path, environ={"DEXIQ_ANALYSIS_API_KEY": "sk-from-environment"})
    service.save_settings({"analysisApiKey": "sk-stored-in-file", "timeoutSeconds": 20})

    runtime = service.load_runtime_settings()

    assert runtime.analysis_api_key == "sk-from-environment"
    assert runtime.analysis_configured is True
    assert runtime.timeout_seconds == 20
    assert "sk-from-environment" not in repr(runtime)
    assert service.get_settings()["apiKeyFromEnvironment"] is True


def test_load_runtime_settings_without_key_is_unconfigured(tmp_path: Path) -> None:
    runtime = create_service(tmp_path).load_runtime_settings()

    assert runtime.analysis_configured is False
    assert runtime.job_workers == 2
    assert runtime.db_path == "runtime/state/dexiq.db"
