from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

DEFAULT_SETTINGS_PATH = "runtime/config/settings.local.json"
DEFAULT_CREDENTIALS_PATH = "runtime/config/credentials.local.json"


def _atomic_write_json(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(prefix=".tmp-", suffix=".json", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as file:
            json.dump(payload, file, ensure_ascii=False, indent=2)
            file.flush()
            os.fsync(file.fileno())
        os.replace(tmp_path, path)
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)


def _read_json(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as file:
        loaded = json.load(file)
    return loaded if isinstance(loaded, dict) else {}


class CsmRuntimeRepository:
    """Settings and credentials snapshots as two local JSON files.

    A missing file reads as an empty mapping; writes replace the whole file
    atomically.
    """

    def __init__(
        self,
        settings_path: str | Path = DEFAULT_SETTINGS_PATH,
        credentials_path: str | Path = DEFAULT_CREDENTIALS_PATH,
    ) -> None:
        self.settings_path = Path(settings_path)
        self.credentials_path = Path(credentials_path)

    def read_settings(self) -> dict[str, Any]:
        return _read_json(self.settings_path)

    def write_settings(self, snapshot: dict[str, Any]) -> None:
        _atomic_write_json(self.settings_path, snapshot)

    def read_credentials(self) -> dict[str, Any]:
        return _read_json(self.credentials_path)

    def write_credentials(self, credential_payload: dict[str, Any]) -> None:
        _atomic_write_json(self.credentials_path, credential_payload)
