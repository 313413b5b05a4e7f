from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_SETTINGS: dict[str, object] = {
    "staleAfterSeconds": 300,
    "candleLimit": 1000,
    "timeoutSeconds": 30,
    "connectTimeoutSeconds": 10,
    "analysisCacheTtlSeconds": 900,
    "tickerBaseUrl": "https://api.dexscreener.com/latest/dex",
    "metadataBaseUrl": "https://api.geckoterminal.com/api/v2",
    "candleBaseUrl": "https://api.geckoterminal.com/api/v2",
    "analysisModel": "gpt-4o",
    "analysisEndpoint": "https://api.openai.com/v1",
    "jobWorkers": 2,
    "dbPath": "runtime/state/dexiq.db",
}


@dataclass(frozen=True)
class RuntimeSettings:
    stale_after_seconds: int = 300
    candle_limit: int = 1000
    timeout_seconds: int = 30
    connect_timeout_seconds: int = 10
    analysis_cache_ttl_seconds: int = 900
    ticker_base_url: str = "https://api.dexscreener.com/latest/dex"
    metadata_base_url: str = "https://api.geckoterminal.com/api/v2"
    candle_base_url: str = "https://api.geckoterminal.com/api/v2"
    analysis_model: str = "gpt-4o"
    analysis_endpoint: str = "https://api.openai.com/v1"
    job_workers: int = 2
    db_path: str = "runtime/state/dexiq.db"
    analysis_api_key: str = field(default="", repr=False)

    @property
    def analysis_configured(self) -> bool:
        return bool(self.analysis_api_key)
