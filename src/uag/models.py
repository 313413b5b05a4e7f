from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

NumberInput = str | int | float


class TokenCreateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    chainId: str = Field(min_length=1, max_length=64)
    poolAddress: str = Field(min_length=1, max_length=128)
    symbol: str | None = Field(default=None, max_length=64)
    quoteSymbol: str | None = Field(default=None, max_length=64)
    tokenUrl: str | None = Field(default=None, max_length=512)


class AnalysePairRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    symbol: str | None = Field(default=None, max_length=64)
    quoteSymbol: str | None = Field(default=None, max_length=64)
    purchasePrice: NumberInput | None = None


class PurchaseCreateRequest(BaseModel):
    transactionType: str | None = None
    amount: NumberInput | None = None
    unitPrice: NumberInput | None = None
    txHash: str | None = Field(default=None, max_length=128)
    note: str | None = Field(default=None, max_length=1000)


class TokenRowInput(BaseModel):
    tokenName: str | None = None
    price: NumberInput | None = None
    volume: NumberInput | None = None
    change5m: NumberInput | None = None
    change1h: NumberInput | None = None
    change6h: NumberInput | None = None
    change24h: NumberInput | None = None
    liquidity: NumberInput | None = None


class AnalyseTokensRequest(BaseModel):
    tokens: list[TokenRowInput] = Field(min_length=1, max_length=200)


class SettingsSaveRequest(BaseModel):
    staleAfterSeconds: int | None = None
    candleLimit: int | None = None
    timeoutSeconds: int | None = None
    connectTimeoutSeconds: int | None = None
    analysisCacheTtlSeconds: int | None = None
    tickerBaseUrl: str | None = None
    metadataBaseUrl: str | None = None
    candleBaseUrl: str | None = None
    analysisModel: str | None = None
    analysisEndpoint: str | None = None
    analysisApiKey: str | None = None
    jobWorkers: int | None = None
    dbPath: str | None = None


def build_success_envelope(*, request_id: str, data: Any) -> dict[str, Any]:
    return {
        "success": True,
        "requestId": request_id,
        "data": data,
        "meta": {"timestamp": datetime.now().astimezone().isoformat()},
    }


def build_error_envelope(
    *,
    request_id: str,
    code: str,
    message: str,
    details: list[dict[str, Any]] | None = None,
    retryable: bool = False,
    source: str = "UAG",
) -> dict[str, Any]:
    return {
        "success": False,
        "requestId": request_id,
        "error": {
            "code": code,
            "message": message,
            "retryable": retryable,
            "source": source,
            "details": details or [],
        },
        "meta": {"timestamp": datetime.now().astimezone().isoformat()},
    }
