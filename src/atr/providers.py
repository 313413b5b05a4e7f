from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from mdc.api_client import HttpJsonClient, TransportFn, urllib_transport
from mdc.errors import MdcError
from sst.models import CandleSnapshot

from .contracts import AnalysisRequest, AnalysisResult
from .errors import AnalysisUnavailableError

_LOGGER = logging.getLogger("dexiq.atr.providers")

DEFAULT_ANALYSIS_ENDPOINT = "https://api.openai.com/v1"
DEFAULT_ANALYSIS_MODEL = "gpt-4o"
MAX_INSIGHTS = 5
PROMPT_CANDLE_TAIL = 5

SYSTEM_PROMPT = "You are a professional cryptocurrency analyst specializing in DeFi and DEX trading."

_BULLET_LINE = re.compile(r"^\s*[-•*]\s*(.+)$", re.MULTILINE)
_NUMBERED_LINE = re.compile(r"^\s*\d+\.\s+(.+)$", re.MULTILINE)


def extract_insights(content: str, limit: int = MAX_INSIGHTS) -> tuple[str, ...]:
    insights = [match.strip() for match in _BULLET_LINE.findall(content) if match.strip()]
    if not insights:
        insights = [match.strip() for match in _NUMBERED_LINE.findall(content) if match.strip()]
    return tuple(insights[:limit])


def _fmt(value: object, fallback: str = "N/A") -> str:
    return fallback if value is None else str(value)


def _format_candles(candles: Iterable[CandleSnapshot]) -> str:
    rows = list(candles)[-PROMPT_CANDLE_TAIL:]
    if not rows:
        return "No data available"
    return "\n".join(
        f"{datetime.fromtimestamp(c.candle_timestamp, tz=timezone.utc):%H:%M} "
        f"O:{c.open} H:{c.high} L:{c.low} C:{c.close} V:{c.volume}"
        for c in rows
    )


def build_prompt(request: AnalysisRequest) -> str:
    bundle = request.bundle
    details = bundle.details
    ticker = bundle.ticker
    momentum: dict[str, Any] = (ticker.payload.get("priceChange") or {}) if ticker else {}
    ratio = ticker.buy_sell_ratio() if ticker else None

    lines = [
        "CONTEXT:",
        f"Token Pair: {_fmt(request.symbol, '?')}/{_fmt(request.quote_symbol, '?')}",
        f"Current Price: ${_fmt(details.current_price)}",
        f"24h Volume: ${_fmt(details.volume_24h)}",
        f"Liquidity: ${_fmt(details.liquidity)}",
        f"Market Cap: ${_fmt(details.market_cap)}",
    ]
    if request.reference_price is not None:
        lines.append(f"User Purchase Price: ${request.reference_price}")
    lines += [
        "",
        "PRICE MOMENTUM:",
        f"- 5m: {_fmt(momentum.get('m5'))}%",
        f"- 1h: {_fmt(momentum.get('h1'))}%",
        f"- 6h: {_fmt(momentum.get('h6'))}%",
        f"- 24h: {_fmt(details.price_change_24h)}%",
        "",
        "TRANSACTION ACTIVITY:",
        f"- Buys (24h): {_fmt(ticker.txns_24h_buys if ticker else None)}",
        f"- Sells (24h): {_fmt(ticker.txns_24h_sells if ticker else None)}",
        f"- Buy/Sell Ratio: {_fmt(round(ratio, 2) if ratio is not None else None)}",
        "",
        "TECHNICAL ANALYSIS (OHLCV):",
        f"Recent 1-min candles ({len(bundle.minute_candles)}):",
        _format_candles(bundle.minute_candles),
        f"Recent 15-min candles ({len(bundle.quarter_hour_candles)}):",
        _format_candles(bundle.quarter_hour_candles),
        "",
        "TASK:",
        "Assess price action, volume and liquidity, and risk, then give a trading recommendation.",
        "Finish with 3-5 key insights as bullet points starting with '- '.",
    ]
    return "\n".join(lines)


class ChatCompletionAnalysisProvider:
    """Analysis collaborator backed by an OpenAI-compatible chat completion API."""

    def __init__(
        self,
        http: HttpJsonClient | None = None,
        *,
        api_key: str | None,
        model: str = DEFAULT_ANALYSIS_MODEL,
        endpoint: str = DEFAULT_ANALYSIS_ENDPOINT,
        transport: TransportFn = urllib_transport,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        now_fn: Callable[[], datetime] | None = None,
    ) -> None:
        self._http = http or HttpJsonClient(base_url=endpoint, source="ANALYSIS", transport=transport)
        self._api_key = (api_key or "").strip()
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._now_fn = now_fn or (lambda: datetime.now(timezone.utc))

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def analyze(self, request: AnalysisRequest) -> AnalysisResult:
        if not self._api_key:
            raise AnalysisUnavailableError("analysis API key is not configured", reason="not_configured")

        body = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(request)},
            ],
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
        }
        try:
            # analysis is not retried; a failed call surfaces as an error event
            response = self._http.post_json(
                "/chat/completions",
                body,
                headers={"Authorization": f"Bearer {self._api_key}"},
                retry_attempts=1,
            )
        except MdcError as exc:
            _LOGGER.warning("analysis request failed token_id=%s code=%s", request.token_id, exc.code)
            raise AnalysisUnavailableError(exc.payload.message, reason=exc.code) from exc

        content = self._content(response)
        if not content:
            raise AnalysisUnavailableError("analysis response had no content", reason="empty_response")

        generated_at = self._now_fn()
        return AnalysisResult(
            summary=content,
            insights=extract_insights(content),
            metadata={"model": self._model, "raw_analysis": content, "timestamp": generated_at.isoformat()},
            generated_at=generated_at,
        )

    @staticmethod
    def _content(response: dict[str, Any]) -> str:
        choices = response.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return ""
        message = choices[0].get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        return content.strip() if isinstance(content, str) else ""


class UnconfiguredAnalysisProvider:
    def analyze(self, request: AnalysisRequest) -> AnalysisResult:
        raise AnalysisUnavailableError("no analysis provider configured", reason="not_configured")
