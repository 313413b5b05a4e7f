from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Literal

RiskLevel = Literal["low", "medium", "high"]
Recommendation = Literal["avoid", "watch", "consider", "strong_buy"]
Sentiment = Literal["very_bullish", "bullish", "neutral", "bearish", "very_bearish"]

BASE_SCORE = 50

SENTIMENT_EMOJI: dict[str, str] = {
    "very_bullish": "🚀",
    "bullish": "📈",
    "neutral": "➡️",
    "bearish": "📉",
    "very_bearish": "💀",
}


@dataclass(frozen=True)
class TokenScore:
    token_name: str | None
    score: int
    risk: RiskLevel
    risk_factors: tuple[str, ...]
    recommendation: Recommendation
    sentiment: Sentiment
    emoji: str


def _number(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        return float(str(value).strip().replace(",", "") or 0)
    except ValueError:
        return 0.0


def _size_points(value: float) -> int:
    if value > 1_000_000:
        return 20
    if value >= 500_000:
        return 15
    if value >= 100_000:
        return 10
    if value >= 10_000:
        return 5
    return 0


def calculate_score(row: dict[str, Any]) -> int:
    score = BASE_SCORE
    score += _size_points(_number(row.get("volume")))
    score += _size_points(_number(row.get("liquidity")))

    change_24h = _number(row.get("change24h"))
    if change_24h > 50:
        score += 20
    elif change_24h >= 20:
        score += 15
    elif change_24h >= 0:
        score += 10
    elif change_24h < -20:
        score -= 10

    short_term = (_number(row.get("change5m")) + _number(row.get("change1h"))) / 2
    if short_term > 10:
        score += 20
    elif short_term >= 0:
        score += 10
    elif short_term < -10:
        score -= 10

    return max(0, min(100, score))


def assess_risk(row: dict[str, Any]) -> tuple[RiskLevel, tuple[str, ...]]:
    factors: list[str] = []
    if _number(row.get("liquidity")) < 50_000:
        factors.append("low_liquidity")
    if abs(_number(row.get("change5m"))) > 20 or abs(_number(row.get("change1h"))) > 30:
        factors.append("high_volatility")
    if _number(row.get("change24h")) < -30:
        factors.append("sharp_decline")

    if len(factors) >= 2:
        return "high", tuple(factors)
    if len(factors) == 1:
        return "medium", tuple(factors)
    return "low", ()


def recommend(score: int, risk: RiskLevel) -> Recommendation:
    if risk == "high" or score < 30:
        return "avoid"
    if score <= 60 or risk == "medium":
        return "watch"
    if score <= 80:
        return "consider"
    return "strong_buy"


def determine_sentiment(row: dict[str, Any]) -> Sentiment:
    change_24h = _number(row.get("change24h"))
    if change_24h > 50:
        return "very_bullish"
    if change_24h >= 10:
        return "bullish"
    if change_24h >= -10:
        return "neutral"
    if change_24h >= -50:
        return "bearish"
    return "very_bearish"


def score_token(row: dict[str, Any]) -> TokenScore:
    score = calculate_score(row)
    risk, factors = assess_risk(row)
    sentiment = determine_sentiment(row)
    name = row.get("tokenName")
    return TokenScore(
        token_name=str(name) if name is not None else None,
        score=score,
        risk=risk,
        risk_factors=factors,
        recommendation=recommend(score, risk),
        sentiment=sentiment,
        emoji=SENTIMENT_EMOJI[sentiment],
    )


def score_tokens(rows: Iterable[dict[str, Any]]) -> list[TokenScore]:
    return [score_token(row) for row in rows]
