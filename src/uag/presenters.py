from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from atr.contracts import AnalysisResult
from atr.heuristics import TokenScore
from atr.service import TriggerOutcome
from pld.models import PositionSummary
from rev.models import ReadinessStatus
from sst.models import CandleSnapshot, LedgerTransaction, MetadataSnapshot, TickerSnapshot, Token


def to_decimal_string(value: Decimal | None) -> str | None:
    if value is None:
        return None
    return format(value, "f")


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def token_json(token: Token) -> dict[str, Any]:
    return {
        "tokenId": token.id,
        "chainId": token.chain_id,
        "poolAddress": token.pool_address,
        "symbol": token.symbol,
        "quoteSymbol": token.quote_symbol,
        "tokenUrl": token.token_url,
        "createdAt": _iso(token.created_at),
        "updatedAt": _iso(token.updated_at),
    }


def readiness_json(status: ReadinessStatus) -> dict[str, Any]:
    return {
        "tokenId": status.token_id,
        "tier": status.tier,
        "readyForAnalysis": status.ready_for_analysis,
        "hasTicker": status.has_ticker,
        "hasMetadata": status.has_metadata,
        "hasCandles": status.has_candles,
        "counts": {
            "ticker": status.ticker_count,
            "metadata": status.metadata_count,
            "candles": status.candle_count,
        },
        "lastUpdated": _iso(status.last_updated),
    }


def ticker_json(snapshot: TickerSnapshot | None) -> dict[str, Any] | None:
    if snapshot is None:
        return None
    return {
        "dexId": snapshot.dex_id,
        "url": snapshot.url,
        "priceUsd": to_decimal_string(snapshot.price_usd),
        "priceNative": to_decimal_string(snapshot.price_native),
        "liquidityUsd": to_decimal_string(snapshot.liquidity_usd),
        "volume24h": to_decimal_string(snapshot.volume_24h),
        "priceChange24h": to_decimal_string(snapshot.price_change_24h),
        "fdv": to_decimal_string(snapshot.fdv),
        "marketCap": to_decimal_string(snapshot.market_cap),
        "txns24h": {"buys": snapshot.txns_24h_buys, "sells": snapshot.txns_24h_sells},
        "pairCreatedAt": _iso(snapshot.pair_created_at),
        "fetchedAt": _iso(snapshot.fetched_at),
    }


def metadata_json(snapshot: MetadataSnapshot | None) -> dict[str, Any] | None:
    if snapshot is None:
        return None
    return {
        "role": snapshot.role,
        "address": snapshot.address,
        "name": snapshot.name,
        "symbol": snapshot.symbol,
        "decimals": snapshot.decimals,
        "coingeckoCoinId": snapshot.coingecko_coin_id,
        "imageUrl": snapshot.image_url,
        "priceUsd": to_decimal_string(snapshot.price_usd),
        "fetchedAt": _iso(snapshot.fetched_at),
    }


def candle_json(candle: CandleSnapshot | None) -> dict[str, Any] | None:
    if candle is None:
        return None
    return {
        "timeframe": candle.timeframe,
        "aggregate": candle.aggregate,
        "timestamp": candle.candle_timestamp,
        "open": to_decimal_string(candle.open),
        "high": to_decimal_string(candle.high),
        "low": to_decimal_string(candle.low),
        "close": to_decimal_string(candle.close),
        "volume": to_decimal_string(candle.volume),
    }


def transaction_json(tx: LedgerTransaction) -> dict[str, Any]:
    return {
        "transactionId": tx.id,
        "transactionType": tx.transaction_type,
        "amount": to_decimal_string(tx.amount),
        "unitPrice": to_decimal_string(tx.unit_price),
        "totalValue": to_decimal_string(tx.total_value),
        "txHash": tx.tx_hash,
        "note": tx.note,
        "createdAt": _iso(tx.created_at),
    }


def position_json(position: PositionSummary) -> dict[str, Any]:
    return {
        "transactionCount": position.transaction_count,
        "totalBought": to_decimal_string(position.total_bought),
        "totalSold": to_decimal_string(position.total_sold),
        "netHoldings": to_decimal_string(position.net_holdings),
        "averageBuyPrice": to_decimal_string(position.average_buy_price),
        "totalInvested": to_decimal_string(position.total_invested),
        "realizedPnl": to_decimal_string(position.realized_pnl),
        "unrealizedPnl": to_decimal_string(position.unrealized_pnl),
        "totalPnl": to_decimal_string(position.total_pnl),
        "pnlPercentage": to_decimal_string(position.pnl_percentage),
        "currentPrice": to_decimal_string(position.current_price),
        "currentValue": to_decimal_string(position.current_value),
    }


def analysis_json(result: AnalysisResult) -> dict[str, Any]:
    return {
        "summary": result.summary,
        "insights": list(result.insights),
        "metadata": result.metadata,
        "generatedAt": _iso(result.generated_at),
    }


def trigger_outcome_json(outcome: TriggerOutcome) -> dict[str, Any]:
    return {
        "tokenId": outcome.token_id,
        "status": outcome.status,
        "readiness": readiness_json(outcome.readiness),
        "analysis": analysis_json(outcome.result) if outcome.result is not None else None,
    }


def score_json(score: TokenScore) -> dict[str, Any]:
    return {
        "tokenName": score.token_name,
        "score": score.score,
        "risk": score.risk,
        "riskFactors": list(score.risk_factors),
        "recommendation": score.recommendation,
        "sentiment": score.sentiment,
        "emoji": score.emoji,
    }
