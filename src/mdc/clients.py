from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from .api_client import HttpJsonClient, TransportFn, urllib_transport
from .contracts import CandleRecord, CandleRequest, MetadataRecord, TickerRecord
from .networks import normalize_pool_address, to_canonical_chain_id, to_source_chain_id

_LOGGER = logging.getLogger("dexiq.mdc.clients")

DEXSCREENER_BASE_URL = "https://api.dexscreener.com/latest/dex"
GECKOTERMINAL_BASE_URL = "https://api.geckoterminal.com/api/v2"
GECKOTERMINAL_ACCEPT = "application/json;version=20230302"
MAX_CANDLE_PAGE = 1000


def _parse_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip().replace(",", "")
    if not text:
        return None
    try:
        parsed = Decimal(text)
    except InvalidOperation:
        _LOGGER.warning("Unparseable decimal from upstream: value=%r", value)
        return None
    if not parsed.is_finite():
        return None
    return parsed


def _parse_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    number = _parse_decimal(value)
    if number is None or number != number.to_integral_value():
        return None
    return int(number)


def _parse_epoch(value: Any) -> datetime | None:
    if value is None:
        return None
    number = _parse_decimal(value)
    if number is None:
        return None
    seconds = number / 1000 if number > Decimal("100000000000") else number
    return datetime.fromtimestamp(float(seconds), tz=timezone.utc)


def _dig(payload: Any, *path: str) -> Any:
    current = payload
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


class DexscreenerClient:
    """Ticker/pair source: latest price, liquidity and volume for one pair."""

    def __init__(self, http: HttpJsonClient | None = None, *, transport: TransportFn = urllib_transport) -> None:
        self._http = http or HttpJsonClient(base_url=DEXSCREENER_BASE_URL, source="DEXSCREENER", transport=transport)

    def fetch_pair(self, *, chain_id: str, pool_address: str) -> TickerRecord | None:
        network = to_source_chain_id(chain_id, "dexscreener")
        raw = self._http.get_json(f"/pairs/{network}/{pool_address}")
        pair = raw.get("pair")
        if not isinstance(pair, dict):
            pairs = raw.get("pairs")
            pair = pairs[0] if isinstance(pairs, list) and pairs and isinstance(pairs[0], dict) else None
        if pair is None:
            return None

        return TickerRecord(
            chain_id=to_canonical_chain_id(pair.get("chainId") or chain_id),
            pair_address=normalize_pool_address(pair.get("pairAddress") or pool_address),
            dex_id=_text(pair.get("dexId")),
            url=_text(pair.get("url")),
            price_usd=_parse_decimal(pair.get("priceUsd")),
            price_native=_parse_decimal(pair.get("priceNative")),
            liquidity_usd=_parse_decimal(_dig(pair, "liquidity", "usd")),
            volume_24h=_parse_decimal(_dig(pair, "volume", "h24")),
            price_change_24h=_parse_decimal(_dig(pair, "priceChange", "h24")),
            fdv=_parse_decimal(pair.get("fdv")),
            market_cap=_parse_decimal(pair.get("marketCap")),
            txns_24h_buys=_parse_int(_dig(pair, "txns", "h24", "buys")),
            txns_24h_sells=_parse_int(_dig(pair, "txns", "h24", "sells")),
            pair_created_at=_parse_epoch(pair.get("pairCreatedAt")),
            base_symbol=_text(_dig(pair, "baseToken", "symbol")),
            quote_symbol=_text(_dig(pair, "quoteToken", "symbol")),
            payload=pair,
        )


class GeckoTerminalClient:
    """Metadata source: the base and quote token descriptions of a pool."""

    def __init__(self, http: HttpJsonClient | None = None, *, transport: TransportFn = urllib_transport) -> None:
        self._http = http or HttpJsonClient(
            base_url=GECKOTERMINAL_BASE_URL,
            source="GECKOTERMINAL",
            transport=transport,
            default_headers={"Accept": GECKOTERMINAL_ACCEPT},
        )

    def fetch_pool_tokens(self, *, chain_id: str, pool_address: str) -> list[MetadataRecord] | None:
        network = to_source_chain_id(chain_id, "geckoterminal")
        raw = self._http.get_json(
            f"/networks/{network}/pools/{pool_address}",
            query={"include": "base_token,quote_token"},
        )
        pool = raw.get("data")
        if not isinstance(pool, dict):
            return None

        included = {
            item.get("id"): item
            for item in raw.get("included") or []
            if isinstance(item, dict) and item.get("type") == "token"
        }
        attributes = pool.get("attributes") or {}
        records: list[MetadataRecord] = []
        for role in ("base", "quote"):
            token_id = _dig(pool, "relationships", f"{role}_token", "data", "id")
            token = included.get(token_id)
            if token is None and token_id is None:
                continue
            token_attributes = (token or {}).get("attributes") or {}
            records.append(
                MetadataRecord(
                    role=role,  # type: ignore[arg-type]
                    address=_text(token_attributes.get("address")) or self._address_from_id(token_id),
                    name=_text(token_attributes.get("name")),
                    symbol=_text(token_attributes.get("symbol")),
                    decimals=_parse_int(token_attributes.get("decimals")),
                    coingecko_coin_id=_text(token_attributes.get("coingecko_coin_id")),
                    image_url=_text(token_attributes.get("image_url")),
                    price_usd=_parse_decimal(attributes.get(f"{role}_token_price_usd")),
                    payload={"pool": attributes, "token": token_attributes},
                )
            )
        return records or None

    @staticmethod
    def _address_from_id(token_id: Any) -> str | None:
        # GeckoTerminal ids look like "<network>_<address>"
        if not isinstance(token_id, str) or "_" not in token_id:
            return None
        return token_id.rsplit("_", 1)[-1] or None


class GeckoOhlcvClient:
    """Candle source: OHLCV buckets for one (timeframe, aggregate) series."""

    def __init__(self, http: HttpJsonClient | None = None, *, transport: TransportFn = urllib_transport) -> None:
        self._http = http or HttpJsonClient(
            base_url=GECKOTERMINAL_BASE_URL,
            source="GECKOTERMINAL_OHLCV",
            transport=transport,
            default_headers={"Accept": GECKOTERMINAL_ACCEPT},
        )

    def fetch_candles(self, req: CandleRequest) -> list[CandleRecord] | None:
        network = to_source_chain_id(req.chain_id, "geckoterminal")
        query = {
            "aggregate": str(req.aggregate),
            "before_timestamp": str(req.before_timestamp),
            "limit": str(max(1, min(req.limit, MAX_CANDLE_PAGE))),
            "currency": "usd",
            "token": "base",
            "include_empty_intervals": "false",
        }
        if req.from_timestamp is not None:
            query["from_timestamp"] = str(req.from_timestamp)

        raw = self._http.get_json(
            f"/networks/{network}/pools/{req.pool_address}/ohlcv/{req.timeframe}",
            query=query,
        )
        rows = _dig(raw, "data", "attributes", "ohlcv_list")
        if not isinstance(rows, list) or not rows:
            return None

        candles: list[CandleRecord] = []
        for row in rows:
            candle = self._parse_row(row)
            if candle is None:
                continue
            # from_timestamp is already one past the newest stored candle
            if req.from_timestamp is not None and candle.timestamp < req.from_timestamp:
                continue
            if candle.timestamp > req.before_timestamp:
                continue
            candles.append(candle)
        return candles or None

    @staticmethod
    def _parse_row(row: Any) -> CandleRecord | None:
        if not isinstance(row, (list, tuple)) or len(row) < 6:
            return None
        timestamp = _parse_int(row[0])
        values = [_parse_decimal(value) for value in row[1:6]]
        if timestamp is None or any(value is None for value in values):
            _LOGGER.warning("Skipping malformed candle row: %r", row)
            return None
        open_, high, low, close, volume = values
        return CandleRecord(timestamp=timestamp, open=open_, high=high, low=low, close=close, volume=volume)  # type: ignore[arg-type]
