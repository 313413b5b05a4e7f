from __future__ import annotations

from decimal import Decimal
from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from mdc.api_client import HttpJsonClient
from mdc.clients import DexscreenerClient, GeckoOhlcvClient, GeckoTerminalClient
from mdc.contracts import CandleRequest
from mdc.error_mapper import map_exception, map_http_status
from mdc.errors import MdcError
from mdc.networks import normalize_pool_address, to_canonical_chain_id, to_source_chain_id
from mdc.retry import execute_with_retry

POOL = "0xAbCdEf0000000000000000000000000000000001"


def _http(transport, **kwargs) -> HttpJsonClient:
    return HttpJsonClient(
        base_url="https://upstream.example",
        source="TEST",
        transport=transport,
        retry_base_delay_seconds=0,
        retry_max_delay_seconds=0,
        sleep_fn=lambda _seconds: None,
        rand_fn=lambda _a, _b: 0,
        **kwargs,
    )


def test_chain_aliases_resolve_to_canonical_and_source_ids() -> None:
    assert to_canonical_chain_id("ETH") == "ethereum"
    assert to_canonical_chain_id("bnb") == "bsc"
    assert to_canonical_chain_id("matic") == "polygon"
    assert to_canonical_chain_id(" Unknown-Chain ") == "unknown-chain"

    assert to_source_chain_id("ethereum", "geckoterminal") == "eth"
    assert to_source_chain_id("eth", "dexscreener") == "ethereum"
    assert to_source_chain_id("polygon", "geckoterminal") == "polygon_pos"
    assert to_source_chain_id("zksync", "geckoterminal") == "zksync"


def test_pool_address_normalization_only_lowercases_hex() -> None:
    assert normalize_pool_address(f"  {POOL} ") == POOL.lower()
    solana = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
    assert normalize_pool_address(solana) == solana


def test_http_status_mapping_marks_retryable_codes() -> None:
    assert map_http_status(404).code == "MDC_NOT_FOUND"
    assert map_http_status(404).retryable is False
    assert map_http_status(429).retryable is True
    assert map_http_status(503).code == "MDC_UPSTREAM_UNAVAILABLE"
    assert map_http_status(418).code == "MDC_UNKNOWN"

    timeout = map_exception(TimeoutError("slow"), source="DEXSCREENER")
    assert timeout.code == "MDC_API_TIMEOUT"
    assert timeout.retryable is True
    assert timeout.payload.source == "DEXSCREENER"


def test_execute_with_retry_stops_on_non_retryable() -> None:
    calls = 0

    def operation() -> int:
        nonlocal calls
        calls += 1
        raise map_http_status(400)

    with pytest.raises(MdcError):
        execute_with_retry(
            operation,
            should_retry=lambda exc, _attempt: isinstance(exc, MdcError) and exc.retryable,
            sleep_fn=lambda _seconds: None,
        )
    assert calls == 1


def test_http_client_retries_rate_limit_then_succeeds() -> None:
    statuses = [429, 503, 200]
    seen_timeouts: list[float] = []

    def transport(method, url, headers, payload, query, timeout):
        seen_timeouts.append(timeout)
        status = statuses.pop(0)
        return status, {"ok": status == 200}

    client = _http(transport, connect_timeout_seconds=7)
    assert client.get_json("/ping") == {"ok": True}
    assert statuses == []
    assert seen_timeouts == [7, 7, 7]


def test_http_client_does_not_retry_after_deadline() -> None:
    calls = 0
    clock = iter([0.0, 100.0, 200.0])

    def transport(method, url, headers, payload, query, timeout):
        nonlocal calls
        calls += 1
        return 503, {}

    client = _http(transport, timeout_seconds=30, monotonic_fn=lambda: next(clock))
    with pytest.raises(MdcError) as exc_info:
        client.get_json("/ping")

    assert exc_info.value.code == "MDC_UPSTREAM_UNAVAILABLE"
    assert calls == 1


def test_dexscreener_client_normalizes_pair() -> None:
    requested: list[str] = []

    def transport(method, url, headers, payload, query, timeout):
        requested.append(url)
        return 200, {
            "pairs": [
                {
                    "chainId": "ethereum",
                    "dexId": "uniswap",
                    "url": "https://dexscreener.com/ethereum/pool",
                    "pairAddress": POOL,
                    "baseToken": {"symbol": "PEPE"},
                    "quoteToken": {"symbol": "WETH"},
                    "priceNative": "0.0000000042",
                    "priceUsd": "0.00001234",
                    "txns": {"h24": {"buys": 120, "sells": 80}},
                    "volume": {"h24": 1500000.5},
                    "priceChange": {"h24": -3.2},
                    "liquidity": {"usd": 250000},
                    "fdv": 9000000,
                    "pairCreatedAt": 1700000000000,
                }
            ]
        }

    client = DexscreenerClient(_http(transport))
    record = client.fetch_pair(chain_id="eth", pool_address=POOL.lower())

    assert requested == [f"https://upstream.example/pairs/ethereum/{POOL.lower()}"]
    assert record is not None
    assert record.pair_address == POOL.lower()
    assert record.price_usd == Decimal("0.00001234")
    assert record.volume_24h == Decimal("1500000.5")
    assert record.txns_24h_buys == 120
    assert record.base_symbol == "PEPE"
    assert record.pair_created_at is not None
    assert record.pair_created_at.year == 2023


def test_dexscreener_client_returns_none_without_pair() -> None:
    client = DexscreenerClient(_http(lambda *args: (200, {"pairs": None})))
    assert client.fetch_pair(chain_id="ethereum", pool_address=POOL) is None


def test_geckoterminal_client_builds_base_and_quote_records() -> None:
    captured: dict = {}

    def transport(method, url, headers, payload, query, timeout):
        captured["url"] = url
        captured["query"] = query
        return 200, {
            "data": {
                "id": f"eth_{POOL.lower()}",
                "attributes": {
                    "base_token_price_usd": "0.0000123",
                    "quote_token_price_usd": "3100.5",
                    "reserve_in_usd": "250000",
                },
                "relationships": {
                    "base_token": {"data": {"id": "eth_0xbase", "type": "token"}},
                    "quote_token": {"data": {"id": "eth_0xquote", "type": "token"}},
                },
            },
            "included": [
                {
                    "id": "eth_0xbase",
                    "type": "token",
                    "attributes": {"address": "0xbase", "name": "Pepe", "symbol": "PEPE", "decimals": 18},
                },
            ],
        }

    client = GeckoTerminalClient(_http(transport))
    records = client.fetch_pool_tokens(chain_id="ethereum", pool_address=POOL.lower())

    assert captured["url"].endswith(f"/networks/eth/pools/{POOL.lower()}")
    assert captured["query"] == {"include": "base_token,quote_token"}
    assert records is not None
    base, quote = records
    assert base.role == "base"
    assert base.symbol == "PEPE"
    assert base.decimals == 18
    assert base.price_usd == Decimal("0.0000123")
    assert quote.role == "quote"
    assert quote.address == "0xquote"
    assert quote.price_usd == Decimal("3100.5")


def test_ohlcv_client_drops_candles_outside_requested_window() -> None:
    captured: dict = {}

    def transport(method, url, headers, payload, query, timeout):
        captured["url"] = url
        captured["query"] = query
        return 200, {
            "data": {
                "attributes": {
                    "ohlcv_list": [
                        [1000, 1, 2, 0.5, 1.5, 10],
                        [1060, 1.5, 2, 1, 1.8, 12],
                        [1120, "bad", 2, 1, 1.8, 12],
                        [1180, 1.8, 2.2, 1.7, 2.0, 9],
                        [9999, 2, 2, 2, 2, 1],
                    ]
                }
            }
        }

    client = GeckoOhlcvClient(_http(transport))
    candles = client.fetch_candles(
        CandleRequest(
            chain_id="ethereum",
            pool_address=POOL.lower(),
            timeframe="minute",
            aggregate=1,
            from_timestamp=1001,
            before_timestamp=2000,
            limit=5000,
        )
    )

    assert captured["url"].endswith(f"/networks/eth/pools/{POOL.lower()}/ohlcv/minute")
    assert captured["query"]["limit"] == "1000"
    assert captured["query"]["from_timestamp"] == "1001"
    assert captured["query"]["before_timestamp"] == "2000"
    assert candles is not None
    assert [candle.timestamp for candle in candles] == [1060, 1180]
    assert candles[1].close == Decimal("2.0")


def test_ohlcv_client_returns_none_for_empty_list() -> None:
    client = GeckoOhlcvClient(_http(lambda *args: (200, {"data": {"attributes": {"ohlcv_list": []}}})))
    request = CandleRequest(
        chain_id="solana",
        pool_address="So1anaPool",
        timeframe="day",
        aggregate=1,
        from_timestamp=None,
        before_timestamp=2000,
    )
    assert client.fetch_candles(request) is None
