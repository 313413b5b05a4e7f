from __future__ import annotations

from typing import Literal

SourceName = Literal["dexscreener", "geckoterminal"]

# alias -> canonical chain id (canonical ids follow DexScreener naming)
CANONICAL_CHAIN_IDS: dict[str, str] = {
    "ethereum": "ethereum",
    "eth": "ethereum",
    "mainnet": "ethereum",
    "bsc": "bsc",
    "bnb": "bsc",
    "binance-smart-chain": "bsc",
    "polygon": "polygon",
    "matic": "polygon",
    "polygon_pos": "polygon",
    "arbitrum": "arbitrum",
    "arbitrum-one": "arbitrum",
    "optimism": "optimism",
    "avalanche": "avalanche",
    "avax": "avalanche",
    "fantom": "fantom",
    "ftm": "fantom",
    "solana": "solana",
    "sol": "solana",
    "base": "base",
}

# canonical chain id -> per-source network id
SOURCE_CHAIN_IDS: dict[SourceName, dict[str, str]] = {
    "dexscreener": {
        "ethereum": "ethereum",
        "bsc": "bsc",
        "polygon": "polygon",
        "arbitrum": "arbitrum",
        "optimism": "optimism",
        "avalanche": "avalanche",
        "fantom": "fantom",
        "solana": "solana",
        "base": "base",
    },
    "geckoterminal": {
        "ethereum": "eth",
        "bsc": "bsc",
        "polygon": "polygon_pos",
        "arbitrum": "arbitrum",
        "optimism": "optimism",
        "avalanche": "avax",
        "fantom": "ftm",
        "solana": "solana",
        "base": "base",
    },
}


def to_canonical_chain_id(chain_id: str) -> str:
    key = str(chain_id or "").strip().lower()
    return CANONICAL_CHAIN_IDS.get(key, key)


def to_source_chain_id(chain_id: str, source: SourceName) -> str:
    canonical = to_canonical_chain_id(chain_id)
    return SOURCE_CHAIN_IDS[source].get(canonical, canonical)


def normalize_pool_address(pool_address: str) -> str:
    address = str(pool_address or "").strip()
    # EVM addresses are case-insensitive hex; base58 (Solana) is not.
    if address[:2].lower() == "0x":
        return address.lower()
    return address
