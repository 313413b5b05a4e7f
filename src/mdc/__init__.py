from .api_client import HttpJsonClient, TransportFn, urllib_transport
from .clients import DexscreenerClient, GeckoOhlcvClient, GeckoTerminalClient
from .contracts import (
    SUPPORTED_CANDLE_SERIES,
    CandleClient,
    CandleRecord,
    CandleRequest,
    MetadataClient,
    MetadataRecord,
    TickerClient,
    TickerRecord,
)
from .errors import MdcError, MdcErrorPayload
from .networks import normalize_pool_address, to_canonical_chain_id, to_source_chain_id

__all__ = [
    "HttpJsonClient",
    "TransportFn",
    "urllib_transport",
    "DexscreenerClient",
    "GeckoTerminalClient",
    "GeckoOhlcvClient",
    "SUPPORTED_CANDLE_SERIES",
    "TickerClient",
    "MetadataClient",
    "CandleClient",
    "TickerRecord",
    "MetadataRecord",
    "CandleRecord",
    "CandleRequest",
    "MdcError",
    "MdcErrorPayload",
    "to_canonical_chain_id",
    "to_source_chain_id",
    "normalize_pool_address",
]
