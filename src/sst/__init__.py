from .bootstrap import get_connection, initialize_database, run_migrations
from .errors import TokenNotFoundError
from .models import CandleSnapshot, LedgerTransaction, MetadataSnapshot, TickerSnapshot, Token
from .repository import SnapshotRepository

__all__ = [
    "get_connection",
    "initialize_database",
    "run_migrations",
    "TokenNotFoundError",
    "Token",
    "TickerSnapshot",
    "MetadataSnapshot",
    "CandleSnapshot",
    "LedgerTransaction",
    "SnapshotRepository",
]
