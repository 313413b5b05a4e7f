from __future__ import annotations

import json
import logging
import sqlite3
import threading
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Iterable

from mdc.contracts import CandleRecord, MetadataRecord, TickerRecord
from mdc.networks import normalize_pool_address, to_canonical_chain_id

from .bootstrap import from_iso, initialize_database, to_iso, utc_now
from .errors import TokenNotFoundError
from .models import CandleSnapshot, LedgerTransaction, MetadataSnapshot, TickerSnapshot, Token

_LOGGER = logging.getLogger("dexiq.sst.repository")


def _dec_text(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


def _to_decimal(value) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(value))


def _opt_iso(value: datetime | None) -> str | None:
    return to_iso(value) if value is not None else None


def _opt_datetime(value: str | None) -> datetime | None:
    return from_iso(value) if value else None


def _payload_json(payload: dict[str, Any] | None) -> str:
    return json.dumps(payload or {}, ensure_ascii=False, separators=(",", ":"), default=str)


def _payload(value: str | None) -> dict[str, Any]:
    if not value:
        return {}
    loaded = json.loads(value)
    return loaded if isinstance(loaded, dict) else {"items": loaded}


class SnapshotRepository:
    """Append-only store for per-token market snapshots.

    All access goes through one connection guarded by a re-entrant lock, so a
    single instance can be shared by ingestion workers and the API thread.
    """

    def __init__(
        self,
        conn: sqlite3.Connection | None = None,
        db_path: str = "runtime/state/dexiq.db",
        *,
        now_fn: Callable[[], datetime] = utc_now,
    ) -> None:
        self.conn = conn or initialize_database(db_path)
        self.lock = threading.RLock()
        self._now_fn = now_fn

    def close(self) -> None:
        with self.lock:
            self.conn.close()

    def __enter__(self) -> "SnapshotRepository":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def now(self) -> datetime:
        return self._now_fn()

    # tokens

    def upsert_token(
        self,
        *,
        chain_id: str,
        pool_address: str,
        user_id: str,
        symbol: str | None = None,
        quote_symbol: str | None = None,
        token_url: str | None = None,
    ) -> tuple[Token, bool]:
        canonical_chain = to_canonical_chain_id(chain_id)
        address = normalize_pool_address(pool_address)
        stamp = to_iso(self.now())

        with self.lock, self.conn:
            before = self.conn.total_changes
            self.conn.execute(
                """
                INSERT OR IGNORE INTO tokens(
                    chain_id, pool_address, user_id, symbol, quote_symbol, token_url, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (canonical_chain, address, user_id, symbol, quote_symbol, token_url, stamp, stamp),
            )
            created = self.conn.total_changes > before
            row = self.conn.execute(
                "SELECT * FROM tokens WHERE chain_id = ? AND pool_address = ?",
                (canonical_chain, address),
            ).fetchone()

        token = self._row_to_token(row)
        if not created and (symbol or quote_symbol or token_url):
            token = self.fill_token_display(token.id, symbol=symbol, quote_symbol=quote_symbol, token_url=token_url)
        if created:
            _LOGGER.info("token registered id=%s chain=%s pool=%s", token.id, canonical_chain, address)
        return token, created

    def fill_token_display(
        self,
        token_id: int,
        *,
        symbol: str | None = None,
        quote_symbol: str | None = None,
        token_url: str | None = None,
    ) -> Token:
        # only fills blanks; never overwrites a display field already set
        with self.lock, self.conn:
            self.conn.execute(
                """
                UPDATE tokens SET
                    symbol = COALESCE(symbol, ?),
                    quote_symbol = COALESCE(quote_symbol, ?),
                    token_url = COALESCE(token_url, ?),
                    updated_at = ?
                WHERE id = ?
                  AND ((symbol IS NULL AND ? IS NOT NULL)
                    OR (quote_symbol IS NULL AND ? IS NOT NULL)
                    OR (token_url IS NULL AND ? IS NOT NULL))
                """,
                (
                    symbol,
                    quote_symbol,
                    token_url,
                    to_iso(self.now()),
                    token_id,
                    symbol,
                    quote_symbol,
                    token_url,
                ),
            )
        return self.get_token(token_id)

    def get_token(self, token_id: int) -> Token:
        with self.lock:
            row = self.conn.execute("SELECT * FROM tokens WHERE id = ?", (token_id,)).fetchone()
        if row is None:
            raise TokenNotFoundError(token_id)
        return self._row_to_token(row)

    def find_token(self, chain_id: str, pool_address: str) -> Token | None:
        with self.lock:
            row = self.conn.execute(
                "SELECT * FROM tokens WHERE chain_id = ? AND pool_address = ?",
                (to_canonical_chain_id(chain_id), normalize_pool_address(pool_address)),
            ).fetchone()
        return self._row_to_token(row) if row else None

    def list_tokens(self, *, user_id: str | None = None) -> list[Token]:
        query = "SELECT * FROM tokens"
        params: tuple = ()
        if user_id is not None:
            query += " WHERE user_id = ?"
            params = (user_id,)
        query += " ORDER BY id"
        with self.lock:
            rows = self.conn.execute(query, params).fetchall()
        return [self._row_to_token(row) for row in rows]

    # ticker

    def insert_ticker_snapshot(
        self, token_id: int, record: TickerRecord, *, fetched_at: datetime | None = None
    ) -> TickerSnapshot:
        self.get_token(token_id)
        now = self.now()
        fetched = fetched_at or now
        with self.lock, self.conn:
            cursor = self.conn.execute(
                """
                INSERT INTO ticker_snapshots(
                    token_id, chain_id, dex_id, url, price_usd, price_native, liquidity_usd,
                    volume_24h, price_change_24h, fdv, market_cap, txns_24h_buys, txns_24h_sells,
                    pair_created_at, payload_json, fetched_at, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    token_id,
                    record.chain_id,
                    record.dex_id,
                    record.url,
                    _dec_text(record.price_usd),
                    _dec_text(record.price_native),
                    _dec_text(record.liquidity_usd),
                    _dec_text(record.volume_24h),
                    _dec_text(record.price_change_24h),
                    _dec_text(record.fdv),
                    _dec_text(record.market_cap),
                    record.txns_24h_buys,
                    record.txns_24h_sells,
                    _opt_iso(record.pair_created_at),
                    _payload_json(record.payload),
                    to_iso(fetched),
                    to_iso(now),
                ),
            )
            row = self.conn.execute("SELECT * FROM ticker_snapshots WHERE id = ?", (cursor.lastrowid,)).fetchone()
        return self._row_to_ticker(row)

    def latest_ticker_snapshot(self, token_id: int) -> TickerSnapshot | None:
        with self.lock:
            row = self.conn.execute(
                """
                SELECT * FROM ticker_snapshots
                WHERE token_id = ?
                ORDER BY created_at DESC, id DESC
                LIMIT 1
                """,
                (token_id,),
            ).fetchone()
        return self._row_to_ticker(row) if row else None

    # metadata

    def insert_metadata_snapshot(
        self, token_id: int, record: MetadataRecord, *, fetched_at: datetime | None = None
    ) -> MetadataSnapshot:
        self.get_token(token_id)
        now = self.now()
        fetched = fetched_at or now
        with self.lock, self.conn:
            cursor = self.conn.execute(
                """
                INSERT INTO metadata_snapshots(
                    token_id, role, address, name, symbol, decimals, coingecko_coin_id,
                    image_url, price_usd, payload_json, fetched_at, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    token_id,
                    record.role,
                    record.address,
                    record.name,
                    record.symbol,
                    record.decimals,
                    record.coingecko_coin_id,
                    record.image_url,
                    _dec_text(record.price_usd),
                    _payload_json(record.payload),
                    to_iso(fetched),
                    to_iso(now),
                ),
            )
            row = self.conn.execute("SELECT * FROM metadata_snapshots WHERE id = ?", (cursor.lastrowid,)).fetchone()
        return self._row_to_metadata(row)

    def latest_metadata_snapshot(self, token_id: int, role: str | None = None) -> MetadataSnapshot | None:
        query = "SELECT * FROM metadata_snapshots WHERE token_id = ?"
        params: tuple = (token_id,)
        if role is not None:
            query += " AND role = ?"
            params = (token_id, role)
        query += " ORDER BY created_at DESC, id DESC LIMIT 1"
        with self.lock:
            row = self.conn.execute(query, params).fetchone()
        return self._row_to_metadata(row) if row else None

    # candles

    def insert_candles(
        self,
        token_id: int,
        timeframe: str,
        aggregate: int,
        candles: Iterable[CandleRecord],
        *,
        fetched_at: datetime | None = None,
    ) -> int:
        """Insert candles, silently skipping any already stored for the same
        (token, timeframe, aggregate, timestamp). Returns the number of new rows."""
        self.get_token(token_id)
        now = self.now()
        fetched = to_iso(fetched_at or now)
        created = to_iso(now)
        rows = [
            (
                token_id,
                timeframe,
                aggregate,
                candle.timestamp,
                str(candle.open),
                str(candle.high),
                str(candle.low),
                str(candle.close),
                str(candle.volume),
                fetched,
                created,
            )
            for candle in candles
        ]
        if not rows:
            return 0

        with self.lock, self.conn:
            before = self.conn.total_changes
            self.conn.executemany(
                """
                INSERT OR IGNORE INTO candle_snapshots(
                    token_id, timeframe, aggregate, candle_timestamp, open, high, low, close,
                    volume, fetched_at, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                rows,
            )
            inserted = self.conn.total_changes - before

        if inserted < len(rows):
            _LOGGER.debug(
                "candle duplicates skipped token_id=%s series=%s/%s skipped=%s",
                token_id,
                timeframe,
                aggregate,
                len(rows) - inserted,
            )
        return inserted

    def latest_candle(self, token_id: int, timeframe: str, aggregate: int) -> CandleSnapshot | None:
        with self.lock:
            row = self.conn.execute(
                """
                SELECT * FROM candle_snapshots
                WHERE token_id = ? AND timeframe = ? AND aggregate = ?
                ORDER BY candle_timestamp DESC
                LIMIT 1
                """,
                (token_id, timeframe, aggregate),
            ).fetchone()
        return self._row_to_candle(row) if row else None

    def list_candles(
        self,
        token_id: int,
        timeframe: str,
        aggregate: int,
        *,
        since_timestamp: int | None = None,
        limit: int = 60,
    ) -> list[CandleSnapshot]:
        """Most recent ``limit`` candles of one series, returned oldest first."""
        query = "SELECT * FROM candle_snapshots WHERE token_id = ? AND timeframe = ? AND aggregate = ?"
        params: list = [token_id, timeframe, aggregate]
        if since_timestamp is not None:
            query += " AND candle_timestamp >= ?"
            params.append(since_timestamp)
        query += " ORDER BY candle_timestamp DESC LIMIT ?"
        params.append(limit)
        with self.lock:
            rows = self.conn.execute(query, tuple(params)).fetchall()
        return [self._row_to_candle(row) for row in reversed(rows)]

    # readiness aggregates

    def count_ticker_snapshots(self, token_id: int) -> int:
        return self._count("ticker_snapshots", token_id)

    def count_metadata_snapshots(self, token_id: int, role: str | None = None) -> int:
        if role is None:
            return self._count("metadata_snapshots", token_id)
        with self.lock:
            row = self.conn.execute(
                "SELECT COUNT(*) AS cnt FROM metadata_snapshots WHERE token_id = ? AND role = ?",
                (token_id, role),
            ).fetchone()
        return int(row["cnt"])

    def count_candles(self, token_id: int) -> int:
        return self._count("candle_snapshots", token_id)

    def latest_candle_fetched_at(self, token_id: int) -> datetime | None:
        with self.lock:
            row = self.conn.execute(
                "SELECT MAX(fetched_at) AS fetched_at FROM candle_snapshots WHERE token_id = ?",
                (token_id,),
            ).fetchone()
        return _opt_datetime(row["fetched_at"])

    # transaction log

    def append_transaction(
        self,
        *,
        token_id: int,
        user_id: str,
        transaction_type: str,
        amount: Decimal,
        unit_price: Decimal,
        tx_hash: str | None = None,
        note: str | None = None,
        created_at: datetime | None = None,
    ) -> LedgerTransaction:
        self.get_token(token_id)
        stamp = to_iso(created_at or self.now())
        with self.lock, self.conn:
            cursor = self.conn.execute(
                """
                INSERT INTO ledger_transactions(
                    token_id, user_id, transaction_type, amount, unit_price, tx_hash, note, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (token_id, user_id, transaction_type, str(amount), str(unit_price), tx_hash, note, stamp),
            )
            row = self.conn.execute("SELECT * FROM ledger_transactions WHERE id = ?", (cursor.lastrowid,)).fetchone()
        return self._row_to_transaction(row)

    def list_transactions(self, token_id: int, user_id: str) -> list[LedgerTransaction]:
        with self.lock:
            rows = self.conn.execute(
                """
                SELECT * FROM ledger_transactions
                WHERE token_id = ? AND user_id = ?
                ORDER BY created_at ASC, id ASC
                """,
                (token_id, user_id),
            ).fetchall()
        return [self._row_to_transaction(row) for row in rows]

    def _count(self, table: str, token_id: int) -> int:
        with self.lock:
            row = self.conn.execute(f"SELECT COUNT(*) AS cnt FROM {table} WHERE token_id = ?", (token_id,)).fetchone()
        return int(row["cnt"])

    # row mapping

    @staticmethod
    def _row_to_token(row: sqlite3.Row) -> Token:
        return Token(
            id=row["id"],
            chain_id=row["chain_id"],
            pool_address=row["pool_address"],
            user_id=row["user_id"],
            symbol=row["symbol"],
            quote_symbol=row["quote_symbol"],
            token_url=row["token_url"],
            created_at=from_iso(row["created_at"]),
            updated_at=from_iso(row["updated_at"]),
        )

    @staticmethod
    def _row_to_ticker(row: sqlite3.Row) -> TickerSnapshot:
        return TickerSnapshot(
            id=row["id"],
            token_id=row["token_id"],
            chain_id=row["chain_id"],
            dex_id=row["dex_id"],
            url=row["url"],
            price_usd=_to_decimal(row["price_usd"]),
            price_native=_to_decimal(row["price_native"]),
            liquidity_usd=_to_decimal(row["liquidity_usd"]),
            volume_24h=_to_decimal(row["volume_24h"]),
            price_change_24h=_to_decimal(row["price_change_24h"]),
            fdv=_to_decimal(row["fdv"]),
            market_cap=_to_decimal(row["market_cap"]),
            txns_24h_buys=row["txns_24h_buys"],
            txns_24h_sells=row["txns_24h_sells"],
            pair_created_at=_opt_datetime(row["pair_created_at"]),
            fetched_at=from_iso(row["fetched_at"]),
            created_at=from_iso(row["created_at"]),
            payload=_payload(row["payload_json"]),
        )

    @staticmethod
    def _row_to_metadata(row: sqlite3.Row) -> MetadataSnapshot:
        return MetadataSnapshot(
            id=row["id"],
            token_id=row["token_id"],
            role=row["role"],
            address=row["address"],
            name=row["name"],
            symbol=row["symbol"],
            decimals=row["decimals"],
            coingecko_coin_id=row["coingecko_coin_id"],
            image_url=row["image_url"],
            price_usd=_to_decimal(row["price_usd"]),
            fetched_at=from_iso(row["fetched_at"]),
            created_at=from_iso(row["created_at"]),
            payload=_payload(row["payload_json"]),
        )

    @staticmethod
    def _row_to_transaction(row: sqlite3.Row) -> LedgerTransaction:
        return LedgerTransaction(
            id=row["id"],
            token_id=row["token_id"],
            user_id=row["user_id"],
            transaction_type=row["transaction_type"],
            amount=Decimal(row["amount"]),
            unit_price=Decimal(row["unit_price"]),
            tx_hash=row["tx_hash"],
            note=row["note"],
            created_at=from_iso(row["created_at"]),
        )

    @staticmethod
    def _row_to_candle(row: sqlite3.Row) -> CandleSnapshot:
        return CandleSnapshot(
            id=row["id"],
            token_id=row["token_id"],
            timeframe=row["timeframe"],
            aggregate=row["aggregate"],
            candle_timestamp=row["candle_timestamp"],
            open=Decimal(row["open"]),
            high=Decimal(row["high"]),
            low=Decimal(row["low"]),
            close=Decimal(row["close"]),
            volume=Decimal(row["volume"]),
            fetched_at=from_iso(row["fetched_at"]),
            created_at=from_iso(row["created_at"]),
        )
