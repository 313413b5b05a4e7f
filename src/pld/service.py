from __future__ import annotations

import logging
from decimal import Decimal

from sst.models import LedgerTransaction
from sst.repository import SnapshotRepository

from .ledger import build_position
from .models import PositionSummary
from .validators import normalize_transaction

_LOGGER = logging.getLogger("dexiq.pld.service")


class LedgerService:
    def __init__(self, repository: SnapshotRepository) -> None:
        self.repository = repository

    def record_transaction(self, token_id: int, user_id: str, payload: dict[str, object]) -> LedgerTransaction:
        tx = normalize_transaction(payload)
        self.repository.get_token(token_id)
        stored = self.repository.append_transaction(
            token_id=token_id,
            user_id=user_id,
            transaction_type=tx.transaction_type,
            amount=tx.amount,
            unit_price=tx.unit_price,
            tx_hash=tx.tx_hash,
            note=tx.note,
        )
        _LOGGER.info(
            "transaction recorded token_id=%s user=%s type=%s amount=%s unit_price=%s",
            token_id,
            user_id,
            stored.transaction_type,
            stored.amount,
            stored.unit_price,
        )
        return stored

    def list_transactions(self, token_id: int, user_id: str) -> list[LedgerTransaction]:
        self.repository.get_token(token_id)
        return self.repository.list_transactions(token_id, user_id)

    def resolve_current_price(self, token_id: int) -> Decimal | None:
        ticker = self.repository.latest_ticker_snapshot(token_id)
        if ticker is not None and ticker.price_usd is not None:
            return ticker.price_usd
        metadata = self.repository.latest_metadata_snapshot(token_id, role="base")
        if metadata is not None and metadata.price_usd is not None:
            return metadata.price_usd
        return None

    def position_summary(
        self,
        token_id: int,
        user_id: str,
        current_price: Decimal | None = None,
    ) -> tuple[PositionSummary, list[LedgerTransaction]]:
        self.repository.get_token(token_id)
        # one SELECT, so the summary and the listed rows come from the same log state
        entries = self.repository.list_transactions(token_id, user_id)
        price = current_price if current_price is not None else self.resolve_current_price(token_id)
        return build_position(token_id, user_id, entries, price), entries
