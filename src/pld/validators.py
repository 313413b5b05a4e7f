from __future__ import annotations

from decimal import Decimal, InvalidOperation

from .errors import (
    PldAmountNotPositiveError,
    PldDecimalInvalidError,
    PldRequiredFieldMissingError,
    PldTransactionTypeInvalidError,
    PldUnitPriceNotPositiveError,
)
from .models import TransactionInput

TRANSACTION_TYPES = ("buy", "sell")

# keeps amount * unit_price and the ledger sums far inside the decimal context
MAX_ADJUSTED_EXPONENT = 30
MAX_SIGNIFICANT_DIGITS = 40


def parse_decimal(field: str, value: object) -> Decimal:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise PldRequiredFieldMissingError(field=field, value=value)
    if isinstance(value, bool):
        raise PldDecimalInvalidError(field=field, value=value)
    try:
        parsed = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise PldDecimalInvalidError(field=field, value=value) from exc
    if not parsed.is_finite():
        raise PldDecimalInvalidError(field=field, value=value)
    if parsed and (
        abs(parsed.adjusted()) > MAX_ADJUSTED_EXPONENT or len(parsed.as_tuple().digits) > MAX_SIGNIFICANT_DIGITS
    ):
        raise PldDecimalInvalidError(field=field, value=value)
    return parsed


def _optional_text(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_transaction(payload: dict[str, object]) -> TransactionInput:
    raw_type = payload.get("transactionType")
    if raw_type is None or not str(raw_type).strip():
        raise PldRequiredFieldMissingError(field="transactionType", value=raw_type)
    transaction_type = str(raw_type).strip().lower()
    if transaction_type not in TRANSACTION_TYPES:
        raise PldTransactionTypeInvalidError(field="transactionType", value=raw_type)

    amount = parse_decimal("amount", payload.get("amount"))
    if amount <= 0:
        raise PldAmountNotPositiveError(field="amount", value=str(amount))

    unit_price = parse_decimal("unitPrice", payload.get("unitPrice"))
    if unit_price <= 0:
        raise PldUnitPriceNotPositiveError(field="unitPrice", value=str(unit_price))

    return TransactionInput(
        transaction_type=transaction_type,  # type: ignore[arg-type]
        amount=amount,
        unit_price=unit_price,
        tx_hash=_optional_text(payload.get("txHash")),
        note=_optional_text(payload.get("note")),
    )
