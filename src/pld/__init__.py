from .errors import PldValidationError
from .ledger import build_position
from .models import PositionSummary, TransactionInput
from .service import LedgerService
from .validators import normalize_transaction

__all__ = [
    "PldValidationError",
    "build_position",
    "PositionSummary",
    "TransactionInput",
    "LedgerService",
    "normalize_transaction",
]
