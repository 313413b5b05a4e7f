from .errors import (
    CsmPositiveIntegerRequiredError,
    CsmRequiredFieldMissingError,
    CsmUrlInvalidError,
    CsmValidationError,
    CsmValueOutOfRangeError,
)
from .models import DEFAULT_SETTINGS, RuntimeSettings
from .repository import CsmRuntimeRepository
from .service import CsmService

__all__ = [
    "CsmRuntimeRepository",
    "CsmService",
    "DEFAULT_SETTINGS",
    "RuntimeSettings",
    "CsmValidationError",
    "CsmPositiveIntegerRequiredError",
    "CsmValueOutOfRangeError",
    "CsmUrlInvalidError",
    "CsmRequiredFieldMissingError",
]
