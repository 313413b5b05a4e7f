from __future__ import annotations


class CsmValidationError(ValueError):
    def __init__(self, code: str, field: str, value: object) -> None:
        super().__init__(f"{code}: field={field}, value={value}")
        self.code = code
        self.field = field
        self.value = value


class CsmPositiveIntegerRequiredError(CsmValidationError):
    def __init__(self, field: str, value: object) -> None:
        super().__init__("CSM_POSITIVE_INTEGER_REQUIRED", field, value)


class CsmValueOutOfRangeError(CsmValidationError):
    def __init__(self, field: str, value: object) -> None:
        super().__init__("CSM_VALUE_OUT_OF_RANGE", field, value)


class CsmUrlInvalidError(CsmValidationError):
    def __init__(self, field: str, value: object) -> None:
        super().__init__("CSM_URL_INVALID", field, value)


class CsmRequiredFieldMissingError(CsmValidationError):
    def __init__(self, field: str, value: object) -> None:
        super().__init__("CSM_REQUIRED_FIELD_MISSING", field, value)
