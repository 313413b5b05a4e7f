from __future__ import annotations


class PldValidationError(ValueError):
    def __init__(self, code: str, field: str, value: object) -> None:
        super().__init__(f"{code}: field={field}, value={value}")
        self.code = code
        self.field = field
        self.value = value


class PldTransactionTypeInvalidError(PldValidationError):
    def __init__(self, field: str, value: object) -> None:
        super().__init__("PLD_TRANSACTION_TYPE_INVALID", field, value)


class PldAmountNotPositiveError(PldValidationError):
    def __init__(self, field: str, value: object) -> None:
        super().__init__("PLD_AMOUNT_NOT_POSITIVE", field, value)


class PldUnitPriceNotPositiveError(PldValidationError):
    def __init__(self, field: str, value: object) -> None:
        super().__init__("PLD_UNIT_PRICE_NOT_POSITIVE", field, value)


class PldRequiredFieldMissingError(PldValidationError):
    def __init__(self, field: str, value: object) -> None:
        super().__init__("PLD_REQUIRED_FIELD_MISSING", field, value)


class PldDecimalInvalidError(PldValidationError):
    def __init__(self, field: str, value: object) -> None:
        super().__init__("PLD_DECIMAL_INVALID", field, value)
