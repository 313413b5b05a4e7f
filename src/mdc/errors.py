from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class MdcErrorPayload:
    code: str
    message: str
    retryable: bool
    source: str = "MDC"
    details: dict[str, Any] | None = None


class MdcError(RuntimeError):
    def __init__(self, payload: MdcErrorPayload) -> None:
        super().__init__(f"{payload.code}: {payload.message}")
        self.payload = payload

    @property
    def code(self) -> str:
        return self.payload.code

    @property
    def retryable(self) -> bool:
        return self.payload.retryable


def make_mdc_error(
    code: str,
    message: str,
    retryable: bool,
    details: dict[str, Any] | None = None,
    *,
    source: str = "MDC",
) -> MdcError:
    return MdcError(MdcErrorPayload(code=code, message=message, retryable=retryable, source=source, details=details))
