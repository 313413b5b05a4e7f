from __future__ import annotations


class AnalysisUnavailableError(RuntimeError):
    code = "ATR_ANALYSIS_UNAVAILABLE"

    def __init__(self, message: str, *, reason: str = "unavailable") -> None:
        super().__init__(message)
        self.message = message
        self.reason = reason
