from __future__ import annotations


class TokenNotFoundError(LookupError):
    code = "SST_TOKEN_NOT_FOUND"

    def __init__(self, token_id: object) -> None:
        super().__init__(f"{self.code}: token_id={token_id}")
        self.token_id = token_id
