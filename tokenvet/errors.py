class TokenVetError(Exception):
    """Base error for the listing/vetting service."""


class PersistenceError(TokenVetError):
    """A Token Store read or write failed."""


class UnsupportedChainError(TokenVetError):
    def __init__(self, raw: object) -> None:
        super().__init__(f"unsupported chain identifier: {raw!r}")
        self.raw = raw
