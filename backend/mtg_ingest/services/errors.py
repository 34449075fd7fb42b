"""
Errors raised by the external source clients.

Each client raises a single exception type tagged with a closed `kind`
enum, so callers branch on `error.kind` instead of on a class hierarchy.
"Not found" is never an error: clients return None for it.
"""
from enum import Enum
from typing import Optional


class ScrapeErrorKind(str, Enum):
    FETCH = "fetch"            # Network failure, timeout or non-2xx status
    PARSE = "parse"            # Body is not the expected JSON shape
    RATE_LIMIT = "rate_limit"  # HTTP 429 that retries did not clear


class PriceErrorKind(str, Enum):
    NETWORK = "network"
    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"
    INVALID_RESPONSE = "invalid_response"


class ScrapeError(Exception):
    """Failure fetching or parsing ranking/decklist data."""

    def __init__(self, kind: ScrapeErrorKind, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.url = url

    @property
    def is_rate_limit(self) -> bool:
        return self.kind == ScrapeErrorKind.RATE_LIMIT

    def __repr__(self) -> str:
        return f"ScrapeError(kind={self.kind.value!r}, message={str(self)!r})"


class PriceClientError(Exception):
    """Failure fetching a card price."""

    def __init__(self, kind: PriceErrorKind, message: str, card_id: Optional[str] = None):
        super().__init__(message)
        self.kind = kind
        self.card_id = card_id

    @property
    def aborts_batch(self) -> bool:
        """Rate limits and network outages affect every remaining card."""
        return self.kind in (PriceErrorKind.RATE_LIMIT, PriceErrorKind.NETWORK)

    def __repr__(self) -> str:
        return f"PriceClientError(kind={self.kind.value!r}, message={str(self)!r})"
