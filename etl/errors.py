"""
Exception hierarchy for the sanctions ingestion pipeline.

Fetch failures are split into the three classes a caller needs to tell
apart: the transport never produced a response, the publisher answered with
a non-success status, or the body could not be read.
"""

from typing import Optional


class IngestionError(Exception):
    """Base exception for all ingestion failures."""


class FetchError(IngestionError):
    """Raised when a publisher payload could not be retrieved."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class FetchTransportError(FetchError):
    """DNS, connect, TLS or timeout failure before a response arrived."""


class FetchStatusError(FetchError):
    """Publisher answered with a non-success HTTP status."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"HTTP {status_code}: {body}", status_code=status_code)
        self.body = body


class FetchReadError(FetchError):
    """Response headers arrived but the body could not be read or decoded."""


class ParseError(IngestionError):
    """Raised when a payload cannot be parsed at all."""


class StorageError(IngestionError):
    """Raised when a write or read against the record store fails."""


class StoreUnavailableError(StorageError):
    """Raised when the record store cannot be reached to open any run."""


class RunStateError(IngestionError):
    """Raised for an illegal ingestion run transition."""


class DeadlineExceededError(IngestionError):
    """Raised when an invocation runs past its configured deadline."""
