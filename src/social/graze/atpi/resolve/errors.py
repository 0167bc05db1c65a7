"""Resolution error taxonomy.

Every failure surfaced by the resolution engine is an ``AtpiError`` carrying a
short, human-readable ``reason``. Lower layers raise the narrow subclasses and
the layers above either convert them into the next fallback attempt or let the
final one propagate to the caller.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel


class AtpiError(Exception):
    """Base class for all resolution failures."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class InvalidUrlFormat(AtpiError):
    pass


class ResolutionTimeout(AtpiError):
    """A network step exceeded its time budget."""


class NoResponse(AtpiError):
    """Transport-level failure: the remote end never produced an HTTP status."""


class StrategyError(AtpiError):
    """A single handle resolution strategy failed."""


class InvalidHandleError(StrategyError):
    """The directory rejected the handle itself; asking another host cannot help."""


class StrategyFailure(BaseModel):
    """One recorded strategy failure, kept for the aggregated error message."""

    method: str
    reason: str


class HandleResolutionError(AtpiError):
    """Every eligible handle resolution strategy failed."""

    def __init__(self, handle: str, failures: List[StrategyFailure]) -> None:
        details = ", ".join(f"{failure.method}: {failure.reason}" for failure in failures)
        super().__init__(f'Failed to resolve handle "{handle}" - {details}')
        self.handle = handle
        self.failures = failures


class DidFailure(str, Enum):
    not_found = "not_found"
    no_service = "no_service"
    unsupported_method = "unsupported_method"


class DidResolutionError(AtpiError):
    def __init__(self, did: str, failure: DidFailure, reason: str) -> None:
        super().__init__(reason)
        self.did = did
        self.failure = failure


class UnsupportedDidMethod(DidResolutionError):
    def __init__(self, did: str) -> None:
        super().__init__(
            did, DidFailure.unsupported_method, f"Unsupported DID method: {did}"
        )


class RecordFetchError(AtpiError):
    """The addressed server answered with an error status or an unreadable body."""

    def __init__(self, reason: str, status: Optional[int] = None) -> None:
        super().__init__(reason)
        self.status = status
