"""Error taxonomy shared by the ingestion pipeline."""

from __future__ import annotations


class IngestError(Exception):
    """Base class for every ingestion error."""


class TransientFetchError(IngestError):
    """Network, timeout or HTTP status failure talking to a remote service."""

    def __init__(self, message: str, *, page: str | None = None, url: str | None = None) -> None:
        super().__init__(message)
        self.page = page
        self.url = url


class ParseAnomaly(IngestError):
    """A listing sub-field is missing or malformed."""


class IdentityConflict(IngestError):
    """A tournament with the same identity key is already known."""


class PersistenceFailure(IngestError):
    """The storage collaborator rejected a record or is unreachable."""


class StorageUnavailable(PersistenceFailure):
    """Storage cannot be reached at startup; the run must abort."""


__all__ = [
    "IdentityConflict",
    "IngestError",
    "ParseAnomaly",
    "PersistenceFailure",
    "StorageUnavailable",
    "TransientFetchError",
]
