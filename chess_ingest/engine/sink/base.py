"""Persistence sink SPI."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Iterator

from ..dedup import IdentityKey
from ..normalizer import NormalizedTournament


class UpsertResult(str, Enum):
    INSERTED = "inserted"
    EXISTS = "exists"


class PersistenceSink(ABC):
    """Uniform storage contract keyed by ``(name, start_date)``."""

    @abstractmethod
    def upsert(self, record: NormalizedTournament) -> UpsertResult:
        """Insert ``record`` unless its identity key is already stored."""

    @abstractmethod
    def lookup(self, key: IdentityKey) -> bool:
        """Return whether ``key`` is stored."""

    @abstractmethod
    def existing_keys(self) -> Iterator[IdentityKey]:
        """Yield every stored identity key."""

    @abstractmethod
    def flush(self) -> None:
        """Flush buffered data to destination."""

    @abstractmethod
    def close(self) -> None:
        """Release underlying resources."""

    def __enter__(self) -> "PersistenceSink":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["PersistenceSink", "UpsertResult"]
