"""In-run identity index preventing duplicate enrichment and persistence."""

from __future__ import annotations

from datetime import date
from typing import Iterable, NamedTuple


class IdentityKey(NamedTuple):
    """``(name, start_date)`` pair identifying a tournament across the store."""

    name: str
    start_date: date

    def __str__(self) -> str:
        return f"{self.name} @ {self.start_date.isoformat()}"


class DedupIndex:
    """Exact, case-sensitive set of known identity keys.

    Seeded from storage at run start and extended by the orchestrating loop as
    records are accepted, so a key is never enriched twice in one run.
    """

    def __init__(self, keys: Iterable[IdentityKey] = ()) -> None:
        self._keys: set[IdentityKey] = set()
        self.load(keys)

    def load(self, keys: Iterable[IdentityKey]) -> int:
        before = len(self._keys)
        for key in keys:
            self._keys.add(IdentityKey(*key))
        return len(self._keys) - before

    def exists(self, key: IdentityKey) -> bool:
        return key in self._keys

    def record(self, key: IdentityKey) -> None:
        self._keys.add(key)

    def check_and_record(self, key: IdentityKey) -> bool:
        """Record ``key``; return True when it was already known."""

        if key in self._keys:
            return True
        self._keys.add(key)
        return False

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)


__all__ = ["DedupIndex", "IdentityKey"]
