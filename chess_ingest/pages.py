"""Year/month page keys of the calendar source."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from itertools import islice
from typing import Iterator

_TOKEN_PATTERN = re.compile(r"^(?P<year>\d{4})-(?P<month>\d{1,2})$")


@dataclass(frozen=True, order=True, slots=True)
class PageKey:
    """One calendar page, addressed as ``YYYY-M`` by the source site."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"month must be within 1..12, got {self.month}")
        if self.year < 1:
            raise ValueError(f"year must be positive, got {self.year}")

    @property
    def token(self) -> str:
        return f"{self.year}-{self.month}"

    def next(self) -> "PageKey":
        if self.month == 12:
            return PageKey(self.year + 1, 1)
        return PageKey(self.year, self.month + 1)

    @classmethod
    def parse(cls, token: str) -> "PageKey":
        match = _TOKEN_PATTERN.match(token.strip())
        if not match:
            raise ValueError(f"Invalid page key {token!r}, expected YYYY-M")
        return cls(int(match.group("year")), int(match.group("month")))

    @classmethod
    def from_date(cls, value: date) -> "PageKey":
        return cls(value.year, value.month)

    def __str__(self) -> str:
        return self.token


class PageKeyRange:
    """Inclusive, gap-free run of page keys in chronological order.

    Iteration is lazy and restartable: every ``iter()`` walks the range again
    from ``start``.
    """

    def __init__(self, start: PageKey, end: PageKey) -> None:
        if end < start:
            raise ValueError(f"Page range end {end} precedes start {start}")
        self.start = start
        self.end = end

    def __iter__(self) -> Iterator[PageKey]:
        current = self.start
        while current <= self.end:
            yield current
            current = current.next()

    def __len__(self) -> int:
        return (self.end.year - self.start.year) * 12 + self.end.month - self.start.month + 1

    def __contains__(self, key: object) -> bool:
        return isinstance(key, PageKey) and self.start <= key <= self.end

    def limit(self, max_pages: int | None) -> Iterator[PageKey]:
        """Iterate at most ``max_pages`` keys (all of them when ``None``)."""

        if max_pages is None:
            return iter(self)
        if max_pages < 0:
            raise ValueError("max_pages must be >= 0")
        return islice(self, max_pages)

    def __repr__(self) -> str:
        return f"PageKeyRange({self.start.token}..{self.end.token})"


__all__ = ["PageKey", "PageKeyRange"]
