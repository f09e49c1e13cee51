"""Single-worker page prefetching ahead of the orchestrating loop."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator

from ..pages import PageKey
from .fetcher import FetchResponse


@dataclass(slots=True)
class PageResult:
    """Outcome of fetching one page: a response or the error it raised."""

    page: PageKey
    response: FetchResponse | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class PagePrefetcher:
    """Yield page results in key order, fetching page N+1 while N is consumed.

    Only fetches run on the worker thread; results are handed back to the
    caller's thread one at a time, so consumers stay strictly sequential.
    """

    def __init__(self, fetch: Callable[[PageKey], FetchResponse], enabled: bool = True) -> None:
        self.fetch = fetch
        self.enabled = enabled

    def iter_pages(self, keys: Iterable[PageKey]) -> Iterator[PageResult]:
        if not self.enabled:
            for key in keys:
                yield self._fetch_now(key)
            return
        with ThreadPoolExecutor(max_workers=1, thread_name_prefix="prefetch") as executor:
            iterator = iter(keys)
            pending = self._submit(executor, next(iterator, None))
            while pending is not None:
                key, future = pending
                pending = self._submit(executor, next(iterator, None))
                yield self._collect(key, future)

    def _submit(
        self, executor: ThreadPoolExecutor, key: PageKey | None
    ) -> tuple[PageKey, Future[FetchResponse]] | None:
        if key is None:
            return None
        return key, executor.submit(self.fetch, key)

    def _fetch_now(self, key: PageKey) -> PageResult:
        try:
            return PageResult(page=key, response=self.fetch(key))
        except Exception as exc:  # noqa: BLE001
            return PageResult(page=key, error=exc)

    @staticmethod
    def _collect(key: PageKey, future: Future[FetchResponse]) -> PageResult:
        try:
            return PageResult(page=key, response=future.result())
        except Exception as exc:  # noqa: BLE001
            return PageResult(page=key, error=exc)


__all__ = ["PagePrefetcher", "PageResult"]
