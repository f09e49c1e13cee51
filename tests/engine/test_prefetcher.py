from __future__ import annotations

import threading

import pytest

from chess_ingest.engine.fetcher import FetchResponse
from chess_ingest.engine.thread_pool import PagePrefetcher
from chess_ingest.errors import TransientFetchError
from chess_ingest.pages import PageKey, PageKeyRange

KEYS = PageKeyRange(PageKey(2025, 11), PageKey(2026, 2))


def fake_fetch(page: PageKey) -> FetchResponse:
    if page == PageKey(2025, 12):
        raise TransientFetchError("boom", page=page.token)
    return FetchResponse(page=page, url=f"https://calendar.test/?page={page.token}", status_code=200, text="")


@pytest.mark.parametrize("enabled", [True, False])
def test_results_follow_key_order_and_capture_errors(enabled: bool) -> None:
    results = list(PagePrefetcher(fake_fetch, enabled=enabled).iter_pages(KEYS))

    assert [result.page for result in results] == list(KEYS)
    assert [result.ok for result in results] == [True, False, True, True]
    assert isinstance(results[1].error, TransientFetchError)
    assert results[0].response.url.endswith("2025-11")


def test_next_page_is_requested_before_current_is_consumed() -> None:
    fetched: list[PageKey] = []
    second_started = threading.Event()

    def fetch(page: PageKey) -> FetchResponse:
        fetched.append(page)
        if page == PageKey(2025, 12):
            second_started.set()
        return FetchResponse(page=page, url="", status_code=200, text="")

    iterator = PagePrefetcher(fetch).iter_pages(KEYS)
    first = next(iterator)
    assert first.page == PageKey(2025, 11)
    assert second_started.wait(timeout=5)
    assert list(iterator)[-1].page == PageKey(2026, 2)
    assert fetched == list(KEYS)


def test_empty_key_sequence() -> None:
    assert list(PagePrefetcher(fake_fetch).iter_pages([])) == []
