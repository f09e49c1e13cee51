"""Pytest configuration providing shared fixtures."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Iterable

import httpx
import pytest

from chess_ingest.config import (
    ConfigLocator,
    ConfigRepository,
    GeocodingConfig,
    IngestConfig,
    PageRange,
    SourceConfig,
    StorageConfig,
)
from chess_ingest.engine import RateLimiter

CALENDAR_URL = "https://calendar.test/index.php"
GEOCODE_URL = "https://geo.test/search"


def render_listing(
    name: str | None = "Sample Open",
    city: str | None = "Berlin,",
    country: str | None = "Germany,",
    start: str | None = "05.09.2025",
    end: str | None = "06.09.2025",
    source: str | None = "https://chess-results.test/tnr1",
) -> str:
    """Render one ``.calItem`` block; ``None`` omits the sub-field entirely."""

    parts = ['<div class="calItem">']
    if name is not None:
        parts.append(f'<a class="weblink" href="#">{name}</a>')
    if city is not None:
        parts.append(f'<span class="city">{city}</span>')
    if country is not None:
        parts.append(f'<span class="country">{country}</span>')
    if start is not None:
        parts.append(f'<span class="startdate">{start}</span>')
    if end is not None:
        parts.append(f'<span class="endDate2">{end}</span>')
    if source is not None:
        parts.append(f'<span class="source"><a href="{source}">source</a></span>')
    parts.append("</div>")
    return "".join(parts)


def render_page(*items: str) -> str:
    return f"<html><body><div id='calendar'>{''.join(items)}</div></body></html>"


@pytest.fixture
def listing_html() -> Callable[..., str]:
    return render_listing


@pytest.fixture
def page_html() -> Callable[..., str]:
    return render_page


@pytest.fixture
def ingest_config(tmp_path: Path) -> IngestConfig:
    return IngestConfig(
        source=SourceConfig(
            base_url=CALENDAR_URL,
            timeout=5,
            page_range=PageRange(start_year=2025, start_month=9, end_year=2025, end_month=11),
            prefetch=False,
        ),
        geocoding=GeocodingConfig(endpoint=GEOCODE_URL, timeout=5),
        storage=StorageConfig(path=tmp_path / "tournaments.db"),
        enable_progress_bar=False,
    )


@pytest.fixture
def mock_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.Client]:
    def _builder(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(handler))

    return _builder


class FakeClock:
    """Monotonic clock advanced only by the recorded sleeps."""

    def __init__(self) -> None:
        self.now = 100.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def instant_limiter(fake_clock: FakeClock) -> RateLimiter:
    return RateLimiter(1.0, clock=fake_clock, sleep=fake_clock.sleep)


def nominatim_handler(
    results: dict[str, list[dict[str, Any]]], calls: list[str] | None = None
) -> Callable[[httpx.Request], httpx.Response]:
    """Answer geocoding queries from ``results`` (unknown queries → ``[]``)."""

    def _handler(request: httpx.Request) -> httpx.Response:
        query = request.url.params["q"]
        if calls is not None:
            calls.append(query)
        return httpx.Response(200, text=json.dumps(results.get(query, [])))

    return _handler


@pytest.fixture
def geocode_handler() -> Callable[..., Callable[[httpx.Request], httpx.Response]]:
    return nominatim_handler


@pytest.fixture
def temp_config_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterable[ConfigRepository]:
    monkeypatch.setenv("CHESS_INGEST_HOME", str(tmp_path))
    locator = ConfigLocator(project_root=tmp_path)
    repository = ConfigRepository(locator)
    yield repository
