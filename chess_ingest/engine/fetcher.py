"""Listing page retrieval over HTTP or a headless browser."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict
from urllib.parse import urlencode

import httpx
import structlog

from ..config import SourceConfig
from ..errors import TransientFetchError
from ..pages import PageKey


@dataclass(slots=True)
class FetchResponse:
    """Standardised response wrapper."""

    page: PageKey
    url: str
    status_code: int
    text: str
    headers: Dict[str, str] = field(default_factory=dict)


class PageFetcher:
    """Fetch one calendar page per call; failures are raised, never retried."""

    # Whether ``fetch`` may run on a prefetch worker thread.
    supports_prefetch = True

    def __init__(
        self,
        source: SourceConfig,
        client: httpx.Client | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.source = source
        self.logger = logger or structlog.get_logger("chess_ingest.fetcher")
        self._owns_client = client is None
        self._client = client or httpx.Client(
            follow_redirects=True,
            timeout=source.timeout,
            headers={"User-Agent": source.user_agent},
        )

    def __enter__(self) -> "PageFetcher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def page_url(self, page: PageKey) -> str:
        # The site expects a bare ``all_new=`` flag after the page token.
        query = urlencode({"page": page.token, "all_new": ""})
        return f"{self.source.base_url}?{query}"

    def fetch(self, page: PageKey) -> FetchResponse:
        url = self.page_url(page)
        try:
            response = self._client.get(
                url,
                headers={"User-Agent": self.source.user_agent},
                timeout=self.source.timeout,
            )
        except httpx.HTTPError as exc:
            self.logger.warning("page_fetch_error", page=page.token, url=url, error=str(exc))
            raise TransientFetchError(
                f"Fetching {page.token} failed: {exc}", page=page.token, url=url
            ) from exc
        if self._is_failure(response):
            self.logger.warning(
                "page_fetch_status", page=page.token, url=url, status=response.status_code
            )
            raise TransientFetchError(
                f"Unexpected status {response.status_code} for {page.token}",
                page=page.token,
                url=url,
            )
        self.logger.debug("page_fetched", page=page.token, bytes=len(response.content))
        return FetchResponse(
            page=page,
            url=str(response.url),
            status_code=response.status_code,
            text=response.text,
            headers=dict(response.headers),
        )

    @staticmethod
    def _is_failure(response: Any) -> bool:
        status_code = getattr(response, "status_code", 0)
        return status_code >= 400


class BrowserPageFetcher(PageFetcher):
    """Render pages through Playwright for listings injected by scripts."""

    # Playwright sync objects are bound to the thread that started them.
    supports_prefetch = False

    def __init__(
        self,
        source: SourceConfig,
        logger: structlog.BoundLogger | None = None,
        headless: bool = True,
        playwright_factory: Callable[[], Any] | None = None,
    ) -> None:
        super().__init__(source, client=None, logger=logger)
        self.headless = headless
        self._playwright_factory = playwright_factory
        self._playwright = None
        self._browser = None
        self._page = None

    def _ensure_started(self) -> None:
        if self._playwright is not None:
            return
        factory = self._playwright_factory
        if factory is None:
            try:
                from playwright.sync_api import sync_playwright
            except ImportError as exc:  # pragma: no cover
                raise RuntimeError(
                    "The browser variant requires installing the 'playwright' package."
                ) from exc
            factory = sync_playwright
        self._playwright = factory().start()
        try:
            self._browser = self._playwright.chromium.launch(headless=self.headless)
            context = self._browser.new_context(user_agent=self.source.user_agent)
            self._page = context.new_page()
        except Exception:
            self.logger.warning("browser_start_failed", headless=self.headless)
            self._shutdown_browser()
            raise

    def fetch(self, page: PageKey) -> FetchResponse:
        url = self.page_url(page)
        self._ensure_started()
        from playwright.sync_api import Error as PlaywrightError

        timeout_ms = int(self.source.timeout * 1000)
        try:
            response = self._page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
            status_code = response.status if response else 200
            if status_code < 400:
                try:
                    self._page.wait_for_selector(self.source.selectors.item, timeout=timeout_ms)
                except PlaywrightError:
                    # Month without tournaments: nothing ever renders.
                    self.logger.debug("page_without_listings", page=page.token)
            text = self._page.content()
        except PlaywrightError as exc:
            self.logger.warning("page_fetch_error", page=page.token, url=url, error=str(exc))
            raise TransientFetchError(
                f"Rendering {page.token} failed: {exc}", page=page.token, url=url
            ) from exc
        if status_code >= 400:
            raise TransientFetchError(
                f"Unexpected status {status_code} for {page.token}", page=page.token, url=url
            )
        return FetchResponse(
            page=page,
            url=self._page.url,
            status_code=status_code,
            text=text,
            headers=dict(response.headers) if response else {},
        )

    def _shutdown_browser(self) -> None:
        try:
            if self._browser is not None:
                self._browser.close()
        finally:
            self._browser = None
            self._page = None
            playwright, self._playwright = self._playwright, None
            if playwright is not None:
                playwright.stop()

    def close(self) -> None:
        self._shutdown_browser()
        super().close()


__all__ = ["BrowserPageFetcher", "FetchResponse", "PageFetcher"]
