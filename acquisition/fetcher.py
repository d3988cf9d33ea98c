"""Full-content page fetching on top of Crawl4AI.

The crawler only depends on the :class:`Fetcher` protocol;
:class:`Crawl4AIFetcher` is the production implementation. It fetches in
fixed-size batches, waits for each batch to settle, and pauses briefly
between batches to stay polite with the target sites.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Awaitable, Callable, List, Optional, Protocol, Sequence

from crawl4ai import AsyncWebCrawler, BrowserConfig, CrawlerRunConfig

from .builder import build_scraped_document, failed_document
from .config import build_markdown_run_config
from .document import ScrapedDocument
from .quality import SUBSTANTIAL_CONTENT_LENGTH
from .settings import AcquisitionSettings

LOGGER = logging.getLogger(__name__)


class FetchError(Exception):
    """Raised when a batch produced nothing usable at all."""

    def __init__(self, message: str, urls: Sequence[str] = ()):
        self.urls = list(urls)
        super().__init__(message)


class Fetcher(Protocol):
    async def fetch_many(self, urls: Sequence[str]) -> List[ScrapedDocument]:
        """Fetch ``urls`` and return one document per usable page."""
        ...


def select_usable(documents: Sequence[ScrapedDocument]) -> List[ScrapedDocument]:
    """Order fetched documents for the caller, applying the low-value fallback.

    Successful documents come first, then low-value ones, then failures. When
    nothing succeeded, low-value documents with substantial content are
    promoted (``fallback_applied=True``) and returned on their own.

    Raises:
        FetchError: If no document succeeded and none could be promoted.
    """
    succeeded = [d for d in documents if d.fetch_succeeded and d.text_content]
    low_value = [d for d in documents if d.is_low_value]
    failed = [d for d in documents if not d.fetch_succeeded and not d.is_low_value]

    LOGGER.info(
        "Fetch summary: %d successful, %d low-value, %d failed",
        len(succeeded),
        len(low_value),
        len(failed),
    )
    for doc in failed:
        LOGGER.info("  failed: %s (%s)", doc.url, doc.error or "empty")

    if succeeded:
        return succeeded + low_value + failed

    substantial = [
        d
        for d in low_value
        if len(d.text_content) >= SUBSTANTIAL_CONTENT_LENGTH and not d.error
    ]
    if substantial:
        LOGGER.warning(
            "All URLs flagged as low-value, using %d with substantial content (>=%d chars)",
            len(substantial),
            SUBSTANTIAL_CONTENT_LENGTH,
        )
        return [replace(d, fetch_succeeded=True, fallback_applied=True) for d in substantial]

    raise FetchError(
        f"Failed to fetch any URLs successfully. All {len(documents)} URLs "
        "failed or were low-value.",
        urls=[d.url for d in documents],
    )


class Crawl4AIFetcher:
    """Fetch pages as markdown with a headless browser."""

    def __init__(
        self,
        *,
        concurrency: int = 5,
        page_timeout: float = 60.0,
        batch_delay: float = 0.5,
        run_config: Optional[CrawlerRunConfig] = None,
        browser_config: Optional[BrowserConfig] = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self.concurrency = max(1, concurrency)
        self.page_timeout = page_timeout
        self.batch_delay = batch_delay
        self._run_config = run_config
        self._browser_config = browser_config
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: AcquisitionSettings) -> "Crawl4AIFetcher":
        return cls(
            concurrency=settings.fetch_concurrency,
            page_timeout=settings.fetch_timeout,
            batch_delay=settings.fetch_batch_delay,
        )

    async def fetch_many(self, urls: Sequence[str]) -> List[ScrapedDocument]:
        if not urls:
            return []

        run_config = self._run_config or build_markdown_run_config(self.page_timeout)
        browser_config = self._browser_config or BrowserConfig(headless=True, verbose=False)
        total_batches = (len(urls) + self.concurrency - 1) // self.concurrency

        documents: List[ScrapedDocument] = []
        async with AsyncWebCrawler(config=browser_config) as crawler:
            for number, start in enumerate(range(0, len(urls), self.concurrency), 1):
                batch = list(urls[start : start + self.concurrency])
                LOGGER.info(
                    "Fetching batch %d/%d: %s", number, total_batches, ", ".join(batch)
                )
                documents.extend(
                    await asyncio.gather(
                        *(self._fetch_one(crawler, url, run_config) for url in batch)
                    )
                )
                if number < total_batches:
                    await self._sleep(self.batch_delay)

        return select_usable(documents)

    async def _fetch_one(
        self, crawler: AsyncWebCrawler, url: str, run_config: CrawlerRunConfig
    ) -> ScrapedDocument:
        try:
            container = await asyncio.wait_for(
                crawler.arun(url=url, config=run_config), self.page_timeout
            )
        except asyncio.TimeoutError:
            return failed_document(url, f"Fetch timed out after {self.page_timeout:g}s")
        except Exception as exc:
            LOGGER.warning("Failed to fetch %s: %s", url, exc)
            return failed_document(url, str(exc) or type(exc).__name__)

        try:
            first_result = container[0]
        except (IndexError, TypeError):
            first_result = None

        if first_result is None:
            return failed_document(url, f"Crawler returned no results for {url}")
        return build_scraped_document(first_result, url)
