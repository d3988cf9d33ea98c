"""Two-phase, budget-bounded documentation crawler.

Phase 1 fetches the first few seed URLs, mines each good page for links that
look like more documentation on the same host, and schedules a bounded number
of them. Phase 2 fetches everything scheduled but not yet fetched. Phases
never overlap: phase 2's work list is derived from phase 1's output.

All crawl bookkeeping (:class:`CrawlState`) is mutated by the coroutine
running :meth:`TopicCrawler.crawl`, between fetch rounds; the fetcher only
returns documents.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Set

from .document import CrawlResult, ScrapedDocument
from .fetcher import Crawl4AIFetcher, Fetcher
from .links import common_doc_paths, extract_links, is_worth_following
from .settings import AcquisitionSettings, load_settings

LOGGER = logging.getLogger(__name__)


class CrawlError(Exception):
    """Raised when the first crawl phase produced nothing usable."""

    def __init__(self, message: str, topic: str = ""):
        self.topic = topic
        super().__init__(message)


@dataclass(frozen=True)
class CrawlLimits:
    """Fan-out bounds for a single crawl."""

    max_seed_urls: int = 5
    max_links_per_source: int = 8
    max_total_urls: int = 25
    fallback_link_threshold: int = 3
    min_expansion_length: int = 100

    @classmethod
    def from_settings(cls, settings: AcquisitionSettings) -> "CrawlLimits":
        return cls(
            max_seed_urls=settings.max_seed_urls,
            max_links_per_source=settings.max_links_per_source,
            max_total_urls=settings.max_total_urls,
        )


@dataclass
class CrawlState:
    """URLs scheduled and fetched during one crawl.

    A URL is scheduled at most once, never beyond ``max_total_urls``, and
    only scheduled URLs can be marked visited.
    """

    max_total_urls: int
    queued: Set[str] = field(default_factory=set)
    visited: Set[str] = field(default_factory=set)
    order: List[str] = field(default_factory=list)

    @property
    def is_full(self) -> bool:
        return len(self.queued) >= self.max_total_urls

    def schedule(self, url: str) -> bool:
        if url in self.queued or self.is_full:
            return False
        self.queued.add(url)
        self.order.append(url)
        return True

    def pending(self) -> List[str]:
        return [url for url in self.order if url not in self.visited]

    def mark_visited(self, urls: Iterable[str]) -> None:
        self.visited.update(url for url in urls if url in self.queued)


class TopicCrawler:
    """Crawl documentation for a topic starting from validated seed URLs."""

    def __init__(self, fetcher: Fetcher, *, limits: Optional[CrawlLimits] = None) -> None:
        self.fetcher = fetcher
        self.limits = limits or CrawlLimits()

    async def crawl(self, seed_urls: Sequence[str], topic: str) -> CrawlResult:
        """Run both phases and return the kept documents.

        Raises:
            CrawlError: If there are no seeds, or phase 1 keeps no document.
        """
        limits = self.limits
        state = CrawlState(max_total_urls=limits.max_total_urls)
        for url in seed_urls:
            state.schedule(url)

        seeds = state.pending()[: limits.max_seed_urls]
        if not seeds:
            raise CrawlError("No seed URLs to crawl", topic=topic)

        kept: List[ScrapedDocument] = []
        low_value: List[str] = []
        warnings: List[str] = []

        LOGGER.info("Crawling %r: phase 1 with %d seed URLs", topic, len(seeds))
        started = time.monotonic()
        try:
            documents = await self.fetcher.fetch_many(seeds)
        except Exception as exc:
            raise CrawlError(f"Failed to fetch seed URLs: {exc}", topic=topic) from exc
        state.mark_visited(seeds)

        for doc in documents:
            if doc.is_low_value:
                LOGGER.info("Low-value: %s", doc.url)
                low_value.append(doc.url)
                if doc.fallback_applied and doc.text_content:
                    kept.append(doc)
                continue
            if not doc.fetch_succeeded or not doc.text_content:
                LOGGER.info("Failed or empty: %s", doc.url)
                continue
            LOGGER.info("Fetched %s (%d chars)", doc.url, len(doc.text_content))
            kept.append(doc)
            self._schedule_links(state, doc)

        phase1_kept = len(kept)
        LOGGER.info(
            "Phase 1 complete in %.1fs: %d pages, %d more queued",
            time.monotonic() - started,
            phase1_kept,
            len(state.pending()),
        )
        if not kept:
            raise CrawlError(
                f"None of the {len(seeds)} seed URLs produced usable content",
                topic=topic,
            )

        pending = state.pending()
        if pending:
            LOGGER.info("Phase 2: fetching %d discovered URLs", len(pending))
            started = time.monotonic()
            try:
                documents = await self.fetcher.fetch_many(pending)
            except Exception as exc:
                LOGGER.warning(
                    "Phase 2 error, continuing with %d pages: %s", len(kept), exc
                )
                warnings.append(f"Link expansion failed: {exc}")
                documents = []
            state.mark_visited(pending)

            for doc in documents:
                if doc.is_low_value:
                    low_value.append(doc.url)
                    if not doc.fallback_applied:
                        continue
                if (
                    doc.fetch_succeeded
                    and len(doc.text_content) > limits.min_expansion_length
                ):
                    LOGGER.info("Added %s (%d chars)", doc.url, len(doc.text_content))
                    kept.append(doc)
            LOGGER.info("Phase 2 complete in %.1fs", time.monotonic() - started)

        low_value_urls = list(dict.fromkeys(low_value))
        LOGGER.info(
            "Crawl complete: %d kept, %d low-value", len(kept), len(low_value_urls)
        )
        return CrawlResult(
            documents=kept,
            low_value_urls=low_value_urls,
            warnings=warnings,
            stats={
                "seed_urls": len(seeds),
                "queued_urls": len(state.queued),
                "visited_urls": len(state.visited),
                "phase1_documents": phase1_kept,
                "phase2_documents": len(kept) - phase1_kept,
            },
        )

    def _schedule_links(self, state: CrawlState, doc: ScrapedDocument) -> None:
        links = extract_links(doc.text_content, doc.url)
        classified = [
            link
            for link in links
            if is_worth_following(link, doc.url) and link not in state.queued
        ]
        added = 0
        for link in classified:
            if added >= self.limits.max_links_per_source or state.is_full:
                break
            if state.schedule(link):
                added += 1

        fallback_added = 0
        # Sites whose navigation is not link-extractable get the usual paths.
        if len(classified) < self.limits.fallback_link_threshold:
            for url in common_doc_paths(doc.url):
                if state.schedule(url):
                    fallback_added += 1

        LOGGER.debug(
            "%s: %d links found, %d classified, %d scheduled, %d fallback paths",
            doc.url,
            len(links),
            len(classified),
            added,
            fallback_added,
        )


async def crawl_topic_async(
    seed_urls: Sequence[str],
    topic: str,
    *,
    fetcher: Optional[Fetcher] = None,
    limits: Optional[CrawlLimits] = None,
) -> CrawlResult:
    """Crawl with the Crawl4AI fetcher and limits taken from the environment."""
    settings = load_settings()
    crawler = TopicCrawler(
        fetcher or Crawl4AIFetcher.from_settings(settings),
        limits=limits or CrawlLimits.from_settings(settings),
    )
    return await crawler.crawl(seed_urls, topic)
