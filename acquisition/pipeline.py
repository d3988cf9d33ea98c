"""Orchestration around the acquisition engine.

Given a topic (or explicit URLs) this checks the topic cache and searches for
seed URLs concurrently, validates the seeds, crawls the survivors, and
writes the result back to the cache in the background. Content synthesis is
left to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Awaitable, Callable, List, Optional, Sequence, Set

from .cache import TopicCache, is_sufficient
from .crawler import CrawlError, CrawlLimits, TopicCrawler
from .document import ScrapedDocument, TopicCacheRecord, ValidationResult
from .fetcher import Crawl4AIFetcher
from .search import search_seed_urls_async
from .settings import AcquisitionSettings, load_settings
from .validator import (
    UrlValidator,
    ValidationCache,
    ValidationOptions,
    describe_failures,
)

LOGGER = logging.getLogger(__name__)

SeedSearch = Callable[[str], Awaitable[List[str]]]

_PENDING_WRITES: Set["asyncio.Task[object]"] = set()


class AcquisitionError(Exception):
    """Raised when no content could be acquired for a request."""

    def __init__(
        self,
        message: str,
        topic: str = "",
        rejected: Sequence[ValidationResult] = (),
    ):
        self.topic = topic
        self.rejected = list(rejected)
        super().__init__(message)


@dataclass
class AcquisitionResult:
    topic: str
    source_urls: List[str]
    documents: List[ScrapedDocument]
    low_value_urls: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    used_cache: bool = False
    validation: List[ValidationResult] = field(default_factory=list)


def _low_value_warnings(
    documents: Sequence[ScrapedDocument], low_value_urls: Sequence[str]
) -> List[str]:
    warnings: List[str] = []
    fallback_used = any(doc.fallback_applied for doc in documents)
    if low_value_urls:
        suffix = " (fallback used)" if fallback_used else ""
        warnings.append(f"{len(low_value_urls)} source(s) paywalled/blocked{suffix}")
    if fallback_used:
        warnings.append(
            "Some sources flagged as paywalled but used due to substantial content"
        )
    return warnings


def _on_cache_write_done(task: "asyncio.Task[object]") -> None:
    _PENDING_WRITES.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        LOGGER.warning("Cache write failed: %s", exc)


async def wait_for_cache_writes() -> None:
    """Wait for background cache writes scheduled by :class:`AcquisitionPipeline`."""
    if _PENDING_WRITES:
        await asyncio.gather(*list(_PENDING_WRITES), return_exceptions=True)


class AcquisitionPipeline:
    """Cache lookup, search, validation and crawling for one topic at a time."""

    def __init__(
        self,
        *,
        settings: Optional[AcquisitionSettings] = None,
        validator: Optional[UrlValidator] = None,
        crawler: Optional[TopicCrawler] = None,
        cache: Optional[TopicCache] = None,
        search: Optional[SeedSearch] = None,
    ) -> None:
        settings = settings or load_settings()
        self.validator = validator or UrlValidator(
            cache=ValidationCache(
                ttl=settings.validation_cache_ttl,
                max_size=settings.validation_cache_size,
            ),
            options=ValidationOptions.from_settings(settings),
        )
        self.crawler = crawler or TopicCrawler(
            Crawl4AIFetcher.from_settings(settings),
            limits=CrawlLimits.from_settings(settings),
        )
        self.cache = cache or TopicCache(
            settings.cache_dir, ttl=timedelta(hours=settings.cache_ttl_hours)
        )
        self._search = search or (
            lambda topic: search_seed_urls_async(
                topic, max_results=settings.search_results
            )
        )

    async def acquire(
        self, topic: Optional[str] = None, *, urls: Optional[Sequence[str]] = None
    ) -> AcquisitionResult:
        """Acquire documents for ``topic``, or for ``urls`` when given.

        Raises:
            AcquisitionError: When no seed URL survives validation or the
                crawl yields nothing. The message names failing URLs.
        """
        if not topic and not urls:
            raise AcquisitionError("Either a topic or URLs are required")
        if topic:
            label = topic
        else:
            assert urls
            label = urls[0]

        if urls:
            cached = await self._read_cache(label)
            seeds: List[str] = list(urls)
            search_error: Optional[BaseException] = None
        else:
            cached, found = await asyncio.gather(
                self._read_cache(label),
                self._search(label),
                return_exceptions=True,
            )
            if isinstance(cached, BaseException):
                cached = None
            search_error = found if isinstance(found, BaseException) else None
            seeds = [] if search_error else list(found)  # type: ignore[arg-type]

        if isinstance(cached, TopicCacheRecord):
            if is_sufficient(cached):
                return self._from_cache(label, cached)
            LOGGER.info("Cached record for %r is insufficient, refetching", label)

        if search_error is not None:
            raise AcquisitionError(
                f"Search failed: {search_error}", topic=label
            ) from search_error
        if not seeds:
            raise AcquisitionError("No URLs found to fetch", topic=label)

        validation = await self.validator.validate_batch(seeds)
        valid_urls = list(
            dict.fromkeys(result.resolved_url for result in validation if result.valid)
        )
        if not valid_urls:
            raise AcquisitionError(
                describe_failures(validation), topic=label, rejected=validation
            )

        try:
            crawl = await self.crawler.crawl(valid_urls, label)
        except CrawlError as exc:
            raise AcquisitionError(str(exc), topic=label) from exc

        warnings = list(crawl.warnings)
        rejected = len(validation) - sum(1 for r in validation if r.valid)
        if rejected:
            warnings.append(f"{rejected} seed URL(s) failed validation")
        warnings.extend(_low_value_warnings(crawl.documents, crawl.low_value_urls))

        source_urls = [doc.url for doc in crawl.documents]
        self._schedule_cache_write(label, source_urls, crawl.documents)

        return AcquisitionResult(
            topic=label,
            source_urls=source_urls,
            documents=crawl.documents,
            low_value_urls=crawl.low_value_urls,
            warnings=warnings,
            validation=validation,
        )

    async def _read_cache(self, topic: str) -> Optional[TopicCacheRecord]:
        try:
            return await asyncio.to_thread(self.cache.get, topic)
        except Exception as exc:
            LOGGER.warning("Cache lookup failed for %r: %s", topic, exc)
            return None

    def _from_cache(self, topic: str, record: TopicCacheRecord) -> AcquisitionResult:
        low_value_urls = [doc.url for doc in record.documents if doc.is_low_value]
        LOGGER.info("Using %d cached documents for %r", len(record.documents), topic)
        return AcquisitionResult(
            topic=topic,
            source_urls=list(record.source_urls),
            documents=list(record.documents),
            low_value_urls=low_value_urls,
            warnings=_low_value_warnings(record.documents, low_value_urls),
            used_cache=True,
        )

    def _schedule_cache_write(
        self, topic: str, urls: Sequence[str], documents: Sequence[ScrapedDocument]
    ) -> None:
        task = asyncio.create_task(
            asyncio.to_thread(self.cache.put, topic, list(urls), list(documents))
        )
        _PENDING_WRITES.add(task)
        task.add_done_callback(_on_cache_write_done)


async def acquire_async(
    topic: Optional[str] = None,
    *,
    urls: Optional[Sequence[str]] = None,
    pipeline: Optional[AcquisitionPipeline] = None,
) -> AcquisitionResult:
    """Acquire documents for ``topic`` (or ``urls``) with environment settings."""
    return await (pipeline or AcquisitionPipeline()).acquire(topic, urls=urls)


def acquire(
    topic: Optional[str] = None, *, urls: Optional[Sequence[str]] = None
) -> AcquisitionResult:
    """Synchronous wrapper for :func:`acquire_async` that flushes cache writes."""

    async def _run() -> AcquisitionResult:
        try:
            return await acquire_async(topic, urls=urls)
        finally:
            await wait_for_cache_writes()

    return asyncio.run(_run())
