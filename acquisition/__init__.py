"""Content acquisition for documentation synthesis.

Decides which remote documents are worth fetching and keeping:

- URL validation with redirect resolution, retries and a short TTL cache
- Two-phase crawling that follows same-host documentation links
- A per-topic result cache on the local filesystem

Example usage:

    from acquisition import UrlValidator, TopicCrawler, Crawl4AIFetcher

    validator = UrlValidator()
    results = await validator.validate_batch(urls)
    seeds = [r.resolved_url for r in results if r.valid]

    crawler = TopicCrawler(Crawl4AIFetcher())
    crawl = await crawler.crawl(seeds, "fastapi")
    for doc in crawl.documents:
        print(doc.url, len(doc.text_content))
    print("low-value:", crawl.low_value_urls)

    # Or all of it, with cache lookup and search:
    result = await acquire_async("fastapi")
"""

from __future__ import annotations

from .cache import TopicCache, is_sufficient, topic_cache_key
from .crawler import CrawlError, CrawlLimits, CrawlState, TopicCrawler, crawl_topic_async
from .document import (
    CrawlResult,
    ErrorKind,
    ScrapedDocument,
    TopicCacheRecord,
    ValidationResult,
)
from .fetcher import Crawl4AIFetcher, FetchError, Fetcher
from .links import common_doc_paths, extract_links, is_worth_following
from .pipeline import (
    AcquisitionError,
    AcquisitionPipeline,
    AcquisitionResult,
    acquire,
    acquire_async,
    wait_for_cache_writes,
)
from .search import SearchError, search_seed_urls_async
from .settings import AcquisitionSettings, load_settings
from .validator import (
    UrlValidator,
    ValidationCache,
    ValidationOptions,
    describe_failures,
    validate_urls,
    validate_urls_async,
)

__all__ = [
    # Data types
    "CrawlResult",
    "ErrorKind",
    "ScrapedDocument",
    "TopicCacheRecord",
    "ValidationResult",
    # Validation
    "UrlValidator",
    "ValidationCache",
    "ValidationOptions",
    "describe_failures",
    "validate_urls",
    "validate_urls_async",
    # Links
    "common_doc_paths",
    "extract_links",
    "is_worth_following",
    # Fetching and crawling
    "Fetcher",
    "Crawl4AIFetcher",
    "FetchError",
    "CrawlError",
    "CrawlLimits",
    "CrawlState",
    "TopicCrawler",
    "crawl_topic_async",
    # Cache
    "TopicCache",
    "is_sufficient",
    "topic_cache_key",
    # Search
    "SearchError",
    "search_seed_urls_async",
    # Orchestration
    "AcquisitionError",
    "AcquisitionPipeline",
    "AcquisitionResult",
    "acquire",
    "acquire_async",
    "wait_for_cache_writes",
    # Settings
    "AcquisitionSettings",
    "load_settings",
]
