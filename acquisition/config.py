"""Crawl4AI run configuration used by the page fetcher."""

from __future__ import annotations

from typing import List

from crawl4ai import CrawlerRunConfig
from crawl4ai.async_configs import CacheMode
from crawl4ai.content_filter_strategy import PruningContentFilter
from crawl4ai.markdown_generation_strategy import DefaultMarkdownGenerator

# Containers that usually hold the body of a documentation page.
CONTENT_SELECTORS: List[str] = [
    "main",
    "[role='main']",
    "article",
    ".markdown-body",
    ".docs-content",
    ".prose",
    "#content",
]

# Site chrome that only adds noise to extracted markdown.
CHROME_SELECTORS: List[str] = [
    "nav",
    "footer",
    "header",
    "aside",
    ".sidebar",
    ".toc",
    ".breadcrumbs",
    "[role='navigation']",
    "#onetrust-banner-sdk",
]

EXCLUDED_TAGS: List[str] = ["nav", "footer", "header", "aside", "form"]


def build_markdown_generator() -> DefaultMarkdownGenerator:
    """Markdown generator that keeps links, since the crawler mines them."""
    return DefaultMarkdownGenerator(
        content_filter=PruningContentFilter(
            threshold=0.45,
            threshold_type="dynamic",
            min_word_threshold=1,
        ),
        options={
            "citations": False,
            "body_width": 0,
            "ignore_images": True,
        },
    )


def build_markdown_run_config(page_timeout: float = 60.0) -> CrawlerRunConfig:
    """Run config for fetching one documentation page as markdown.

    ``page_timeout`` is in seconds; Crawl4AI expects milliseconds.
    """
    return CrawlerRunConfig(
        verbose=False,
        target_elements=list(CONTENT_SELECTORS),
        excluded_tags=list(EXCLUDED_TAGS),
        excluded_selector=", ".join(CHROME_SELECTORS),
        markdown_generator=build_markdown_generator(),
        cache_mode=CacheMode.BYPASS,
        page_timeout=int(page_timeout * 1000),
        delay_before_return_html=0.5,
    )
