"""Translate Crawl4AI results into ScrapedDocument instances."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from crawl4ai.models import CrawlResult

from .document import ScrapedDocument
from .quality import is_low_value, low_value_score

LOGGER = logging.getLogger(__name__)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_scraped_document(
    result: CrawlResult,
    requested_url: str,
    *,
    fetched_at: Optional[str] = None,
) -> ScrapedDocument:
    """Convert a Crawl4AI ``CrawlResult`` for ``requested_url``.

    The document keeps the requested URL (not the post-redirect one) so the
    crawler can match it against what it scheduled.
    """
    fetched_at = fetched_at or utc_timestamp()

    if not result.success:
        return failed_document(requested_url, _derive_failure_reason(result), fetched_at)

    text = _select_markdown(result)
    low_value = is_low_value(text)
    LOGGER.debug(
        "%s: %d chars, low-value score %d",
        requested_url,
        len(text),
        low_value_score(text),
    )

    return ScrapedDocument(
        url=requested_url,
        text_content=text,
        fetch_succeeded=not low_value and bool(text),
        fetched_at=fetched_at,
        is_low_value=low_value,
    )


def failed_document(
    url: str, error: str, fetched_at: Optional[str] = None
) -> ScrapedDocument:
    return ScrapedDocument(
        url=url,
        text_content="",
        fetch_succeeded=False,
        fetched_at=fetched_at or utc_timestamp(),
        error=error,
    )


def _select_markdown(result: CrawlResult) -> str:
    markdown = getattr(result, "markdown", None)
    if markdown is None:
        return ""
    if isinstance(markdown, str):
        return markdown
    fit = getattr(markdown, "fit_markdown", None) or ""
    if fit.strip():
        return fit
    return getattr(markdown, "raw_markdown", None) or ""


def _derive_failure_reason(result: CrawlResult) -> str:
    if result.error_message:
        return result.error_message
    status_code = result.status_code or (result.metadata or {}).get("status_code")
    if status_code:
        return f"HTTP {status_code}"
    return "Crawler returned no content"
