"""MCP server for URL validation, topic crawling and acquisition.

Provides tools for:
- Validating URLs with redirect resolution
- Crawling documentation from seed URLs
- Acquiring a topic end to end (cache, search, validation, crawl)

Supports both STDIO and HTTP transports.

Usage:
    # STDIO
    python -m acquisition.mcp_server

    # HTTP
    python -m acquisition.mcp_server --transport http --port 8000

    # Or via FastMCP CLI
    fastmcp run acquisition/mcp_server.py:mcp --transport http --port 8000

Environment Variables:
    SEARXNG_URL: SearXNG instance URL (default: http://localhost:8888)
    ACQUIRE_*: Engine tuning, see acquisition.settings
"""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import replace
from enum import Enum
from typing import List, Optional

from dotenv import load_dotenv
from fastmcp import FastMCP

from .cache import TopicCache
from .cli_output import documents_payload, format_documents_markdown, validation_to_dict
from .crawler import CrawlError, crawl_topic_async
from .pipeline import AcquisitionError, AcquisitionPipeline, wait_for_cache_writes
from .settings import load_settings
from .validator import UrlValidator, ValidationCache, ValidationOptions

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
LOGGER = logging.getLogger(__name__)

load_dotenv()

SETTINGS = load_settings()

# Shared for the lifetime of the server process.
VALIDATION_CACHE = ValidationCache(
    ttl=SETTINGS.validation_cache_ttl, max_size=SETTINGS.validation_cache_size
)

mcp = FastMCP(
    name="Documentation Acquisition",
    instructions="""
    Finds and fetches documentation worth reading for a topic.

    1. validate_urls: Check URLs are reachable (follows redirects)
    2. crawl_topic: Crawl seed URLs plus relevant same-host links
    3. acquire_topic: Search, validate, crawl and cache a topic
    4. clear_cache: Drop all cached topic results

    Output formats for crawl tools:
    - markdown: Concatenated markdown with URL headers (default)
    - json: Documents plus low-value URLs, warnings and statistics
    """,
)


class OutputFormat(str, Enum):
    """Output format for crawl results."""

    markdown = "markdown"
    json = "json"


def _parse_format(output_format: str) -> OutputFormat:
    try:
        return OutputFormat(output_format.lower())
    except ValueError:
        return OutputFormat.markdown


# =============================================================================
# TOOLS
# =============================================================================


@mcp.tool
async def validate_urls(
    urls: List[str],
    timeout: Optional[float] = None,
    max_redirects: Optional[int] = None,
    retries: Optional[int] = None,
) -> str:
    """
    Check that URLs are reachable, following up to max_redirects hops.

    Args:
        urls: URLs to check
        timeout: Per-request timeout in seconds (default from settings)
        max_redirects: Redirect hops to follow (default from settings)
        retries: Retries for network errors (default from settings)

    Returns:
        JSON list with url, valid, status_code, final_url, error_kind and
        error for every input URL, in input order.
    """
    overrides = {
        key: value
        for key, value in (
            ("timeout", timeout),
            ("max_redirects", max_redirects),
            ("retries", retries),
        )
        if value is not None
    }
    options = replace(ValidationOptions.from_settings(SETTINGS), **overrides)
    validator = UrlValidator(cache=VALIDATION_CACHE, options=options)

    LOGGER.info("Validating %d URL(s)...", len(urls))
    results = await validator.validate_batch(urls)
    return json.dumps([validation_to_dict(r) for r in results], indent=2)


@mcp.tool
async def crawl_topic(
    urls: List[str],
    topic: str = "",
    output_format: str = "markdown",
) -> str:
    """
    Crawl seed URLs and the documentation links they point to on the same host.

    Args:
        urls: Seed URLs (not validated first)
        topic: Label used in logs and output (default: first URL)
        output_format: "markdown" (default) or "json"

    Returns:
        Crawled content in the requested format, or an error message.
    """
    fmt = _parse_format(output_format)
    label = topic or (urls[0] if urls else "")
    try:
        result = await crawl_topic_async(urls, label)
    except CrawlError as exc:
        return f"Crawl failed: {exc}"

    if fmt == OutputFormat.json:
        payload = documents_payload(
            result.documents,
            topic=label,
            low_value_urls=result.low_value_urls,
            warnings=result.warnings,
            stats=result.stats,
        )
        return json.dumps(payload, indent=2, ensure_ascii=False)
    return format_documents_markdown(
        result.documents,
        low_value_urls=result.low_value_urls,
        warnings=result.warnings,
    )


@mcp.tool
async def acquire_topic(
    topic: str = "",
    urls: Optional[List[str]] = None,
    output_format: str = "markdown",
) -> str:
    """
    Acquire documentation for a topic: cache lookup, search, validation, crawl.

    Args:
        topic: Topic to search for
        urls: Optional seed URLs; when given, the search step is skipped
        output_format: "markdown" (default) or "json"

    Returns:
        Documents in the requested format, or an error message naming the
        URLs that failed.
    """
    fmt = _parse_format(output_format)
    validator = UrlValidator(
        cache=VALIDATION_CACHE, options=ValidationOptions.from_settings(SETTINGS)
    )
    pipeline = AcquisitionPipeline(settings=SETTINGS, validator=validator)
    try:
        result = await pipeline.acquire(topic or None, urls=urls)
    except AcquisitionError as exc:
        return f"Acquisition failed: {exc}"
    finally:
        await wait_for_cache_writes()

    if fmt == OutputFormat.json:
        payload = documents_payload(
            result.documents,
            topic=result.topic,
            low_value_urls=result.low_value_urls,
            warnings=result.warnings,
            used_cache=result.used_cache,
            source_urls=result.source_urls,
        )
        return json.dumps(payload, indent=2, ensure_ascii=False)
    return format_documents_markdown(
        result.documents,
        low_value_urls=result.low_value_urls,
        warnings=result.warnings,
    )


@mcp.tool
async def clear_cache() -> str:
    """Remove every cached topic result and reset the URL validation cache."""
    removed = TopicCache(SETTINGS.cache_dir).invalidate_all()
    VALIDATION_CACHE.clear()
    return f"Removed {removed} cached topic(s)"


# =============================================================================
# MAIN
# =============================================================================


def main():
    """Run the MCP server."""
    parser = argparse.ArgumentParser(
        description="Documentation acquisition MCP server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
    # STDIO transport (default)
    python -m acquisition.mcp_server

    # HTTP transport
    python -m acquisition.mcp_server --transport http --port 8000
""",
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "http"],
        default="stdio",
        help="Transport protocol (default: stdio)",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to for HTTP transport (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to for HTTP transport (default: 8000)",
    )

    args = parser.parse_args()

    LOGGER.info("Topic cache: %s", SETTINGS.cache_dir)

    if args.transport == "http":
        LOGGER.info("Starting MCP server on http://%s:%d/mcp", args.host, args.port)
        mcp.run(transport="http", host=args.host, port=args.port)
    else:
        LOGGER.info("Starting MCP server with STDIO transport")
        mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
