"""Seed URL discovery through a SearXNG instance.

Environment variables are read at call time so tests can monkeypatch them::

    SEARXNG_URL        instance URL (default: http://localhost:8888)
    SEARXNG_USERNAME   optional basic auth username
    SEARXNG_PASSWORD   optional basic auth password
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

import httpx

LOGGER = logging.getLogger(__name__)

# Social, video and forum sites rarely hold reference documentation.
EXCLUDED_DOMAINS: tuple[str, ...] = (
    "youtube.com",
    "facebook.com",
    "twitter.com",
    "x.com",
    "reddit.com",
    "quora.com",
    "pinterest.com",
    "tiktok.com",
    "instagram.com",
)


@dataclass(slots=True)
class SearchHit:
    title: str
    url: str
    snippet: str = ""


class SearchError(Exception):
    """Raised when the SearXNG search fails."""

    def __init__(self, message: str, query: str = ""):
        self.query = query
        super().__init__(message)


def _get_searxng_client(base_url: Optional[str] = None) -> httpx.AsyncClient:
    url = base_url or os.getenv("SEARXNG_URL", "http://localhost:8888")
    user = os.getenv("SEARXNG_USERNAME")
    password = os.getenv("SEARXNG_PASSWORD")

    auth = None
    if user and password:
        auth = httpx.BasicAuth(user, password)

    return httpx.AsyncClient(
        base_url=url,
        auth=auth,
        headers={"Accept": "application/json"},
        timeout=30.0,
    )


def _is_excluded(url: str) -> bool:
    host = (urlsplit(url).hostname or "").lower()
    return any(host == domain or host.endswith("." + domain) for domain in EXCLUDED_DOMAINS)


async def search_async(
    query: str,
    *,
    max_results: int = 15,
    language: str = "en",
    client: Optional[httpx.AsyncClient] = None,
) -> List[SearchHit]:
    """Run ``query`` against SearXNG, dropping excluded domains.

    Raises:
        SearchError: On HTTP errors, network errors or an empty result set.
    """
    params: Dict[str, Any] = {
        "q": query,
        "format": "json",
        "language": language,
        "safesearch": 1,
    }

    try:
        if client is not None:
            response = await client.get("/search", params=params)
        else:
            async with _get_searxng_client() as own_client:
                response = await own_client.get("/search", params=params)
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPStatusError as exc:
        if exc.response.status_code == 401:
            raise SearchError(
                "Authentication failed. Check SEARXNG_USERNAME and SEARXNG_PASSWORD.",
                query=query,
            ) from exc
        raise SearchError(
            f"SearXNG API error: {exc.response.status_code}", query=query
        ) from exc
    except httpx.RequestError as exc:
        raise SearchError(f"Request failed: {exc}", query=query) from exc

    hits = [
        SearchHit(
            title=str(raw.get("title") or ""),
            url=str(raw["url"]),
            snippet=str(raw.get("content") or ""),
        )
        for raw in data.get("results", [])
        if raw.get("url") and not _is_excluded(str(raw["url"]))
    ]
    if not hits:
        raise SearchError("No search results found", query=query)

    LOGGER.info("Search for %r returned %d usable results", query, len(hits))
    return hits[: max(1, max_results)]


async def search_seed_urls_async(
    topic: str,
    *,
    max_results: int = 15,
    client: Optional[httpx.AsyncClient] = None,
) -> List[str]:
    """Distinct result URLs for ``topic``, best first."""
    hits = await search_async(topic, max_results=max_results, client=client)
    return list(dict.fromkeys(hit.url for hit in hits))
