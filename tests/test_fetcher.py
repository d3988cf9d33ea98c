"""Tests for acquisition.fetcher module."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from crawl4ai.models import CrawlResult, MarkdownGenerationResult

from acquisition import fetcher as fetcher_module
from acquisition.document import ScrapedDocument
from acquisition.fetcher import Crawl4AIFetcher, FetchError, select_usable
from acquisition.settings import AcquisitionSettings

ARTICLE = "Configure the client once and reuse it for every request you make. " * 30
PAYWALLED = ARTICLE + " Subscription required. Paywall."


def _doc(url: str, text: str = ARTICLE, **kwargs) -> ScrapedDocument:
    return ScrapedDocument(
        url=url,
        text_content=text,
        fetch_succeeded=kwargs.pop("fetch_succeeded", True),
        fetched_at="2026-01-01T00:00:00+00:00",
        **kwargs,
    )


def _crawl_result(text: str, success: bool = True) -> CrawlResult:
    result = MagicMock(spec=CrawlResult)
    result.success = success
    result.error_message = None if success else "net::ERR_FAILED"
    result.status_code = 200
    result.metadata = {}
    md = MagicMock(spec=MarkdownGenerationResult)
    md.fit_markdown = text
    md.raw_markdown = text
    result.markdown = md
    return result


class TestSelectUsable:
    def test_orders_success_low_value_failed(self):
        good = _doc("https://a.com/good")
        low = _doc("https://a.com/low", fetch_succeeded=False, is_low_value=True)
        bad = _doc("https://a.com/bad", "", fetch_succeeded=False, error="boom")
        assert select_usable([bad, low, good]) == [good, low, bad]

    def test_promotes_substantial_low_value_when_nothing_succeeded(self):
        low = _doc("https://a.com/low", PAYWALLED, fetch_succeeded=False, is_low_value=True)
        short = _doc("https://a.com/short", "tiny", fetch_succeeded=False, is_low_value=True)
        usable = select_usable([low, short])
        assert len(usable) == 1
        assert usable[0].url == "https://a.com/low"
        assert usable[0].fetch_succeeded
        assert usable[0].fallback_applied
        assert usable[0].is_low_value

    def test_raises_when_nothing_usable(self):
        bad = _doc("https://a.com/bad", "", fetch_succeeded=False, error="boom")
        with pytest.raises(FetchError) as exc_info:
            select_usable([bad])
        assert exc_info.value.urls == ["https://a.com/bad"]


class DummyCrawler:
    """Stand-in for AsyncWebCrawler that serves canned results per URL."""

    pages: dict = {}
    calls: list = []

    def __init__(self, config=None):
        self.config = config

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def arun(self, url, config):
        DummyCrawler.calls.append(url)
        page = DummyCrawler.pages[url]
        if isinstance(page, BaseException):
            raise page
        if page == "slow":
            await asyncio.sleep(1)
        return [page]


@pytest.fixture
def dummy_crawler(monkeypatch: pytest.MonkeyPatch):
    DummyCrawler.pages = {}
    DummyCrawler.calls = []
    monkeypatch.setattr(fetcher_module, "AsyncWebCrawler", DummyCrawler)
    return DummyCrawler


def _fetcher(**kwargs) -> Crawl4AIFetcher:
    kwargs.setdefault("run_config", MagicMock())
    kwargs.setdefault("browser_config", MagicMock())
    kwargs.setdefault("sleep", AsyncMock())
    return Crawl4AIFetcher(**kwargs)


class TestCrawl4AIFetcher:
    @pytest.mark.asyncio
    async def test_empty(self, dummy_crawler):
        assert await _fetcher().fetch_many([]) == []
        assert dummy_crawler.calls == []

    @pytest.mark.asyncio
    async def test_fetches_in_batches_with_delay(self, dummy_crawler):
        urls = [f"https://a.com/{i}" for i in range(5)]
        dummy_crawler.pages = {url: _crawl_result(ARTICLE) for url in urls}
        sleep = AsyncMock()

        docs = await _fetcher(concurrency=2, batch_delay=0.3, sleep=sleep).fetch_many(urls)

        assert [d.url for d in docs] == urls
        assert all(d.fetch_succeeded for d in docs)
        # Three batches, two pauses between them.
        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.3)

    @pytest.mark.asyncio
    async def test_per_page_errors_become_failed_documents(self, dummy_crawler):
        dummy_crawler.pages = {
            "https://a.com/ok": _crawl_result(ARTICLE),
            "https://a.com/boom": RuntimeError("browser crashed"),
            "https://a.com/fail": _crawl_result("", success=False),
        }
        docs = await _fetcher().fetch_many(list(dummy_crawler.pages))

        by_url = {d.url: d for d in docs}
        assert by_url["https://a.com/ok"].fetch_succeeded
        assert by_url["https://a.com/boom"].error == "browser crashed"
        assert by_url["https://a.com/fail"].error == "net::ERR_FAILED"

    @pytest.mark.asyncio
    async def test_page_timeout(self, dummy_crawler):
        dummy_crawler.pages = {
            "https://a.com/ok": _crawl_result(ARTICLE),
            "https://a.com/slow": "slow",
        }
        docs = await _fetcher(page_timeout=0.05).fetch_many(list(dummy_crawler.pages))

        slow = next(d for d in docs if d.url == "https://a.com/slow")
        assert not slow.fetch_succeeded
        assert "timed out" in slow.error

    @pytest.mark.asyncio
    async def test_all_failed_raises(self, dummy_crawler):
        dummy_crawler.pages = {"https://a.com/boom": RuntimeError("down")}
        with pytest.raises(FetchError):
            await _fetcher().fetch_many(["https://a.com/boom"])

    @pytest.mark.asyncio
    async def test_low_value_fallback(self, dummy_crawler):
        dummy_crawler.pages = {"https://a.com/paywall": _crawl_result(PAYWALLED)}
        docs = await _fetcher().fetch_many(["https://a.com/paywall"])
        assert docs[0].fallback_applied
        assert docs[0].is_low_value

    def test_from_settings(self):
        settings = AcquisitionSettings(
            fetch_concurrency=3, fetch_timeout=20.0, fetch_batch_delay=0.0
        )
        fetcher = Crawl4AIFetcher.from_settings(settings)
        assert fetcher.concurrency == 3
        assert fetcher.page_timeout == 20.0
        assert fetcher.batch_delay == 0.0
