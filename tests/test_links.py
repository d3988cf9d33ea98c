"""Tests for acquisition.links module."""

from __future__ import annotations

import pytest

from acquisition.links import (
    COMMON_DOC_PATHS,
    _normalize_host,
    common_doc_paths,
    extract_links,
    is_excluded,
    is_same_host,
    is_worth_following,
)

SOURCE = "https://docs.example.com/start"


class TestNormalizeHost:
    def test_lowercases_and_strips_port(self):
        assert _normalize_host("Docs.Example.COM:8443") == "docs.example.com"

    def test_empty(self):
        assert _normalize_host(None) == ""
        assert _normalize_host("") == ""


class TestExtractLinks:
    def test_markdown_links_resolved_against_origin(self):
        text = "See [API](/api) and [Guide](guide/intro) and [X](https://other.com/x)."
        assert extract_links(text, SOURCE) == [
            "https://docs.example.com/api",
            "https://docs.example.com/guide/intro",
            "https://other.com/x",
        ]

    def test_href_attributes(self):
        text = '<a href="/reference">Ref</a> <a href=\'https://docs.example.com/cli\'>'
        assert extract_links(text, SOURCE) == [
            "https://docs.example.com/reference",
            "https://docs.example.com/cli",
        ]

    def test_deduplicates_in_first_seen_order(self):
        text = "[a](/api) [b](/guide) [c](/api)"
        assert extract_links(text, SOURCE) == [
            "https://docs.example.com/api",
            "https://docs.example.com/guide",
        ]

    def test_markdown_title_is_dropped(self):
        text = '[API](/api "The API")'
        assert extract_links(text, SOURCE) == ["https://docs.example.com/api"]

    def test_scheme_relative(self):
        assert extract_links("[x](//cdn.example.com/lib)", SOURCE) == [
            "https://cdn.example.com/lib"
        ]

    @pytest.mark.parametrize(
        "target",
        ["#section", "mailto:a@b.com", "javascript:void(0)", "tel:123", "ftp://x.com/f"],
    )
    def test_ignored_targets(self, target):
        assert extract_links(f"[x]({target})", SOURCE) == []

    def test_no_links(self):
        assert extract_links("plain text without links", SOURCE) == []

    def test_bad_base_url(self):
        assert extract_links("[a](/api)", "not-a-url") == []


class TestIsExcluded:
    @pytest.mark.parametrize(
        "url",
        [
            "https://a.com/logo.svg",
            "https://a.com/style.CSS",
            "https://a.com/bundle.js",
            "https://a.com/assets/page",
            "https://a.com/_next/data",
            "https://a.com/docs#install",
            "https://a.com/docs?page=2",
            "https://a.com/font.woff2",
        ],
    )
    def test_excluded(self, url):
        assert is_excluded(url)

    def test_plain_page_not_excluded(self):
        assert not is_excluded("https://a.com/docs/install")


class TestIsSameHost:
    def test_port_and_case_ignored(self):
        assert is_same_host("https://Docs.Example.com:443/a", SOURCE)

    def test_subdomain_is_different(self):
        assert not is_same_host("https://api.example.com/a", SOURCE)


class TestIsWorthFollowing:
    @pytest.mark.parametrize(
        "url",
        [
            "https://docs.example.com/api",
            "https://docs.example.com/guide",
            "https://docs.example.com/en/reference/models",
            "https://docs.example.com/getting-started",
        ],
    )
    def test_doc_keyword_paths(self, url):
        assert is_worth_following(url, SOURCE)

    def test_slug_heuristic(self):
        assert is_worth_following("https://docs.example.com/pagination", SOURCE)

    def test_short_slug_rejected(self):
        assert not is_worth_following("https://docs.example.com/ab", SOURCE)

    def test_long_slug_rejected(self):
        slug = "x" * 50
        assert not is_worth_following(f"https://docs.example.com/{slug}", SOURCE)

    def test_dotted_slug_rejected(self):
        assert not is_worth_following("https://docs.example.com/page.html", SOURCE)

    def test_root_rejected(self):
        assert not is_worth_following("https://docs.example.com/", SOURCE)

    def test_cross_domain_rejected(self):
        assert not is_worth_following("https://other.com/x", SOURCE)

    def test_asset_rejected_even_with_keyword(self):
        assert not is_worth_following("https://docs.example.com/api/logo.png", SOURCE)

    def test_scenario_links(self):
        text = "[API](/api) [Guide](/guide) [Other](https://other.com/x)"
        followed = [
            link for link in extract_links(text, SOURCE) if is_worth_following(link, SOURCE)
        ]
        assert followed == [
            "https://docs.example.com/api",
            "https://docs.example.com/guide",
        ]


class TestCommonDocPaths:
    def test_rooted_at_origin(self):
        paths = common_doc_paths("https://docs.example.com/deep/page")
        assert len(paths) == len(COMMON_DOC_PATHS)
        assert paths[0] == "https://docs.example.com/guides"
        assert "https://docs.example.com/api" in paths
        assert all(p.startswith("https://docs.example.com/") for p in paths)

    def test_invalid_url(self):
        assert common_doc_paths("nonsense") == []
