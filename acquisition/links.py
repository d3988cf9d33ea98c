"""Link extraction and classification for the documentation crawler.

Pure functions, no I/O. :func:`extract_links` pulls candidate hyperlinks out
of fetched page text (markdown links and raw ``href`` attributes), and
:func:`is_worth_following` decides whether a candidate looks like another
documentation page on the same host.
"""

from __future__ import annotations

import re
from typing import List, Optional
from urllib.parse import urljoin, urlsplit

# Path fragments that strongly suggest documentation content.
DOC_PATH_KEYWORDS: tuple[str, ...] = (
    "/api",
    "/reference",
    "/guide",
    "/tutorial",
    "/docs",
    "/documentation",
    "/getting-started",
    "/quickstart",
    "/examples",
    "/configuration",
    "/setup",
    "/install",
    "/sdk",
    "/cli",
    "/commands",
    "/overview",
    "/introduction",
    "/concepts",
    "/basics",
    "/advanced",
    "/authentication",
    "/models",
    "/actions",
    "/connections",
    "/deployment",
)

# Images, stylesheets, scripts, data files, archives, media and fonts.
EXCLUDED_EXTENSIONS: tuple[str, ...] = (
    ".svg", ".png", ".jpg", ".jpeg", ".gif", ".ico", ".webp",
    ".css", ".js", ".json", ".xml", ".pdf",
    ".zip", ".tar", ".gz",
    ".mp4", ".mp3",
    ".woff", ".woff2", ".ttf", ".eot",
)

# Build output and asset directories, plus fragment/query markers.
EXCLUDED_PATTERNS: tuple[str, ...] = (
    "/.vite/",
    "/assets/",
    "/static/",
    "/_next/",
    "/images/",
    "/fonts/",
    "/media/",
    "#",
    "?",
)

# Tried at a site's origin when its pages yield too few followable links.
COMMON_DOC_PATHS: tuple[str, ...] = (
    "/guides",
    "/guide",
    "/api",
    "/reference",
    "/docs",
    "/documentation",
    "/getting-started",
    "/quickstart",
    "/tutorial",
    "/tutorials",
    "/examples",
    "/concepts",
    "/basics",
    "/overview",
    "/introduction",
    "/authentication",
    "/configuration",
    "/installation",
    "/setup",
)

MIN_SLUG_LENGTH = 3
MAX_SLUG_LENGTH = 49

MARKDOWN_LINK = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
HREF_ATTRIBUTE = re.compile(r"""href=["']([^"']+)["']""")

_IGNORED_PREFIXES = ("#", "javascript:", "mailto:", "tel:", "data:")


def _normalize_host(host: Optional[str]) -> str:
    """Lowercase a hostname and drop any port."""
    if not host:
        return ""
    return host.split(":")[0].lower()


def _origin(url: str) -> Optional[str]:
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return None
    return f"{parts.scheme}://{parts.netloc}"


def _absolutize(raw: str, origin: str) -> Optional[str]:
    # Markdown links may carry a title: [text](/path "Title")
    parts = raw.strip().split()
    if not parts:
        return None
    target = parts[0].strip("<>")
    if not target or target.lower().startswith(_IGNORED_PREFIXES):
        return None
    if target.startswith(("http://", "https://")):
        return target
    if target.startswith("//"):
        return f"{urlsplit(origin).scheme}:{target}"
    if re.match(r"^[a-zA-Z][a-zA-Z0-9+.-]*:", target):
        return None
    return urljoin(origin + "/", target)


def extract_links(text: str, base_url: str) -> List[str]:
    """Return absolute http(s) links found in ``text``, de-duplicated.

    Relative targets are resolved against the origin of ``base_url``. The
    result keeps first-seen order.
    """
    origin = _origin(base_url)
    if origin is None or not text:
        return []

    candidates = [match.group(2) for match in MARKDOWN_LINK.finditer(text)]
    candidates.extend(match.group(1) for match in HREF_ATTRIBUTE.finditer(text))

    links: dict[str, None] = {}
    for raw in candidates:
        url = _absolutize(raw, origin)
        if url is not None:
            links.setdefault(url, None)
    return list(links)


def is_excluded(url: str) -> bool:
    """True for asset files and URLs carrying fragments, queries or asset dirs."""
    lowered = url.lower()
    if lowered.endswith(EXCLUDED_EXTENSIONS):
        return True
    return any(pattern in lowered for pattern in EXCLUDED_PATTERNS)


def is_same_host(url: str, other: str) -> bool:
    try:
        host = _normalize_host(urlsplit(url).netloc)
        other_host = _normalize_host(urlsplit(other).netloc)
    except ValueError:
        return False
    return bool(host) and host == other_host


def is_worth_following(candidate_url: str, source_url: str) -> bool:
    """Decide whether ``candidate_url`` (found on ``source_url``) should be crawled."""
    if not is_same_host(candidate_url, source_url):
        return False
    if is_excluded(candidate_url):
        return False

    try:
        path = urlsplit(candidate_url.lower()).path
    except ValueError:
        return False

    if any(keyword in path for keyword in DOC_PATH_KEYWORDS):
        return True

    segments = [segment for segment in path.split("/") if segment]
    if not segments:
        return False
    slug = segments[-1]
    return "." not in slug and MIN_SLUG_LENGTH <= len(slug) <= MAX_SLUG_LENGTH


def common_doc_paths(url: str) -> List[str]:
    """Well-known documentation paths rooted at the origin of ``url``."""
    origin = _origin(url)
    if origin is None:
        return []
    return [f"{origin}{path}" for path in COMMON_DOC_PATHS]
