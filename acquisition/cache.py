"""File-backed cache of crawl results keyed by topic.

One JSON file per topic lives under the cache directory, named after the MD5
of the normalised topic. Records expire 24 hours after they are written and
are replaced wholesale on every write.

The cache is advisory: read and write failures are logged and treated as a
miss or a skipped write, never raised.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional, Sequence

from .document import ScrapedDocument, TopicCacheRecord

LOGGER = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(hours=24)

# A cached record is only worth reusing above these thresholds.
MIN_CACHED_SOURCES = 2
MIN_CACHED_CHARS = 2000


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_topic(topic: str) -> str:
    return " ".join(topic.casefold().split())


def topic_cache_key(topic: str) -> str:
    """Fixed-width key for ``topic``; case and spacing do not matter."""
    return hashlib.md5(normalize_topic(topic).encode("utf-8")).hexdigest()


def is_sufficient(record: TopicCacheRecord) -> bool:
    successful = [d for d in record.documents if d.fetch_succeeded]
    total_chars = sum(len(d.text_content) for d in successful)
    return len(successful) >= MIN_CACHED_SOURCES and total_chars >= MIN_CACHED_CHARS


class TopicCache:
    """Topic -> :class:`TopicCacheRecord` store on the local filesystem."""

    def __init__(
        self,
        cache_dir: Path | str = ".cache",
        *,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.cache_dir = Path(cache_dir)
        self.ttl = ttl
        self._clock = clock

    def path_for(self, topic: str) -> Path:
        return self.cache_dir / f"{topic_cache_key(topic)}.json"

    def get(self, topic: str) -> Optional[TopicCacheRecord]:
        """Return the live record for ``topic``, or ``None``.

        Expired records are deleted as a side effect.
        """
        path = self.path_for(topic)
        if not path.is_file():
            LOGGER.info("Cache MISS: %s", path.name)
            return None

        try:
            record = TopicCacheRecord.from_dict(
                json.loads(path.read_text(encoding="utf-8"))
            )
        except (OSError, ValueError, KeyError, TypeError) as exc:
            LOGGER.error("Error reading cache %s: %s", path, exc)
            return None

        if record.is_expired(self._clock()):
            LOGGER.info("Cache EXPIRED: removing %s", path.name)
            try:
                path.unlink()
            except OSError as exc:
                LOGGER.warning("Could not remove expired cache %s: %s", path, exc)
            return None

        LOGGER.info(
            "Cache HIT: %s (%d documents, %d chars)",
            path.name,
            len(record.documents),
            sum(len(d.text_content) for d in record.documents),
        )
        return record

    def put(
        self,
        topic: str,
        urls: Sequence[str],
        documents: Sequence[ScrapedDocument],
    ) -> Optional[TopicCacheRecord]:
        """Replace whatever is cached for ``topic``.

        Returns the written record, or ``None`` when the write failed.
        """
        cached_at = self._clock()
        record = TopicCacheRecord(
            topic=topic,
            source_urls=list(urls),
            documents=list(documents),
            cached_at=cached_at,
            expires_at=cached_at + self.ttl,
        )
        path = self.path_for(topic)
        payload = json.dumps(record.to_dict(), indent=2, ensure_ascii=False)

        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.cache_dir, prefix=".tmp-", suffix=".json"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            LOGGER.error("Error writing cache %s: %s", path, exc)
            return None

        LOGGER.info(
            "Cache saved: %s (%d documents, %.1f KB)",
            path.name,
            len(record.documents),
            len(payload.encode("utf-8")) / 1024,
        )
        return record

    def invalidate_all(self) -> int:
        """Delete every cached record and return how many were removed."""
        if not self.cache_dir.is_dir():
            return 0
        removed = 0
        for path in self.cache_dir.glob("*.json"):
            try:
                path.unlink()
                removed += 1
            except OSError as exc:
                LOGGER.error("Error clearing cache %s: %s", path, exc)
        LOGGER.info("Cleared %d cached topics", removed)
        return removed
