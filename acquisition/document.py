"""Data structures shared by the validator, crawler and result cache."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorKind(str, Enum):
    """Why a URL failed validation."""

    network = "network"
    timeout = "timeout"
    http_status = "http_status"
    redirect = "redirect"
    malformed_url = "malformed_url"


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of probing one URL.

    ``final_url`` is only set when the redirect chain ended somewhere other
    than ``url``. ``status_code`` is 0 when no HTTP response was obtained.
    """

    url: str
    valid: bool
    status_code: int
    checked_at: float
    final_url: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    error: Optional[str] = None

    @property
    def resolved_url(self) -> str:
        return self.final_url or self.url

    def describe(self) -> str:
        status = str(self.status_code) if self.status_code else "FAIL"
        if self.error:
            return f"{status} ({self.error})"
        return status


@dataclass(frozen=True, slots=True)
class ScrapedDocument:
    """Full-content fetch of a single page, as produced by a Fetcher."""

    url: str
    text_content: str
    fetch_succeeded: bool
    fetched_at: str
    is_low_value: bool = False
    fallback_applied: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "text_content": self.text_content,
            "fetch_succeeded": self.fetch_succeeded,
            "fetched_at": self.fetched_at,
            "is_low_value": self.is_low_value,
            "fallback_applied": self.fallback_applied,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScrapedDocument":
        return cls(
            url=str(data["url"]),
            text_content=str(data.get("text_content") or ""),
            fetch_succeeded=bool(data.get("fetch_succeeded")),
            fetched_at=str(data.get("fetched_at") or ""),
            is_low_value=bool(data.get("is_low_value", False)),
            fallback_applied=bool(data.get("fallback_applied", False)),
            error=data.get("error"),
        )


@dataclass
class CrawlResult:
    """Documents kept by a crawl plus the metadata callers surface."""

    documents: List[ScrapedDocument] = field(default_factory=list)
    low_value_urls: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    stats: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class TopicCacheRecord:
    """Everything fetched for one topic, stored as a single unit."""

    topic: str
    source_urls: List[str]
    documents: List[ScrapedDocument]
    cached_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "topic": self.topic,
            "source_urls": list(self.source_urls),
            "documents": [doc.to_dict() for doc in self.documents],
            "cached_at": self.cached_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TopicCacheRecord":
        return cls(
            topic=str(data["topic"]),
            source_urls=[str(url) for url in data.get("source_urls", [])],
            documents=[ScrapedDocument.from_dict(d) for d in data.get("documents", [])],
            cached_at=datetime.fromisoformat(data["cached_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
        )
