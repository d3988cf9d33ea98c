"""Environment-driven settings for the acquisition engine.

Environment variables are read when :func:`load_settings` is called, not at
import time, so tests can monkeypatch them and late ``.env`` loading works.

Recognised variables (all optional)::

    ACQUIRE_VALIDATION_CONCURRENCY   parallel probes per batch (10)
    ACQUIRE_VALIDATION_TIMEOUT       per-probe deadline in seconds (5)
    ACQUIRE_MAX_REDIRECTS            redirect hops to follow (3)
    ACQUIRE_RETRIES                  retries for network errors (1)
    ACQUIRE_VALIDATION_CACHE_TTL     validation cache TTL in seconds (300)
    ACQUIRE_CACHE_DIR                topic cache directory (.cache)
    ACQUIRE_CACHE_TTL_HOURS          topic cache TTL in hours (24)
    ACQUIRE_MAX_LINKS_PER_SOURCE     discovered links kept per page (8)
    ACQUIRE_MAX_TOTAL_URLS           crawl-wide URL ceiling (25)
    ACQUIRE_FETCH_CONCURRENCY        parallel page fetches (5)
    ACQUIRE_FETCH_TIMEOUT            per-page fetch deadline in seconds (60)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Optional, TypeVar

from dotenv import load_dotenv

LOGGER = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "doc-acquisition"
CONFIG_ENV_FILE = CONFIG_DIR / ".env"

T = TypeVar("T")


@dataclass(frozen=True)
class AcquisitionSettings:
    """Tunables for validation, crawling and caching."""

    validation_concurrency: int = 10
    validation_timeout: float = 5.0
    max_redirects: int = 3
    retries: int = 1
    retry_backoff: float = 0.5
    validation_cache_ttl: float = 300.0
    validation_cache_size: int = 1000
    cache_dir: Path = Path(".cache")
    cache_ttl_hours: float = 24.0
    max_seed_urls: int = 5
    max_links_per_source: int = 8
    max_total_urls: int = 25
    fetch_concurrency: int = 5
    fetch_timeout: float = 60.0
    fetch_batch_delay: float = 0.5
    search_results: int = 15


def _read(
    environ: Mapping[str, str],
    name: str,
    convert: Callable[[str], T],
    default: T,
    minimum: Optional[float] = None,
) -> T:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = convert(raw.strip())
    except ValueError:
        LOGGER.warning("Ignoring invalid %s=%r; using %s", name, raw, default)
        return default
    if minimum is not None and value < minimum:  # type: ignore[operator]
        LOGGER.warning("Ignoring %s=%r below minimum %s", name, raw, minimum)
        return default
    return value


def load_settings(environ: Optional[Mapping[str, str]] = None) -> AcquisitionSettings:
    """Build settings from ``environ`` (defaults to ``os.environ``)."""
    env = os.environ if environ is None else environ
    defaults = AcquisitionSettings()
    return AcquisitionSettings(
        validation_concurrency=_read(
            env, "ACQUIRE_VALIDATION_CONCURRENCY", int, defaults.validation_concurrency, 1
        ),
        validation_timeout=_read(
            env, "ACQUIRE_VALIDATION_TIMEOUT", float, defaults.validation_timeout, 0.01
        ),
        max_redirects=_read(env, "ACQUIRE_MAX_REDIRECTS", int, defaults.max_redirects, 0),
        retries=_read(env, "ACQUIRE_RETRIES", int, defaults.retries, 0),
        validation_cache_ttl=_read(
            env, "ACQUIRE_VALIDATION_CACHE_TTL", float, defaults.validation_cache_ttl, 0
        ),
        cache_dir=_read(env, "ACQUIRE_CACHE_DIR", Path, defaults.cache_dir),
        cache_ttl_hours=_read(
            env, "ACQUIRE_CACHE_TTL_HOURS", float, defaults.cache_ttl_hours, 0
        ),
        max_links_per_source=_read(
            env, "ACQUIRE_MAX_LINKS_PER_SOURCE", int, defaults.max_links_per_source, 0
        ),
        max_total_urls=_read(env, "ACQUIRE_MAX_TOTAL_URLS", int, defaults.max_total_urls, 1),
        fetch_concurrency=_read(
            env, "ACQUIRE_FETCH_CONCURRENCY", int, defaults.fetch_concurrency, 1
        ),
        fetch_timeout=_read(env, "ACQUIRE_FETCH_TIMEOUT", float, defaults.fetch_timeout, 1),
    )


def load_env_file(
    *,
    cwd: Optional[Path] = None,
    load_env: Optional[Callable[[Path], bool]] = None,
) -> Optional[Path]:
    """Load ``.env`` from the working directory, else from the user config dir.

    Returns the file that was loaded, if any.
    """
    if load_env is None:
        load_env = load_dotenv

    local_env = (cwd or Path.cwd()) / ".env"
    for candidate in (local_env, CONFIG_ENV_FILE):
        if candidate.is_file():
            load_env(candidate)
            return candidate
    return None
