"""Concurrent URL validation ahead of crawling.

Each URL is probed with a lightweight ``HEAD`` request (falling back to a
one-byte ranged ``GET`` when the origin rejects ``HEAD``), redirects are
followed manually up to a hop budget, and transient network errors are
retried. Timeouts are never retried.

Every terminal result, valid or not, is kept in a :class:`ValidationCache`
for a few minutes, so a URL that was just found broken is not probed again.

Example::

    validator = UrlValidator()
    results = await validator.validate_batch(urls)
    usable = [r.resolved_url for r in results if r.valid]

The validator never raises: malformed input, timeouts and network failures
are all reported as ``ValidationResult(valid=False, ...)``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from itertools import islice
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence
from urllib.parse import urljoin, urlsplit

import httpx

from .document import ErrorKind, ValidationResult
from .settings import AcquisitionSettings, load_settings

LOGGER = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; doc-acquisition/1.0; +URL validation)"

# Statuses meaning "this origin does not accept HEAD".
METHOD_FALLBACK_STATUSES = frozenset({405, 501})


@dataclass(frozen=True)
class ValidationOptions:
    """Per-call validation knobs. ``timeout`` and ``retry_backoff`` are seconds."""

    concurrency: int = 10
    timeout: float = 5.0
    max_redirects: int = 3
    retries: int = 1
    retry_backoff: float = 0.5

    @classmethod
    def from_settings(cls, settings: AcquisitionSettings) -> "ValidationOptions":
        return cls(
            concurrency=settings.validation_concurrency,
            timeout=settings.validation_timeout,
            max_redirects=settings.max_redirects,
            retries=settings.retries,
            retry_backoff=settings.retry_backoff,
        )


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class _CacheEntry:
    result: ValidationResult
    expires_at: float


class ValidationCache:
    """Short-lived store of validation results keyed by the exact URL string.

    Expired entries are dropped lazily on read and in bulk by :meth:`prune`.
    When full, the oldest-inserted entries go first; reads do not refresh an
    entry's position.
    """

    def __init__(
        self,
        ttl: float = 300.0,
        max_size: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self.max_size = max(1, max_size)
        self._clock = clock
        self._entries: Dict[str, _CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, url: object) -> bool:
        entry = self._entries.get(url) if isinstance(url, str) else None
        return entry is not None and entry.expires_at > self._clock()

    def get(self, url: str) -> Optional[ValidationResult]:
        entry = self._entries.get(url)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._entries[url]
            return None
        return entry.result

    def put(self, url: str, result: ValidationResult) -> None:
        self._entries.pop(url, None)
        if len(self._entries) >= self.max_size:
            self.prune()
        self._entries[url] = _CacheEntry(result, self._clock() + self.ttl)

    def sweep(self) -> int:
        """Remove expired entries and return how many were dropped."""
        now = self._clock()
        expired = [url for url, entry in self._entries.items() if entry.expires_at <= now]
        for url in expired:
            del self._entries[url]
        return len(expired)

    def prune(self) -> int:
        """Sweep, then evict oldest entries until the store is under capacity."""
        removed = self.sweep()
        overflow = len(self._entries) - (self.max_size - 1)
        if overflow > 0:
            for url in list(islice(self._entries, overflow)):
                del self._entries[url]
            LOGGER.warning(
                "Validation cache size limit reached, removed %d oldest entries",
                overflow,
            )
            removed += overflow
        return removed

    def clear(self) -> None:
        self._entries.clear()


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class _Probe:
    """Raw outcome of probing one hop."""

    status_code: int = 0
    location: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    error: Optional[str] = None


class UrlValidator:
    """Probe URLs for reachability, following redirects by hand.

    Args:
        cache: Result store shared across calls; a private one is created
            when omitted.
        client: ``httpx.AsyncClient`` to send probes through. When omitted a
            client is opened for the duration of each call.
        options: Defaults used when a call does not pass its own options.
        sleep: Awaitable used for retry backoff (patched in tests).
    """

    def __init__(
        self,
        *,
        cache: Optional[ValidationCache] = None,
        client: Optional[httpx.AsyncClient] = None,
        options: Optional[ValidationOptions] = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self.cache = cache if cache is not None else ValidationCache()
        self.options = options or ValidationOptions()
        self._client = client
        self._sleep = sleep

    async def validate_one(
        self, url: str, options: Optional[ValidationOptions] = None
    ) -> ValidationResult:
        """Validate a single URL. Never raises."""
        opts = options or self.options
        async with self._session() as client:
            return await self._validate(client, url, opts)

    async def validate_batch(
        self, urls: Sequence[str], options: Optional[ValidationOptions] = None
    ) -> List[ValidationResult]:
        """Validate ``urls`` in sequential chunks of ``options.concurrency``.

        Members of a chunk run concurrently and the whole chunk settles before
        the next one starts. Output order matches input order.
        """
        opts = options or self.options
        self.cache.prune()

        if not urls:
            return []

        chunk_size = max(1, opts.concurrency)
        LOGGER.info("Checking %d URLs (%d concurrent)", len(urls), chunk_size)
        started = time.monotonic()

        results: List[ValidationResult] = []
        async with self._session() as client:
            for start in range(0, len(urls), chunk_size):
                chunk = urls[start : start + chunk_size]
                results.extend(
                    await asyncio.gather(
                        *(self._validate(client, url, opts) for url in chunk)
                    )
                )

        _log_summary(results, time.monotonic() - started)
        return results

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(follow_redirects=False) as client:
            yield client

    async def _validate(
        self, client: httpx.AsyncClient, url: str, opts: ValidationOptions
    ) -> ValidationResult:
        cached = self.cache.get(url)
        if cached is not None:
            return cached

        try:
            result = await self._resolve(client, url, opts)
        except Exception as exc:
            LOGGER.exception("Unexpected error validating %s", url)
            result = _failure(url, 0, ErrorKind.network, str(exc) or type(exc).__name__)

        self.cache.put(url, result)
        return result

    async def _resolve(
        self, client: httpx.AsyncClient, url: str, opts: ValidationOptions
    ) -> ValidationResult:
        if not _is_well_formed(url):
            return _failure(url, 0, ErrorKind.malformed_url, "Malformed URL")

        chain = [url]
        hops_remaining = opts.max_redirects
        share_with_hops = True

        while True:
            current = chain[-1]
            terminal: Optional[ValidationResult] = None
            if current != url:
                terminal = self.cache.get(current)
            if terminal is not None:
                break

            probe = await self._probe(client, current, opts)
            if probe.error_kind is not None:
                terminal = _failure(
                    current, probe.status_code, probe.error_kind, probe.error
                )
                break

            status = probe.status_code
            if 300 <= status < 400:
                if not probe.location:
                    terminal = _failure(
                        current, status, ErrorKind.redirect,
                        "Redirect with no Location header",
                    )
                    break
                if hops_remaining <= 0:
                    terminal = _failure(
                        current, status, ErrorKind.redirect, "Too many redirects"
                    )
                    # The overflow depends on this call's budget, not on the hops.
                    share_with_hops = False
                    break
                hops_remaining -= 1
                chain.append(_resolve_location(current, probe.location))
                continue

            if 200 <= status < 300:
                terminal = ValidationResult(
                    url=current, valid=True, status_code=status, checked_at=time.time()
                )
            else:
                terminal = _failure(current, status, ErrorKind.http_status, f"HTTP {status}")
            break

        if share_with_hops:
            for hop in chain[1:]:
                if hop != url and self.cache.get(hop) is None:
                    self.cache.put(hop, _rebase(terminal, hop))

        return _rebase(terminal, url)

    async def _probe(
        self, client: httpx.AsyncClient, url: str, opts: ValidationOptions
    ) -> _Probe:
        last_error = "Request failed"
        for attempt in range(opts.retries + 1):
            try:
                response = await self._send(client, "HEAD", url, opts.timeout)
                if response.status_code in METHOD_FALLBACK_STATUSES:
                    LOGGER.debug("HEAD not supported for %s, trying ranged GET", url)
                    response = await self._send(
                        client, "GET", url, opts.timeout, ranged=True
                    )
                return _Probe(
                    status_code=response.status_code,
                    location=response.headers.get("location"),
                )
            except (asyncio.TimeoutError, httpx.TimeoutException):
                return _Probe(error_kind=ErrorKind.timeout, error="Request timeout")
            except (httpx.InvalidURL, httpx.UnsupportedProtocol) as exc:
                return _Probe(
                    error_kind=ErrorKind.malformed_url, error=f"Malformed URL: {exc}"
                )
            except httpx.RequestError as exc:
                last_error = f"Network error: {str(exc) or type(exc).__name__}"
                if attempt < opts.retries:
                    LOGGER.debug(
                        "Retrying %s after %s (attempt %d/%d)",
                        url,
                        last_error,
                        attempt + 1,
                        opts.retries,
                    )
                    await self._sleep(opts.retry_backoff)
        return _Probe(error_kind=ErrorKind.network, error=last_error)

    @staticmethod
    async def _send(
        client: httpx.AsyncClient,
        method: str,
        url: str,
        timeout: float,
        *,
        ranged: bool = False,
    ) -> httpx.Response:
        headers = {"User-Agent": USER_AGENT}
        if ranged:
            headers["Range"] = "bytes=0-0"
        request = client.build_request(method, url, headers=headers, timeout=timeout)
        response = await asyncio.wait_for(client.send(request, stream=True), timeout)
        await response.aclose()
        return response


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _failure(
    url: str, status_code: int, kind: ErrorKind, error: Optional[str]
) -> ValidationResult:
    return ValidationResult(
        url=url,
        valid=False,
        status_code=status_code,
        checked_at=time.time(),
        error_kind=kind,
        error=error,
    )


def _rebase(terminal: ValidationResult, url: str) -> ValidationResult:
    """Re-express a chain's terminal outcome as the result for ``url``."""
    final_url = terminal.resolved_url
    return replace(
        terminal,
        url=url,
        final_url=final_url if final_url != url else None,
        checked_at=time.time(),
    )


def _is_well_formed(url: str) -> bool:
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError, ValueError):
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.host)


def _resolve_location(url: str, location: str) -> str:
    """Resolve a ``Location`` header against the origin of ``url``."""
    parts = urlsplit(url)
    return urljoin(f"{parts.scheme}://{parts.netloc}/", location.strip())


def _log_summary(results: Sequence[ValidationResult], duration: float) -> None:
    broken = [r for r in results if not r.valid]
    redirected = [r for r in results if r.final_url]
    LOGGER.info(
        "Results: %d valid, %d broken, %d redirected (%.0fms)",
        len(results) - len(broken),
        len(broken),
        len(redirected),
        duration * 1000,
    )
    for result in broken:
        LOGGER.info("  broken: %s -> %s", result.url, result.describe())
    for result in redirected:
        LOGGER.info("  redirected: %s -> %s", result.url, result.final_url)


def describe_failures(results: Sequence[ValidationResult], sample: int = 5) -> str:
    """Summarise failed validations, naming up to ``sample`` of them."""
    failed = [r for r in results if not r.valid]
    if not results:
        return "No URLs to validate"
    if not failed:
        return f"All {len(results)} URLs are valid"

    if len(failed) == len(results):
        header = f"All {len(results)} URLs failed validation:"
    else:
        header = f"{len(failed)} of {len(results)} URLs failed validation:"
    lines = [header]
    lines.extend(f"  {r.url} -> {r.describe()}" for r in failed[:sample])
    if len(failed) > sample:
        lines.append(f"  ... and {len(failed) - sample} more")
    return "\n".join(lines)


async def validate_urls_async(
    urls: Sequence[str],
    *,
    cache: Optional[ValidationCache] = None,
    client: Optional[httpx.AsyncClient] = None,
    **overrides: object,
) -> List[ValidationResult]:
    """Validate ``urls`` with settings from the environment.

    Keyword overrides (``concurrency``, ``timeout``, ``max_redirects``,
    ``retries``, ``retry_backoff``) replace the configured defaults.
    """
    settings = load_settings()
    options = replace(ValidationOptions.from_settings(settings), **overrides)
    if cache is None:
        cache = ValidationCache(
            ttl=settings.validation_cache_ttl, max_size=settings.validation_cache_size
        )
    validator = UrlValidator(cache=cache, client=client, options=options)
    return await validator.validate_batch(list(urls))


def validate_urls(urls: Sequence[str], **overrides: object) -> List[ValidationResult]:
    """Synchronous wrapper for :func:`validate_urls_async`."""
    return asyncio.run(validate_urls_async(urls, **overrides))
