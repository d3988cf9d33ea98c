"""Command-line interface for URL validation, crawling and topic acquisition."""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import List, Optional

from .settings import load_env_file

load_env_file()

from .cache import TopicCache
from .cli_output import (
    documents_payload,
    dump_json,
    format_documents_markdown,
    format_validation_lines,
    validation_to_dict,
    write_output,
)
from .crawler import crawl_topic_async
from .pipeline import AcquisitionError, acquire_async, wait_for_cache_writes
from .settings import load_settings
from .validator import validate_urls_async


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def _add_common_args(parser: argparse.ArgumentParser, *, output: bool = True) -> None:
    if output:
        parser.add_argument(
            "-o",
            "--output",
            type=str,
            default=None,
            help="Write output to this file instead of stdout",
        )
        parser.add_argument(
            "--json",
            action="store_true",
            dest="json_output",
            help="Output as JSON",
        )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )


def _run(coro_factory, args: argparse.Namespace) -> int:
    """Run an async command, mapping interrupts and errors to exit codes."""
    try:
        return asyncio.run(coro_factory(args))
    except KeyboardInterrupt:
        logging.info("Interrupted")
        return 130
    except Exception as exc:
        logging.error("Error: %s", exc)
        if args.verbose:
            logging.exception("Full traceback:")
        return 1


# =============================================================================
# ACQUIRE COMMAND
# =============================================================================


def _parse_acquire_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="acquire",
        description="Search, validate, crawl and cache documentation for a topic.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  # Search for a topic and crawl the results
  acquire "fastapi dependency injection"

  # Start from a known documentation URL instead of searching
  acquire --url https://docs.pydantic.dev/latest/

  # JSON output to a file
  acquire "httpx" --json -o httpx.json
""",
    )
    parser.add_argument("topic", nargs="?", default=None, help="Topic to acquire")
    parser.add_argument(
        "--url",
        action="append",
        dest="urls",
        default=None,
        help="Seed URL (repeatable); skips the search step",
    )
    _add_common_args(parser)
    args = parser.parse_args(argv)
    if not args.topic and not args.urls:
        parser.error("either a topic or --url is required")
    return args


async def _run_acquire_async(args: argparse.Namespace) -> int:
    try:
        result = await acquire_async(args.topic, urls=args.urls)
    except AcquisitionError as exc:
        logging.error("%s", exc)
        return 1
    finally:
        await wait_for_cache_writes()

    for warning in result.warnings:
        logging.warning("%s", warning)
    logging.info(
        "Acquired %d documents for %r%s",
        len(result.documents),
        result.topic,
        " (from cache)" if result.used_cache else "",
    )

    if args.json_output:
        text = dump_json(
            documents_payload(
                result.documents,
                topic=result.topic,
                low_value_urls=result.low_value_urls,
                warnings=result.warnings,
                used_cache=result.used_cache,
                source_urls=result.source_urls,
            )
        )
    else:
        text = format_documents_markdown(
            result.documents,
            low_value_urls=result.low_value_urls,
            warnings=result.warnings,
        )
    write_output(text, args.output)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for the acquire command."""
    args = _parse_acquire_args(argv)
    _setup_logging(args.verbose)
    return _run(_run_acquire_async, args)


# =============================================================================
# VALIDATE COMMAND
# =============================================================================


def _parse_validate_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    settings = load_settings()
    parser = argparse.ArgumentParser(
        prog="validate-urls",
        description="Check that URLs are reachable, following redirects.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  validate-urls https://example.com https://example.org/missing
  validate-urls https://example.com --timeout 2 --retries 0 --json
""",
    )
    parser.add_argument("urls", nargs="+", help="URL(s) to validate")
    parser.add_argument(
        "--concurrency",
        type=int,
        default=settings.validation_concurrency,
        help=f"Parallel probes per batch (default: {settings.validation_concurrency})",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=settings.validation_timeout,
        help=f"Per-probe timeout in seconds (default: {settings.validation_timeout:g})",
    )
    parser.add_argument(
        "--max-redirects",
        type=int,
        default=settings.max_redirects,
        help=f"Redirect hops to follow (default: {settings.max_redirects})",
    )
    parser.add_argument(
        "--retries",
        type=int,
        default=settings.retries,
        help=f"Retries for network errors (default: {settings.retries})",
    )
    _add_common_args(parser)
    return parser.parse_args(argv)


async def _run_validate_async(args: argparse.Namespace) -> int:
    results = await validate_urls_async(
        args.urls,
        concurrency=args.concurrency,
        timeout=args.timeout,
        max_redirects=args.max_redirects,
        retries=args.retries,
    )
    if args.json_output:
        text = dump_json([validation_to_dict(result) for result in results])
    else:
        text = format_validation_lines(results)
    write_output(text, args.output)
    return 0 if all(result.valid for result in results) else 1


def validate_main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for the validate-urls command."""
    args = _parse_validate_args(argv)
    _setup_logging(args.verbose)
    return _run(_run_validate_async, args)


# =============================================================================
# CRAWL COMMAND
# =============================================================================


def _parse_crawl_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="doc-crawl",
        description="Crawl documentation from seed URLs without validation or caching.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  doc-crawl https://docs.example.com/start --topic example
  doc-crawl https://a.example.com https://b.example.com --json -o crawl.json
""",
    )
    parser.add_argument("urls", nargs="+", help="Seed URL(s)")
    parser.add_argument(
        "--topic",
        type=str,
        default=None,
        help="Topic label for logging and output (default: first URL)",
    )
    _add_common_args(parser)
    return parser.parse_args(argv)


async def _run_crawl_async(args: argparse.Namespace) -> int:
    topic = args.topic or args.urls[0]
    result = await crawl_topic_async(args.urls, topic)

    for warning in result.warnings:
        logging.warning("%s", warning)

    if args.json_output:
        text = dump_json(
            documents_payload(
                result.documents,
                topic=topic,
                low_value_urls=result.low_value_urls,
                warnings=result.warnings,
                stats=result.stats,
            )
        )
    else:
        text = format_documents_markdown(
            result.documents,
            low_value_urls=result.low_value_urls,
            warnings=result.warnings,
        )
    write_output(text, args.output)
    return 0


def crawl_main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for the doc-crawl command."""
    args = _parse_crawl_args(argv)
    _setup_logging(args.verbose)
    return _run(_run_crawl_async, args)


# =============================================================================
# CACHE COMMAND
# =============================================================================


def _parse_cache_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="acquire-cache",
        description="Inspect or clear the topic result cache.",
    )
    parser.add_argument("action", choices=["clear", "show"], help="Cache action")
    parser.add_argument(
        "topic", nargs="?", default=None, help="Topic to show (for 'show')"
    )
    parser.add_argument(
        "--cache-dir",
        type=str,
        default=None,
        help="Cache directory (default: ACQUIRE_CACHE_DIR or .cache)",
    )
    _add_common_args(parser, output=False)
    args = parser.parse_args(argv)
    if args.action == "show" and not args.topic:
        parser.error("'show' requires a topic")
    return args


def cache_main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for the acquire-cache command."""
    args = _parse_cache_args(argv)
    _setup_logging(args.verbose)

    cache = TopicCache(args.cache_dir or load_settings().cache_dir)
    if args.action == "clear":
        removed = cache.invalidate_all()
        print(f"Removed {removed} cached topic(s)")
        return 0

    record = cache.get(args.topic)
    if record is None:
        print(f"No cached record for {args.topic!r}")
        return 1
    print(dump_json({k: v for k, v in record.to_dict().items() if k != "documents"}))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
