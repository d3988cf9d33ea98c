"""Shared fixtures and strict test-accounting hooks."""

from __future__ import annotations

import os
from collections import Counter

import pytest

_ENV_PREFIXES = ("ACQUIRE_", "SEARXNG_")

# Outcomes that are not allowed to pass silently.
_COUNTS: Counter = Counter()


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Hide the developer's engine settings so defaults apply in every test."""
    for name in list(os.environ):
        if name.startswith(_ENV_PREFIXES):
            monkeypatch.delenv(name)


def pytest_deselected(items):  # pragma: no cover - pytest hook
    _COUNTS["deselected"] += len(items)


def pytest_runtest_logreport(report):  # pragma: no cover - pytest hook
    if report.when not in {"setup", "call"}:
        return
    if getattr(report, "wasxfail", False):
        _COUNTS["xfailed" if report.outcome == "skipped" else "xpassed"] += 1
    elif report.outcome == "skipped":
        _COUNTS["skipped"] += 1


def pytest_sessionfinish(session, exitstatus):  # pragma: no cover - pytest hook
    violations = [f"{name}={count}" for name, count in sorted(_COUNTS.items()) if count]
    if not violations:
        return

    reporter = session.config.pluginmanager.get_plugin("terminalreporter")
    if reporter:
        reporter.write_sep(
            "=", f"Strict guard failed: tests did not all run ({', '.join(violations)})"
        )
    session.exitstatus = 1
