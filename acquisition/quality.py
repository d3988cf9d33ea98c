"""Heuristic scoring of fetched pages that are likely paywalled or blocked."""

from __future__ import annotations

import re
from typing import Dict, Tuple

LOW_VALUE_THRESHOLD = 50
MIN_CONTENT_LENGTH = 300
SUBSTANTIAL_CONTENT_LENGTH = 1000
DENSITY_MIN_LENGTH = 200

# tier -> (keywords, weight per occurrence, max occurrences counted, min occurrences)
KEYWORD_TIERS: Dict[str, Tuple[Tuple[str, ...], int, int, int]] = {
    "high": (
        ("subscription required", "access denied", "authentication required", "paywall"),
        30,
        2,
        1,
    ),
    "medium": (
        ("premium", "sign up to read", "create an account", "subscribe to continue"),
        15,
        2,
        1,
    ),
    "low": (
        ("sign in", "signin", "login", "please log in", "subscribe"),
        10,
        1,
        2,
    ),
}


def _count(keyword: str, text: str) -> int:
    return len(re.findall(re.escape(keyword), text))


def low_value_score(content: str) -> int:
    """Score 0-100; higher means more likely paywalled, blocked or empty."""
    lowered = content.lower()
    length = len(content)
    score = 0

    if length < MIN_CONTENT_LENGTH:
        score += 40
    elif length < SUBSTANTIAL_CONTENT_LENGTH:
        score += 15

    total_matches = 0
    for keywords, weight, counted, required in KEYWORD_TIERS.values():
        for keyword in keywords:
            occurrences = _count(keyword, lowered)
            total_matches += occurrences
            if occurrences >= required:
                score += weight * min(occurrences, counted)

    if length > DENSITY_MIN_LENGTH and total_matches / length * 100 > 2:
        score += 20

    return min(score, 100)


def is_low_value(content: str) -> bool:
    return low_value_score(content) >= LOW_VALUE_THRESHOLD
