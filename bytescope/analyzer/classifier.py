"""Map extracted selectors to known functions and token standards."""

from __future__ import annotations

from collections import Counter

from bytescope.analyzer.signatures import KNOWN_SIGNATURES
from bytescope.core.types import Category, DetectedFunction

# Minimum distinct matches per category for a standard to be claimed
STANDARD_THRESHOLDS: dict[Category, int] = {
    Category.ERC20: 5,
    Category.ERC721: 4,
}


def sort_by_category(functions: list[DetectedFunction]) -> list[DetectedFunction]:
    """Stable sort by category name."""
    return sorted(functions, key=lambda f: f.category.value)


def identify_functions(selectors: list[str]) -> list[DetectedFunction]:
    """Look selectors up in the known tables, dropping unknown ones."""
    functions: list[DetectedFunction] = []
    for selector in selectors:
        info = KNOWN_SIGNATURES.get(selector.lower())
        if info:
            functions.append(DetectedFunction(
                signature=selector.lower(),
                name=info.name,
                category=info.category,
            ))
    return sort_by_category(functions)


def identify_standards(functions: list[DetectedFunction]) -> list[str]:
    """Claim ERC-20 / ERC-721 conformance from per-category match counts."""
    distinct = {f.signature: f.category for f in functions}
    counts = Counter(distinct.values())
    return [
        category.value
        for category, threshold in STANDARD_THRESHOLDS.items()
        if counts[category] >= threshold
    ]
