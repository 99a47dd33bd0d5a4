"""Severity classification for check types.

Severity is never stored on an issue; it is looked up from the check type
every time. Unknown check types classify as medium so nothing is silently
dropped from a report.
"""

from __future__ import annotations

from typing import Literal

Severity = Literal["high", "medium", "low"]

SEVERITY_ORDER: tuple[Severity, ...] = ("high", "medium", "low")

HIGH_CHECKS = frozenset(
    {
        "missing-story",
        "missing-beat",
        "empty-text",
        "bad-ending",
        "ellipsis-ending",
        "dangling-preposition",
        "dangling-conjunction",
        "unbalanced-quotes",
        "unbalanced-parens",
        "unbalanced-ascii-quotes",
        "over-limit",
        "bad-json",
    }
)

MEDIUM_CHECKS = frozenset(
    {
        "missing-visual",
        "markup-artifacts",
        "control-chars",
        "replacement-char",
        "duplicate-beat",
        "near-duplicate",
        "template-placeholders",
        "contains-url",
    }
)

LOW_CHECKS = frozenset(
    {
        "too-short",
        "lowercase-start",
        "space-before-punct",
        "repeated-word",
        "double-space",
        "contains-newline",
        "repeated-punct",
        "title-as-text",
    }
)


def classify(check: str) -> Severity:
    """Return the severity for a check type."""
    if check in HIGH_CHECKS:
        return "high"
    if check in LOW_CHECKS:
        return "low"
    return "medium"
