"""Story-level and cross-beat checks.

Per-beat checks run first in role order; the cross-beat checks
(duplicate-beat, near-duplicate) are appended after them.
"""

from __future__ import annotations

from typing import Any

from beatguard.checks.beat import audit_beat
from beatguard.constraints import BEAT_ROLES, DEFAULT_CONSTRAINTS, BeatLimits
from beatguard.models import Issue, Locator

NEAR_DUPLICATE_PREFIX = 40


def _beat_texts(story: dict[str, Any]) -> list[tuple[str, str]]:
    """Return (role, trimmed text) for each role with non-empty text, in role order."""
    texts: list[tuple[str, str]] = []
    for role in BEAT_ROLES:
        node = story.get(role)
        if not isinstance(node, dict):
            continue
        text = node.get("text")
        if isinstance(text, str) and text.strip():
            texts.append((role, text.strip()))
    return texts


def find_duplicate_beats(story: dict[str, Any], *, file: str, title: str | None) -> list[Issue]:
    """Report beats whose trimmed text repeats an earlier beat's text exactly.

    Each repeat is paired with the most recent earlier occurrence, so three
    identical beats produce two pairs rather than three.
    """
    issues: list[Issue] = []
    last_seen: dict[str, str] = {}
    for role, text in _beat_texts(story):
        previous = last_seen.get(text)
        if previous is not None:
            issues.append(
                Issue(
                    "duplicate-beat",
                    f'Beats "{previous}" and "{role}" have identical text.',
                    Locator(file=file, topic=title, beat=previous, other_beat=role),
                )
            )
        last_seen[text] = role
    return issues


def find_near_duplicate_beats(
    story: dict[str, Any], *, file: str, title: str | None
) -> list[Issue]:
    """Report every beat pair sharing the same first 40 characters but differing overall.

    Texts shorter than the prefix are compared whole, which can never
    match while the full texts differ unless one is a prefix of the other.
    """
    issues: list[Issue] = []
    texts = _beat_texts(story)
    for i, (role_a, text_a) in enumerate(texts):
        for role_b, text_b in texts[i + 1 :]:
            if (
                text_a[:NEAR_DUPLICATE_PREFIX] == text_b[:NEAR_DUPLICATE_PREFIX]
                and text_a != text_b
            ):
                issues.append(
                    Issue(
                        "near-duplicate",
                        f'Beats "{role_a}" and "{role_b}" start with the same '
                        f"{NEAR_DUPLICATE_PREFIX} chars, possible copy-paste.",
                        Locator(file=file, topic=title, beat=role_a, other_beat=role_b),
                    )
                )
    return issues


def audit_story(
    story: Any,
    *,
    file: str,
    title: str | None = None,
    limits: BeatLimits | None = None,
    valid_endings: frozenset[str] | None = None,
) -> list[Issue]:
    """Run every per-beat check followed by the cross-beat checks.

    Args:
        story: The story mapping (role -> beat node) from a topic.
        file: Document label for locators.
        title: Topic title.
        limits: Active limit set; defaults to the validation tolerance.
        valid_endings: Allowed final characters; defaults to the standard set.

    Returns:
        Issues in beat role order, cross-beat issues last.
    """
    limits = limits or DEFAULT_CONSTRAINTS.tolerance
    valid_endings = valid_endings or DEFAULT_CONSTRAINTS.valid_endings

    if not isinstance(story, dict):
        return [
            Issue(
                "missing-story",
                'The "story" object is missing entirely.',
                Locator(file=file, topic=title),
            )
        ]

    issues: list[Issue] = []
    for role in BEAT_ROLES:
        issues.extend(
            audit_beat(
                role,
                story.get(role),
                limits,
                file=file,
                title=title,
                valid_endings=valid_endings,
            )
        )
    issues.extend(find_duplicate_beats(story, file=file, title=title))
    issues.extend(find_near_duplicate_beats(story, file=file, title=title))
    return issues
