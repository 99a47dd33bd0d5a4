"""Mechanical beat repairs used as reconciliation auto-rules.

An auto-rule takes the stored text and the role's length limit and returns
a replacement, or None when it does not apply. Rules are keyed by the issue
code they repair.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping

from beatguard.constraints import VALID_ENDINGS

AutoRule = Callable[[str, int], str | None]

_DANGLING_CONJUNCTION = re.compile(r"^(.*),\s*(and|or|nor|but|so)\s*([.!?;:]+)\s*$", re.IGNORECASE)


def remove_space_before_punct(text: str, max_len: int = 0) -> str | None:
    """Turn "some text ." into "some text."."""
    trimmed = text.strip()
    if len(trimmed) < 2 or trimmed[-2] != " " or trimmed[-1] not in VALID_ENDINGS:
        return None
    return trimmed[:-2].rstrip() + trimmed[-1]


def fix_dangling_conjunction(text: str, max_len: int) -> str | None:
    """Repair a list cut off at ", and." style endings.

    Appends " more" after the conjunction when that still fits; otherwise
    ends the text at the last real list item.
    """
    match = _DANGLING_CONJUNCTION.match(text.strip())
    if not match:
        return None
    prefix, conjunction, punct = match.groups()

    with_more = f"{prefix}, {conjunction.lower()} more{punct}"
    if len(with_more) <= max_len:
        return with_more

    trimmed = prefix.rstrip()
    if trimmed and trimmed[-1] in VALID_ENDINGS:
        return trimmed
    return trimmed + punct[0]


DEFAULT_AUTO_RULES: Mapping[str, AutoRule] = {
    "space-before-punct": remove_space_before_punct,
}

EXTENDED_AUTO_RULES: Mapping[str, AutoRule] = {
    **DEFAULT_AUTO_RULES,
    "dangling-conjunction": fix_dangling_conjunction,
}
