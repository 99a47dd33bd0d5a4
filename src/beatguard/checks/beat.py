"""Per-beat defect detectors.

Each detector is a pure function of a BeatContext returning a message when
it fires, or None. The regex-heavy prose heuristics are exposed as named
predicates so each can be tested on its own. The registry order is the
order issues are reported in.

Checks:
- Node level: missing-beat, empty-text (both short-circuit), missing-visual
- Text level: too-short, over-limit, bad-ending, ellipsis-ending,
  space-before-punct, unbalanced-quotes, unbalanced-parens,
  unbalanced-ascii-quotes, dangling-preposition, dangling-conjunction,
  markup-artifacts, template-placeholders, contains-url, replacement-char,
  repeated-word, lowercase-start, control-chars, contains-newline,
  double-space, repeated-punct, title-as-text
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from beatguard.constraints import VALID_ENDINGS, BeatLimits
from beatguard.models import Issue, Locator

MIN_TEXT_LENGTH = 20
TAIL_WINDOW = 10

_ARTICLE_ENDING = re.compile(r"\b(the|a|an)\s*[.!?;:]+$", re.IGNORECASE)
_LIST_PREPOSITION_ENDING = re.compile(
    r",\s*(of|with|from|between|about|into|through|within|among|beyond)\s*[.!?;:]+$",
    re.IGNORECASE,
)
_CONJUNCTION_ENDING = re.compile(r",\s*(and|or|nor|but|so)\s*[.!?;:]+$", re.IGNORECASE)
_MARKUP_CHARS = re.compile(r"[{}\[\]<>]")
_NUMERIC_FIGURE = re.compile(r"\d+[%$]")
_DOLLAR_AMOUNT = re.compile(r"\$[\d,.]+")
_PERCENTAGE = re.compile(r"\d+%")
_TAG_OPEN = re.compile(r"<[a-z/]")
_PLACEHOLDER = re.compile(r"\[[^\]]*\]|\{\{[^}]*\}\}|\{[A-Za-z_][A-Za-z0-9_]*\}")
_URL = re.compile(r"https?://")
_REPEATED_WORD_ENDING = re.compile(r"\b(\w+)\s+\1\s*[.!?;:]+$", re.IGNORECASE)
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")
_LINE_BREAKS = re.compile(r"[\n\r\t]")
_DOUBLE_SPACE = re.compile(r"\s{2,}")
_REPEATED_PUNCT = re.compile(r"(?:[!?]{2,}|\.{2,})$")


@dataclass(frozen=True)
class BeatContext:
    """Everything a detector may look at for one beat.

    Attributes:
        role: Beat role name.
        text: Trimmed beat text (never empty when detectors run).
        raw_text: Text exactly as stored.
        max_length: Active maximum length for the role.
        title: Topic title, for placeholder detection.
        valid_endings: Characters allowed as the final character.
    """

    role: str
    text: str
    raw_text: str
    max_length: int
    title: str | None = None
    valid_endings: frozenset[str] = VALID_ENDINGS


DetectorFn = Callable[[BeatContext], str | None]


@dataclass(frozen=True)
class Detector:
    """A registered check: its type identifier and the function implementing it."""

    check: str
    detect: DetectorFn


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


def ends_with_ellipsis(text: str) -> bool:
    """True if the last ten characters hold an ellipsis glyph or three dots."""
    tail = text[-TAIL_WINDOW:]
    return "…" in tail or "..." in tail


def ends_with_dangling_preposition(text: str) -> bool:
    """True for a bare article before the final mark, or a comma-led preposition.

    Stranded prepositions ("came from.") are valid English, so prepositions
    only count when a comma shows a list was cut off.
    """
    return bool(_ARTICLE_ENDING.search(text) or _LIST_PREPOSITION_ENDING.search(text))


def ends_with_dangling_conjunction(text: str) -> bool:
    """True for ", and." / ", or." / ", nor." / ", but." / ", so." endings."""
    return bool(_CONJUNCTION_ENDING.search(text))


def has_markup_artifacts(text: str) -> bool:
    """True if brackets, braces or tags remain once money and percentages are ignored."""
    if not _MARKUP_CHARS.search(text) or _NUMERIC_FIGURE.search(text):
        return False
    stripped = _PERCENTAGE.sub("", _DOLLAR_AMOUNT.sub("", text))
    return bool(re.search(r"[{}\[\]]", stripped) or _TAG_OPEN.search(stripped))


def has_template_placeholder(text: str) -> bool:
    return bool(_PLACEHOLDER.search(text))


def has_repeated_final_word(text: str) -> bool:
    """True for "is is." style stutters right before the final mark."""
    return bool(_REPEATED_WORD_ENDING.search(text))


def has_control_chars(text: str) -> bool:
    return bool(_CONTROL_CHARS.search(text))


def quote_balance(text: str) -> tuple[int, int]:
    """Count opening (“ and ( ) against closing (” and ) ) marks."""
    opens = text.count("“") + text.count("(")
    closes = text.count("”") + text.count(")")
    return opens, closes


def _codepoint(char: str) -> str:
    return f"U+{ord(char):04X}"


# ---------------------------------------------------------------------------
# Detectors
# ---------------------------------------------------------------------------


def detect_too_short(ctx: BeatContext) -> str | None:
    if len(ctx.text) < MIN_TEXT_LENGTH:
        return f'Beat "{ctx.role}" is only {len(ctx.text)} chars: "{ctx.text}"'
    return None


def detect_over_limit(ctx: BeatContext) -> str | None:
    if len(ctx.text) > ctx.max_length:
        return (
            f'Beat "{ctx.role}" is {len(ctx.text)} chars (max {ctx.max_length}). '
            f'Tail: "…{ctx.text[-30:]}"'
        )
    return None


def detect_bad_ending(ctx: BeatContext) -> str | None:
    last = ctx.text[-1]
    if last not in ctx.valid_endings:
        return (
            f'Beat "{ctx.role}" ends with "{last}" ({_codepoint(last)}), not valid punctuation. '
            f'Tail: "…{ctx.text[-30:]}"'
        )
    return None


def detect_ellipsis_ending(ctx: BeatContext) -> str | None:
    if ends_with_ellipsis(ctx.text):
        return f'Beat "{ctx.role}" ends with an ellipsis (truncation): "…{ctx.text[-40:]}"'
    return None


def detect_space_before_punct(ctx: BeatContext) -> str | None:
    text = ctx.text
    if len(text) >= 2 and text[-2] == " " and text[-1] in ctx.valid_endings:
        return f'Beat "{ctx.role}" has a space before its final punctuation: "…{text[-15:]}"'
    return None


def detect_unbalanced_quotes(ctx: BeatContext) -> str | None:
    opens, closes = quote_balance(ctx.text)
    if opens > closes:
        return (
            f'Beat "{ctx.role}" has {opens} open vs {closes} close quotes/parens, '
            "possible truncation."
        )
    return None


def detect_unbalanced_parens(ctx: BeatContext) -> str | None:
    opens, closes = ctx.text.count("("), ctx.text.count(")")
    if opens != closes:
        return f'Beat "{ctx.role}" has {opens} "(" but {closes} ")".'
    return None


def detect_unbalanced_ascii_quotes(ctx: BeatContext) -> str | None:
    count = ctx.text.count('"')
    if count % 2:
        return f'Beat "{ctx.role}" has an odd number ({count}) of straight double quotes.'
    return None


def detect_dangling_preposition(ctx: BeatContext) -> str | None:
    if ends_with_dangling_preposition(ctx.text):
        return (
            f'Beat "{ctx.role}" ends with a bare preposition/article, likely truncated: '
            f'"…{ctx.text[-40:]}"'
        )
    return None


def detect_dangling_conjunction(ctx: BeatContext) -> str | None:
    if ends_with_dangling_conjunction(ctx.text):
        return f'Beat "{ctx.role}" ends with a list cut off at a conjunction: "…{ctx.text[-40:]}"'
    return None


def detect_markup_artifacts(ctx: BeatContext) -> str | None:
    if has_markup_artifacts(ctx.text):
        return f'Beat "{ctx.role}" may contain JSON/HTML artifacts: "{ctx.text[:60]}"'
    return None


def detect_template_placeholders(ctx: BeatContext) -> str | None:
    match = _PLACEHOLDER.search(ctx.text)
    if match:
        return f'Beat "{ctx.role}" contains a template placeholder: "{match.group(0)}"'
    return None


def detect_contains_url(ctx: BeatContext) -> str | None:
    if _URL.search(ctx.text):
        return f'Beat "{ctx.role}" contains a URL.'
    return None


def detect_replacement_char(ctx: BeatContext) -> str | None:
    if "�" in ctx.text:
        return f'Beat "{ctx.role}" contains the Unicode replacement character (encoding damage).'
    return None


def detect_repeated_word(ctx: BeatContext) -> str | None:
    if has_repeated_final_word(ctx.text):
        return f'Beat "{ctx.role}" has a repeated word near the end: "…{ctx.text[-30:]}"'
    return None


def detect_lowercase_start(ctx: BeatContext) -> str | None:
    if "a" <= ctx.text[0] <= "z":
        return f'Beat "{ctx.role}" starts with lowercase: "{ctx.text[:40]}…"'
    return None


def detect_control_chars(ctx: BeatContext) -> str | None:
    if has_control_chars(ctx.text):
        return f'Beat "{ctx.role}" contains control characters.'
    return None


def detect_contains_newline(ctx: BeatContext) -> str | None:
    if _LINE_BREAKS.search(ctx.raw_text):
        return f'Beat "{ctx.role}" contains a newline, carriage return or tab.'
    return None


def detect_double_space(ctx: BeatContext) -> str | None:
    if _DOUBLE_SPACE.search(ctx.text):
        return f'Beat "{ctx.role}" contains consecutive whitespace.'
    return None


def detect_repeated_punct(ctx: BeatContext) -> str | None:
    if _REPEATED_PUNCT.search(ctx.text):
        return f'Beat "{ctx.role}" ends with repeated punctuation: "…{ctx.text[-15:]}"'
    return None


def detect_title_as_text(ctx: BeatContext) -> str | None:
    if ctx.title is not None and ctx.text == ctx.title:
        return f'Beat "{ctx.role}" text is identical to the topic title, likely a placeholder.'
    return None


TEXT_DETECTORS: tuple[Detector, ...] = (
    Detector("too-short", detect_too_short),
    Detector("over-limit", detect_over_limit),
    Detector("bad-ending", detect_bad_ending),
    Detector("ellipsis-ending", detect_ellipsis_ending),
    Detector("space-before-punct", detect_space_before_punct),
    Detector("unbalanced-quotes", detect_unbalanced_quotes),
    Detector("unbalanced-parens", detect_unbalanced_parens),
    Detector("unbalanced-ascii-quotes", detect_unbalanced_ascii_quotes),
    Detector("dangling-preposition", detect_dangling_preposition),
    Detector("dangling-conjunction", detect_dangling_conjunction),
    Detector("markup-artifacts", detect_markup_artifacts),
    Detector("template-placeholders", detect_template_placeholders),
    Detector("contains-url", detect_contains_url),
    Detector("replacement-char", detect_replacement_char),
    Detector("repeated-word", detect_repeated_word),
    Detector("lowercase-start", detect_lowercase_start),
    Detector("control-chars", detect_control_chars),
    Detector("contains-newline", detect_contains_newline),
    Detector("double-space", detect_double_space),
    Detector("repeated-punct", detect_repeated_punct),
    Detector("title-as-text", detect_title_as_text),
)


def run_detectors(
    ctx: BeatContext,
    locator: Locator,
    detectors: tuple[Detector, ...] = TEXT_DETECTORS,
) -> list[Issue]:
    """Run each detector against a non-empty beat and collect issues in registry order."""
    issues: list[Issue] = []
    for detector in detectors:
        message = detector.detect(ctx)
        if message is not None:
            issues.append(Issue(detector.check, message, locator))
    return issues


def check_text(
    text: str,
    role: str,
    limits: BeatLimits,
    *,
    title: str | None = None,
    locator: Locator | None = None,
    valid_endings: frozenset[str] = VALID_ENDINGS,
) -> list[Issue]:
    """Run the text-level checks on a candidate beat text.

    Used to re-validate proposed replacements, which carry no visual.
    Blank text yields a single empty-text issue.

    Args:
        text: Beat text as it would be stored.
        role: Beat role, selects the length limit.
        limits: Active limit set.
        title: Topic title for the title-as-text check.
        locator: Where to attribute issues; defaults to an anonymous locator.
        valid_endings: Characters allowed as the final character.

    Returns:
        Issues in registry order.
    """
    locator = locator or Locator(file="<text>", beat=role)
    trimmed = text.strip()
    if not trimmed:
        return [Issue("empty-text", f'Beat "{role}" has empty or missing text.', locator)]
    ctx = BeatContext(
        role=role,
        text=trimmed,
        raw_text=text,
        max_length=limits.for_role(role),
        title=title,
        valid_endings=valid_endings,
    )
    return run_detectors(ctx, locator)


def audit_beat(
    role: str,
    node: Any,
    limits: BeatLimits,
    *,
    file: str,
    title: str | None = None,
    valid_endings: frozenset[str] = VALID_ENDINGS,
) -> list[Issue]:
    """Audit one beat node from a story mapping.

    Missing nodes and empty text short-circuit the remaining checks for
    this beat only.
    """
    locator = Locator(file=file, topic=title, beat=role)
    if not isinstance(node, dict):
        return [Issue("missing-beat", f'Beat "{role}" is missing or not an object.', locator)]

    raw_text = node.get("text")
    if not isinstance(raw_text, str) or not raw_text.strip():
        return [Issue("empty-text", f'Beat "{role}" has empty or missing text.', locator)]

    issues: list[Issue] = []
    visual = node.get("visual")
    if not isinstance(visual, str) or not visual.strip():
        issues.append(Issue("missing-visual", f'Beat "{role}" has no visual.', locator))

    issues.extend(
        check_text(
            raw_text,
            role,
            limits,
            title=title,
            locator=locator,
            valid_endings=valid_endings,
        )
    )
    return issues
