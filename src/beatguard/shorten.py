"""Meaning-preserving shortening of over-length beat text.

``shorten`` tries an ordered series of reductions and returns the first
result that fits. It never adds an ellipsis and never cuts inside a word;
when nothing safe gets under the limit it returns the original text and
leaves it to the caller to notice the overflow.

Stages, first success wins:
1. Already fits: normalise the ending, unless the added mark would overflow.
2. Already contains an ellipsis: refuse, the text was truncated before.
3. Split the terminal mark off so later stages never damage it.
4. Verbose phrase substitutions and filler removal, one at a time.
5. Drop parenthetical asides.
6. Drop a leading discourse connective ("And", "But", ...).
7. Cut after the last comma (guarded to 60-100% of the limit).
8. Cut after the last em-dash, colon or semicolon (same guard).
9. Keep only the first sentence (same guard).
10. Trim whole words from the end, then any trailing function words
    (same guard).
11. Give up: return the original, ending normalised only when that does
    not make it longer.

``shorten_documents`` applies this to every over-limit beat in a batch of
documents and only keeps results that introduce no new defect and carry no
high-severity issue.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from beatguard.checks.beat import check_text, quote_balance
from beatguard.constraints import BEAT_ROLES, VALID_ENDINGS, BeatLimits
from beatguard.documents import (
    DocumentParseError,
    DocumentWriteError,
    display_path,
    iter_topics,
    load_document,
    topic_title,
    write_document,
)
from beatguard.models import Locator
from beatguard.observability.logging import bind_locator, get_logger

if TYPE_CHECKING:
    from pathlib import Path

log = get_logger(__name__)

# Lower bound for truncating stages, as a fraction of the limit.
MIN_KEEP_RATIO = 0.6
# A clause cut must leave more than this many characters in front of it.
MIN_CLAUSE_INDEX = 20

_ENDING = re.compile(r"[.!?;:]+['\"’”]?$")
_PARENTHETICAL = re.compile(r"\s*\([^)]+\)\s*")
_LEADING_CONNECTIVE = re.compile(r"^(And|But|So|Yet|Now|Then|Still)\s+", re.IGNORECASE)
_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")


def _phrase(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


# Applied in order; each entry is tried once and the length re-checked.
SUBSTITUTIONS: tuple[tuple[re.Pattern[str], str], ...] = (
    (_phrase(r"\bapproximately\b"), "about"),
    (_phrase(r"\bhowever\b"), "but"),
    (_phrase(r"\btherefore\b"), "so"),
    (_phrase(r"\bnevertheless\b"), "yet"),
    (_phrase(r"\bfurthermore\b"), "also"),
    (_phrase(r"\badditionally\b"), "also"),
    (_phrase(r"\bin order to\b"), "to"),
    (_phrase(r"\bdue to the fact that\b"), "because"),
    (_phrase(r"\bat this point in time\b"), "now"),
    (_phrase(r"\bthat being said\b"), "still"),
    (_phrase(r"\bin the event that\b"), "if"),
    (_phrase(r"\bfor the purpose of\b"), "to"),
    (_phrase(r"\bin spite of\b"), "despite"),
    (_phrase(r"\bas a result of\b"), "from"),
    (_phrase(r"\bwith regard to\b"), "about"),
    (_phrase(r"\bin conjunction with\b"), "with"),
    (_phrase(r"\bthe majority of\b"), "most"),
    (_phrase(r"\ba large number of\b"), "many"),
    (_phrase(r"\ba small number of\b"), "few"),
    (_phrase(r"\buntil such time as\b"), "until"),
    (_phrase(r"\bit is important to note that\b"), ""),
    (_phrase(r"\bit is worth noting that\b"), ""),
    (_phrase(r"\bit turns out that\b"), ""),
    (_phrase(r"\bas a matter of fact\b"), "indeed"),
    (_phrase(r"\bon the other hand\b"), "but"),
    (_phrase(r"\bthroughout history\b"), "historically"),
    (_phrase(r"\bthroughout the\b"), "across the"),
    (_phrase(r"\bcompletely\b"), "fully"),
    (_phrase(r"\bsignificantly\b"), "greatly"),
    (_phrase(r"\bunfortunately\b"), "sadly"),
    (_phrase(r"\bsubsequently\b"), "then"),
    (_phrase(r"\bconsiderably\b"), "much"),
    (_phrase(r"\boccasionally\b"), "sometimes"),
    (_phrase(r"\bfrequently\b"), "often"),
    (_phrase(r"\bnumerous\b"), "many"),
    (_phrase(r"\butilization\b"), "use"),
    (_phrase(r"\butilized\b"), "used"),
    (_phrase(r"\butilize\b"), "use"),
    (_phrase(r"\bdemonstrated\b"), "showed"),
    (_phrase(r"\bdemonstrates\b"), "shows"),
    (_phrase(r"\bdemonstrate\b"), "show"),
    (_phrase(r"\bpurchased\b"), "bought"),
    (_phrase(r"\bpurchase\b"), "buy"),
    (_phrase(r"\brequirements\b"), "needs"),
    (_phrase(r"\brequirement\b"), "need"),
    (_phrase(r"\bcommence\b"), "start"),
    (_phrase(r"\bterminate\b"), "end"),
    (_phrase(r"\bascertain\b"), "find"),
    (_phrase(r"\bendeavor\b"), "try"),
    (_phrase(r"\btransformation\b"), "change"),
    (_phrase(r"\btransformed\b"), "changed"),
    (_phrase(r"\bmanufactured\b"), "made"),
    (_phrase(r"\bmanufacturing\b"), "making"),
    (_phrase(r"\bconstruction\b"), "building"),
    (re.compile(r" — "), "—"),
    (re.compile(r" – "), "–"),
    (_phrase(r"\band also\b"), "and"),
    (_phrase(r"\bbut also\b"), "and"),
    (_phrase(r"\bin addition\b"), "also"),
    (_phrase(r"\bin fact\b"), ""),
    (_phrase(r"\bvery much\b"), "greatly"),
    (_phrase(r"\bquite a\b"), "a"),
    (_phrase(r"\breally\b"), ""),
    (_phrase(r"\bvery\b"), ""),
    (_phrase(r"\bjust\b"), ""),
    (_phrase(r"\bactually\b"), ""),
    (_phrase(r"\bbasically\b"), ""),
    (_phrase(r"\bessentially\b"), ""),
    (_phrase(r"\bliterally\b"), ""),
)

# Words a trimmed fragment must not end on.
TRAILING_FUNCTION_WORDS = frozenset(
    {
        "a", "an", "the",
        "of", "with", "from", "between", "about", "into", "through", "within",
        "among", "beyond", "to", "in", "on", "at", "by", "for", "as", "than",
        "and", "or", "nor", "but", "so", "yet",
        "is", "are", "was", "were", "be", "been", "being", "has", "have", "had",
        "do", "does", "did", "can", "could", "will", "would", "shall", "should",
        "may", "might", "must",
        "that", "which", "who", "whom", "whose", "where", "when", "while",
        "because", "if", "its", "their", "his", "her", "our", "your", "my",
    }
)  # fmt: skip


# ---------------------------------------------------------------------------
# Ending handling
# ---------------------------------------------------------------------------


def _collapse_ending(ending: str) -> str:
    """Reduce "!!" or "?!" to a single mark, leaving any closing quote and dot runs alone."""
    quote = ending[-1] if ending[-1] in "'\"’”" else ""
    marks = ending[: len(ending) - len(quote)]
    if len(marks) > 1 and set(marks) != {"."}:
        marks = marks[0]
    elif marks == "..":
        marks = "."
    return marks + quote


def split_ending(text: str) -> tuple[str, str]:
    """Split trimmed text into (core, terminal mark).

    The mark is empty when the text has no terminal punctuation run; a bare
    closing quote or parenthesis stays part of the core.
    """
    trimmed = text.strip()
    match = _ENDING.search(trimmed)
    if not match:
        return trimmed, ""
    return trimmed[: match.start()].rstrip(), _collapse_ending(match.group(0))


def join_ending(core: str, ending: str) -> str:
    """Re-attach a terminal mark, supplying "." when the core would end invalidly."""
    if ending:
        if ending[0] == "." and core.endswith("."):
            return core + ending[1:]
        return core + ending
    if core and core[-1] in VALID_ENDINGS:
        return core
    return core + "."


def normalize_ending(text: str) -> str:
    """Strip whitespace, drop a space before the final mark, collapse repeats, ensure a valid end."""
    return join_ending(*split_ending(text))


def _has_ellipsis(text: str) -> bool:
    return "…" in text or "..." in text


# ---------------------------------------------------------------------------
# Stage helpers
# ---------------------------------------------------------------------------


def _tidy(text: str) -> str:
    text = re.sub(r"\s+", " ", text)
    text = re.sub(r"\s+([,;:.!?])", r"\1", text)
    text = re.sub(r",(\s*,)+", ",", text)
    text = re.sub(r"^[\s,;:]+", "", text)
    return text.rstrip(" ,;:").strip()


def _capitalize_first(text: str) -> str:
    return text[:1].upper() + text[1:]


def _replacement_for(replacement: str) -> Callable[[re.Match[str]], str]:
    def replace(match: re.Match[str]) -> str:
        if replacement and match.group(0)[:1].isupper():
            return _capitalize_first(replacement)
        return replacement

    return replace


def _is_balanced(text: str) -> bool:
    opens, closes = quote_balance(text)
    return (
        opens <= closes
        and text.count("(") == text.count(")")
        and text.count('"') % 2 == 0
    )


def _accept(candidate: str, max_len: int) -> str | None:
    """Return the candidate if it is within 60-100% of the limit, balanced, and
    free of high-severity defects such as a list cut off at ", but."
    """
    if not max_len * MIN_KEEP_RATIO <= len(candidate) <= max_len:
        return None
    if not _is_balanced(candidate):
        return None
    limits = BeatLimits(beat=max_len, punchline=max_len)
    if any(i.severity == "high" for i in check_text(candidate, "hook", limits)):
        return None
    return candidate


def _cut_after_last_comma(core: str, ending: str, max_len: int) -> str | None:
    index = core.rfind(",")
    if index <= MIN_CLAUSE_INDEX:
        return None
    return _accept(join_ending(core[:index].rstrip(), ending), max_len)


def _cut_after_last_break(core: str, ending: str, max_len: int) -> str | None:
    index = max(core.rfind("—"), core.rfind(":"), core.rfind(";"))
    if index <= MIN_CLAUSE_INDEX:
        return None
    return _accept(join_ending(core[:index].rstrip(" –-"), ending), max_len)


def _keep_first_sentence(core: str, ending: str, max_len: int) -> str | None:
    sentences = _SENTENCE_BREAK.split(core)
    if len(sentences) < 2:
        return None
    return _accept(normalize_ending(sentences[0]), max_len)


def _trim_at_word_boundary(core: str, ending: str, max_len: int) -> str | None:
    words = core.split(" ")
    kept: list[str] = []
    for word in words:
        if len(join_ending(" ".join([*kept, word]), ending)) > max_len:
            break
        kept.append(word)

    # A standalone dash strips down to nothing and would leave "word ."
    while kept:
        last = kept[-1].rstrip(",;:—–-")
        if last and last.lower() not in TRAILING_FUNCTION_WORDS:
            break
        kept.pop()
    if not kept:
        return None
    kept[-1] = kept[-1].rstrip(",;:—–-")
    return _accept(join_ending(" ".join(kept), ending), max_len)


_TRUNCATING_STAGES = (
    _cut_after_last_comma,
    _cut_after_last_break,
    _keep_first_sentence,
    _trim_at_word_boundary,
)


def shorten(text: str, max_len: int) -> str:
    """Shorten text to at most max_len characters without truncation artifacts.

    Args:
        text: Beat text.
        max_len: Target maximum length.

    Returns:
        The first reduction that fits, or the original when none does. The
        result is never longer than ``max_len`` when the input already fit,
        and never longer than the input otherwise. Callers detect failure by
        re-measuring the length.
    """
    original = text.strip()
    if len(original) <= max_len:
        normalized = normalize_ending(original)
        return normalized if len(normalized) <= max_len else original

    if _has_ellipsis(original):
        return text

    core, ending = split_ending(original)

    def fits(candidate: str) -> bool:
        return len(join_ending(candidate, ending)) <= max_len

    for pattern, replacement in SUBSTITUTIONS:
        updated = _tidy(pattern.sub(_replacement_for(replacement), core))
        if updated and core[:1].isupper():
            updated = _capitalize_first(updated)
        if not updated:
            continue
        core = updated
        if fits(core):
            return join_ending(core, ending)

    without_asides = _tidy(_PARENTHETICAL.sub(" ", core))
    if without_asides:
        core = without_asides
        if fits(core):
            return join_ending(core, ending)

    without_connective = _LEADING_CONNECTIVE.sub("", core, count=1)
    if without_connective and without_connective != core:
        core = _capitalize_first(without_connective)
        if fits(core):
            return join_ending(core, ending)

    for stage in _TRUNCATING_STAGES:
        candidate = stage(core, ending, max_len)
        if candidate is not None:
            return candidate

    normalized = normalize_ending(original)
    return normalized if len(normalized) <= len(original) else original


# ---------------------------------------------------------------------------
# Batch operation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ShortenChange:
    """A beat that was (or in dry-run would be) shortened."""

    locator: Locator
    old_text: str
    new_text: str
    max_length: int


@dataclass(frozen=True)
class ShortenFailure:
    """An over-limit beat left as it was, or a document that couldn't be processed."""

    locator: Locator
    reason: str
    text: str = ""
    max_length: int = 0


@dataclass
class ShortenResult:
    """Outcome of a shortening batch."""

    changes: list[ShortenChange] = field(default_factory=list)
    failures: list[ShortenFailure] = field(default_factory=list)
    written: list[str] = field(default_factory=list)

    @property
    def violations(self) -> int:
        """Number of over-limit beats found (fixed plus unfixed)."""
        return len(self.changes) + sum(1 for f in self.failures if f.max_length)

    @property
    def ok(self) -> bool:
        return not self.failures


def _shorten_beat(
    text: str, role: str, limits: BeatLimits, title: str, locator: Locator
) -> ShortenChange | ShortenFailure:
    """Shorten one over-limit beat and vet the result against the detectors."""
    max_len = limits.for_role(role)
    shortened = shorten(text, max_len)
    if len(shortened) > max_len:
        log.warning("beat_not_shortened", length=len(shortened), max_length=max_len)
        return ShortenFailure(locator, "still too long", shortened, max_len)

    existing = {i.check for i in check_text(text, role, limits, title=title)}
    blocking: list[str] = []
    for issue in check_text(shortened, role, limits, title=title, locator=locator):
        introduced = issue.check not in existing
        if (introduced or issue.severity == "high") and issue.check not in blocking:
            blocking.append(issue.check)
    if blocking:
        log.warning("beat_shortening_rejected", checks=blocking)
        return ShortenFailure(
            locator, f"shortened text fails checks: {', '.join(blocking)}", shortened, max_len
        )

    log.debug("beat_shortened", before=len(text.strip()), after=len(shortened))
    return ShortenChange(locator, text, shortened, max_len)


def shorten_documents(
    paths: Iterable[Path],
    *,
    limits: BeatLimits,
    root: Path | None = None,
    write: bool = False,
) -> ShortenResult:
    """Shorten every over-limit beat across a set of documents.

    A shortened beat is kept only if it fits and adds no defect the original
    text did not already have. High-severity issues block it regardless.
    Each changed document is rewritten once, and only when ``write`` is set.

    Args:
        paths: Document files.
        limits: Limit set to shorten against.
        root: Project root, for display paths.
        write: Persist changes when True; dry-run otherwise.

    Returns:
        ShortenResult with changes, failures and written files.
    """
    result = ShortenResult()

    for path in sorted(paths, key=lambda p: p.as_posix()):
        label = display_path(path, root)
        try:
            document = load_document(path)
        except DocumentParseError as e:
            log.warning("shorten_document_unreadable", file=label, reason=e.reason)
            result.failures.append(ShortenFailure(Locator(file=label), f"unreadable: {e.reason}"))
            continue

        file_changes: list[ShortenChange] = []
        for topic in iter_topics(document):
            story = topic.get("story")
            if not isinstance(story, dict):
                continue
            title = topic_title(topic)
            for role in BEAT_ROLES:
                node = story.get(role)
                if not isinstance(node, dict) or not isinstance(node.get("text"), str):
                    continue
                text = node["text"]
                max_len = limits.for_role(role)
                if len(text.strip()) <= max_len:
                    continue

                locator = Locator(file=label, topic=title, beat=role)
                with bind_locator(locator):
                    outcome = _shorten_beat(text, role, limits, title, locator)
                if isinstance(outcome, ShortenFailure):
                    result.failures.append(outcome)
                    continue
                node["text"] = outcome.new_text
                file_changes.append(outcome)

        result.changes.extend(file_changes)
        if not file_changes or not write:
            continue
        try:
            write_document(path, document)
        except DocumentWriteError as e:
            log.error("shorten_write_failed", file=label, reason=e.reason)
            result.failures.append(ShortenFailure(Locator(file=label), f"write failed: {e.reason}"))
            continue
        result.written.append(label)
        log.info("document_written", file=label, beats=len(file_changes))

    log.info(
        "shorten_complete",
        violations=result.violations,
        fixed=len(result.changes),
        failed=len(result.failures),
        write=write,
    )
    return result
