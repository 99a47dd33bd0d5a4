"""Tests for the shortening engine."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import pytest

import beatguard.shorten as shorten_module
from beatguard.checks.beat import check_text
from beatguard.constraints import GENERATION_LIMITS, VALID_ENDINGS, BeatLimits
from beatguard.shorten import (
    join_ending,
    normalize_ending,
    shorten,
    shorten_documents,
    split_ending,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

LONG_SENTENCE = "This is, however, a very long sentence that must be shortened."
# Fits a 62-character beat limit, unlike the default discovery text.
SHORT_DISCOVERY = "She realised a budget starts with what you keep."


# --- Ending helpers ---


class TestEndings:
    """split_ending / join_ending / normalize_ending."""

    def test_split_and_join(self) -> None:
        assert split_ending("Hello there.") == ("Hello there", ".")
        assert split_ending("No mark") == ("No mark", "")
        assert join_ending("Hello there", ".") == "Hello there."

    def test_repeated_marks_collapse(self) -> None:
        assert normalize_ending("Wow!!") == "Wow!"
        assert normalize_ending("Really?!") == "Really?"
        assert normalize_ending("Done..") == "Done."

    def test_space_before_final_mark_is_removed(self) -> None:
        assert normalize_ending("It balanced .") == "It balanced."

    def test_missing_mark_gets_a_period(self) -> None:
        assert normalize_ending("It balanced") == "It balanced."

    def test_closing_quote_is_kept(self) -> None:
        assert normalize_ending("She said “yes.”") == "She said “yes.”"
        assert normalize_ending("It ended (finally)") == "It ended (finally)"

    def test_normalize_is_idempotent(self) -> None:
        for text in ("Wow!!", "It balanced .", "It balanced", "Done.."):
            once = normalize_ending(text)
            assert normalize_ending(once) == once


# --- shorten() ---


class TestShorten:
    """Single-text shortening."""

    def test_substitutions_then_word_trim(self) -> None:
        result = shorten(LONG_SENTENCE, 40)

        assert result == "This is, but, a long sentence."
        assert len(result) <= 40
        assert result[-1] in VALID_ENDINGS
        assert "…" not in result
        assert "..." not in result

    def test_fitting_text_is_only_normalised(self) -> None:
        assert shorten("Short and sweet .", 40) == "Short and sweet."

    def test_already_truncated_text_is_refused(self) -> None:
        text = "This went on and on and on until... nobody remembered why it started."

        assert shorten(text, 40) == text

    def test_single_substitution_can_be_enough(self) -> None:
        text = "We utilize the budget to plan the month."

        assert shorten(text, 37) == "We use the budget to plan the month."

    def test_parenthetical_is_dropped(self) -> None:
        text = "The fund grew every single year (mostly thanks to fees) for ages."

        assert shorten(text, 45) == "The fund grew every single year for ages."

    def test_leading_connective_is_dropped(self) -> None:
        text = "And then the savings account quietly doubled in size."

        assert shorten(text, 50) == "Then the savings account quietly doubled in size."

    def test_cut_after_last_comma(self) -> None:
        text = "The family agreed on a monthly budget, which nobody then followed at all."

        assert shorten(text, 50) == "The family agreed on a monthly budget."

    def test_keep_first_sentence(self) -> None:
        text = "Rent ate half of every paycheck she got. She did not notice for many months."

        assert shorten(text, 45) == "Rent ate half of every paycheck she got."

    def test_result_never_ends_on_function_word(self) -> None:
        text = "Compound interest slowly turns small monthly deposits into a fortune over decades"

        result = shorten(text, 60)

        assert len(result) <= 60
        last_word = result.rstrip(".").split()[-1].lower()
        assert last_word not in {"a", "an", "the", "into", "over", "of"}

    @pytest.mark.parametrize(
        "text",
        [
            LONG_SENTENCE,
            "Furthermore, the bank essentially charged a very large number of fees, every month.",
            "Interest (the cost of borrowing) rose sharply; borrowers felt it at once and deeply.",
        ],
    )
    def test_never_longer_and_idempotent(self, text: str) -> None:
        once = shorten(text, 50)
        twice = shorten(once, 50)

        assert len(once) <= len(text)
        assert "…" not in once
        assert "..." not in once
        if len(once) <= 50:
            assert twice == once

    def test_unshortenable_text_is_returned_normalised(self) -> None:
        text = "Supercalifragilisticexpialidocious antidisestablishmentarianism!!"

        result = shorten(text, 20)

        assert result == "Supercalifragilisticexpialidocious antidisestablishmentarianism!"
        assert len(result) > 20

    def test_fitting_text_gets_no_mark_that_would_overflow(self) -> None:
        assert shorten("Say hello", 9) == "Say hello"
        assert shorten("Say hello", 40) == "Say hello."

    def test_fallback_never_grows_the_input(self) -> None:
        text = "Supercalifragilisticexpialidocious antidisestablishmentarianism"

        result = shorten(text, 20)

        assert result == text
        assert len(result) <= len(text)

    def test_word_trim_drops_standalone_dash(self) -> None:
        text = (
            "The market crashed hard in the spring and everyone panicked - "
            "investors sold everything they owned quickly"
        )

        result = shorten(text, 62)

        assert result == "The market crashed hard in the spring and everyone panicked."
        assert " ." not in result

    def test_comma_cut_never_leaves_dangling_conjunction(self) -> None:
        text = "Prices rose sharply; wages, however, stayed flat for a very long time (decades)."

        result = shorten(text, 50)

        assert not result.endswith(", but.")
        assert result == "Prices rose sharply; wages, but, stayed flat."


# --- Batch ---


class TestShortenDocuments:
    """shorten_documents() over files."""

    def _over_limit_topic(self, make_topic: Callable[..., dict[str, Any]]) -> dict[str, Any]:
        return make_topic(
            hook=(
                "Maria opened her first paycheck and, however hard she tried, she really "
                "could not understand why the number was so very much smaller than expected."
            )
        )

    def test_dry_run_writes_nothing(
        self,
        tmp_path: Path,
        write_json: Callable[[str, Any], Path],
        make_topic: Callable[..., dict[str, Any]],
    ) -> None:
        path = write_json("topics/pay.json", self._over_limit_topic(make_topic))
        before = path.read_text()

        result = shorten_documents([path], limits=GENERATION_LIMITS, root=tmp_path)

        assert len(result.changes) == 1
        assert result.written == []
        assert path.read_text() == before
        change = result.changes[0]
        assert change.locator.file == "topics/pay.json"
        assert change.locator.beat == "hook"
        assert len(change.new_text) <= 120

    def test_write_persists_changes(
        self,
        tmp_path: Path,
        write_json: Callable[[str, Any], Path],
        make_topic: Callable[..., dict[str, Any]],
    ) -> None:
        path = write_json("topics/pay.json", self._over_limit_topic(make_topic))

        result = shorten_documents([path], limits=GENERATION_LIMITS, root=tmp_path, write=True)

        assert result.ok
        assert result.written == ["topics/pay.json"]
        stored = json.loads(path.read_text())
        assert stored["story"]["hook"]["text"] == result.changes[0].new_text
        assert stored["story"]["hook"]["visual"]

    def test_refused_beat_is_a_failure(
        self,
        tmp_path: Path,
        write_json: Callable[[str, Any], Path],
        make_topic: Callable[..., dict[str, Any]],
    ) -> None:
        text = "It went on and on... " + "and on " * 20 + "forever."
        path = write_json("pay.json", make_topic(buildup=text))

        result = shorten_documents([path], limits=GENERATION_LIMITS, root=tmp_path, write=True)

        assert not result.ok
        assert result.violations == 1
        assert result.failures[0].locator.beat == "buildup"
        assert result.written == []

    def test_dash_fragment_is_trimmed_cleanly_on_write(
        self,
        tmp_path: Path,
        write_json: Callable[[str, Any], Path],
        make_topic: Callable[..., dict[str, Any]],
    ) -> None:
        hook = (
            "The market crashed hard in the spring and everyone panicked - "
            "investors sold everything they owned quickly"
        )
        path = write_json("pay.json", make_topic(hook=hook, discovery=SHORT_DISCOVERY))
        limits = BeatLimits(beat=62, punchline=62)

        result = shorten_documents([path], limits=limits, root=tmp_path, write=True)

        assert result.ok
        stored = json.loads(path.read_text())["story"]["hook"]["text"]
        assert stored == "The market crashed hard in the spring and everyone panicked."
        assert check_text(stored, "hook", limits) == []

    def test_text_with_new_defect_is_not_written(
        self,
        tmp_path: Path,
        write_json: Callable[[str, Any], Path],
        make_topic: Callable[..., dict[str, Any]],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        hook = (
            "The market crashed hard in the spring and everyone panicked - "
            "investors sold everything they owned quickly."
        )
        path = write_json("pay.json", make_topic(hook=hook, discovery=SHORT_DISCOVERY))
        before = path.read_text()
        monkeypatch.setattr(
            shorten_module,
            "shorten",
            lambda text, max_len: "The market crashed hard in the spring and everyone panicked .",
        )

        result = shorten_documents(
            [path], limits=BeatLimits(beat=62, punchline=62), root=tmp_path, write=True
        )

        assert not result.ok
        assert "space-before-punct" in result.failures[0].reason
        assert result.written == []
        assert path.read_text() == before

    def test_unreadable_document_is_reported(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.json"
        path.write_text("{not json")

        result = shorten_documents([path], limits=GENERATION_LIMITS, root=tmp_path)

        assert not result.ok
        assert result.failures[0].locator.file == "broken.json"
        assert result.violations == 0
