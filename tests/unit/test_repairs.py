"""Tests for mechanical auto-repair rules."""

from __future__ import annotations

from beatguard.repairs import (
    DEFAULT_AUTO_RULES,
    EXTENDED_AUTO_RULES,
    fix_dangling_conjunction,
    remove_space_before_punct,
)


class TestRemoveSpaceBeforePunct:
    def test_removes_space(self) -> None:
        assert remove_space_before_punct("The budget balanced .") == "The budget balanced."
        assert remove_space_before_punct("Did it balance ? ") == "Did it balance?"

    def test_not_applicable(self) -> None:
        assert remove_space_before_punct("The budget balanced.") is None
        assert remove_space_before_punct("The budget balanced -") is None


class TestFixDanglingConjunction:
    def test_appends_more_when_it_fits(self) -> None:
        assert fix_dangling_conjunction("She bought bread, milk, and.", 120) == (
            "She bought bread, milk, and more."
        )

    def test_trims_to_last_item_when_tight(self) -> None:
        assert fix_dangling_conjunction("She bought bread, milk, and.", 25) == (
            "She bought bread, milk."
        )

    def test_lowercases_conjunction(self) -> None:
        assert fix_dangling_conjunction("Save it, spend it, OR.", 120) == (
            "Save it, spend it, or more."
        )

    def test_not_applicable(self) -> None:
        assert fix_dangling_conjunction("Nobody said so.", 120) is None


def test_rule_tables() -> None:
    assert set(DEFAULT_AUTO_RULES) == {"space-before-punct"}
    assert set(EXTENDED_AUTO_RULES) == {"space-before-punct", "dangling-conjunction"}
