"""Tests for locators, issues and external record models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from beatguard.models import DefectRecord, Issue, Locator


def test_locator_str() -> None:
    assert str(Locator(file="a.json")) == "a.json"
    assert str(Locator(file="a.json", topic="Pay", beat="hook")) == "a.json » Pay » hook"
    assert (
        str(Locator(file="a.json", topic="Pay", beat="hook", other_beat="twist"))
        == "a.json » Pay » hook+twist"
    )


def test_issue_to_dict() -> None:
    issue = Issue("over-limit", "too long", Locator(file="a.json", topic="Pay", beat="hook"))

    assert issue.to_dict() == {
        "check": "over-limit",
        "severity": "high",
        "message": "too long",
        "file": "a.json",
        "topic": "Pay",
        "beat": "hook",
        "other_beat": None,
    }


class TestDefectRecord:
    def test_accepts_alias_and_field_name(self) -> None:
        by_alias = DefectRecord.model_validate(
            {"file": "a.json", "topicTitle": "Pay", "beat": "hook", "text": "x"}
        )
        by_name = DefectRecord(file="a.json", topic_title="Pay", beat="hook", text="x")

        assert by_alias == by_name

    def test_dumps_with_aliases(self) -> None:
        record = DefectRecord(
            file="a.json", topic_title="Pay", beat="hook", text="x", length=1, max_length=130
        )

        dumped = record.model_dump(by_alias=True)

        assert dumped["topicTitle"] == "Pay"
        assert dumped["len"] == 1
        assert dumped["max"] == 130

    def test_rejects_unknown_role(self) -> None:
        with pytest.raises(ValidationError):
            DefectRecord(file="a.json", topic_title="Pay", beat="intro", text="x")

    def test_rejects_empty_file(self) -> None:
        with pytest.raises(ValidationError):
            DefectRecord(file="", topic_title="Pay", beat="hook", text="x")
