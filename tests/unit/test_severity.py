"""Tests for severity classification."""

from __future__ import annotations

import pytest

from beatguard.checks.beat import TEXT_DETECTORS
from beatguard.models import Issue, Locator
from beatguard.severity import (
    HIGH_CHECKS,
    LOW_CHECKS,
    MEDIUM_CHECKS,
    SEVERITY_ORDER,
    classify,
)


@pytest.mark.parametrize(
    ("check", "severity"),
    [
        ("bad-ending", "high"),
        ("over-limit", "high"),
        ("bad-json", "high"),
        ("missing-visual", "medium"),
        ("near-duplicate", "medium"),
        ("too-short", "low"),
        ("title-as-text", "low"),
    ],
)
def test_classify(check: str, severity: str) -> None:
    assert classify(check) == severity


def test_unknown_check_is_medium() -> None:
    assert classify("some-future-check") == "medium"


def test_severity_sets_are_disjoint() -> None:
    assert not HIGH_CHECKS & MEDIUM_CHECKS
    assert not HIGH_CHECKS & LOW_CHECKS
    assert not MEDIUM_CHECKS & LOW_CHECKS


def test_every_registered_check_is_classified_explicitly() -> None:
    known = HIGH_CHECKS | MEDIUM_CHECKS | LOW_CHECKS
    assert {d.check for d in TEXT_DETECTORS} <= known


def test_issue_severity_is_derived() -> None:
    issue = Issue("double-space", "msg", Locator(file="a.json"))

    assert issue.severity == "low"
    assert issue.to_dict()["severity"] == "low"


def test_by_severity_order_is_high_medium_low() -> None:
    assert SEVERITY_ORDER == ("high", "medium", "low")
