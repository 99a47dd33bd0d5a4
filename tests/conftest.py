"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

GOOD_STORY: dict[str, dict[str, str]] = {
    "hook": {
        "text": "Maria opened her first paycheck and stared at the number.",
        "visual": "Woman holding an envelope at a kitchen table",
    },
    "buildup": {
        "text": "Taxes, insurance and a pension fund had all taken their share.",
        "visual": "Receipt with several deductions circled",
    },
    "discovery": {
        "text": "She realised a budget starts with the amount you actually keep.",
        "visual": "Notebook with two columns of numbers",
    },
    "twist": {
        "text": "Her rent was due Friday and the money did not quite cover it.",
        "visual": "Calendar with Friday circled in red",
    },
    "climax": {
        "text": "Maria wrote down her take-home pay and planned from there.",
        "visual": "Woman smiling at a finished budget sheet",
    },
    "punchline": {
        "text": "Gross pay is a promise; net pay is the plan.",
        "visual": "Two coins side by side, one larger",
    },
}


@pytest.fixture(autouse=True)
def clear_beatguard_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer environment overrides out of test runs."""
    for name in ("BEATGUARD_ROOT", "BEATGUARD_REPORTS_DIR", "BEATGUARD_REWRITES"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def good_story() -> dict[str, dict[str, str]]:
    """A six-beat story with no defects."""
    return json.loads(json.dumps(GOOD_STORY))


@pytest.fixture
def make_topic(good_story: dict[str, dict[str, str]]) -> Callable[..., dict[str, Any]]:
    """Build a topic from the good story with per-beat text overrides."""

    def _make(title: str = "Gross vs net pay", **texts: str) -> dict[str, Any]:
        story = json.loads(json.dumps(good_story))
        for role, text in texts.items():
            story[role]["text"] = text
        return {"title": title, "story": story}

    return _make


@pytest.fixture
def write_json(tmp_path: Path) -> Callable[[str, Any], Path]:
    """Write a JSON document under tmp_path and return its path."""

    def _write(relative: str, data: Any) -> Path:
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        return path

    return _write
