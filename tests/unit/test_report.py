"""Tests for report assembly, rendering and path selection."""

from __future__ import annotations

from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

import pytest

from beatguard.models import Issue, Locator
from beatguard.report import (
    FileFindings,
    ReportPathError,
    build_report,
    choose_report_path,
    render_markdown,
    write_report,
)

if TYPE_CHECKING:
    from pathlib import Path

TODAY = date(2026, 3, 14)
GENERATED = datetime(2026, 3, 14, 9, 30, tzinfo=UTC)


def issue(check: str, file: str = "a.json", topic: str | None = "Pay") -> Issue:
    return Issue(check, f"{check} message", Locator(file=file, topic=topic, beat="hook"))


@pytest.fixture
def findings() -> list[FileFindings]:
    return [
        FileFindings("b.json", ("Budget",), (issue("double-space", "b.json", "Budget"),)),
        FileFindings(
            "a.json",
            ("Pay", "Tax"),
            (
                issue("bad-ending"),
                issue("double-space"),
                issue("missing-visual", topic="Tax"),
            ),
        ),
        FileFindings("c.json", ("Clean",), ()),
    ]


class TestBuildReport:
    def test_totals_match_file_issues(self, findings: list[FileFindings]) -> None:
        report = build_report(findings, GENERATED)

        assert report.total_issues == 4
        assert report.total_issues == sum(len(f.issues) for f in report.files)
        assert sum(report.by_severity.values()) == report.total_issues
        assert sum(report.by_check_type.values()) == report.total_issues

    def test_files_sorted(self, findings: list[FileFindings]) -> None:
        report = build_report(findings, GENERATED)

        assert [f.file for f in report.files] == ["a.json", "b.json", "c.json"]
        assert [f.file for f in report.files_with_issues] == ["a.json", "b.json"]

    def test_severity_counts_include_zeroes(self) -> None:
        report = build_report([FileFindings("a.json", (), (issue("bad-ending"),))], GENERATED)

        assert dict(report.by_severity) == {"high": 1, "medium": 0, "low": 0}

    def test_check_types_by_descending_count_then_name(
        self, findings: list[FileFindings]
    ) -> None:
        report = build_report(findings, GENERATED)

        assert list(report.by_check_type.items()) == [
            ("double-space", 2),
            ("bad-ending", 1),
            ("missing-visual", 1),
        ]

    def test_report_is_immutable(self, findings: list[FileFindings]) -> None:
        report = build_report(findings, GENERATED)

        with pytest.raises(TypeError):
            report.by_severity["high"] = 99  # type: ignore[index]


class TestRenderMarkdown:
    def test_sections(self, findings: list[FileFindings]) -> None:
        markdown = render_markdown(build_report(findings, GENERATED))

        assert markdown.startswith("# Beat Audit Report")
        assert "> Generated 2026-03-14" in markdown
        assert "found **4** issues across **2** files" in markdown
        assert "| high | 1 |" in markdown
        assert "| double-space | 2 |" in markdown
        assert "### `a.json`" in markdown
        assert "**Tax**" in markdown
        assert "- **high** `bad-ending`: bad-ending message" in markdown
        assert "c.json" not in markdown

    def test_clean_corpus(self) -> None:
        markdown = render_markdown(build_report([FileFindings("a.json", ("Pay",), ())], GENERATED))

        assert "found **0** issues" in markdown
        assert "No issues found" in markdown


class TestReportPaths:
    def test_default_name(self, tmp_path: Path) -> None:
        assert choose_report_path(tmp_path, today=TODAY) == tmp_path / "content-audit-2026-03-14.md"

    def test_explicit_path_wins(self, tmp_path: Path) -> None:
        explicit = tmp_path / "mine.md"

        assert choose_report_path(tmp_path, explicit=explicit, today=TODAY) == explicit

    def test_tries_numeric_suffixes(self, tmp_path: Path) -> None:
        (tmp_path / "content-audit-2026-03-14.md").write_text("old")
        (tmp_path / "content-audit-2026-03-14-2.md").write_text("old")

        assert choose_report_path(tmp_path, today=TODAY) == (
            tmp_path / "content-audit-2026-03-14-3.md"
        )

    def test_exhaustion_raises(self, tmp_path: Path) -> None:
        (tmp_path / "content-audit-2026-03-14.md").write_text("old")
        (tmp_path / "content-audit-2026-03-14-2.md").write_text("old")

        with pytest.raises(ReportPathError):
            choose_report_path(tmp_path, today=TODAY, max_attempts=2)

    def test_write_never_overwrites(self, tmp_path: Path, findings: list[FileFindings]) -> None:
        report = build_report(findings, GENERATED)
        reports_dir = tmp_path / "audits"

        first = write_report(report, reports_dir, today=TODAY)
        second = write_report(report, reports_dir, today=TODAY)

        assert first.name == "content-audit-2026-03-14.md"
        assert second.name == "content-audit-2026-03-14-2.md"
        assert first.read_text() == second.read_text() == render_markdown(report)

    def test_write_explicit_overwrites(self, tmp_path: Path, findings: list[FileFindings]) -> None:
        explicit = tmp_path / "out" / "report.md"
        explicit.parent.mkdir()
        explicit.write_text("old")

        path = write_report(build_report(findings, GENERATED), tmp_path, explicit=explicit)

        assert path == explicit
        assert explicit.read_text().startswith("# Beat Audit Report")
