"""Audit report assembly, rendering and output path selection.

All counts are derived from the flat issue list at construction time, so
the header total always equals the sum of per-file issue counts. A default
report path is never reused: date-stamped names are tried with -2, -3, ...
suffixes and the file is created exclusively.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from datetime import UTC, date, datetime
from pathlib import Path
from types import MappingProxyType

from beatguard.models import Issue
from beatguard.severity import SEVERITY_ORDER

DEFAULT_REPORT_PREFIX = "content-audit"
MAX_PATH_ATTEMPTS = 100


class ReportPathError(Exception):
    """Raised when no unused report path can be found."""

    def __init__(self, reports_dir: Path, attempts: int) -> None:
        self.reports_dir = reports_dir
        self.attempts = attempts
        super().__init__(f"No unused report path in {reports_dir} after {attempts} attempts")


@dataclass(frozen=True)
class FileFindings:
    """Issues found in one document."""

    file: str
    titles: tuple[str, ...]
    issues: tuple[Issue, ...]


@dataclass(frozen=True)
class AuditReport:
    """Immutable snapshot of one audit run."""

    generated_at: datetime
    files: tuple[FileFindings, ...]
    total_issues: int
    by_severity: Mapping[str, int]
    by_check_type: Mapping[str, int]

    @property
    def files_with_issues(self) -> tuple[FileFindings, ...]:
        return tuple(f for f in self.files if f.issues)

    @property
    def issues(self) -> Iterator[Issue]:
        for findings in self.files:
            yield from findings.issues


def build_report(
    findings: Iterable[FileFindings],
    generated_at: datetime | None = None,
) -> AuditReport:
    """Assemble a report from per-file findings.

    Files are ordered by name. ``by_check_type`` is ordered by descending
    count, ties broken by check name.
    """
    files = tuple(sorted(findings, key=lambda f: f.file))
    flat = [issue for f in files for issue in f.issues]

    severity_counts = Counter(issue.severity for issue in flat)
    by_severity = {severity: severity_counts.get(severity, 0) for severity in SEVERITY_ORDER}

    check_counts = Counter(issue.check for issue in flat)
    by_check_type = dict(sorted(check_counts.items(), key=lambda kv: (-kv[1], kv[0])))

    return AuditReport(
        generated_at=generated_at or datetime.now(UTC),
        files=files,
        total_issues=len(flat),
        by_severity=MappingProxyType(by_severity),
        by_check_type=MappingProxyType(by_check_type),
    )


def render_markdown(report: AuditReport) -> str:
    """Render the report as Markdown."""
    affected = report.files_with_issues
    lines = [
        "# Beat Audit Report",
        "",
        f"> Generated {report.generated_at:%Y-%m-%d}",
        f"> Scanned **{len(report.files)}** files, found **{report.total_issues}** issues "
        f"across **{len(affected)}** files.",
        "",
    ]

    if not affected:
        lines.append("No issues found, all beats look healthy.")
        return "\n".join(lines) + "\n"

    lines += ["## Summary by severity", "", "| Severity | Count |", "|----------|------:|"]
    lines += [f"| {severity} | {count} |" for severity, count in report.by_severity.items()]
    lines.append("")

    lines += ["## Summary by issue type", "", "| Check | Count |", "|-------|------:|"]
    lines += [f"| {check} | {count} |" for check, count in report.by_check_type.items()]
    lines.append("")

    lines += ["## Detailed findings", ""]
    for findings in affected:
        lines += [f"### `{findings.file}`", ""]
        current_topic: str | None = None
        for issue in findings.issues:
            topic = issue.locator.topic
            if topic is not None and topic != current_topic:
                if current_topic is not None:
                    lines.append("")
                lines += [f"**{topic}**", ""]
                current_topic = topic
            lines.append(f"- **{issue.severity}** `{issue.check}`: {issue.message}")
        lines.append("")

    return "\n".join(lines)


def _candidate_paths(reports_dir: Path, today: date, max_attempts: int) -> Iterator[Path]:
    stem = f"{DEFAULT_REPORT_PREFIX}-{today:%Y-%m-%d}"
    yield reports_dir / f"{stem}.md"
    for n in range(2, max_attempts + 1):
        yield reports_dir / f"{stem}-{n}.md"


def choose_report_path(
    reports_dir: Path,
    *,
    explicit: Path | None = None,
    today: date | None = None,
    max_attempts: int = MAX_PATH_ATTEMPTS,
) -> Path:
    """Pick where a report goes.

    An explicit path is used as-is. Otherwise the first unused
    date-stamped name in ``reports_dir`` is returned.

    Raises:
        ReportPathError: If every candidate name is taken.
    """
    if explicit is not None:
        return explicit
    for candidate in _candidate_paths(reports_dir, today or date.today(), max_attempts):
        if not candidate.exists():
            return candidate
    raise ReportPathError(reports_dir, max_attempts)


def write_report(
    report: AuditReport,
    reports_dir: Path,
    *,
    explicit: Path | None = None,
    today: date | None = None,
    max_attempts: int = MAX_PATH_ATTEMPTS,
) -> Path:
    """Render and write a report once, returning the path written.

    Default paths are created exclusively so a concurrent run can't be
    overwritten; an explicit path is overwritten if it exists.

    Raises:
        ReportPathError: If every default candidate name is taken.
    """
    content = render_markdown(report)

    if explicit is not None:
        explicit.parent.mkdir(parents=True, exist_ok=True)
        explicit.write_text(content, encoding="utf-8")
        return explicit

    reports_dir.mkdir(parents=True, exist_ok=True)
    for candidate in _candidate_paths(reports_dir, today or date.today(), max_attempts):
        try:
            with candidate.open("x", encoding="utf-8") as f:
                f.write(content)
        except FileExistsError:
            continue
        return candidate
    raise ReportPathError(reports_dir, max_attempts)
