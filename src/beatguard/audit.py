"""Read-only corpus scanning.

Runs every story check over a set of documents and collects the issues
per file. A document that fails to parse becomes a single bad-json issue
and scanning moves on.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from beatguard.checks.story import audit_story
from beatguard.constraints import DEFAULT_CONSTRAINTS, ConstraintTable, LimitMode
from beatguard.documents import (
    DocumentParseError,
    display_path,
    iter_topics,
    load_document,
    topic_title,
)
from beatguard.models import Issue, Locator
from beatguard.observability.logging import get_logger
from beatguard.report import AuditReport, FileFindings, build_report

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime
    from pathlib import Path

log = get_logger(__name__)


def scan_document(
    path: Path,
    *,
    label: str,
    constraints: ConstraintTable = DEFAULT_CONSTRAINTS,
    mode: LimitMode = "tolerance",
) -> FileFindings:
    """Audit every topic in one document."""
    try:
        document = load_document(path)
    except DocumentParseError as e:
        log.debug("document_unparseable", file=label, reason=e.reason)
        return FileFindings(
            file=label,
            titles=("(parse error)",),
            issues=(Issue("bad-json", e.reason, Locator(file=label)),),
        )

    titles: list[str] = []
    issues: list[Issue] = []
    for topic in iter_topics(document):
        title = topic_title(topic)
        titles.append(title)
        issues.extend(
            audit_story(
                topic.get("story"),
                file=label,
                title=title,
                limits=constraints.limits(mode),
                valid_endings=constraints.valid_endings,
            )
        )
    return FileFindings(file=label, titles=tuple(titles), issues=tuple(issues))


def scan_corpus(
    paths: Iterable[Path],
    *,
    root: Path | None = None,
    constraints: ConstraintTable = DEFAULT_CONSTRAINTS,
    mode: LimitMode = "tolerance",
) -> list[FileFindings]:
    """Audit documents in lexicographic order of their display path."""
    labelled = sorted((display_path(p, root), p) for p in paths)
    findings = [
        scan_document(path, label=label, constraints=constraints, mode=mode)
        for label, path in labelled
    ]
    log.info(
        "scan_complete",
        files=len(findings),
        issues=sum(len(f.issues) for f in findings),
        mode=mode,
    )
    return findings


def run_audit(
    paths: Iterable[Path],
    *,
    root: Path | None = None,
    constraints: ConstraintTable = DEFAULT_CONSTRAINTS,
    mode: LimitMode = "tolerance",
    generated_at: datetime | None = None,
) -> AuditReport:
    """Scan documents and build the audit report."""
    findings = scan_corpus(paths, root=root, constraints=constraints, mode=mode)
    report = build_report(findings, generated_at=generated_at)
    log.info("audit_complete", total_issues=report.total_issues, by_severity=dict(report.by_severity))
    return report
