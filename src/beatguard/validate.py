"""Build-time gate over the lesson corpus.

Runs the same scan as the auditor and fails when any high-severity issue
is present. Lower severities are counted but never block.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from beatguard.audit import scan_corpus
from beatguard.constraints import DEFAULT_CONSTRAINTS, ConstraintTable
from beatguard.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from beatguard.models import Issue

log = get_logger(__name__)


@dataclass
class ValidationOutcome:
    """Result of validating a set of documents.

    Attributes:
        violations: High-severity issues, in scan order.
        files_checked: Number of documents scanned.
        total_issues: All issues found, any severity.
    """

    violations: list[Issue] = field(default_factory=list)
    files_checked: int = 0
    total_issues: int = 0

    @property
    def passed(self) -> bool:
        return not self.violations

    @property
    def warnings(self) -> int:
        return self.total_issues - len(self.violations)


def validate_corpus(
    paths: Iterable[Path],
    *,
    root: Path | None = None,
    constraints: ConstraintTable = DEFAULT_CONSTRAINTS,
    strict_lengths: bool = False,
) -> ValidationOutcome:
    """Validate documents against the high-severity gate.

    Args:
        paths: Document files.
        root: Project root, for display paths.
        constraints: Constraint table in force.
        strict_lengths: Check lengths against generation limits instead of
            the validation tolerance.
    """
    mode = "generation" if strict_lengths else "tolerance"
    findings = scan_corpus(paths, root=root, constraints=constraints, mode=mode)

    outcome = ValidationOutcome(files_checked=len(findings))
    for file_findings in findings:
        outcome.total_issues += len(file_findings.issues)
        outcome.violations.extend(i for i in file_findings.issues if i.severity == "high")

    if outcome.passed:
        log.info("validation_passed", files=outcome.files_checked, warnings=outcome.warnings)
    else:
        log.warning(
            "validation_failed",
            files=outcome.files_checked,
            violations=len(outcome.violations),
        )
    return outcome
