"""Apply curated beat rewrites under an optimistic lock.

Each defect record names a beat and the text it held when the defect was
extracted. A replacement comes from the curated rewrite table, or from an
auto-rule for purely mechanical defects. It is applied only if:

1. the proposed text passes every text-level check, and
2. the beat still holds exactly the text the record expected.

Documents are loaded once per file and written once at the end, after all
records are processed. A failing record never stops the batch; verified
replacements are persisted even when other records fail.

A topic often exists twice, once as its own document and once inside a
course plan. Given mirror documents, each fix is carried over to those
copies under the same lock.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Literal

from pydantic import ValidationError
from ruamel.yaml import YAML

from beatguard.checks.beat import check_text
from beatguard.constraints import DEFAULT_CONSTRAINTS, ConstraintTable, LimitMode
from beatguard.documents import (
    DocumentParseError,
    DocumentWriteError,
    display_path,
    find_matching_topics,
    find_topic,
    load_document,
    topic_title,
    write_document,
)
from beatguard.models import DefectRecord, Locator, RemediationRecord, RewriteEntry
from beatguard.observability.logging import bind_locator, get_logger
from beatguard.repairs import DEFAULT_AUTO_RULES, AutoRule

log = get_logger(__name__)


class ReconcileInputError(Exception):
    """Raised when a rewrite table or defect record file can't be loaded."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load {path}: {reason}")


@dataclass(frozen=True)
class RewriteTable:
    """Curated replacements keyed by (file, topic title, beat role)."""

    entries: Mapping[tuple[str, str, str], str] = field(default_factory=dict)

    def get(self, file: str, topic: str, beat: str) -> str | None:
        return self.entries.get((file, topic, beat))

    def __len__(self) -> int:
        return len(self.entries)

    @classmethod
    def from_entries(cls, entries: Iterable[RewriteEntry]) -> RewriteTable:
        """Build a table; a later entry for the same beat replaces an earlier one."""
        return cls({entry.key: entry.text for entry in entries})


def _read_structured(path: Path) -> Any:
    if not path.exists():
        raise ReconcileInputError(path, "File not found")
    try:
        with path.open("r", encoding="utf-8") as f:
            if path.suffix == ".json":
                return json.load(f)
            return YAML(typ="safe").load(f)
    except Exception as e:
        raise ReconcileInputError(path, str(e)) from e


def load_rewrite_table(path: Path) -> RewriteTable:
    """Load curated rewrites from YAML or JSON.

    Accepts a list of entries or a mapping with a ``rewrites`` list. Each
    entry has ``file``, ``topic`` (or ``topicTitle``), ``beat`` and ``text``.

    Raises:
        ReconcileInputError: If the file is missing, unparseable or has invalid entries.
    """
    data = _read_structured(path)
    if isinstance(data, dict):
        data = data.get("rewrites", [])
    if not isinstance(data, list):
        raise ReconcileInputError(path, "expected a list of rewrite entries")
    try:
        return RewriteTable.from_entries(RewriteEntry.model_validate(item) for item in data)
    except ValidationError as e:
        raise ReconcileInputError(path, str(e)) from e


def load_defect_records(path: Path) -> list[DefectRecord]:
    """Load the JSON (or YAML) array of defect records produced by extraction.

    Raises:
        ReconcileInputError: If the file is missing, unparseable or has invalid records.
    """
    data = _read_structured(path)
    if not isinstance(data, list):
        raise ReconcileInputError(path, "expected a list of defect records")
    try:
        return [DefectRecord.model_validate(item) for item in data]
    except ValidationError as e:
        raise ReconcileInputError(path, str(e)) from e


@dataclass(frozen=True)
class EntryOutcome:
    """What happened to one defect record.

    Attributes:
        record: The input record.
        ok: True when the replacement was applied (or would be, in dry-run).
        reason: Failure reason, empty on success.
        issues: Issue codes still found in the proposed text.
        remediation: The verified replacement, when one was produced.
        source: "curated" or "auto" for where the replacement came from.
        copies: Other documents whose copy of the topic got the same fix.
    """

    record: DefectRecord
    ok: bool
    reason: str = ""
    issues: tuple[str, ...] = ()
    remediation: RemediationRecord | None = None
    source: Literal["curated", "auto"] | None = None
    copies: tuple[str, ...] = ()


@dataclass
class ReconcileResult:
    """Outcome of a reconciliation batch."""

    outcomes: list[EntryOutcome] = field(default_factory=list)
    written: list[str] = field(default_factory=list)
    dry_run: bool = False

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def fixed(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed(self) -> int:
        return self.total - self.fixed

    @property
    def ok(self) -> bool:
        return self.failed == 0


def _propose(
    record: DefectRecord,
    table: RewriteTable,
    auto_rules: Mapping[str, AutoRule],
    max_len: int,
    issue_codes: list[str],
) -> tuple[str | None, Literal["curated", "auto"] | None]:
    curated = table.get(record.file, record.topic_title, record.beat)
    if curated is not None:
        return curated, "curated"
    for code in issue_codes:
        rule = auto_rules.get(code)
        if rule is None:
            continue
        candidate = rule(record.text, max_len)
        if candidate is not None and candidate != record.text.strip():
            return candidate, "auto"
    return None, None


def reconcile(
    records: Iterable[DefectRecord],
    table: RewriteTable,
    *,
    content_root: Path,
    constraints: ConstraintTable = DEFAULT_CONSTRAINTS,
    auto_rules: Mapping[str, AutoRule] = DEFAULT_AUTO_RULES,
    mode: LimitMode = "tolerance",
    dry_run: bool = False,
    mirror_paths: Iterable[Path] | None = None,
) -> ReconcileResult:
    """Apply curated and automatic rewrites to stored documents.

    When ``mirror_paths`` is given, every verified replacement is also
    applied to copies of the same topic (matched by slug, else by title) in
    those documents, under the same lock: a copy is only updated while it
    still holds the record's original text.

    Args:
        records: Defect records from extraction.
        table: Curated rewrite table.
        content_root: Directory record file paths are relative to.
        constraints: Constraint table for re-validation.
        auto_rules: Mechanical repairs keyed by issue code.
        mode: Which limit set the proposed text must satisfy.
        dry_run: Validate everything but write nothing.
        mirror_paths: Documents that may hold copies of the fixed topics.

    Returns:
        ReconcileResult with one outcome per record and the files written.
    """
    limits = constraints.limits(mode)
    documents: dict[str, dict[str, Any]] = {}
    unreadable: dict[str, str] = {}
    touched: list[str] = []
    # (file, topic, beat) -> text written into a copy earlier in this batch
    mirrored_texts: dict[tuple[str, str, str], str] = {}
    mirror_files = [display_path(p, content_root) for p in mirror_paths or ()]
    result = ReconcileResult(dry_run=dry_run)

    def load(file: str) -> dict[str, Any] | None:
        if file in unreadable:
            return None
        document = documents.get(file)
        if document is None:
            try:
                document = load_document(content_root / file)
            except DocumentParseError as e:
                unreadable[file] = f"document unreadable: {e.reason}"
                return None
            documents[file] = document
        return document

    def touch(file: str) -> None:
        if file not in touched:
            touched.append(file)

    def fail(record: DefectRecord, reason: str, **kwargs: Any) -> None:
        log.warning("reconcile_entry_failed", reason=reason)
        result.outcomes.append(EntryOutcome(record, ok=False, reason=reason, **kwargs))

    def apply_to_copies(record: DefectRecord, topic: dict[str, Any], proposed: str) -> list[str]:
        updated: list[str] = []
        for file in mirror_files:
            if file == record.file:
                continue
            document = load(file)
            if document is None:
                log.warning("reconcile_copy_unreadable", copy=file, reason=unreadable[file])
                continue
            for copy in find_matching_topics(document, topic):
                story = copy.get("story")
                node = story.get(record.beat) if isinstance(story, dict) else None
                if not isinstance(node, dict) or not isinstance(node.get("text"), str):
                    continue
                if node["text"].strip() == proposed.strip():
                    continue
                if node["text"].strip() != record.text.strip():
                    log.warning("reconcile_copy_stale", copy=file)
                    continue
                node["text"] = proposed
                mirrored_texts[(file, topic_title(copy), record.beat)] = proposed.strip()
                if file not in updated:
                    updated.append(file)
        return updated

    for record in records:
        locator = Locator(file=record.file, topic=record.topic_title, beat=record.beat)
        with bind_locator(locator):
            max_len = limits.for_role(record.beat)
            issue_codes = record.issues or [
                i.check
                for i in check_text(
                    record.text,
                    record.beat,
                    limits,
                    title=record.topic_title,
                    valid_endings=constraints.valid_endings,
                )
            ]

            proposed, source = _propose(record, table, auto_rules, max_len, issue_codes)
            if proposed is None:
                fail(record, "no curated rewrite or auto-rule applies")
                continue

            remaining = check_text(
                proposed,
                record.beat,
                limits,
                title=record.topic_title,
                locator=locator,
                valid_endings=constraints.valid_endings,
            )
            if remaining:
                codes = tuple(i.check for i in remaining)
                fail(record, f"proposed text still fails checks: {', '.join(codes)}", issues=codes)
                continue

            document = load(record.file)
            if document is None:
                fail(record, unreadable[record.file])
                continue

            topic = find_topic(document, record.topic_title)
            if topic is None:
                fail(record, f'topic "{record.topic_title}" not found')
                continue
            story = topic.get("story")
            node = story.get(record.beat) if isinstance(story, dict) else None
            if not isinstance(node, dict) or not isinstance(node.get("text"), str):
                fail(record, f'beat "{record.beat}" not found')
                continue

            stored = node["text"].strip()
            if stored != record.text.strip():
                if mirrored_texts.get(record.key) == stored == proposed.strip():
                    log.debug("reconcile_already_mirrored")
                else:
                    fail(
                        record,
                        "stored text no longer matches the expected original (stale edit)",
                    )
                    continue

            node["text"] = proposed
            touch(record.file)
            copies = apply_to_copies(record, topic, proposed)
            for file in copies:
                touch(file)
            result.outcomes.append(
                EntryOutcome(
                    record,
                    ok=True,
                    remediation=RemediationRecord(locator, record.text, proposed),
                    source=source,
                    copies=tuple(copies),
                )
            )

    if not dry_run:
        for file in touched:
            try:
                write_document(content_root / file, documents[file])
            except DocumentWriteError as e:
                log.error("reconcile_write_failed", file=file, reason=e.reason)
                result.outcomes = [
                    replace(o, ok=False, reason=f"write failed: {e.reason}")
                    if o.ok and (o.record.file == file or file in o.copies)
                    else o
                    for o in result.outcomes
                ]
                continue
            result.written.append(file)
            log.info("document_written", file=file)

    log.info(
        "reconcile_complete",
        fixed=result.fixed,
        failed=result.failed,
        total=result.total,
        dry_run=dry_run,
    )
    return result
