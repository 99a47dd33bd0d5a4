"""Extract broken beats into defect records for reconciliation."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from beatguard.checks.beat import check_text
from beatguard.constraints import BEAT_ROLES, DEFAULT_CONSTRAINTS, ConstraintTable, LimitMode
from beatguard.documents import (
    DocumentParseError,
    DocumentWriteError,
    display_path,
    iter_topics,
    load_document,
    topic_title,
)
from beatguard.models import DefectRecord
from beatguard.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

log = get_logger(__name__)


def extract_defects(
    paths: Iterable[Path],
    *,
    root: Path | None = None,
    constraints: ConstraintTable = DEFAULT_CONSTRAINTS,
    mode: LimitMode = "tolerance",
) -> list[DefectRecord]:
    """Collect one record per beat whose text fails any text-level check.

    Unparseable documents are skipped with a warning; they have no beats
    that could be rewritten.
    """
    limits = constraints.limits(mode)
    records: list[DefectRecord] = []

    for label, path in sorted((display_path(p, root), p) for p in paths):
        try:
            document = load_document(path)
        except DocumentParseError as e:
            log.warning("extract_document_skipped", file=label, reason=e.reason)
            continue

        for topic in iter_topics(document):
            story = topic.get("story")
            if not isinstance(story, dict):
                continue
            title = topic_title(topic)
            for role in BEAT_ROLES:
                node = story.get(role)
                if not isinstance(node, dict) or not isinstance(node.get("text"), str):
                    continue
                text = node["text"]
                issues = check_text(
                    text, role, limits, title=title, valid_endings=constraints.valid_endings
                )
                if not issues:
                    continue
                records.append(
                    DefectRecord(
                        file=label,
                        topic_title=title,
                        beat=role,
                        text=text,
                        issues=[i.check for i in issues],
                        length=len(text.strip()),
                        max_length=limits.for_role(role),
                    )
                )

    log.info("extract_complete", records=len(records))
    return records


def dump_defect_records(records: Iterable[DefectRecord]) -> str:
    """Serialise records as the JSON array reconciliation reads back."""
    payload = [record.model_dump(by_alias=True) for record in records]
    return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"


def write_defect_records(records: Iterable[DefectRecord], path: Path) -> None:
    """Write records to ``path``.

    Raises:
        DocumentWriteError: If the file can't be written.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(dump_defect_records(records), encoding="utf-8")
    except OSError as e:
        raise DocumentWriteError(path, str(e)) from e
