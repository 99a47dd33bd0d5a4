"""Reading, discovering and atomically rewriting lesson documents.

A document is either a single Topic (``{"title", "story"}``) or a Plan
(``{"topics": [Topic, ...]}``). Only ``title``, ``slug`` and ``story``
matter here; every other field is carried through untouched on rewrite.
"""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

DOCUMENT_SUFFIX = ".json"


class DocumentParseError(Exception):
    """Raised when a document can't be read or parsed."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to parse document at {path}: {reason}")


class DocumentWriteError(Exception):
    """Raised when a document can't be written."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to write document at {path}: {reason}")


def load_document(path: Path) -> dict[str, Any]:
    """Load a whole JSON document into memory.

    Args:
        path: Path to the JSON file.

    Returns:
        The decoded top-level object.

    Raises:
        DocumentParseError: If the file is unreadable, not JSON, or not an object.
    """
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DocumentParseError(path, str(e)) from e

    if not isinstance(data, dict):
        raise DocumentParseError(path, f"top-level value is {type(data).__name__}, not an object")
    return data


def write_document(path: Path, data: dict[str, Any]) -> None:
    """Replace a document on disk in one step.

    The new content goes to a temporary file in the same directory and is
    then moved over the original, so an interrupted write never leaves a
    half-written document behind.

    Raises:
        DocumentWriteError: If the document can't be written.
    """
    payload = json.dumps(data, indent=2, ensure_ascii=False) + "\n"
    tmp_name: str | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as tmp:
            tmp_name = tmp.name
            tmp.write(payload)
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise DocumentWriteError(path, str(e)) from e


def iter_topics(document: dict[str, Any]) -> Iterator[dict[str, Any]]:
    """Yield the topic objects held by a Topic or Plan document.

    Non-object entries in a plan's topic list are yielded as empty topics
    so they surface as missing stories rather than disappearing.
    """
    topics = document.get("topics")
    if isinstance(topics, list):
        for topic in topics:
            yield topic if isinstance(topic, dict) else {}
        return
    yield document


def topic_title(topic: dict[str, Any]) -> str:
    title = topic.get("title")
    return title if isinstance(title, str) and title else "(untitled)"


def find_topic(document: dict[str, Any], title: str) -> dict[str, Any] | None:
    """Return the first topic whose title matches exactly, or None."""
    for topic in iter_topics(document):
        if topic.get("title") == title:
            return topic
    return None


def find_matching_topics(
    document: dict[str, Any], reference: dict[str, Any]
) -> list[dict[str, Any]]:
    """Return the topics in a document that are copies of ``reference``.

    Topics match on ``slug`` when both carry one, otherwise on exact title.
    """
    slug = reference.get("slug")
    title = reference.get("title")
    matches = []
    for topic in iter_topics(document):
        other_slug = topic.get("slug")
        if isinstance(slug, str) and slug and isinstance(other_slug, str) and other_slug:
            if other_slug == slug:
                matches.append(topic)
        elif isinstance(title, str) and topic.get("title") == title:
            matches.append(topic)
    return matches


def collect_documents(paths: Iterable[Path]) -> list[Path]:
    """Expand files and directories into a sorted, de-duplicated list of JSON documents.

    Directories are searched recursively for ``*.json``. Missing paths are
    skipped.
    """
    found: set[Path] = set()
    for path in paths:
        if path.is_dir():
            found.update(p for p in path.rglob(f"*{DOCUMENT_SUFFIX}") if p.is_file())
        elif path.is_file():
            found.add(path)
    return sorted(found, key=lambda p: p.as_posix())


def display_path(path: Path, root: Path | None = None) -> str:
    """Render a document path relative to the project root where possible."""
    if root is not None:
        try:
            return path.resolve().relative_to(root.resolve()).as_posix()
        except ValueError:
            pass
    return path.as_posix()
