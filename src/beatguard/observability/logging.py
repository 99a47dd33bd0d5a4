"""Logging setup shared by the CLI and the engines.

Engines log structured events through structlog. Events go to a rich
console handler on stderr, quiet unless ``-v`` is given, and with ``--log``
also to ``<root>/logs/debug.jsonl`` as one JSON object per line.

Per-beat context is attached with ``bind_locator``, so every event an
engine logs while working on a beat carries its ``file``, ``topic`` and
``beat`` without repeating them at each call site.
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from structlog.typing import EventDict, FilteringBoundLogger, Processor, WrappedLogger

    from beatguard.models import Locator

LOGS_DIRNAME = "logs"
LOG_FILE_NAME = "debug.jsonl"

# Console level per -v count; anything above maps to DEBUG.
_CONSOLE_LEVELS = {0: logging.WARNING, 1: logging.INFO}
# Keys structlog adds that the JSONL entry already carries in its own form.
_STRUCTLOG_META = frozenset({"level", "timestamp", "event"})

_configured = False
_jsonl_handler: JSONLinesHandler | None = None


class JSONLinesHandler(logging.FileHandler):
    """Append every record to a file as a single JSON object."""

    def __init__(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        super().__init__(path, mode="a", encoding="utf-8")
        self.setLevel(logging.DEBUG)

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
        }
        if isinstance(record.msg, dict):
            # Event dict handed over by ProcessorFormatter.wrap_for_formatter
            entry["message"] = record.msg.get("event", "")
            entry.update((k, v) for k, v in record.msg.items() if k not in _STRUCTLOG_META)
        else:
            entry["message"] = record.getMessage()
        return json.dumps(entry, default=str, ensure_ascii=False)


def log_file_for(root: Path) -> Path:
    """Where ``--log`` writes for a project root."""
    return root / LOGS_DIRNAME / LOG_FILE_NAME


def _drop_console_meta(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    # RichHandler prints its own level and time columns.
    event_dict.pop("level", None)
    event_dict.pop("timestamp", None)
    return event_dict


def _console_handler(verbosity: int, shared: list[Processor]) -> RichHandler:
    handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        tracebacks_show_locals=verbosity >= 2,
        show_time=verbosity >= 1,
        show_path=verbosity >= 2,
        markup=False,
        level=_CONSOLE_LEVELS.get(verbosity, logging.DEBUG),
    )
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _drop_console_meta,
                structlog.dev.ConsoleRenderer(colors=False),
            ],
        )
    )
    return handler


def configure_logging(verbosity: int = 0, log_file: Path | None = None) -> None:
    """Route beatguard's structured events to the console and optionally a file.

    Args:
        verbosity: 0 shows warnings only, 1 adds INFO, 2+ adds DEBUG.
        log_file: JSONL file receiving every event at DEBUG and above.
    """
    global _configured

    close_log_file()

    shared: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    handlers: list[logging.Handler] = [_console_handler(verbosity, shared)]
    if log_file is not None:
        handlers.append(_open_log_file(log_file))

    root_level = logging.DEBUG if (verbosity > 0 or log_file is not None) else logging.WARNING
    logging.basicConfig(level=root_level, format="%(message)s", handlers=handlers, force=True)

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        # Loggers are re-levelled on every CLI invocation.
        cache_logger_on_first_use=False,
    )
    _configured = True


def _open_log_file(path: Path) -> JSONLinesHandler:
    global _jsonl_handler
    _jsonl_handler = JSONLinesHandler(path)
    return _jsonl_handler


def close_log_file() -> None:
    """Flush and close the JSONL handler, if one is open."""
    global _jsonl_handler
    if _jsonl_handler is not None:
        _jsonl_handler.close()
        _jsonl_handler = None


def get_logger(name: str | None = None) -> FilteringBoundLogger:
    """Return a structlog logger, configuring console-only logging on first use."""
    if not _configured:
        configure_logging()
    logger: FilteringBoundLogger = structlog.get_logger(name)
    return logger


@contextmanager
def bind_locator(locator: Locator) -> Iterator[None]:
    """Attach a beat's file, topic and beat to every event logged inside the block."""
    fields = {
        key: value
        for key, value in (
            ("file", locator.file),
            ("topic", locator.topic),
            ("beat", locator.beat),
        )
        if value is not None
    }
    with structlog.contextvars.bound_contextvars(**fields):
        yield
