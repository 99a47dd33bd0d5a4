"""beatguard CLI - typer application entry point."""

from __future__ import annotations

import atexit
import json
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from beatguard.config import ProjectConfig, ProjectConfigError, resolve_project_config
from beatguard.constraints import BEAT_ROLES
from beatguard.documents import DocumentWriteError, collect_documents
from beatguard.observability import (
    close_log_file,
    configure_logging,
    get_logger,
    log_file_for,
)

if TYPE_CHECKING:
    from beatguard.models import DefectRecord

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="beatguard",
    help="beatguard: Structural integrity checks and repairs for lesson story beats.",
    no_args_is_help=True,
)
console = Console()
log = get_logger(__name__)

# Global state for logging flags (set by callback, used by commands)
_verbose: int = 0
_log_enabled: bool = False
_root: Path = Path()

PathsArg = Annotated[
    list[Path] | None,
    typer.Argument(
        help="Document files or directories. Defaults to the content_dirs in beatguard.yaml.",
    ),
]
StrictLengthsOpt = Annotated[
    bool,
    typer.Option(
        "--strict-lengths",
        help="Check lengths against generation limits instead of the validation tolerance.",
    ),
]


@app.callback()
def main(
    verbose: Annotated[
        int,
        typer.Option(
            "-v",
            "--verbose",
            count=True,
            help="Increase verbosity: -v for INFO, -vv for DEBUG.",
        ),
    ] = 0,
    log: Annotated[
        bool,
        typer.Option(
            "--log",
            help="Enable file logging to {root}/logs/debug.jsonl.",
        ),
    ] = False,
    root: Annotated[
        Path,
        typer.Option(
            "--root",
            "-r",
            help="Project root holding beatguard.yaml (default: current directory).",
            envvar="BEATGUARD_ROOT",
        ),
    ] = Path(),
) -> None:
    """beatguard: Structural integrity checks and repairs for lesson story beats."""
    global _verbose, _log_enabled, _root
    _verbose = verbose
    _log_enabled = log
    _root = root

    configure_logging(verbosity=verbose, log_file=log_file_for(root) if log else None)
    if log:
        atexit.register(close_log_file)


def _load_config() -> ProjectConfig:
    """Load beatguard.yaml from the project root, exit with error if broken."""
    try:
        return resolve_project_config(_root)
    except ProjectConfigError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e


def _resolve_documents(paths: list[Path] | None, config: ProjectConfig) -> list[Path]:
    """Expand CLI paths (or the configured content dirs) into document files."""
    targets = paths or config.get_content_paths(_root)
    documents = collect_documents(targets)
    if not documents:
        console.print("[yellow]No documents found.[/yellow]")
    log.debug("documents_resolved", count=len(documents), targets=[str(t) for t in targets])
    return documents


@app.command()
def version() -> None:
    """Show version information."""
    from beatguard import __version__

    console.print(f"beatguard v{__version__}")


@app.command()
def limits() -> None:
    """Show the beat length limits in force."""
    config = _load_config()
    constraints = config.constraints()

    table = Table(title="Beat Limits")
    table.add_column("Role", style="cyan")
    table.add_column("Generation", justify="right")
    table.add_column("Tolerance", justify="right")
    for role in BEAT_ROLES:
        table.add_row(
            role,
            str(constraints.max_length(role, "generation")),
            str(constraints.max_length(role, "tolerance")),
        )

    console.print()
    console.print(table)
    console.print(f"Valid endings: {escape(' '.join(sorted(constraints.valid_endings)))}")
    console.print()


@app.command()
def audit(
    paths: PathsArg = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write the report here instead of the reports dir."),
    ] = None,
    strict_lengths: StrictLengthsOpt = False,
) -> None:
    """Scan documents and write a Markdown audit report."""
    from beatguard.audit import run_audit
    from beatguard.report import ReportPathError, write_report

    config = _load_config()
    documents = _resolve_documents(paths, config)

    report = run_audit(
        documents,
        root=_root,
        constraints=config.constraints(),
        mode="generation" if strict_lengths else "tolerance",
    )

    try:
        report_path = write_report(report, config.get_reports_dir(_root), explicit=output)
    except (ReportPathError, OSError) as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e

    table = Table(title="Audit Summary")
    table.add_column("Severity", style="cyan")
    table.add_column("Count", justify="right")
    severity_styles = {"high": "red", "medium": "yellow", "low": "dim"}
    for severity, count in report.by_severity.items():
        style = severity_styles.get(severity, "")
        table.add_row(f"[{style}]{severity}[/{style}]", str(count))

    console.print()
    console.print(table)
    console.print(
        f"  Files: {len(report.files)} scanned, {len(report.files_with_issues)} with issues"
    )
    for check, count in list(report.by_check_type.items())[:5]:
        console.print(f"  [dim]{check}: {count}[/dim]")
    console.print()
    console.print(f"[green]✓[/green] Report written: [cyan]{report_path}[/cyan]")


@app.command()
def validate(
    paths: PathsArg = None,
    strict_lengths: StrictLengthsOpt = False,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the violations as a JSON array for CI tooling."),
    ] = False,
) -> None:
    """Fail when any document has a high-severity beat issue."""
    from beatguard.validate import validate_corpus

    config = _load_config()
    documents = _resolve_documents(paths, config)

    outcome = validate_corpus(
        documents,
        root=_root,
        constraints=config.constraints(),
        strict_lengths=strict_lengths,
    )

    if as_json:
        violations = [issue.to_dict() for issue in outcome.violations]
        typer.echo(json.dumps(violations, indent=2, ensure_ascii=False))
        if not outcome.passed:
            raise typer.Exit(1)
        return

    if outcome.passed:
        console.print(
            f"[green]✓[/green] {outcome.files_checked} files passed "
            f"({outcome.warnings} lower-severity issues)"
        )
        return

    for issue in outcome.violations:
        console.print(
            f"  [red]•[/red] {escape(str(issue.locator))}: "
            f"[bold]{issue.check}[/bold] {escape(issue.message)}"
        )
    console.print()
    console.print(
        f"[red]✗[/red] {len(outcome.violations)} high-severity issues "
        f"in {outcome.files_checked} files"
    )
    raise typer.Exit(1)


@app.command()
def shorten(
    paths: PathsArg = None,
    write: Annotated[
        bool,
        typer.Option("--write", "-w", help="Apply changes. Without this flag nothing is written."),
    ] = False,
    tolerance: Annotated[
        bool,
        typer.Option("--tolerance", help="Shorten to the validation tolerance, not generation limits."),
    ] = False,
) -> None:
    """Shorten over-limit beats at natural break points."""
    from beatguard.shorten import shorten_documents

    config = _load_config()
    documents = _resolve_documents(paths, config)
    beat_limits = config.constraints().limits("tolerance" if tolerance else "generation")

    result = shorten_documents(documents, limits=beat_limits, root=_root, write=write)

    for change in result.changes:
        console.print(
            f"[green]✓[/green] {escape(str(change.locator))} "
            f"[dim]({len(change.old_text.strip())} → {len(change.new_text)})[/dim]"
        )
        if _verbose:
            console.print(f"    [dim]{escape(change.new_text)}[/dim]")
    for failure in result.failures:
        console.print(f"[red]✗[/red] {escape(str(failure.locator))}: {escape(failure.reason)}")

    console.print()
    console.print(
        f"Over-limit beats: {result.violations}, "
        f"shortened: {len(result.changes)}, failed: {len(result.failures)}"
    )
    if result.changes and not write:
        console.print("[dim]Dry run: rerun with --write to apply.[/dim]")
    elif result.written:
        console.print(f"[green]✓[/green] Updated {len(result.written)} files")

    if not result.ok:
        raise typer.Exit(1)


@app.command()
def extract(
    paths: PathsArg = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write records here instead of stdout."),
    ] = None,
    strict_lengths: StrictLengthsOpt = False,
) -> None:
    """Export broken beats as JSON defect records for reconciliation."""
    from beatguard.extract import dump_defect_records, extract_defects, write_defect_records

    config = _load_config()
    documents = _resolve_documents(paths, config)

    records = extract_defects(
        documents,
        root=_root,
        constraints=config.constraints(),
        mode="generation" if strict_lengths else "tolerance",
    )

    if output is None:
        typer.echo(dump_defect_records(records), nl=False)
        return

    try:
        write_defect_records(records, output)
    except DocumentWriteError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e
    console.print(f"[green]✓[/green] Wrote {len(records)} records to [cyan]{output}[/cyan]")


def _record_label(record: DefectRecord) -> str:
    from beatguard.models import Locator

    return str(Locator(file=record.file, topic=record.topic_title, beat=record.beat))


@app.command()
def reconcile(
    records: Annotated[Path, typer.Argument(help="Defect records JSON from 'beatguard extract'.")],
    rewrites: Annotated[
        Path | None,
        typer.Option("--rewrites", help="Curated rewrite table (YAML or JSON)."),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", "-n", help="Validate every replacement but write nothing."),
    ] = False,
    fix_conjunctions: Annotated[
        bool,
        typer.Option(
            "--fix-conjunctions",
            help="Also auto-repair lists cut off at a dangling conjunction.",
        ),
    ] = False,
    mirror: Annotated[
        bool,
        typer.Option(
            "--mirror",
            help="Carry each fix over to copies of the topic in the other content documents.",
        ),
    ] = False,
) -> None:
    """Apply curated rewrites and mechanical repairs to broken beats."""
    from beatguard.reconcile import (
        ReconcileInputError,
        RewriteTable,
        load_defect_records,
        load_rewrite_table,
    )
    from beatguard.reconcile import reconcile as run_reconcile
    from beatguard.repairs import DEFAULT_AUTO_RULES, EXTENDED_AUTO_RULES

    config = _load_config()
    table_path = rewrites or config.get_rewrites_path(_root)

    try:
        defect_records = load_defect_records(records)
        if rewrites is None and not table_path.exists():
            console.print(f"[dim]No rewrite table at {table_path}, using auto-rules only.[/dim]")
            table = RewriteTable()
        else:
            table = load_rewrite_table(table_path)
    except ReconcileInputError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e

    result = run_reconcile(
        defect_records,
        table,
        content_root=_root,
        constraints=config.constraints(),
        auto_rules=EXTENDED_AUTO_RULES if fix_conjunctions else DEFAULT_AUTO_RULES,
        dry_run=dry_run,
        mirror_paths=collect_documents(config.get_content_paths(_root)) if mirror else None,
    )

    for outcome in result.outcomes:
        label = escape(_record_label(outcome.record))
        if outcome.ok:
            copies = f", +{len(outcome.copies)} copies" if outcome.copies else ""
            console.print(f"[green]✓[/green] {label} [dim]({outcome.source}{copies})[/dim]")
        else:
            console.print(f"[red]✗[/red] {label}: {escape(outcome.reason)}")

    console.print()
    console.print(f"Fixed {result.fixed} of {result.total}, {result.failed} failed")
    if dry_run:
        console.print("[dim]Dry run: no files written.[/dim]")
    elif result.written:
        console.print(f"[green]✓[/green] Updated {len(result.written)} files")

    if not result.ok:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
