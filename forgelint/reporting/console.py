# Rich console output: findings grouped per file, colored by severity.

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from forgelint.findings.models import Finding, FixStatus, Report, Severity

SEVERITY_STYLE = {
    Severity.ERROR: "bold red",
    Severity.WARN: "bold yellow",
}

FIX_STATUS_LABEL = {
    FixStatus.PENDING: Text("fixable", style="green"),
    FixStatus.APPLIED: Text("fixed", style="bold green"),
    FixStatus.CONFLICT: Text("conflict", style="bold magenta"),
}

DEFAULT_SEVERITY_STYLE = "bold white"


def _severity_style(severity: Severity) -> str:
    return SEVERITY_STYLE.get(severity, DEFAULT_SEVERITY_STYLE)


def _fix_label(finding: Finding) -> Text:
    if finding.suggestions and finding.fix is None:
        n = len(finding.suggestions)
        return Text(f"{n} suggestion{'s' if n != 1 else ''}", style="cyan")
    return FIX_STATUS_LABEL.get(finding.fix_status, Text(""))


def _shorten_path(path: str | Path, base: Optional[Path] = None) -> str:
    """Display path relative to base (default: the working directory) when possible."""
    p = Path(path)
    try:
        return p.relative_to(base or Path.cwd()).as_posix()
    except ValueError:
        return p.as_posix()


def print_reports(
    reports: Sequence[Report],
    verbose: bool = False,
    console: Optional[Console] = None,
) -> None:
    """
    Print every report: one table per file with findings, then a file summary
    and a totals footer. With verbose, snippets and remediation hints are shown
    under each table.
    """
    console = console or Console()
    findings = [f for r in reports for f in r.findings]

    if not findings:
        console.print(
            Panel(
                f"[green]No issues found in {len(reports)} file(s).[/green]",
                title="forgelint",
                border_style="green",
                box=box.ROUNDED,
            )
        )
        return

    for report in sorted(reports, key=lambda r: str(r.path)):
        if report.findings:
            _print_file(report, console, verbose)

    if len(reports) > 1:
        _print_file_summary_table(reports, console)
    _print_summary(reports, console)


def _print_file(report: Report, console: Console, verbose: bool) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold cyan]{_shorten_path(report.path)}[/bold cyan]",
            box=box.SIMPLE_HEAD,
            border_style="blue",
            padding=(0, 1),
        )
    )

    table = Table(show_header=True, header_style="bold magenta", box=box.SIMPLE, padding=(0, 1))
    table.add_column("Line", justify="right", style="dim", width=5)
    table.add_column("Col", justify="right", style="dim", width=4)
    table.add_column("Severity", width=8)
    table.add_column("Rule", width=28)
    table.add_column("Message", style="white")
    table.add_column("Fix", width=14)

    for f in report.findings:
        loc = f.location
        table.add_row(
            str(loc.line),
            str(loc.column),
            Text(f.severity.value.upper(), style=_severity_style(f.severity)),
            Text(f.rule_id, style="dim"),
            Text(str(f.message)),
            _fix_label(f),
        )
    console.print(table)

    if not verbose:
        return
    for f in report.findings:
        loc = f.location
        snippet = (loc.snippet or "").strip()
        if snippet:
            console.print(Text.assemble((f"  {loc.line}:{loc.column} |-- ", "dim"), snippet.splitlines()[0]))
        if f.message.hint:
            console.print(Text.assemble(("  [hint] ", "dim"), f.message.hint))
        for suggestion in f.suggestions:
            console.print(Text.assemble(("  [suggestion] ", "dim"), suggestion.label))
    console.print()


def _print_file_summary_table(reports: Sequence[Report], console: Console) -> None:
    table = Table(title="Files Summary", show_header=True, header_style="bold cyan", box=box.ROUNDED)
    table.add_column("File", style="white")
    table.add_column("Status", width=8)
    table.add_column("Findings", justify="right", width=8)

    flagged = sorted((r for r in reports if r.findings), key=lambda r: str(r.path))
    clean = sorted((r for r in reports if not r.findings), key=lambda r: str(r.path))
    for r in flagged:
        status = Text("ERROR", style="bold red") if r.error_count else Text("WARN", style="bold yellow")
        table.add_row(_shorten_path(r.path), status, str(len(r.findings)))
    for r in clean:
        table.add_row(_shorten_path(r.path), Text("OK", style="bold green"), "0")

    console.print()
    console.print(Panel(table, border_style="cyan", box=box.ROUNDED))


def _print_summary(reports: Sequence[Report], console: Console) -> None:
    errors = sum(r.error_count for r in reports)
    warnings = sum(r.warning_count for r in reports)
    fixed = sum(r.fixes_applied for r in reports)
    total = errors + warnings

    parts = [f"[bold]{total} finding{'s' if total != 1 else ''}[/bold]"]
    if errors:
        parts.append(f"[{_severity_style(Severity.ERROR)}]{errors} error[/]")
    if warnings:
        parts.append(f"[{_severity_style(Severity.WARN)}]{warnings} warn[/]")
    if fixed:
        parts.append(f"[bold green]{fixed} fixed[/]")

    console.print()
    console.print(
        Panel(
            " | ".join(parts),
            title="Summary",
            border_style="red" if errors else "yellow",
            box=box.ROUNDED,
        )
    )
