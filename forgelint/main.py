"""
Typer CLI entry point.

    forgelint analyze src/               # report findings
    forgelint analyze src/ --fix         # apply fixes in place
    forgelint analyze app.js --format json --config forgelint.json

Exit status: 0 when no error-severity findings remain, 1 otherwise, 2 for
configuration problems or a malformed syntax tree.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from forgelint.config import Config, get_default_config, load_config
from forgelint.engine import Engine
from forgelint.errors import ConfigurationError, MalformedTree
from forgelint.findings.models import Report
from forgelint.reporting.console import print_reports
from forgelint.reporting.json_output import render_json
from forgelint.traversal import collect_targets

logger = logging.getLogger(__name__)

app = typer.Typer(help="forgelint - rule-based static analysis and autofix for JavaScript.")


class OutputFormat(str, Enum):
    console = "console"
    json = "json"


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _write_fixed(reports: List[Report]) -> None:
    for report in reports:
        if report.fixes_applied and report.output is not None:
            report.path.write_bytes(report.output.encode("utf-8", errors="surrogateescape"))
            logger.info("Wrote %d fix(es) to %s", report.fixes_applied, report.path)


@app.command()
def analyze(
    target: Path = typer.Argument(
        ...,
        exists=True,
        readable=True,
        resolve_path=True,
        help="JavaScript file or directory to analyze.",
    ),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        exists=True,
        dir_okay=False,
        help="JSON file with rule severities and options.",
    ),
    fix: bool = typer.Option(False, "--fix", help="Apply automatic fixes and write files back."),
    output_format: OutputFormat = typer.Option(OutputFormat.console, "--format", "-f", help="Output format."),
    jobs: int = typer.Option(1, "--jobs", "-j", min=1, help="Files analyzed in parallel."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging, snippets and hints."),
) -> None:
    """Analyze a JavaScript file or every JavaScript file under a directory."""
    _setup_logging(verbose)

    try:
        config: Config = load_config(config_path) if config_path is not None else get_default_config()
        engine = Engine(config)
    except ConfigurationError as e:
        raise typer.BadParameter(str(e), param_hint="--config") from e

    try:
        files = collect_targets(target)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="TARGET") from e

    try:
        reports = engine.analyze_paths(files, fix=fix, jobs=jobs)
    except MalformedTree as e:
        logger.error("Malformed syntax tree: %s", e)
        raise typer.Exit(code=2) from e

    if fix:
        _write_fixed(reports)

    if output_format is OutputFormat.json:
        typer.echo(render_json(reports))
    else:
        print_reports(reports, verbose=verbose)

    if any(r.error_count for r in reports):
        raise typer.Exit(code=1)


@app.command("rules")
def list_rules() -> None:
    """List the available rules with their default severity."""
    for rule in get_default_config().rules:
        d = rule.descriptor()
        fixable = " (fixable)" if d.fixable else ""
        typer.echo(f"{d.id:<28} {d.default_severity.value:<6} {d.description}{fixable}")


def main() -> None:
    """Entry point for the forgelint console script and `python -m forgelint.main`."""
    app()


if __name__ == "__main__":
    main()
