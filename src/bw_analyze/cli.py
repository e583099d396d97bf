#!/usr/bin/env python3
"""BW Analyze CLI.

Offline analysis of TIBCO BusinessWorks HTML performance reports:
- System, memory and thread summaries
- Application / process / activity statistics with embedded chart data
- Heuristic thread-dump classification (blocked, high-CPU, I/O wait)
- Optional Markdown and JSON export, and JSON session history
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Annotated

import typer
from rich.progress import Progress, SpinnerColumn, TextColumn

from bw_analyze import __version__
from bw_analyze.analyzer import analyze_files
from bw_analyze.config import AnalyzerSettings
from bw_analyze.models import AnalysisResult
from bw_analyze.render import console, export_markdown, render_analysis
from bw_analyze.sessions import JsonSessionStore

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="bw-analyze",
    help="Offline analyzer for TIBCO BusinessWorks HTML performance reports",
    add_completion=False,
    rich_markup_mode="rich",
)


def setup_logging(verbose: bool) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def exit_code_for(result: AnalysisResult) -> int:
    """0 = clean, 1 = thread warnings, 2 = high-severity thread warnings."""
    report = result.detailed_thread_report
    if report is None or not report.warnings:
        return 0
    if any(warning.severity == "High" for warning in report.warnings):
        return 2
    return 1


@app.command()
def analyze(
    report_file: Annotated[
        Path,
        typer.Argument(
            help="Path to the BusinessWorks HTML report",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
        ),
    ],
    extra_files: Annotated[
        list[Path] | None,
        typer.Argument(help="Auxiliary log files recorded with the session (not parsed)"),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Export analysis report to Markdown file (e.g., report.md)",
            file_okay=True,
            dir_okay=False,
        ),
    ] = None,
    json_output: Annotated[
        Path | None,
        typer.Option(
            "--json",
            "-j",
            help="Write the structured analysis as JSON",
            file_okay=True,
            dir_okay=False,
        ),
    ] = None,
    high_cpu: Annotated[
        float,
        typer.Option(
            "--high-cpu",
            help="Per-thread CPU percentage above which a thread is flagged (default: 5.0)",
            min=0.0,
        ),
    ] = 5.0,
    top: Annotated[
        int,
        typer.Option("--top", help="Number of entries in top-N rankings (default: 5)", min=1),
    ] = 5,
    save_session: Annotated[
        Path | None,
        typer.Option(
            "--save-session",
            help="Append this analysis to a JSON session store (e.g., sessions.json)",
            file_okay=True,
            dir_okay=False,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging"),
    ] = False,
) -> None:
    """Analyze a BusinessWorks HTML report.

    Exit codes: 0 = clean, 1 = warnings, 2 = high-severity thread warnings.
    """
    setup_logging(verbose)
    files = [report_file, *(extra_files or [])]

    try:
        settings = AnalyzerSettings(high_cpu_percentage=high_cpu, top_n=top)
        with Progress(
            SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console
        ) as progress:
            parse_task = progress.add_task(f"[cyan]Parsing {report_file.name}...", total=None)
            result = analyze_files(files, settings)
            progress.update(parse_task, completed=100)

        render_analysis(result)

        if output:
            export_markdown(result, output)
            console.print(f"\n[success]Summary exported to {output}[/success]")

        if json_output:
            json_output.write_text(result.to_json(), encoding="utf-8")
            console.print(f"[success]JSON written to {json_output}[/success]")

        if save_session:
            session = JsonSessionStore(save_session).save(result, [f.name for f in files])
            console.print(f"[info]Saved session {session.id}[/info]")

    except ValueError as e:
        console.print(f"[critical]ERROR: {e}[/critical]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[critical]ERROR: {e}[/critical]")
        if verbose:
            console.print_exception()
        sys.exit(1)

    sys.exit(exit_code_for(result))


@app.command()
def version() -> None:
    """Display version."""
    console.print(f"bw-analyze {__version__}")


if __name__ == "__main__":
    app()
