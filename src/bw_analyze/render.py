"""Terminal rendering and Markdown export of an ``AnalysisResult``."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

from bw_analyze.models import AnalysisResult, ApplicationWarning, MemoryUsage, Severity
from bw_analyze.units import format_bytes

BW_ANALYZE_THEME = Theme(
    {
        "critical": "bold red",
        "warning": "bold yellow",
        "success": "bold green",
        "info": "cyan",
        "metric": "white",
        "label": "dim white",
        "header": "bold magenta",
    }
)

SEVERITY_STYLES: dict[Severity, str] = {"High": "critical", "Medium": "warning", "Low": "info"}

MARKDOWN_THREAD_LIMIT = 5

console = Console(theme=BW_ANALYZE_THEME)


# ============================================================
# ROW BUILDERS (shared by terminal and Markdown output)
# ============================================================


def build_system_rows(result: AnalysisResult) -> list[tuple[str, str]]:
    info = result.system_info
    return [
        ("OS", f"{info.os_name} {info.os_version}".strip()),
        ("Architecture", info.architecture),
        ("Processors", str(info.available_processors)),
        ("CPU Load", info.cpu_load),
        ("Memory", f"{info.free_physical_memory} free of {info.total_physical_memory}"),
    ]


def _usage_line(usage: MemoryUsage) -> str:
    return f"{format_bytes(usage.used)} / {format_bytes(usage.max)}"


def build_memory_rows(result: AnalysisResult) -> list[tuple[str, str]]:
    memory = result.memory_analysis
    return [
        ("Heap Used", _usage_line(memory.heap)),
        ("Heap Committed", format_bytes(memory.heap.committed)),
        ("Non-Heap Used", _usage_line(memory.non_heap)),
        ("Non-Heap Committed", format_bytes(memory.non_heap.committed)),
    ]


def build_thread_rows(result: AnalysisResult) -> list[tuple[str, str]]:
    threads = result.thread_analysis
    rows = [
        ("Total Threads", str(threads.total_threads)),
        ("Peak Threads", str(threads.peak_threads)),
        ("Daemon Threads", str(threads.daemon_threads)),
        (
            "Deadlocked Threads",
            ", ".join(threads.deadlocked_threads) if threads.deadlocked_threads else "None",
        ),
    ]
    rows.extend((f"State {state.state}", str(state.count)) for state in threads.thread_states)
    return rows


def thread_warnings(result: AnalysisResult) -> list[ApplicationWarning]:
    if result.detailed_thread_report is None:
        return []
    return result.detailed_thread_report.warnings


# ============================================================
# RICH OUTPUT
# ============================================================


def create_key_value_table(title: str, rows: list[tuple[str, str]]) -> Table:
    """Create a simple two-column key/value table."""
    table = Table(title=title, show_header=False, box=None, padding=(0, 2))
    table.add_column("Metric", style="label")
    table.add_column("Value", style="metric")
    for label, value in rows:
        table.add_row(escape(label), escape(value))
    return table


def render_warning_banner(warnings: list[ApplicationWarning]) -> Panel:
    """Render thread warnings in a prominent banner."""
    if not warnings:
        return Panel(
            Text("No thread warnings", style="success"), title="Status", border_style="green"
        )

    has_high = any(warning.severity == "High" for warning in warnings)
    border_style = "red" if has_high else "yellow"
    title_text = "[critical]Warnings[/critical]" if has_high else "[warning]Warnings[/warning]"

    warning_text = Text()
    for index, warning in enumerate(warnings):
        line_ending = "\n" if index < len(warnings) - 1 else ""
        warning_text.append(
            f"[{warning.severity}] {warning.description}{line_ending}",
            style=SEVERITY_STYLES[warning.severity],
        )
    return Panel(warning_text, title=title_text, border_style=border_style, expand=True)


def create_problematic_threads_table(result: AnalysisResult) -> Table | None:
    report = result.detailed_thread_report
    if report is None or not report.problematic_threads:
        return None
    table = Table(title="Problematic Threads", header_style="header")
    table.add_column("Thread")
    table.add_column("State")
    table.add_column("Priority")
    table.add_column("Details", overflow="fold")
    for thread in report.problematic_threads:
        table.add_row(
            escape(thread.thread_name),
            escape(thread.state),
            Text(thread.priority, style=SEVERITY_STYLES[thread.priority]),
            escape(thread.details),
        )
    return table


def create_applications_table(result: AnalysisResult) -> Table:
    table = Table(title="Applications & Processes", header_style="header")
    table.add_column("Application")
    table.add_column("Process")
    table.add_column("Created", justify="right")
    table.add_column("Completed", justify="right")
    table.add_column("Faulted", justify="right")
    table.add_column("Suspended", justify="right")
    table.add_column("Activities", justify="right")
    for app in result.applications:
        if not app.processes:
            table.add_row(escape(app.name), "-", "-", "-", "-", "-", "-")
        for index, process in enumerate(app.processes):
            table.add_row(
                escape(app.name) if index == 0 else "",
                escape(process.name),
                f"{process.created:,}",
                f"{process.completed:,}",
                Text(f"{process.faulted:,}", style="critical" if process.faulted else "metric"),
                f"{process.suspended:,}",
                str(len(process.activities)),
            )
    return table


def create_rankings_table(result: AnalysisResult) -> Table:
    table = Table(title="Top Activities by Max Elapsed Time", header_style="header")
    table.add_column("Activity")
    table.add_column("Process")
    table.add_column("Max Time (ms)", justify="right")
    for ranking in result.top_activities_by_time:
        table.add_row(escape(ranking.name), escape(ranking.process), f"{ranking.max_time:,}")
    return table


def render_analysis(result: AnalysisResult) -> None:
    """Render the full analysis using Rich components."""
    console.print()
    console.print(Panel(f"Analysis Type: {result.analysis_type}", style="header", expand=True))
    console.print()
    console.print(Panel(escape(result.summary), title="Summary", border_style="info"))
    console.print()

    if result.key_metrics:
        console.print(
            create_key_value_table(
                "Key Metrics", [(metric.label, metric.value) for metric in result.key_metrics]
            )
        )
        console.print()

    console.print(create_key_value_table("System Information", build_system_rows(result)))
    console.print()
    console.print(create_key_value_table("Memory Analysis", build_memory_rows(result)))
    console.print()
    console.print(create_key_value_table("Thread Analysis", build_thread_rows(result)))
    console.print()

    if result.detailed_thread_report is not None:
        console.print(
            Panel(
                escape(result.detailed_thread_report.summary),
                title="Thread Dump",
                border_style="info",
            )
        )
        console.print(render_warning_banner(thread_warnings(result)))
        if (threads_table := create_problematic_threads_table(result)) is not None:
            console.print(threads_table)
        console.print()

    stats = result.process_stats
    console.print(
        create_key_value_table(
            "Job Statistics",
            [
                ("Total Jobs Created", f"{stats.total_jobs_created:,}"),
                ("Total Active Jobs", f"{stats.total_active_jobs:,}"),
                ("Total Jobs Faulted", f"{stats.total_jobs_faulted:,}"),
            ],
        )
    )
    console.print()

    if result.applications:
        console.print(create_applications_table(result))
        console.print()
    if result.top_activities_by_time:
        console.print(create_rankings_table(result))
        console.print()

    if result.important_env_vars:
        console.print(
            create_key_value_table(
                "Environment", [(env.key, env.value) for env in result.important_env_vars]
            )
        )
        console.print()


# ============================================================
# MARKDOWN EXPORT
# ============================================================


def format_result_as_markdown(result: AnalysisResult, *, generated: datetime | None = None) -> str:
    """Format an analysis as a Markdown report."""
    generated = generated or datetime.now()
    md_content: list[str] = []

    md_content.append(f"# System Analysis Report - {generated.isoformat(timespec='seconds')}\n\n")
    md_content.append(f"## {result.analysis_type} Summary ({result.role or 'General'})\n")
    md_content.append(f"{result.summary}\n\n")

    if result.ai_summary is not None:
        md_content.append("### Health Highlights\n")
        for highlight in result.ai_summary.health_highlights:
            md_content.append(f"- {highlight}\n")
        md_content.append("\n")

        md_content.append("### Areas of Concern\n")
        if result.ai_summary.areas_of_concern:
            for concern in result.ai_summary.areas_of_concern:
                md_content.append(f"- **[{concern.severity}]** {concern.description}\n")
        else:
            md_content.append("None identified.\n")
        md_content.append("\n")

    md_content.append("## Key Metrics\n")
    for metric in result.key_metrics:
        md_content.append(f"- **{metric.label}:** {metric.value}\n")
    md_content.append("\n")

    md_content.append("## System Information\n")
    for label, value in build_system_rows(result):
        md_content.append(f"- **{label}:** {value}\n")
    md_content.append("\n")

    md_content.append("## Memory Analysis\n")
    memory = result.memory_analysis
    md_content.append(f"- **Heap Used:** {_usage_line(memory.heap)}\n")
    md_content.append(f"- **Non-Heap Used:** {_usage_line(memory.non_heap)}\n\n")

    threads = result.thread_analysis
    md_content.append("## Thread Analysis\n")
    md_content.append(f"- **Total Threads:** {threads.total_threads}\n")
    md_content.append(f"- **Peak Threads:** {threads.peak_threads}\n")
    deadlocked = ", ".join(threads.deadlocked_threads) if threads.deadlocked_threads else "None"
    md_content.append(f"- **Deadlocked Threads:** {deadlocked}\n")
    report = result.detailed_thread_report
    if report is not None and report.problematic_threads:
        md_content.append("\n### Problematic Threads Identified\n")
        for thread in report.problematic_threads[:MARKDOWN_THREAD_LIMIT]:
            md_content.append(
                f"- **{thread.thread_name}** (State: {thread.state}, "
                f"Priority: {thread.priority}): {thread.details}\n"
            )
    md_content.append("\n")

    md_content.append("## Applications & Processes\n")
    md_content.append(f"**Total Jobs Created:** {result.process_stats.total_jobs_created}\n")
    md_content.append(f"**Total Jobs Faulted:** {result.process_stats.total_jobs_faulted}\n\n")
    for app in result.applications:
        md_content.append(f"### [Application: {app.name}]\n\n**State:** {app.state}\n\n")
        for process in app.processes:
            md_content.append(f"#### [Process: {process.name}]\n\n")
            md_content.append(
                f"- **Created:** {process.created}\n"
                f"- **Completed:** {process.completed}\n"
                f"- **Faulted:** {process.faulted}\n\n"
            )
            if process.activities:
                md_content.append("**Activities:**\n")
                for activity in process.activities:
                    md_content.append(
                        f"  - {activity.name} (Status: {activity.status}, "
                        f"Executed: {activity.executed}, Faulted: {activity.faulted}, "
                        f"Max Time: {activity.max_elapsed_time}ms)\n"
                    )
                md_content.append("\n")
        md_content.append("\n")

    return "".join(md_content)


def export_markdown(result: AnalysisResult, output_path: Path) -> None:
    """Write the Markdown report to ``output_path``."""
    output_path.write_text(format_result_as_markdown(result), encoding="utf-8")
