"""Local analysis of a TIBCO BusinessWorks HTML report.

``analyze_report`` is a pure transformation: one document in, one frozen
``AnalysisResult`` out. Each section is parsed independently and falls back
to its empty value when absent; only a document with none of the core
sections is rejected.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any, Protocol

from bs4 import BeautifulSoup

from bw_analyze.aggregate import (
    build_key_metrics,
    compute_process_stats,
    top_activities_by_time,
    top_processes_by_jobs,
)
from bw_analyze.applications import APPLICATIONS_MARKER, build_applications
from bw_analyze.config import AnalyzerSettings
from bw_analyze.models import (
    THREAD_STATE_NAMES,
    AnalysisResult,
    EnvironmentVariable,
    MemoryAnalysis,
    MemoryUsage,
    SystemInfo,
    ThreadAnalysis,
    ThreadState,
)
from bw_analyze.sections import (
    element_text,
    find_heading,
    find_table,
    find_table_adjacent_to,
    iter_rows,
    read_key_value_table,
    row_cells,
    split_markup_lines,
)
from bw_analyze.threads import analyze_thread_dump
from bw_analyze.units import format_fraction_as_percentage, parse_int, parse_memory_string

logger = logging.getLogger(__name__)

LOCAL_SUMMARY = (
    "This is a local analysis of the provided TIBCO BusinessWorks HTML report. "
    "Key metrics and data points have been extracted directly from the file."
)


class ReportFormatError(ValueError):
    """The input has no recognizable TIBCO BusinessWorks report structure."""


# ============================================================
# SECTION PARSERS
# ============================================================


def parse_system_info(doc: BeautifulSoup) -> SystemInfo | None:
    table = find_table(doc, "h3", "Operating System Information")
    if table is None:
        return None
    data = read_key_value_table(table)
    return SystemInfo(
        os_name=data.get("OS Name") or "N/A",
        os_version=data.get("OS Version") or "",
        architecture=data.get("OS Architecture") or "N/A",
        total_physical_memory=data.get("Total Physical Memory") or "N/A",
        free_physical_memory=data.get("Free Physical Memory") or "N/A",
        cpu_load=format_fraction_as_percentage(data.get("JVM CPU Load")),
        available_processors=parse_int(data.get("Available Processors")),
    )


def _memory_usage(data: dict[str, str], pool: str) -> MemoryUsage:
    return MemoryUsage(
        init=parse_memory_string(data.get(f"Init {pool} Size")),
        used=parse_memory_string(data.get(f"Used {pool} Size")),
        committed=parse_memory_string(data.get(f"Committed {pool} Size")),
        max=parse_memory_string(data.get(f"Max {pool} Size")),
    )


def parse_memory_analysis(doc: BeautifulSoup) -> MemoryAnalysis | None:
    table = find_table(doc, "h3", "Memory Information")
    if table is None:
        return None
    data = read_key_value_table(table)
    return MemoryAnalysis(heap=_memory_usage(data, "Heap"), non_heap=_memory_usage(data, "Non-Heap"))


def parse_thread_states(doc: BeautifulSoup) -> list[ThreadState]:
    heading = find_heading(doc, "h6", "Threads State Count", exact=True)
    table = find_table_adjacent_to(heading)
    if table is None:
        return []

    states: list[ThreadState] = []
    for state, count in read_key_value_table(table).items():
        name = state.upper()
        if name not in THREAD_STATE_NAMES:
            logger.debug("Skipping unknown thread state %r", state)
            continue
        states.append(ThreadState(state=name, count=parse_int(count)))
    return states


def parse_thread_analysis(doc: BeautifulSoup) -> ThreadAnalysis | None:
    table = find_table(doc, "h3", "Thread Information")
    states = parse_thread_states(doc)
    if table is None:
        return ThreadAnalysis(thread_states=states) if states else None
    data = read_key_value_table(table)
    return ThreadAnalysis(
        total_threads=parse_int(data.get("Thread Count")),
        peak_threads=parse_int(data.get("Peak Thread Count")),
        daemon_threads=parse_int(data.get("Daemon Thread Count")),
        thread_states=states,
    )


def parse_environment(doc: BeautifulSoup, important_keys: Sequence[str]) -> list[EnvironmentVariable]:
    """Important system properties from the Runtime Information section."""
    table = find_table(doc, "h3", "Runtime Information")
    if table is None:
        return []

    wanted = set(important_keys)
    env_vars: list[EnvironmentVariable] = []
    for row in iter_rows(table):
        cells = row_cells(row)
        if len(cells) < 2 or element_text(cells[0]) != "System Properties":
            continue
        for prop in split_markup_lines(cells[1]):
            key, _, value = prop.partition("=")
            if key.strip() in wanted:
                env_vars.append(EnvironmentVariable(key=key.strip(), value=value.strip()))
    return env_vars


# ============================================================
# ENTRY POINTS
# ============================================================


def analyze_report(
    html_content: str | bytes, settings: AnalyzerSettings | None = None
) -> AnalysisResult:
    """Parse a BusinessWorks HTML report into an ``AnalysisResult``.

    Raises:
        ReportFormatError: If none of the OS, memory, thread or thread-dump
            sections can be found.
    """
    settings = settings or AnalyzerSettings()
    doc = BeautifulSoup(html_content or "", "html.parser")

    system_info = parse_system_info(doc)
    memory = parse_memory_analysis(doc)
    threads = parse_thread_analysis(doc)
    dump_table = find_table(doc, "h3", "Thread Dump")

    if system_info is None and memory is None and threads is None and dump_table is None:
        raise ReportFormatError(
            "No report sections found. Local analysis supports TIBCO BusinessWorks "
            "HTML report files only."
        )

    thread_report = None
    if dump_table is not None:
        thread_report = analyze_thread_dump(
            dump_table, find_table(doc, "h6", "Top Threads"), settings
        )

    memory = memory or MemoryAnalysis()
    threads = threads or ThreadAnalysis()
    applications = build_applications(doc)
    process_stats = compute_process_stats(find_table(doc, "h4", APPLICATIONS_MARKER), applications)

    return AnalysisResult(
        analysis_type="Local",
        summary=LOCAL_SUMMARY,
        key_metrics=build_key_metrics(
            applications=applications,
            memory=memory,
            threads=threads,
            process_stats=process_stats,
            thread_report=thread_report,
            limit=settings.max_key_metrics,
        ),
        system_info=system_info or SystemInfo(),
        memory_analysis=memory,
        thread_analysis=threads,
        applications=applications,
        process_stats=process_stats,
        important_env_vars=parse_environment(doc, settings.important_env_keys),
        detailed_thread_report=thread_report,
        top_processes_by_jobs=top_processes_by_jobs(applications, settings.top_n),
        top_activities_by_time=top_activities_by_time(applications, settings.top_n),
    )


def select_report_file(paths: Iterable[Path]) -> tuple[Path, list[Path]]:
    """Split inputs into the HTML report and auxiliary raw files."""
    paths = list(paths)
    report = next((path for path in paths if path.suffix.lower() == ".html"), None)
    if report is None:
        raise ReportFormatError("Local analysis currently supports TIBCO HTML report files only.")
    return report, [path for path in paths if path != report]


def analyze_files(
    paths: Iterable[Path | str], settings: AnalyzerSettings | None = None
) -> AnalysisResult:
    """Analyze the first ``.html`` report among ``paths``."""
    report, raw_files = select_report_file(Path(path) for path in paths)
    logger.info("Analyzing %s (%d auxiliary files ignored)", report, len(raw_files))
    return analyze_report(report.read_bytes(), settings)


# ============================================================
# COLLABORATORS
# ============================================================


class EnrichmentStage(Protocol):
    """Adds optional fields (AI summary, detailed reports) to a parsed result."""

    def enrich(self, result: AnalysisResult, raw_files: Sequence[Path]) -> AnalysisResult:
        """Return a new result; ``result`` must not be mutated."""
        ...


def enrich_result(result: AnalysisResult, **updates: Any) -> AnalysisResult:
    """Copy ``result`` with fields overridden; the original stays untouched.

    Updates go through validation, so plain dicts (camelCase or snake_case keys)
    become the matching models.
    """
    unknown = set(updates) - set(AnalysisResult.model_fields)
    if unknown:
        raise ValueError(f"Unknown AnalysisResult fields: {', '.join(sorted(unknown))}")
    return AnalysisResult.model_validate({**dict(result), **updates})
