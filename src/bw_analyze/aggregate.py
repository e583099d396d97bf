"""Roll-up statistics, rankings and headline metrics."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from bs4 import Tag

from bw_analyze.models import (
    ActivityRanking,
    Application,
    DetailedThreadReport,
    KeyMetric,
    MemoryAnalysis,
    ProcessRanking,
    ProcessStats,
    ThreadAnalysis,
)
from bw_analyze.sections import element_text, iter_data_rows
from bw_analyze.units import format_bytes, parse_int

logger = logging.getLogger(__name__)

# Summary table columns: name, created, active, suspended, faulted
SUMMARY_CREATED_COLUMN = 1
SUMMARY_ACTIVE_COLUMN = 2
SUMMARY_FAULTED_COLUMN = 4


def process_stats_from_summary(table: Tag) -> ProcessStats:
    """Sum the report's own per-application totals."""
    created = active = faulted = 0
    for cells in iter_data_rows(table):
        if len(cells) < 5:
            continue
        created += parse_int(element_text(cells[SUMMARY_CREATED_COLUMN]))
        active += parse_int(element_text(cells[SUMMARY_ACTIVE_COLUMN]))
        faulted += parse_int(element_text(cells[SUMMARY_FAULTED_COLUMN]))
    return ProcessStats(
        total_jobs_created=created, total_active_jobs=active, total_jobs_faulted=faulted
    )


def process_stats_from_tree(applications: Sequence[Application]) -> ProcessStats:
    """Fallback roll-up when the report has no summary table.

    Active jobs are those neither completed nor faulted.
    """
    processes = [process for app in applications for process in app.processes]
    return ProcessStats(
        total_jobs_created=sum(p.created for p in processes),
        total_active_jobs=sum(max(0, p.created - p.completed - p.faulted) for p in processes),
        total_jobs_faulted=sum(p.faulted for p in processes),
    )


def compute_process_stats(
    summary_table: Tag | None, applications: Sequence[Application]
) -> ProcessStats:
    if summary_table is not None:
        return process_stats_from_summary(summary_table)
    logger.debug("No application summary table; rolling up process tree")
    return process_stats_from_tree(applications)


def top_processes_by_jobs(
    applications: Sequence[Application], top_n: int = 5
) -> list[ProcessRanking]:
    """Processes with the most created jobs; ties keep report order."""
    rankings = [
        ProcessRanking(name=process.name, created=process.created)
        for app in applications
        for process in app.processes
    ]
    return sorted(rankings, key=lambda r: r.created, reverse=True)[:top_n]


def top_activities_by_time(
    applications: Sequence[Application], top_n: int = 5
) -> list[ActivityRanking]:
    """Activities with the longest max elapsed time; ties keep report order."""
    rankings = [
        ActivityRanking(
            name=activity.name, process=process.name, max_time=activity.max_elapsed_time
        )
        for app in applications
        for process in app.processes
        for activity in process.activities
    ]
    return sorted(rankings, key=lambda r: r.max_time, reverse=True)[:top_n]


def build_key_metrics(
    *,
    applications: Sequence[Application],
    memory: MemoryAnalysis,
    threads: ThreadAnalysis,
    process_stats: ProcessStats,
    thread_report: DetailedThreadReport | None,
    limit: int = 6,
) -> list[KeyMetric]:
    metrics: list[KeyMetric] = []
    if applications:
        metrics.append(KeyMetric(label="Applications", value=str(len(applications))))
    if threads.total_threads > 0:
        metrics.append(KeyMetric(label="Total Threads", value=str(threads.total_threads)))
    if memory.heap.used > 0:
        metrics.append(KeyMetric(label="Heap Used", value=format_bytes(memory.heap.used)))
    if process_stats.total_jobs_faulted > 0:
        metrics.append(
            KeyMetric(label="Jobs Faulted", value=f"{process_stats.total_jobs_faulted:,}")
        )
    if thread_report is not None and thread_report.problematic_threads:
        metrics.append(
            KeyMetric(
                label="Problematic Threads", value=str(len(thread_report.problematic_threads))
            )
        )
    if threads.deadlocked_threads:
        metrics.append(KeyMetric(label="Deadlocks", value="Detected"))
    return metrics[:limit]
