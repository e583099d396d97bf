"""Pydantic models for the analyzed report.

Every model is frozen; enrichment produces new instances with
``model_copy(update=...)``. Field names are snake_case in Python and
serialize to camelCase (``model_dump(by_alias=True)``).
"""

from __future__ import annotations

from typing import Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# ============================================================
# TYPE ALIASES
# ============================================================

Severity: TypeAlias = Literal["High", "Medium", "Low"]
ThreadStateName: TypeAlias = Literal[
    "RUNNABLE", "WAITING", "TIMED_WAITING", "BLOCKED", "TERMINATED", "NEW"
]
Role: TypeAlias = Literal["Executive", "Administrator", "Developer"]
AnalysisType: TypeAlias = Literal["AI", "Local"]
ByteCount: TypeAlias = int
EpochMillis: TypeAlias = int

SEVERITY_RANK: dict[str, int] = {"Low": 1, "Medium": 2, "High": 3}
THREAD_STATE_NAMES: frozenset[str] = frozenset(
    {"RUNNABLE", "WAITING", "TIMED_WAITING", "BLOCKED", "TERMINATED", "NEW"}
)


class ReportModel(BaseModel):
    """Base for all report models: immutable, camelCase on the wire."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


# ============================================================
# SYSTEM / MEMORY / THREADS
# ============================================================


class SystemInfo(ReportModel):
    os_name: str = "N/A"
    os_version: str = ""
    architecture: str = "N/A"
    total_physical_memory: str = "N/A"
    free_physical_memory: str = "N/A"
    cpu_load: str = "N/A"
    available_processors: int = 0


class MemoryUsage(ReportModel):
    """Byte counts for one memory pool."""

    init: ByteCount = 0
    used: ByteCount = 0
    committed: ByteCount = 0
    max: ByteCount = 0


class MemoryAnalysis(ReportModel):
    heap: MemoryUsage = Field(default_factory=MemoryUsage)
    non_heap: MemoryUsage = Field(default_factory=MemoryUsage)


class ThreadState(ReportModel):
    state: ThreadStateName
    count: int = 0


class ThreadAnalysis(ReportModel):
    total_threads: int = 0
    peak_threads: int = 0
    daemon_threads: int = 0
    deadlocked_threads: list[str] = Field(default_factory=list)
    thread_states: list[ThreadState] = Field(default_factory=list)


class ApplicationWarning(ReportModel):
    severity: Severity
    description: str


class ProblematicThread(ReportModel):
    """A thread flagged by the local heuristics."""

    thread_name: str
    state: str
    priority: Severity
    details: str
    stack_trace_snippet: str = ""


class DetailedThreadReport(ReportModel):
    summary: str
    warnings: list[ApplicationWarning] = Field(default_factory=list)
    problematic_threads: list[ProblematicThread] = Field(default_factory=list)


# ============================================================
# APPLICATION TREE
# ============================================================


class ChartPoint(ReportModel):
    """One chart row: timestamp plus slugified series values."""

    date: EpochMillis
    fields: dict[str, float] = Field(default_factory=dict)


class ChartSeries(ReportModel):
    headers: list[str] = Field(default_factory=list)
    points: list[ChartPoint] = Field(default_factory=list)


class Activity(ReportModel):
    name: str
    status: str = "N/A"
    executed: int = 0
    faulted: int = 0
    recent_elapsed_time: int = 0
    min_elapsed_time: int = 0
    max_elapsed_time: int = 0
    total_elapsed_time: int = 0


class Process(ReportModel):
    name: str
    created: int = 0
    completed: int = 0
    faulted: int = 0
    suspended: int = 0
    activities: list[Activity] = Field(default_factory=list)
    chart_data: ChartSeries | None = None


class EndpointProperty(ReportModel):
    key: str
    value: str


class Endpoint(ReportModel):
    type: str
    url: str
    properties: list[EndpointProperty] = Field(default_factory=list)


class Application(ReportModel):
    name: str
    state: str = "Running"
    endpoints: list[Endpoint] = Field(default_factory=list)
    processes: list[Process] = Field(default_factory=list)
    chart_data: ChartSeries | None = None


# ============================================================
# ROLL-UPS
# ============================================================


class ProcessStats(ReportModel):
    total_jobs_created: int = 0
    total_active_jobs: int = 0
    total_jobs_faulted: int = 0


class ProcessRanking(ReportModel):
    name: str
    created: int


class ActivityRanking(ReportModel):
    name: str
    process: str
    max_time: int


class KeyMetric(ReportModel):
    label: str
    value: str
    icon: str | None = None


class EnvironmentVariable(ReportModel):
    key: str
    value: str


# ============================================================
# ENRICHMENT FIELDS (populated by downstream stages)
# ============================================================


class ServiceCall(ReportModel):
    service_name: str
    call_count: int
    average_latency: str
    error_rate: str


class DetailedApplicationReport(ReportModel):
    application_name: str
    performance_summary: str
    service_calls: list[ServiceCall] = Field(default_factory=list)
    warnings: list[ApplicationWarning] = Field(default_factory=list)


class AISummary(ReportModel):
    health_highlights: list[str] = Field(default_factory=list)
    areas_of_concern: list[ApplicationWarning] = Field(default_factory=list)


# ============================================================
# AGGREGATE ROOT
# ============================================================


class AnalysisResult(ReportModel):
    """Complete structured health model for one report."""

    analysis_type: AnalysisType = "Local"
    role: Role | None = None
    summary: str = ""
    key_metrics: list[KeyMetric] = Field(default_factory=list)
    system_info: SystemInfo = Field(default_factory=SystemInfo)
    important_env_vars: list[EnvironmentVariable] = Field(default_factory=list)
    applications: list[Application] = Field(default_factory=list)
    process_stats: ProcessStats = Field(default_factory=ProcessStats)
    memory_analysis: MemoryAnalysis = Field(default_factory=MemoryAnalysis)
    thread_analysis: ThreadAnalysis = Field(default_factory=ThreadAnalysis)
    detailed_thread_report: DetailedThreadReport | None = None
    top_processes_by_jobs: list[ProcessRanking] = Field(default_factory=list)
    top_activities_by_time: list[ActivityRanking] = Field(default_factory=list)

    ai_summary: AISummary | None = None
    detailed_application_reports: list[DetailedApplicationReport] | None = None

    def to_json(self, *, indent: int | None = 2) -> str:
        """Serialize with camelCase keys, omitting unset enrichment fields."""
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=indent)
