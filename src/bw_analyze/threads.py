"""Heuristic classification of thread-dump rows.

Each rule inspects one thread and either returns a ``RuleMatch`` or ``None``.
All rules run in order; a flagged thread takes the highest matched priority
and the concatenation of every matched detail.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence

from bs4 import Tag
from pydantic import BaseModel, ConfigDict

from bw_analyze.config import AnalyzerSettings
from bw_analyze.models import (
    SEVERITY_RANK,
    ApplicationWarning,
    DetailedThreadReport,
    ProblematicThread,
    Severity,
)
from bw_analyze.sections import (
    LINE_BREAK_PATTERN,
    element_text,
    iter_data_rows,
    markup_to_text,
)
from bw_analyze.units import parse_float

logger = logging.getLogger(__name__)

THREAD_NAME_PATTERN: re.Pattern[str] = re.compile(r"Thread Name=([^<\n]+)")
THREAD_STATE_PATTERN: re.Pattern[str] = re.compile(r"Thread State=([^<\n]+)")
STACK_TRACE_PATTERN: re.Pattern[str] = re.compile(r"Stack Trace=\[(.+)\]", re.DOTALL)
WAITING_TO_LOCK_PATTERN: re.Pattern[str] = re.compile(
    r"(?:-\s*)?waiting to lock <(?P<address>[0-9a-fA-Fx]+)> \(a (?P<class_name>[^)]+)\)"
)

SOCKET_READ_FRAMES: tuple[str, ...] = (
    "java.net.SocketInputStream.socketRead",
    "sun.nio.ch.NioSocketImpl.read",
)
QUEUE_MARKERS: tuple[str, ...] = ("BlockingQueue", "WorkQueue")

HIGH_PRIORITY_WARNING = (
    "Detected BLOCKED or high-CPU threads. These can cause application freezes "
    "or significant performance degradation."
)
IO_WAIT_WARNING = (
    "Detected threads waiting on network I/O. This could indicate slow downstream services."
)


class ThreadSample(BaseModel):
    """One parsed thread-dump row."""

    model_config = ConfigDict(frozen=True)

    thread_id: str
    name: str
    state: str
    stack: str = ""
    cpu_percent: float | None = None

    @property
    def normalized_state(self) -> str:
        parts = self.state.split()
        return parts[0].upper() if parts else ""


class RuleMatch(BaseModel):
    """A single rule's verdict for a thread."""

    model_config = ConfigDict(frozen=True)

    priority: Severity
    detail: str


ThreadRule = Callable[[ThreadSample, AnalyzerSettings, Severity | None], RuleMatch | None]


# ============================================================
# RULES
# ============================================================


def high_cpu_rule(
    sample: ThreadSample, settings: AnalyzerSettings, current: Severity | None
) -> RuleMatch | None:
    if sample.cpu_percent is None or sample.cpu_percent <= settings.high_cpu_percentage:
        return None
    return RuleMatch(priority="High", detail=f"High CPU Usage ({sample.cpu_percent:.2f}%).")


def blocked_rule(
    sample: ThreadSample, settings: AnalyzerSettings, current: Severity | None
) -> RuleMatch | None:
    if sample.normalized_state != "BLOCKED":
        return None
    if lock := WAITING_TO_LOCK_PATTERN.search(sample.stack):
        return RuleMatch(
            priority="High",
            detail=f"BLOCKED: Waiting for lock on a {lock.group('class_name')}.",
        )
    return RuleMatch(priority="High", detail="BLOCKED: Waiting on a monitor lock.")


def socket_read_rule(
    sample: ThreadSample, settings: AnalyzerSettings, current: Severity | None
) -> RuleMatch | None:
    if current == "High" or sample.normalized_state != "RUNNABLE":
        return None
    if not any(frame in sample.stack for frame in SOCKET_READ_FRAMES):
        return None
    return RuleMatch(
        priority="Medium",
        detail=(
            "I/O WAIT: May be stuck reading from a network socket, "
            "which can be a performance bottleneck."
        ),
    )


def idle_worker_rule(
    sample: ThreadSample, settings: AnalyzerSettings, current: Severity | None
) -> RuleMatch | None:
    if sample.normalized_state not in ("WAITING", "TIMED_WAITING"):
        return None
    if ".take" not in sample.stack or not any(q in sample.stack for q in QUEUE_MARKERS):
        return None
    return RuleMatch(
        priority="Low",
        detail=(
            "IDLE WORKER: Thread is waiting to take a task from a queue. "
            "This is generally normal for worker threads."
        ),
    )


def object_wait_rule(
    sample: ThreadSample, settings: AnalyzerSettings, current: Severity | None
) -> RuleMatch | None:
    if sample.normalized_state != "WAITING" or "java.lang.Object.wait" not in sample.stack:
        return None
    return RuleMatch(
        priority="Low",
        detail=(
            "WAITING: Thread is in Object.wait(), waiting for a notification "
            "from another thread."
        ),
    )


THREAD_RULES: tuple[ThreadRule, ...] = (
    high_cpu_rule,
    blocked_rule,
    socket_read_rule,
    idle_worker_rule,
    object_wait_rule,
)


def classify_thread(
    sample: ThreadSample,
    settings: AnalyzerSettings,
    rules: Sequence[ThreadRule] = THREAD_RULES,
) -> ProblematicThread | None:
    """Run every rule; return the flagged thread or ``None`` if nothing matched."""
    priority: Severity | None = None
    details: list[str] = []

    for rule in rules:
        match = rule(sample, settings, priority)
        if match is None:
            continue
        details.append(match.detail)
        if priority is None or SEVERITY_RANK[match.priority] > SEVERITY_RANK[priority]:
            priority = match.priority

    if priority is None:
        return None

    snippet_lines = sample.stack.split("\n")[: settings.stack_snippet_lines]
    return ProblematicThread(
        thread_name=sample.name,
        state=sample.state,
        priority=priority,
        details=" ".join(details),
        stack_trace_snippet="\n".join(snippet_lines),
    )


# ============================================================
# TABLE PARSING
# ============================================================


def normalize_stack(markup: str) -> str:
    """Turn ``<br>``-separated stack markup into newline-joined frames."""
    lines = (
        markup_to_text(line).strip() for line in LINE_BREAK_PATTERN.split(markup.strip())
    )
    return "\n".join(line for line in lines if line)


def parse_cpu_table(table: Tag | None) -> dict[str, float]:
    """Map thread id to CPU percent from the 'Top Threads' table."""
    cpu_by_id: dict[str, float] = {}
    if table is None:
        return cpu_by_id
    for cells in iter_data_rows(table):
        if len(cells) <= 3:
            continue
        thread_id = element_text(cells[0])
        if thread_id:
            cpu_by_id[thread_id] = parse_float(element_text(cells[3]))
    return cpu_by_id


def parse_thread_dump(table: Tag, cpu_by_id: dict[str, float] | None = None) -> list[ThreadSample]:
    """Parse one ``ThreadSample`` per dump row; rows missing a name or state are skipped."""
    cpu_by_id = cpu_by_id or {}
    samples: list[ThreadSample] = []

    for cells in iter_data_rows(table):
        if len(cells) < 2:
            continue
        thread_id = element_text(cells[0])
        content = cells[1].decode_contents()
        name_match = THREAD_NAME_PATTERN.search(content)
        state_match = THREAD_STATE_PATTERN.search(content)
        if not (thread_id and name_match and state_match):
            continue

        stack_match = STACK_TRACE_PATTERN.search(content)
        samples.append(
            ThreadSample(
                thread_id=thread_id,
                name=markup_to_text(name_match.group(1)).strip(),
                state=markup_to_text(state_match.group(1)).strip(),
                stack=normalize_stack(stack_match.group(1)) if stack_match else "",
                cpu_percent=cpu_by_id.get(thread_id),
            )
        )

    logger.debug("Parsed %d threads from dump", len(samples))
    return samples


# ============================================================
# REPORT
# ============================================================


def build_thread_warnings(problematic: Sequence[ProblematicThread]) -> list[ApplicationWarning]:
    """One warning per severity class present, never one per thread."""
    priorities = {thread.priority for thread in problematic}
    warnings: list[ApplicationWarning] = []
    if "High" in priorities:
        warnings.append(ApplicationWarning(severity="High", description=HIGH_PRIORITY_WARNING))
    if "Medium" in priorities:
        warnings.append(ApplicationWarning(severity="Medium", description=IO_WAIT_WARNING))
    return warnings


def summarize_threads(problematic: Sequence[ProblematicThread]) -> str:
    if problematic:
        return (
            f"Local analysis flagged {len(problematic)} threads for review. This includes "
            "threads that are BLOCKED, have high CPU usage, or are potentially stuck in "
            "I/O operations."
        )
    return (
        "Local analysis did not find any critically BLOCKED or high-CPU threads. "
        "For a more nuanced analysis of WAITING threads, AI Analysis is recommended."
    )


def analyze_thread_dump(
    dump_table: Tag, cpu_table: Tag | None, settings: AnalyzerSettings
) -> DetailedThreadReport:
    """Classify every thread of a dump table into a ``DetailedThreadReport``."""
    samples = parse_thread_dump(dump_table, parse_cpu_table(cpu_table))

    problematic: list[ProblematicThread] = []
    for sample in samples:
        if (flagged := classify_thread(sample, settings)) is not None:
            problematic.append(flagged)

    logger.info("Flagged %d of %d threads", len(problematic), len(samples))
    return DetailedThreadReport(
        summary=summarize_threads(problematic),
        warnings=build_thread_warnings(problematic),
        problematic_threads=problematic,
    )
