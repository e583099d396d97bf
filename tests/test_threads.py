from __future__ import annotations

from bs4 import BeautifulSoup

from bw_analyze.config import AnalyzerSettings
from bw_analyze.models import ProblematicThread
from bw_analyze.sections import find_table
from bw_analyze.threads import (
    HIGH_PRIORITY_WARNING,
    IO_WAIT_WARNING,
    ThreadSample,
    analyze_thread_dump,
    blocked_rule,
    build_thread_warnings,
    classify_thread,
    high_cpu_rule,
    idle_worker_rule,
    normalize_stack,
    object_wait_rule,
    parse_cpu_table,
    parse_thread_dump,
    socket_read_rule,
    summarize_threads,
)


def _sample(state: str, stack: str = "", cpu: float | None = None) -> ThreadSample:
    return ThreadSample(thread_id="1", name="worker", state=state, stack=stack, cpu_percent=cpu)


def _flagged(priority: str) -> ProblematicThread:
    return ProblematicThread(thread_name="t", state="RUNNABLE", priority=priority, details="d")


# ============================================================
# RULES
# ============================================================


def test_high_cpu_rule_uses_strict_threshold(settings: AnalyzerSettings) -> None:
    assert high_cpu_rule(_sample("RUNNABLE", cpu=5.0), settings, None) is None
    assert high_cpu_rule(_sample("RUNNABLE"), settings, None) is None

    match = high_cpu_rule(_sample("RUNNABLE", cpu=7.5), settings, None)
    assert match is not None
    assert match.priority == "High"
    assert match.detail == "High CPU Usage (7.50%)."


def test_high_cpu_rule_respects_configured_threshold() -> None:
    strict = AnalyzerSettings(high_cpu_percentage=1.0)
    assert high_cpu_rule(_sample("RUNNABLE", cpu=2.0), strict, None) is not None


def test_blocked_rule_names_lock_class(settings: AnalyzerSettings) -> None:
    stack = "com.acme.Work.run(Work.java:1)\n- waiting to lock <0x1> (a java.lang.Object)"
    match = blocked_rule(_sample("BLOCKED", stack), settings, None)
    assert match is not None
    assert match.priority == "High"
    assert match.detail == "BLOCKED: Waiting for lock on a java.lang.Object."


def test_blocked_rule_without_lock_line(settings: AnalyzerSettings) -> None:
    match = blocked_rule(_sample("BLOCKED (on object monitor)", "a.b.C.d()"), settings, None)
    assert match is not None
    assert match.detail == "BLOCKED: Waiting on a monitor lock."
    assert blocked_rule(_sample("RUNNABLE"), settings, None) is None


def test_socket_read_rule(settings: AnalyzerSettings) -> None:
    legacy = _sample("RUNNABLE", "java.net.SocketInputStream.socketRead0(Native Method)")
    nio = _sample("RUNNABLE", "sun.nio.ch.NioSocketImpl.read(NioSocketImpl.java:283)")

    match = socket_read_rule(legacy, settings, None)
    assert match is not None
    assert match.priority == "Medium"
    assert match.detail.startswith("I/O WAIT:")
    assert socket_read_rule(nio, settings, "Low") is not None

    assert socket_read_rule(legacy, settings, "High") is None
    assert socket_read_rule(_sample("WAITING", legacy.stack), settings, None) is None


def test_idle_worker_rule(settings: AnalyzerSettings) -> None:
    stack = "java.util.concurrent.LinkedBlockingQueue.take(LinkedBlockingQueue.java:442)"
    match = idle_worker_rule(_sample("TIMED_WAITING", stack), settings, None)
    assert match is not None
    assert match.priority == "Low"
    assert match.detail.startswith("IDLE WORKER:")

    custom_queue = "com.tibco.pvm.WorkQueue.take(WorkQueue.java:10)"
    assert idle_worker_rule(_sample("WAITING", custom_queue), settings, None) is not None
    assert idle_worker_rule(_sample("RUNNABLE", stack), settings, None) is None
    assert idle_worker_rule(_sample("WAITING", "java.util.ArrayList.take()"), settings, None) is None


def test_object_wait_rule(settings: AnalyzerSettings) -> None:
    stack = "java.lang.Object.wait(Native Method)"
    match = object_wait_rule(_sample("WAITING (on object monitor)", stack), settings, None)
    assert match is not None
    assert match.priority == "Low"
    assert object_wait_rule(_sample("TIMED_WAITING", stack), settings, None) is None


# ============================================================
# CLASSIFICATION
# ============================================================


def test_unflagged_thread_is_not_reported(settings: AnalyzerSettings) -> None:
    assert classify_thread(_sample("RUNNABLE", "java.lang.Thread.sleep(Native Method)"), settings) is None


def test_high_cpu_and_blocked_details_concatenate(settings: AnalyzerSettings) -> None:
    stack = "- waiting to lock <0xabc> (a java.util.HashMap)"
    flagged = classify_thread(_sample("BLOCKED", stack, cpu=12.5), settings)
    assert flagged is not None
    assert flagged.priority == "High"
    assert flagged.details == (
        "High CPU Usage (12.50%). BLOCKED: Waiting for lock on a java.util.HashMap."
    )


def test_priority_never_downgrades(settings: AnalyzerSettings) -> None:
    stack = "java.net.SocketInputStream.socketRead(SocketInputStream.java:116)"
    flagged = classify_thread(_sample("RUNNABLE", stack, cpu=50.0), settings)
    assert flagged is not None
    assert flagged.priority == "High"
    assert "I/O WAIT" not in flagged.details


def test_rules_evaluated_independently(settings: AnalyzerSettings) -> None:
    stack = (
        "java.lang.Object.wait(Native Method)\n"
        "java.util.concurrent.ArrayBlockingQueue.take(ArrayBlockingQueue.java:403)"
    )
    flagged = classify_thread(_sample("WAITING", stack), settings)
    assert flagged is not None
    assert flagged.priority == "Low"
    assert flagged.details.startswith("IDLE WORKER:")
    assert "WAITING: Thread is in Object.wait()" in flagged.details


def test_stack_snippet_is_first_lines(settings: AnalyzerSettings) -> None:
    stack = "\n".join(f"frame{i}" for i in range(20))
    flagged = classify_thread(_sample("BLOCKED", stack), settings)
    assert flagged is not None
    assert flagged.stack_trace_snippet.split("\n") == [f"frame{i}" for i in range(8)]

    short = classify_thread(_sample("BLOCKED", stack), AnalyzerSettings(stack_snippet_lines=2))
    assert short is not None
    assert short.stack_trace_snippet == "frame0\nframe1"


# ============================================================
# TABLE PARSING
# ============================================================


def test_normalize_stack() -> None:
    markup = " a.B.c(B.java:1)<br>  <br/>- waiting to lock &lt;0x1&gt; (a X)<BR />d.E.f() "
    assert normalize_stack(markup) == "a.B.c(B.java:1)\n- waiting to lock <0x1> (a X)\nd.E.f()"


def test_parse_cpu_table(report_soup: BeautifulSoup) -> None:
    table = find_table(report_soup, "h6", "Top Threads")
    assert parse_cpu_table(table) == {"101": 12.5, "102": 1.0}
    assert parse_cpu_table(None) == {}


def test_parse_thread_dump(report_soup: BeautifulSoup) -> None:
    table = find_table(report_soup, "h3", "Thread Dump")
    assert table is not None
    samples = parse_thread_dump(table, {"101": 12.5})

    assert [s.name for s in samples] == ["bw-worker-1", "http-client-3", "pool-2-thread-1", "main"]
    assert [s.state for s in samples] == ["BLOCKED", "RUNNABLE", "WAITING", "RUNNABLE"]
    assert samples[0].cpu_percent == 12.5
    assert samples[1].cpu_percent is None
    assert samples[0].stack.split("\n") == [
        "com.acme.Cache.get(Cache.java:42)",
        "- waiting to lock <0x00000000c0a1b2c3> (a java.util.HashMap)",
        "java.lang.Thread.run(Thread.java:750)",
    ]


def test_parse_thread_dump_skips_rows_without_name_or_state() -> None:
    doc = BeautifulSoup(
        "<table><tr><th>Id</th><th>Info</th></tr>"
        "<tr><td>1</td><td>Thread Name=orphan</td></tr>"
        "<tr><td>2</td><td>Thread State=RUNNABLE</td></tr>"
        "<tr><td>3</td><td>Thread Name=ok<br>Thread State=NEW</td></tr>"
        "</table>",
        "html.parser",
    )
    samples = parse_thread_dump(doc.find("table"))
    assert [(s.thread_id, s.name, s.state, s.stack) for s in samples] == [("3", "ok", "NEW", "")]


# ============================================================
# REPORT
# ============================================================


def test_warnings_are_one_per_severity_class() -> None:
    warnings = build_thread_warnings(
        [_flagged("Medium"), _flagged("High"), _flagged("High"), _flagged("Low")]
    )
    assert [(w.severity, w.description) for w in warnings] == [
        ("High", HIGH_PRIORITY_WARNING),
        ("Medium", IO_WAIT_WARNING),
    ]
    assert build_thread_warnings([_flagged("Low")]) == []


def test_summary_text() -> None:
    assert summarize_threads([_flagged("Low"), _flagged("High")]).startswith(
        "Local analysis flagged 2 threads for review."
    )
    assert summarize_threads([]).startswith(
        "Local analysis did not find any critically BLOCKED or high-CPU threads."
    )


def test_analyze_thread_dump(report_soup: BeautifulSoup, settings: AnalyzerSettings) -> None:
    report = analyze_thread_dump(
        find_table(report_soup, "h3", "Thread Dump"),
        find_table(report_soup, "h6", "Top Threads"),
        settings,
    )

    flagged = {t.thread_name: t for t in report.problematic_threads}
    assert list(flagged) == ["bw-worker-1", "http-client-3", "pool-2-thread-1"]
    assert flagged["bw-worker-1"].priority == "High"
    assert flagged["bw-worker-1"].details == (
        "High CPU Usage (12.50%). BLOCKED: Waiting for lock on a java.util.HashMap."
    )
    assert flagged["http-client-3"].priority == "Medium"
    assert flagged["pool-2-thread-1"].priority == "Low"
    assert [w.severity for w in report.warnings] == ["High", "Medium"]
    assert report.summary.startswith("Local analysis flagged 3 threads")
