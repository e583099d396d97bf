"""Build the Application -> Process -> Activity tree from report headings.

Entities are identified by heading text rather than ids:

- ``h4`` "BW Applications Information": one application per row.
- ``h6`` "Application [X] - Processes": processes of application X.
- ``h6`` "Application [X] - Process [Y] - Activities": activities of Y in X.

Applications are keyed by the part of their name before ``" - "`` and
looked up by name prefix, since reports repeat qualified names
inconsistently. The tree is assembled as plain dicts and normalized into
frozen models once chart data has been attached.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from bs4 import BeautifulSoup, Tag

from bw_analyze.charts import ChartScript, collect_chart_scripts
from bw_analyze.models import Activity, Application, ChartSeries, Process
from bw_analyze.sections import element_text, find_table_adjacent_to, iter_data_rows
from bw_analyze.units import parse_int

logger = logging.getLogger(__name__)

APPLICATIONS_MARKER = "BW Applications Information"
NAME_SEPARATOR = " - "
APP_CHART_PREFIX = "appChart"

PROCESSES_HEADING_PATTERN: re.Pattern[str] = re.compile(r"Application \[(.+)\] - Processes")
ACTIVITIES_HEADING_PATTERN: re.Pattern[str] = re.compile(
    r"Application \[(.+)\] - Process \[(.+)\] - Activities"
)

PROCESS_COLUMNS: tuple[str, ...] = ("created", "completed", "faulted", "suspended")
ACTIVITY_COLUMNS: tuple[str, ...] = (
    "executed",
    "faulted",
    "recent_elapsed_time",
    "min_elapsed_time",
    "max_elapsed_time",
    "total_elapsed_time",
)


def application_key(name: str) -> str:
    """'Order Service - 1.0' -> 'Order Service'."""
    return name.split(NAME_SEPARATOR)[0]


def _section_table(heading: Tag) -> Tag | None:
    table = find_table_adjacent_to(heading)
    if table is None and heading.parent is not None:
        table = find_table_adjacent_to(heading.parent)
    return table


class ApplicationTreeBuilder:
    """Accumulates applications in report order, then emits frozen models."""

    def __init__(self) -> None:
        self.applications: dict[str, dict[str, Any]] = {}

    def find_application(self, path_name: str) -> dict[str, Any] | None:
        key = application_key(path_name)
        for app in self.applications.values():
            if app["name"].startswith(key):
                return app
        return None

    def add_application_rows(self, table: Tag) -> None:
        for cells in iter_data_rows(table):
            if not cells:
                continue
            full_name = element_text(cells[0])
            key = application_key(full_name)
            if key and key not in self.applications:
                self.applications[key] = _new_application(full_name, "Running")

    def add_process_rows(self, path_name: str, table: Tag) -> None:
        app = self.find_application(path_name)
        if app is None:
            app = _new_application(path_name, "Unknown")
            self.applications[application_key(path_name)] = app

        for cells in iter_data_rows(table):
            if len(cells) < 5:
                continue
            process: dict[str, Any] = {"name": element_text(cells[0]) or "N/A", "activities": []}
            for column, field in enumerate(PROCESS_COLUMNS, start=1):
                process[field] = parse_int(element_text(cells[column]))
            app["processes"].append(process)

    def add_activity_rows(self, path_name: str, process_name: str, table: Tag) -> None:
        app = self.find_application(path_name)
        if app is None:
            logger.debug("Activities for unknown application %r dropped", path_name)
            return
        process = next((p for p in app["processes"] if p["name"] == process_name), None)
        if process is None:
            logger.debug("Activities for unknown process %r dropped", process_name)
            return

        for cells in iter_data_rows(table):
            if len(cells) < 8:
                continue
            activity: dict[str, Any] = {
                "name": element_text(cells[0]) or "N/A",
                "status": element_text(cells[1]) or "N/A",
            }
            for column, field in enumerate(ACTIVITY_COLUMNS, start=2):
                activity[field] = parse_int(element_text(cells[column]))
            process["activities"].append(activity)

    def scan(self, doc: BeautifulSoup) -> None:
        """Visit every h4/h6 heading in document order."""
        for heading in doc.find_all(["h4", "h6"]):
            text = element_text(heading)
            table = _section_table(heading)
            if table is None:
                continue

            if heading.name == "h4":
                if APPLICATIONS_MARKER in text:
                    self.add_application_rows(table)
                continue

            if match := ACTIVITIES_HEADING_PATTERN.search(text):
                self.add_activity_rows(match.group(1), match.group(2), table)
            elif match := PROCESSES_HEADING_PATTERN.search(text):
                self.add_process_rows(match.group(1), table)

    def attach_charts(self, charts: list[ChartScript]) -> None:
        """Best-effort association of decoded chart scripts to entities."""
        app_charts = [chart for chart in charts if chart.chart_id.startswith(APP_CHART_PREFIX)]
        for key, app in self.applications.items():
            chart = next((c for c in app_charts if f"Application [{key}" in c.text), None)
            if chart is not None:
                app["chart_data"] = chart.series

            for process in app["processes"]:
                process_title = f"Process [{process['name']}]"
                candidates = [chart for chart in charts if process_title in chart.text]
                scoped = [c for c in candidates if f"Application [{key}" in c.text]
                unscoped = [c for c in candidates if "Application [" not in c.text]
                if chosen := (scoped or unscoped):
                    process["chart_data"] = chosen[0].series

    def build(self) -> list[Application]:
        return [normalize_application(app) for app in self.applications.values()]


def _new_application(name: str, state: str) -> dict[str, Any]:
    return {"name": name, "state": state, "endpoints": [], "processes": []}


def normalize_application(raw: dict[str, Any]) -> Application:
    """Convert a raw application dict into a frozen ``Application``."""
    processes = [
        Process(
            name=raw_process["name"],
            created=raw_process["created"],
            completed=raw_process["completed"],
            faulted=raw_process["faulted"],
            suspended=raw_process["suspended"],
            activities=[Activity(**activity) for activity in raw_process["activities"]],
            chart_data=raw_process.get("chart_data"),
        )
        for raw_process in raw["processes"]
    ]
    chart_data: ChartSeries | None = raw.get("chart_data")
    return Application(
        name=raw["name"],
        state=raw["state"],
        endpoints=raw["endpoints"],
        processes=processes,
        chart_data=chart_data,
    )


def build_applications(doc: BeautifulSoup) -> list[Application]:
    """Parse the application tree and attach chart data."""
    builder = ApplicationTreeBuilder()
    builder.scan(doc)
    builder.attach_charts(collect_chart_scripts(doc))
    applications = builder.build()
    logger.info(
        "Parsed %d applications with %d processes",
        len(applications),
        sum(len(app.processes) for app in applications),
    )
    return applications
