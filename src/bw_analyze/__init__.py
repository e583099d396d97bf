"""BW Analyze - offline TIBCO BusinessWorks report analyzer."""

from __future__ import annotations

__version__ = "1.0.0"

from bw_analyze.analyzer import (
    ReportFormatError,
    analyze_files,
    analyze_report,
    enrich_result,
)
from bw_analyze.config import AnalyzerSettings
from bw_analyze.models import AnalysisResult

__all__ = [
    "AnalysisResult",
    "AnalyzerSettings",
    "ReportFormatError",
    "__version__",
    "analyze_files",
    "analyze_report",
    "enrich_result",
]
