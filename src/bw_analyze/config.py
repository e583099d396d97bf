"""Analyzer settings."""

from __future__ import annotations

from pydantic import BaseModel, Field

DEFAULT_IMPORTANT_ENV_KEYS: tuple[str, ...] = (
    "java.version",
    "java.home",
    "os.name",
    "os.version",
    "user.name",
    "BW_HOME",
)


class AnalyzerSettings(BaseModel):
    """Configurable thresholds and limits for local analysis."""

    high_cpu_percentage: float = Field(default=5.0, ge=0.0)
    stack_snippet_lines: int = Field(default=8, ge=1)

    top_n: int = Field(default=5, ge=1)
    max_key_metrics: int = Field(default=6, ge=1)

    important_env_keys: list[str] = Field(
        default_factory=lambda: list(DEFAULT_IMPORTANT_ENV_KEYS)
    )
