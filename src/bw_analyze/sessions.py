"""JSON-file persistence for analysis sessions."""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from pydantic import Field, ValidationError

from bw_analyze.models import AnalysisResult, ReportModel

logger = logging.getLogger(__name__)

MAX_SESSION_NAME_LENGTH = 50
DEFAULT_SESSION_NAME = "Analysis Session"


class SessionStoreError(ValueError):
    """The store file exists but cannot be read, so it must not be rewritten."""


class Session(ReportModel):
    id: str
    name: str
    timestamp: int
    result: AnalysisResult


class SessionFile(ReportModel):
    sessions: list[Session] = Field(default_factory=list)


class PersistenceStage(Protocol):
    """Stores a result under an opaque id; the analyzer never reads it back."""

    def save(self, result: AnalysisResult, file_names: Sequence[str]) -> Session:
        ...


def session_name(file_names: Sequence[str]) -> str:
    if not file_names:
        return DEFAULT_SESSION_NAME
    joined = ", ".join(file_names)
    if len(joined) > MAX_SESSION_NAME_LENGTH:
        return joined[:MAX_SESSION_NAME_LENGTH] + "..."
    return joined or DEFAULT_SESSION_NAME


class JsonSessionStore:
    """Sessions kept newest-first in a single JSON file."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def _read(self) -> list[Session]:
        if not self.path.exists():
            return []
        try:
            stored = SessionFile.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            raise SessionStoreError(f"Failed to read sessions from {self.path}: {exc}") from exc
        return sorted(stored.sessions, key=lambda session: session.timestamp, reverse=True)

    def _load(self) -> list[Session]:
        try:
            return self._read()
        except SessionStoreError as exc:
            logger.error("%s", exc)
            return []

    def _write(self, sessions: list[Session]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = SessionFile(sessions=sessions).model_dump_json(
            by_alias=True, exclude_none=True, indent=2
        )
        self.path.write_text(payload, encoding="utf-8")

    def sessions(self) -> list[Session]:
        return self._load()

    def save(self, result: AnalysisResult, file_names: Sequence[str]) -> Session:
        now_ms = int(time.time() * 1000)
        session = Session(
            id=f"session_{now_ms}_{uuid.uuid4().hex[:8]}",
            name=session_name(file_names),
            timestamp=now_ms,
            result=result,
        )
        # An unreadable store raises here instead of being replaced.
        self._write([session, *self._read()])
        logger.info("Saved session %s to %s", session.id, self.path)
        return session

    def get(self, session_id: str) -> Session | None:
        return next((s for s in self._load() if s.id == session_id), None)

    def delete(self, session_id: str) -> None:
        self._write([s for s in self._read() if s.id != session_id])

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
