"""In-memory research session.

The session is a bounded, append-only log of everything retrieved since the
last reset. Screenshots are stored as files; each file belongs to exactly one
result and is deleted when that result leaves the session.
"""

from __future__ import annotations

import logging
import os
import tempfile
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from .errors import ValidationError

logger = logging.getLogger(__name__)

MAX_RESULTS = 100
DEFAULT_SESSION_QUERY = "Research Session"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ResearchResult:
    url: str
    title: str
    content: str
    timestamp: datetime = field(default_factory=_utcnow)
    screenshot_path: Optional[str] = None


@dataclass
class ResearchSession:
    query: str
    results: List[ResearchResult] = field(default_factory=list)
    last_updated: datetime = field(default_factory=_utcnow)


class SessionStore:
    """Owner of the current ResearchSession and its screenshot files."""

    def __init__(self, max_results: int = MAX_RESULTS, screenshot_dir: Optional[str] = None) -> None:
        if max_results < 1:
            raise ValueError("max_results must be at least 1")
        self.max_results = max_results
        self._screenshot_dir: Optional[Path] = Path(screenshot_dir) if screenshot_dir else None
        self._session: Optional[ResearchSession] = None
        self._listeners: List[Callable[[ResearchResult], None]] = []

    @property
    def session(self) -> Optional[ResearchSession]:
        return self._session

    def add_listener(self, callback: Callable[[ResearchResult], None]) -> None:
        """Register a callback fired whenever a screenshot-bearing result is added."""
        self._listeners.append(callback)

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def start_session(self, query: str) -> ResearchSession:
        """Replace the current session with an empty one labelled ``query``."""
        if self._session is not None:
            self._release_all(self._session.results)
        self._session = ResearchSession(query=query)
        logger.info("Started research session: %s", query)
        return self._session

    def ensure_session(self, query: str) -> ResearchSession:
        if self._session is None:
            return self.start_session(query)
        return self._session

    def add_result(self, result: ResearchResult) -> List[ResearchResult]:
        """Append ``result``, evicting the oldest results beyond the cap.

        Returns the evicted results.
        """
        session = self.ensure_session(DEFAULT_SESSION_QUERY)

        evicted: List[ResearchResult] = []
        while len(session.results) >= self.max_results:
            evicted.append(session.results.pop(0))
        if evicted:
            logger.debug("Evicted %d result(s) from session", len(evicted))
            self._release_all(evicted)

        session.results.append(result)
        session.last_updated = _utcnow()

        if result.screenshot_path:
            for listener in list(self._listeners):
                listener(result)
        return evicted

    def clear(self) -> None:
        """Drop the session and delete every screenshot it owns. Idempotent."""
        session, self._session = self._session, None
        if session is not None:
            self._release_all(session.results)
            logger.info("Cleared research session (%d results)", len(session.results))

    # ------------------------------------------------------------------
    # Screenshot files
    # ------------------------------------------------------------------

    def _ensure_screenshot_dir(self) -> Path:
        if self._screenshot_dir is None:
            self._screenshot_dir = Path(tempfile.mkdtemp(prefix="webresearch-"))
        self._screenshot_dir.mkdir(parents=True, exist_ok=True)
        return self._screenshot_dir

    def save_screenshot(self, data: bytes) -> str:
        """Write PNG bytes to a uniquely named file and return its path."""
        path = self._ensure_screenshot_dir() / f"{uuid.uuid4().hex}.png"
        path.write_bytes(data)
        return str(path)

    def _release_all(self, results: List[ResearchResult]) -> None:
        for result in results:
            if result.screenshot_path:
                self._delete_file(result.screenshot_path)

    @staticmethod
    def _delete_file(path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Failed to delete screenshot %s: %s", path, e)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    def _require_session(self) -> ResearchSession:
        if self._session is None:
            raise ValidationError("No active research session")
        return self._session

    def summary(self) -> Dict[str, Any]:
        session = self._require_session()
        return {
            "query": session.query,
            "resultCount": len(session.results),
            "lastUpdated": session.last_updated.isoformat(),
            "results": [
                {
                    "title": r.title,
                    "url": r.url,
                    "timestamp": r.timestamp.isoformat(),
                    "screenshot": screenshot_uri(i) if r.screenshot_path else None,
                }
                for i, r in enumerate(session.results)
            ],
        }

    def screenshot_entries(self) -> List[Tuple[int, ResearchResult]]:
        """(index, result) for every result that owns a screenshot; empty without a session."""
        if self._session is None:
            return []
        return [(i, r) for i, r in enumerate(self._session.results) if r.screenshot_path]

    def screenshot_bytes(self, index: Any) -> bytes:
        session = self._require_session()
        try:
            i = int(index)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid screenshot index: {index}") from None
        if i < 0 or i >= len(session.results):
            raise ValidationError(f"Screenshot index out of bounds: {i}")
        result = session.results[i]
        if not result.screenshot_path:
            raise ValidationError(f"No screenshot available at index: {i}")
        try:
            return Path(result.screenshot_path).read_bytes()
        except OSError as e:
            raise ValidationError(f"Failed to read screenshot {i}: {e}") from e


def screenshot_uri(index: int) -> str:
    return f"research://screenshots/{index}"
