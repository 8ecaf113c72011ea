"""Tiny JSON-file key-value store for the agent's persisted state.

Holds exactly two keys in practice: the rolling conversation history and
the daily-briefing cache record.

• **Whole-file rewrite** on every ``put``/``delete``: the new document is
  written to a temp file in the same directory and swapped in with
  ``os.replace``, so readers never observe a half-written file.
• **threading.Lock** around read-modify-write; the FastAPI background task
  and the scheduler may touch the file from different threads.
• A missing or unreadable file reads as an empty document.  Corruption is
  logged, never raised.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class JsonStateStore:
    """Key-value store persisted as a single JSON object on disk."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    # ── Core operations ──────────────────────────────────────────────

    def get(self, key: str) -> Any | None:
        """Return the stored value for *key*, or ``None`` if absent/corrupt."""
        with self._lock:
            return self._read().get(key)

    def put(self, key: str, value: Any) -> None:
        """Store a JSON-serialisable *value* under *key*."""
        with self._lock:
            doc = self._read()
            doc[key] = value
            self._write(doc)

    def delete(self, key: str) -> bool:
        """Remove *key*.  Returns ``True`` if it existed."""
        with self._lock:
            doc = self._read()
            if key not in doc:
                return False
            del doc[key]
            self._write(doc)
            return True

    # ── File handling ────────────────────────────────────────────────

    def _read(self) -> dict[str, Any]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            logger.warning("State store %s unreadable, treating as empty: %s", self._path, exc)
            return {}
        try:
            doc = json.loads(raw)
        except ValueError:
            logger.warning("State store %s is corrupt, treating as empty", self._path)
            return {}
        if not isinstance(doc, dict):
            logger.warning("State store %s does not hold an object, treating as empty", self._path)
            return {}
        return doc

    def _write(self, doc: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=".state-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(doc, f, indent=2, default=str)
            os.replace(tmp_name, self._path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise
