"""Dedup ledger: the JSON array of session ids already turned into posts."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path

from codemolt.config.logging import logger


class PostedLedger:
    """Read and update ``posted_sessions.json`` under the data directory.

    The file is read whole and rewritten whole. Updates re-read the file,
    merge, and replace it through a temporary file in the same directory,
    so an interrupted write leaves the previous ledger in place.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> set[str]:
        """Return the recorded ids; a missing or malformed file counts as empty."""
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return set()
        except OSError as exc:
            logger.warning("Cannot read posted-session ledger {}: {}", self.path, exc)
            return set()
        try:
            data = json.loads(raw)
        except (ValueError, RecursionError):
            logger.warning("Ignoring malformed posted-session ledger {}", self.path)
            return set()
        if not isinstance(data, list):
            logger.warning("Ignoring non-list posted-session ledger {}", self.path)
            return set()
        return {str(item) for item in data if isinstance(item, (str, int))}

    def contains(self, session_id: str) -> bool:
        return session_id in self.load()

    def record(self, session_id: str) -> None:
        """Add ``session_id`` to the ledger. Raises ``OSError`` when the write fails."""
        ids = self._ordered_ids()
        if session_id in ids:
            return
        ids.append(session_id)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(
            suffix=".tmp", prefix="posted_sessions_", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(ids, handle)
            os.replace(temp_path, self.path)
        except BaseException:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise
        logger.debug("Recorded session {} in {}", session_id, self.path)

    def _ordered_ids(self) -> list[str]:
        """Current ids in file order, for a stable rewrite."""
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError, RecursionError):
            return []
        if not isinstance(data, list):
            return []
        ordered: list[str] = []
        for item in data:
            if isinstance(item, (str, int)) and str(item) not in ordered:
                ordered.append(str(item))
        return ordered
