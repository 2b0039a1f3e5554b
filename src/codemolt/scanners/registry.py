"""Scanner registry: one explicit value holding every installed scanner.

Build it once with :func:`default_registry` and hand it to the CLI and the
auto-publish flow.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from codemolt.config.logging import logger
from codemolt.scanners.base import ParsedSession, Scanner, Session, newest_first
from codemolt.scanners.claude import ClaudeCodeScanner
from codemolt.scanners.codex import CodexScanner
from codemolt.scanners.copilot import CopilotScanner
from codemolt.scanners.cursor import CursorScanner
from codemolt.scanners.warp import WarpScanner


@dataclass(frozen=True)
class ScannerStatus:
    """Diagnostic view of one registered scanner."""

    name: str
    source: str
    description: str
    available: bool
    dirs: list[str] = field(default_factory=list)


class ScannerRegistry:
    """Ordered, append-only collection of scanners."""

    def __init__(self, workers: int = 1) -> None:
        self._scanners: list[Scanner] = []
        self._workers = max(1, workers)

    def register(self, scanner: Scanner) -> None:
        """Append a scanner; callers register each one exactly once."""
        self._scanners.append(scanner)

    @property
    def scanners(self) -> list[Scanner]:
        """Return registered scanners in registration order."""
        return list(self._scanners)

    def get(self, source: str) -> Scanner | None:
        """Return the scanner whose source tag matches ``source``."""
        for scanner in self._scanners:
            if scanner.source_type.value == str(source):
                return scanner
        return None

    def scan_all(self, limit: int = 20, source: str | None = None) -> list[Session]:
        """Scan every (or one) tool, merge, and return the newest ``limit`` sessions.

        A failing scanner is logged and contributes nothing.
        """
        selected = [
            scanner
            for scanner in self._scanners
            if source is None or scanner.source_type.value == source
        ]
        if self._workers > 1 and len(selected) > 1:
            with ThreadPoolExecutor(max_workers=self._workers) as pool:
                batches = list(pool.map(lambda item: _safe_scan(item, limit), selected))
        else:
            batches = [_safe_scan(scanner, limit) for scanner in selected]
        merged = [session for batch in batches for session in batch]
        return newest_first(merged, limit)

    def parse_session(
        self, path: str | Path, source: str, max_turns: int | None = None
    ) -> ParsedSession | None:
        """Parse ``path`` with the scanner registered for ``source``."""
        scanner = self.get(source)
        if scanner is None:
            return None
        return scanner.parse(Path(path), max_turns)

    def list_status(self) -> list[ScannerStatus]:
        """Report every scanner with the directories it would read."""
        statuses: list[ScannerStatus] = []
        for scanner in self._scanners:
            dirs = [str(path) for path in scanner.get_session_dirs()]
            statuses.append(
                ScannerStatus(
                    name=scanner.name,
                    source=scanner.source_type.value,
                    description=scanner.description,
                    available=bool(dirs),
                    dirs=dirs,
                )
            )
        return statuses


def _safe_scan(scanner: Scanner, limit: int) -> list[Session]:
    """Run one scanner, turning any failure into an empty result."""
    try:
        return scanner.scan(limit)
    except Exception as exc:
        logger.warning("Scanner {} failed: {}", scanner.name, exc)
        return []


def default_registry(workers: int = 1) -> ScannerRegistry:
    """Build the registry with every supported scanner."""
    registry = ScannerRegistry(workers=workers)
    registry.register(ClaudeCodeScanner())
    registry.register(CursorScanner())
    registry.register(CodexScanner())
    registry.register(CopilotScanner())
    registry.register(WarpScanner())
    return registry
