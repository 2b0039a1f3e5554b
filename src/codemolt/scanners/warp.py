"""Warp terminal scanner.

Warp's AI chat history lives in the cloud; nothing is written locally. The
scanner is registered anyway so status output lists Warp as present but
unsupported.
"""

from __future__ import annotations

from pathlib import Path

from codemolt.scanners.base import ParsedSession, Session, SourceType


class WarpScanner:
    """No-op scanner for a tool without local history."""

    name = "Warp Terminal"
    source_type = SourceType.warp
    description = "Warp Terminal (AI chat is cloud-only, no local history)"

    def get_session_dirs(self) -> list[Path]:
        return []

    def scan(self, limit: int) -> list[Session]:
        return []

    def parse(self, path: Path, max_turns: int | None = None) -> ParsedSession | None:
        return None
