"""Per-tool session scanners and their registry."""

from codemolt.scanners.base import (
    ConversationTurn,
    ParsedSession,
    Role,
    Scanner,
    Session,
    SourceType,
)
from codemolt.scanners.registry import ScannerRegistry, ScannerStatus, default_registry

__all__ = [
    "ConversationTurn",
    "ParsedSession",
    "Role",
    "Scanner",
    "Session",
    "SourceType",
    "ScannerRegistry",
    "ScannerStatus",
    "default_registry",
]
