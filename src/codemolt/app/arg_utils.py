"""Small argument parsing helpers shared by CLI commands."""

from __future__ import annotations


def parse_csv(raw: str | None) -> list[str]:
    """Split a comma-delimited string into trimmed non-empty values."""
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


if __name__ == "__main__":
    """Run a real-path smoke test for argument parsing helpers."""
    assert parse_csv(" react, hooks ,, testing ") == ["react", "hooks", "testing"]
    assert parse_csv(None) == []
