"""Free-text input helpers for the interactive shell."""

from __future__ import annotations


def is_valid_input(value: str) -> bool:
    """Return false if `value` contains control characters (below U+0020 or DEL)."""

    return all(ord(ch) >= 32 and ord(ch) != 127 for ch in value)


def parse_operations(raw: str) -> list[str]:
    """Split a comma-separated operations line into trimmed, non-empty entries.

    Raises:
        ValueError: If any remaining entry contains control characters.
    """

    operations: list[str] = []
    for part in raw.split(","):
        op = part.strip()
        if not op:
            continue
        if not is_valid_input(op):
            raise ValueError(f"Operation '{op}' contains invalid characters")
        operations.append(op)
    return operations


def truncate(value: str, length: int) -> str:
    if len(value) <= length:
        return value
    return value[: length - 3] + "..."
