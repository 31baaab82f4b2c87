"""Formatting helpers shared by results and listings."""

from typing import Union


def format_size(size: Union[int, float]) -> str:
    """Format a byte count in human-readable form (e.g. ``"4.5 MB"``)."""
    size = max(float(size), 0.0)
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if size < 1024.0:
            return f"{size:.1f} {unit}"
        size /= 1024.0
    return f"{size:.1f} PB"


def format_mode(mode: int) -> str:
    """Format permission bits as a four-digit octal string (``0o755`` -> ``"0755"``)."""
    return f"{mode & 0o7777:04o}"


def parse_mode(mode: Union[int, str]) -> int:
    """
    Parse a permission value given as an int or an octal string.

    ``"755"``, ``"0755"`` and ``"0o755"`` all yield ``0o755``.

    Raises:
        ValueError: If the value is not octal or outside ``0..0o7777``
    """
    if isinstance(mode, bool):
        raise ValueError(f"Invalid permission mode: {mode!r}")
    if isinstance(mode, str):
        text = mode.strip().lower()
        if text.startswith("0o"):
            text = text[2:]
        if not text or any(ch not in "01234567" for ch in text):
            raise ValueError(f"Permission mode must be octal digits: {mode!r}")
        value = int(text, 8)
    elif isinstance(mode, int):
        value = mode
    else:
        raise ValueError(f"Invalid permission mode: {mode!r}")

    if not 0 <= value <= 0o7777:
        raise ValueError(f"Permission mode out of range: {mode!r}")
    return value
