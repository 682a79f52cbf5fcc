"""Small filesystem probes shared by the language adapters."""

from __future__ import annotations

from pathlib import Path

GUIDES_DIR = ".guides"


def exists_any(root: str | Path | None, *files: str | Path) -> Path | None:
    """Return the first of ``files`` that exists, or None.

    Args:
        root: Directory the files are relative to, or None for absolute paths.
        *files: Candidate paths, checked in order.
    """
    for file in files:
        path = Path(root) / file if root is not None else Path(file)
        if path.exists():
            return path
    return None


def read_any(root: str | Path, *files: str) -> tuple[Path, str] | None:
    """Read the first readable file of ``files`` under ``root``.

    Returns:
        ``(path, content)`` for the first file that could be read, else None.
    """
    for file in files:
        path = Path(root) / file
        try:
            return path, path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            continue
    return None

