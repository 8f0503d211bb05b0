"""File writing with path confinement and atomic replace.

Responsibilities:
  1. Resolve a project-relative path inside a project root.
     Traversal (``../../etc/passwd``) or absolute paths → hard fail.
  2. Write a file atomically (temp file in the same directory → rename), so a
     crash leaves either the old content or the new content, never a
     truncated file.
"""

from __future__ import annotations

import os
import stat
import tempfile
from pathlib import Path


# ------------------------------------------------------------------
# Path confinement
# ------------------------------------------------------------------


def confine_to_root(root: Path, relpath: str) -> Path:
    """Return ``root / relpath`` after checking it stays inside *root*.

    Args:
        root: Project root directory (need not exist yet).
        relpath: Path relative to *root*.

    Returns:
        Absolute path inside *root*.

    Raises:
        ValueError: If *relpath* is absolute or resolves outside *root*.
    """
    if Path(relpath).is_absolute():
        raise ValueError(f"Path '{relpath}' must be relative to the project root.")

    base = root.resolve()
    resolved = (base / relpath).resolve()

    try:
        resolved.relative_to(base)
    except ValueError:
        raise ValueError(
            f"Path '{relpath}' resolves outside the project root "
            f"('{base}'). Path traversal is not permitted."
        )

    return resolved


# ------------------------------------------------------------------
# Atomic write
# ------------------------------------------------------------------


def write_atomic(path: Path, data: str | bytes) -> None:
    """Write *data* to *path* atomically (temp → rename).

    Creates parent directories if needed. Text is written as UTF-8 without
    newline translation so content round-trips byte for byte.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        mode = stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        mode = 0o644

    dir_ = path.parent
    fd, tmp_path = tempfile.mkstemp(dir=dir_, prefix=f".{path.name}.", suffix=".tmp")
    try:
        if isinstance(data, str):
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(data)
        else:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
        # mkstemp creates 0o600; keep an existing file's mode (e.g. +x scripts)
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except Exception:
        # Clean up temp file on error
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
