"""Directory names that are never archived.

Everything listed here is regenerable (dependency caches, virtual
environments, build output) or tool-private (version-control metadata).
The list is part of the archive format: save and load share it, and entries
are only ever added, never removed, so older archives stay readable.

  node_modules, bower_components     JavaScript dependency caches
  .venv, venv, env                   Python virtual environments
  __pycache__, .pytest_cache,
  .mypy_cache, .tox                  Python caches
  build, dist, .build, target,
  .next, .nuxt, .gradle,
  DerivedData, .terraform            build / tool output
  .git, .hg, .svn                    version-control metadata
"""

from __future__ import annotations

import os
from pathlib import PurePosixPath

EXCLUDED_DIRS: frozenset[str] = frozenset(
    {
        "node_modules",
        "bower_components",
        ".venv",
        "venv",
        "env",
        "__pycache__",
        ".pytest_cache",
        ".mypy_cache",
        ".tox",
        "build",
        "dist",
        ".build",
        "target",
        ".next",
        ".nuxt",
        ".gradle",
        "DerivedData",
        ".terraform",
        ".git",
        ".hg",
        ".svn",
    }
)


def is_excluded_dir(name: str) -> bool:
    return name in EXCLUDED_DIRS


def is_excluded_path(relpath: str) -> bool:
    """True if any directory component of *relpath* is excluded.

    The final component is treated as a directory only when the path ends
    with ``/`` (zip directory entries).
    """
    p = PurePosixPath(relpath.replace("\\", "/"))
    parts = p.parts if relpath.endswith("/") else p.parts[:-1]
    return any(part in EXCLUDED_DIRS for part in parts)


def ignore_excluded(directory: str, names: list[str]) -> set[str]:
    """``shutil.copytree`` ignore callable: skip excluded directories.

    Ignored directories are never descended into, so huge dependency trees
    cost a single ``isdir`` check.
    """
    return {
        name
        for name in names
        if name in EXCLUDED_DIRS and os.path.isdir(os.path.join(directory, name))
    }
