"""Nodeyard rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from nodeyard.cli.errors import err_archive_not_found
    console.print(err_archive_not_found("app.nodeyard"))
    raise typer.Exit(1)
"""

from __future__ import annotations


def err_archive_not_found(path: str) -> str:
    """Workspace archive does not exist."""
    return (
        f"[red]Error:[/] No workspace archive at '{path}'.\n"
        f"  Run:  nodeyard new {path}"
    )


def err_archive_exists(path: str) -> str:
    """`nodeyard new` would overwrite an existing archive."""
    return (
        f"[red]Error:[/] '{path}' already exists.\n"
        "  Pick another file name, or pass --force to replace it."
    )


def err_archive_invalid(path: str, detail: str) -> str:
    """File exists but is not a workspace archive."""
    return (
        f"[red]Error:[/] '{path}' is not a valid workspace archive.\n"
        f"  {detail}\n"
        "  Check the file was written by nodeyard (run:  nodeyard inspect <file>)."
    )


def err_save_failed(path: str, detail: str) -> str:
    """Flushing a node or writing the archive failed; the archive is unchanged."""
    return (
        f"[red]Error:[/] Workspace was not saved to '{path}'.\n"
        f"  {detail}\n"
        "  The previous archive is unchanged. Check disk space and permissions of the "
        "projects directory, then retry."
    )


def err_load_failed(path: str, detail: str) -> str:
    """Restoring node trees from an archive failed."""
    return (
        f"[red]Error:[/] Could not open workspace '{path}'.\n"
        f"  {detail}\n"
        "  Check the projects directory is writable (see --projects-dir)."
    )


def err_node_not_found(ref: str, available: list[str]) -> str:
    """No node matches *ref* by id, id prefix or name."""
    listing = ", ".join(available) if available else "(none)"
    return (
        f"[red]Error:[/] No node matches '{ref}'.\n"
        f"  Nodes: {listing}\n"
        "  Run:  nodeyard node list <workspace>"
    )


def err_node_ambiguous(ref: str, matches: list[str]) -> str:
    """*ref* matches more than one node."""
    return (
        f"[red]Error:[/] '{ref}' matches more than one node: {', '.join(matches)}\n"
        "  Use the node id (or a longer id prefix) instead."
    )


def err_unknown_framework(value: str, choices: list[str]) -> str:
    """Framework name not recognised or not enabled."""
    return (
        f"[red]Error:[/] Framework '{value}' is not available.\n"
        f"  Choose one of: {', '.join(choices)}\n"
        "  Run:  nodeyard frameworks"
    )


def err_config(detail: str) -> str:
    """Invalid configuration file or environment variable."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {detail}\n"
        "  Fix ~/.nodeyard/config.yaml or ./nodeyard.yaml (or the NODEYARD_* variables)."
    )


def err_invalid_value(detail: str) -> str:
    """A command-line value was rejected."""
    return f"[red]Error:[/] {detail}"


def warn_files_kept(path: str) -> str:
    """Shown after node removal without --delete-files."""
    return (
        f"[yellow]⚠[/] Project directory kept on disk: {path}\n"
        "  Delete it yourself, or remove nodes with --delete-files."
    )


def err_filesystem(detail: str) -> str:
    """Unexpected filesystem failure while changing a node directory."""
    return (
        f"[red]Error:[/] Filesystem operation failed.\n"
        f"  {detail}\n"
        "  Check permissions of the projects directory (see --projects-dir)."
    )
