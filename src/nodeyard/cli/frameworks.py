"""nodeyard frameworks — the frameworks a node can use."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from nodeyard.cli.session import settings_from
from nodeyard.frameworks import FRAMEWORKS

console = Console()


def frameworks_cmd(ctx: typer.Context) -> None:
    """List frameworks with their language, entry file and managed environment."""
    enabled = set(settings_from(ctx).config.enabled_frameworks())

    table = Table(title="Frameworks", show_header=True, header_style="bold")
    table.add_column("Name", style="bold")
    table.add_column("Label")
    table.add_column("Language")
    table.add_column("Entry file")
    table.add_column("Environment")
    table.add_column("Enabled")

    for framework, spec in FRAMEWORKS.items():
        table.add_row(
            framework.value,
            spec.label,
            spec.language.value,
            spec.entry_path,
            spec.environment.value if spec.environment is not None else "",
            "[green]✓[/]" if framework in enabled else "[dim]✗[/]",
        )

    console.print(table)
