"""Log output for the command line: one RichHandler on the root logger, on stderr.

Library modules never configure logging; they only call
``logging.getLogger(__name__)``.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(level: int | str = logging.WARNING) -> None:
    """Install a RichHandler at *level*. Calling it again only changes the level."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(
        level=level,
        format="%(name)s: %(message)s",
        datefmt="%H:%M:%S",
        handlers=[
            RichHandler(
                console=Console(stderr=True),
                show_path=False,
                rich_tracebacks=True,
            )
        ],
        force=False,
    )
    logging.getLogger().setLevel(level)
