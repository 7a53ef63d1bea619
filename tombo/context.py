"""
Shared context object for tombo CLI commands.

This module defines the global Click context used to share configuration
and runtime options across CLI subcommands.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import click

from tombo.config import ConfigIssue, TomboConfig


class TomboContext:
    """Global context object for tombo CLI commands.

    Created once per invocation by the ``tombo`` group and handed to every
    subcommand through :data:`pass_context`.

    Attributes:
        config_path: Configuration file in use, if any.
        verbose: Verbosity level (0=WARNING, 1=INFO, 2+=DEBUG).
        color: Whether colored terminal output is enabled.
        config: Validated configuration.
        issues: Corrections made while validating ``config``.
    """

    __slots__ = ("config_path", "verbose", "color", "config", "issues")

    def __init__(self) -> None:
        self.config_path: Optional[Path] = None
        self.verbose: int = 0
        self.color: bool = True
        self.config: TomboConfig = TomboConfig()
        self.issues: List[ConfigIssue] = []


#: Click decorator for injecting :class:`TomboContext` into commands.
pass_context = click.make_pass_decorator(TomboContext, ensure=True)
