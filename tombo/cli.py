"""
Command-line interface for tombo.

This module provides the main CLI entry point and handles global options,
configuration loading, and command registration.
"""

from __future__ import annotations

import os
import sys
import logging
from pathlib import Path
from typing import Optional

import click

from tombo.__version__ import __version__
from tombo.context import TomboContext
from tombo.config import load_config, validate_config
from tombo.exceptions import ConfigError, TomboError
from tombo.utils.logger import get_logger, setup_logging
from tombo.utils.console import print_error, print_warning, reconfigure_console

logger = get_logger("cli")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file.",
    envvar="TOMBO_CONFIG",
)
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (can be repeated: -v, -vv).",
)
@click.option(
    "--color/--no-color",
    default=True,
    help="Enable or disable colored output.",
    envvar="TOMBO_COLOR",
)
@click.version_option(
    version=__version__,
    prog_name="tombo",
    message="%(prog)s %(version)s",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Optional[Path],
    verbose: int,
    color: bool,
) -> None:
    """tombo: PyPI metadata for pyproject.toml and requirements files.

    \b
    Available commands:
      tombo versions PACKAGE          List released versions
      tombo info PACKAGE              Show package details
      tombo scan FILE                 Report the state of every dependency
      tombo complete FILE LINE COL    Version completions at a position
      tombo hover FILE LINE COL       Hover card for the package at a position
      tombo fix FILE LINE             List or apply quick actions for a line

    \b
    Examples:
      tombo versions requests --pre
      tombo scan pyproject.toml
      tombo -v fix requirements.txt 3 --apply 1

    Use ``tombo COMMAND --help`` for command-specific options.
    """
    # Respect NO_COLOR for downstream libraries
    if color:
        os.environ.pop("NO_COLOR", None)
    else:
        os.environ["NO_COLOR"] = "1"
    reconfigure_console()

    _configure_logging(verbose)

    try:
        loaded_config = load_config(config)
    except ConfigError as exc:
        print_error(str(exc))
        raise SystemExit(1) from exc

    validated, issues = validate_config(loaded_config)
    for issue in issues:
        print_warning(f"{issue.option}: {issue.message}")

    tombo_ctx = TomboContext()
    tombo_ctx.config_path = config or loaded_config.source_path
    tombo_ctx.color = color
    tombo_ctx.verbose = verbose
    tombo_ctx.config = validated
    tombo_ctx.issues = issues
    ctx.obj = tombo_ctx

    logger.debug("tombo v%s", __version__)
    logger.debug("Config path: %s", tombo_ctx.config_path)
    logger.debug("Verbosity: %s | Color: %s", verbose, color)


def _configure_logging(verbose: int) -> None:
    """Configure logging level based on verbosity flags."""
    if verbose <= 0:
        level = logging.WARNING
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    setup_logging(level=level, verbose=verbose > 1)
    logger.debug("Logging initialized at %s level", logging.getLevelName(level))


# Register CLI subcommands
from tombo.commands.edit import complete, fix, hover  # noqa: E402
from tombo.commands.lookup import info, versions  # noqa: E402
from tombo.commands.scan import scan  # noqa: E402

cli.add_command(versions)
cli.add_command(info)
cli.add_command(scan)
cli.add_command(complete)
cli.add_command(hover)
cli.add_command(fix)


def main() -> int:
    """Main entry point for the tombo CLI.

    Returns:
        Exit code:
            0   Success
            1   Unhandled or application error
            2   Usage error (Click)
            130 Interrupted by user (Ctrl+C)
    """
    try:
        cli(standalone_mode=False)
        return 0

    except click.ClickException as exc:
        exc.show()
        return exc.exit_code

    except TomboError as exc:
        print_error(str(exc))
        logger.debug(
            "TomboError details: %s",
            exc.details or "<none>",
            exc_info=True,
        )
        return 1

    except KeyboardInterrupt:
        print_warning("\nOperation cancelled by user")
        return 130

    except Exception as exc:
        print_error(f"Unexpected error: {exc}")
        logger.exception("Unhandled exception in CLI")
        return 1


if __name__ == "__main__":
    sys.exit(main())
