"""Scan command implementation for tombo.

Parses one manifest (or every manifest in a directory), fetches the
metadata of all dependencies in one concurrent burst and reports, per
dependency, the latest release, how big the jump to it would be and
which release the written constraint currently resolves to.

Typical usage::

    $ tombo scan pyproject.toml
    $ tombo scan requirements-dev.txt --pre
    $ tombo scan . --format json > report.json
"""

from __future__ import annotations

import sys
import json
import click
import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from tombo.core import ManifestParser, PyPIService
from tombo.exceptions import PyPIError, TomboError
from tombo.context import pass_context, TomboContext
from tombo.models import ManifestKind, PackageMetadata, ParsedDependency
from tombo.utils import (
    colorize_update_type,
    find_manifest_files,
    get_logger,
    get_update_type,
    max_satisfying,
    print_error,
    print_success,
    print_table,
    print_warning,
    safe_read_file,
)
from tombo.utils.version_utils import split_constraint

logger = get_logger("commands.scan")


@click.command()
@click.argument(
    "path",
    type=click.Path(exists=True, path_type=Path),
    default="pyproject.toml",
)
@click.option(
    "--pre/--no-pre",
    default=None,
    help="Consider pre-releases (defaults to the list_pre_releases setting).",
)
@click.option(
    "--recursive",
    "-r",
    is_flag=True,
    help="When PATH is a directory, search it recursively.",
)
@click.option(
    "--format",
    "-f",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@pass_context
def scan(
    ctx: TomboContext,
    path: Path,
    pre: Optional[bool],
    recursive: bool,
    format: str,
) -> None:
    """Report the state of every dependency in PATH.

    PATH is a ``pyproject.toml``, a ``requirements*.txt`` file, or a
    directory containing them.
    """
    try:
        files = find_manifest_files(path, recursive=recursive) if path.is_dir() else [path]
        if not files:
            print_warning(f"No manifest files found in {path}")
            return
        rows = asyncio.run(_scan_async(ctx, files, pre))
    except TomboError as e:
        print_error(f"{e}")
        sys.exit(1)
    except Exception as e:
        print_error(f"Unexpected error: {e}")
        logger.exception("Error in scan command")
        sys.exit(1)

    if format == "json":
        click.echo(json.dumps(rows, indent=2))
        return

    if not rows:
        print_warning("No dependencies found")
        return

    _display_table(rows, show_file=len(files) > 1)

    outdated = sum(1 for r in rows if r["update_type"] not in ("same", "unknown", None))
    if outdated:
        print_warning(f"{outdated} dependency constraint(s) are behind the latest release")
    else:
        print_success("All dependency constraints track the latest release")


# ---------------------------------------------------------------------------
# Async orchestration
# ---------------------------------------------------------------------------


async def _scan_async(
    ctx: TomboContext,
    files: List[Path],
    include_pre_releases: Optional[bool],
) -> List[Dict[str, Any]]:
    parser = ManifestParser()
    found: List[tuple] = []
    for file in files:
        kind = ManifestKind.from_filename(file.name) or ManifestKind.PYPROJECT
        dependencies = parser.parse_document(safe_read_file(file), kind)
        logger.info("Found %d dependencies in %s", len(dependencies), file)
        found.extend((file, dep) for dep in dependencies)

    async with PyPIService.from_config(ctx.config) as service:
        results = await service.prefetch(
            [dep.name for _, dep in found],
            include_pre_releases=include_pre_releases,
        )

    return [_row(file, dep, results[dep.name]) for file, dep in found]


def _row(
    file: Path,
    dependency: ParsedDependency,
    result: Union[PackageMetadata, PyPIError],
) -> Dict[str, Any]:
    row: Dict[str, Any] = {
        "file": str(file),
        "line": dependency.line + 1,
        "name": dependency.name,
        "group": dependency.source.value,
        "constraint": dependency.version_constraint,
        "latest": None,
        "update_type": None,
        "resolves_to": None,
        "error": None,
    }

    if isinstance(result, PyPIError):
        row["error"] = str(result)
        return row

    _, written = split_constraint(dependency.version_constraint.split(",", 1)[0])
    current = written if written and written != "*" else None

    row["latest"] = result.latest_version
    row["update_type"] = get_update_type(current, result.latest_version)
    row["resolves_to"] = max_satisfying(result.versions, dependency.version_constraint)
    return row


# ---------------------------------------------------------------------------
# Display
# ---------------------------------------------------------------------------


def _display_table(rows: List[Dict[str, Any]], *, show_file: bool) -> None:
    headers = ["Line", "Package", "Group", "Constraint", "Latest", "Update", "Resolves To"]
    if show_file:
        headers.insert(0, "File")

    data = []
    for row in rows:
        if row["error"]:
            latest = "[red]error[/red]"
            update = "[dim]-[/dim]"
        else:
            latest = row["latest"] or "[dim]-[/dim]"
            update = colorize_update_type(row["update_type"] or "unknown")
        data.append(
            {
                "File": Path(row["file"]).name,
                "Line": str(row["line"]),
                "Package": row["name"],
                "Group": row["group"],
                "Constraint": row["constraint"] or "[dim]*[/dim]",
                "Latest": latest,
                "Update": update,
                "Resolves To": row["resolves_to"] or "[red]none[/red]",
            }
        )

    print_table(
        data,
        headers=headers,
        title="Dependency Scan",
        column_styles={
            "Line": {"justify": "right", "style": "dim"},
            "Package": {"style": "bold cyan", "no_wrap": True},
            "Latest": {"justify": "center", "style": "bold green"},
            "Update": {"justify": "center"},
            "Resolves To": {"justify": "center"},
        },
    )
