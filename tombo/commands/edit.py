"""Editor-style commands: ``tombo complete``, ``tombo hover``, ``tombo fix``.

These expose the providers on the command line so their output can be
inspected or scripted. Positions are 1-based, the way editors display
them: ``LINE 3 COLUMN 11`` is the cursor after the tenth character of
the third line.

Typical usage::

    $ tombo complete requirements.txt 1 11
    $ tombo hover pyproject.toml 12 8
    $ tombo fix pyproject.toml 12
    $ tombo fix pyproject.toml 12 --apply 1 --yes
"""

from __future__ import annotations

import sys
import json
import click
import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional

from tombo.core import PyPIService
from tombo.exceptions import TomboError
from tombo.context import pass_context, TomboContext
from tombo.models import Position, TextDocument
from tombo.providers import (
    CodeAction,
    CompletionItem,
    CompletionProvider,
    Hover,
    HoverProvider,
    QuickActionProvider,
)
from tombo.utils import (
    confirm,
    get_logger,
    get_raw_console,
    print_error,
    print_markdown,
    print_success,
    print_table,
    print_warning,
    safe_read_file,
    safe_write_file,
)

logger = get_logger("commands.edit")

_FILE = click.Path(exists=True, dir_okay=False, path_type=Path)
_POSITIVE = click.IntRange(min=1)


def _load_document(file: Path) -> TextDocument:
    return TextDocument(safe_read_file(file), str(file))


def _position(document: TextDocument, line: int, column: int) -> Position:
    if line > document.line_count:
        raise click.BadParameter(
            f"{document.path} has only {document.line_count} line(s)",
            param_hint="LINE",
        )
    return Position(line - 1, column - 1)


def _run(coro: Any) -> Any:
    """Run a provider coroutine, turning tombo errors into exit code 1."""
    try:
        return asyncio.run(coro)
    except TomboError as e:
        print_error(f"{e}")
        sys.exit(1)


# ---------------------------------------------------------------------------
# complete
# ---------------------------------------------------------------------------


@click.command()
@click.argument("file", type=_FILE)
@click.argument("line", type=_POSITIVE)
@click.argument("column", type=_POSITIVE)
@click.option(
    "--pre/--no-pre",
    default=None,
    help="Include pre-releases (defaults to the list_pre_releases setting).",
)
@click.option(
    "--format",
    "-f",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@pass_context
def complete(
    ctx: TomboContext,
    file: Path,
    line: int,
    column: int,
    pre: Optional[bool],
    format: str,
) -> None:
    """Show version completions at LINE:COLUMN of FILE.

    Only versions starting with the text already typed are listed.
    """
    document = _load_document(file)
    position = _position(document, line, column)
    items = _run(_complete_async(ctx, document, position, pre))

    if format == "json":
        click.echo(json.dumps([_item_dict(i) for i in items], indent=2))
        return

    if not items:
        print_warning("No completions at this position")
        return

    print_table(
        [
            {
                "Version": item.label,
                "Insert": item.insert_text,
                "Note": item.detail or "",
            }
            for item in items
        ],
        title=f"Completions at {line}:{column}",
        column_styles={"Version": {"style": "bold cyan", "no_wrap": True}},
    )


async def _complete_async(
    ctx: TomboContext,
    document: TextDocument,
    position: Position,
    include_pre_releases: Optional[bool],
) -> List[CompletionItem]:
    async with PyPIService.from_config(ctx.config) as service:
        provider = CompletionProvider(service)
        context = provider.completion_context(document, position)
        if context is None:
            return []
        items = await provider.provide(
            document,
            position,
            include_pre_releases=include_pre_releases,
        )
    return [i for i in items if i.label.startswith(context.prefix)]


def _item_dict(item: CompletionItem) -> Dict[str, Any]:
    return {
        "label": item.label,
        "insert_text": item.insert_text,
        "line": item.edit.line + 1,
        "replace": [item.edit.span.start + 1, item.edit.span.end + 1],
        "sort_text": item.sort_text,
        "detail": item.detail,
        "deprecated": item.deprecated,
        "preselect": item.preselect,
    }


# ---------------------------------------------------------------------------
# hover
# ---------------------------------------------------------------------------


@click.command()
@click.argument("file", type=_FILE)
@click.argument("line", type=_POSITIVE)
@click.argument("column", type=_POSITIVE)
@click.option("--raw", is_flag=True, help="Print the markdown source instead of rendering it.")
@pass_context
def hover(ctx: TomboContext, file: Path, line: int, column: int, raw: bool) -> None:
    """Show the hover card for the package name at LINE:COLUMN of FILE."""
    document = _load_document(file)
    position = _position(document, line, column)
    result: Optional[Hover] = _run(_hover_async(ctx, document, position))

    if result is None:
        print_warning("No package information at this position")
        return

    if raw:
        click.echo(result.contents)
    else:
        print_markdown(result.contents)


async def _hover_async(ctx: TomboContext, document: TextDocument, position: Position) -> Optional[Hover]:
    async with PyPIService.from_config(ctx.config) as service:
        return await HoverProvider(service).provide(document, position)


# ---------------------------------------------------------------------------
# fix
# ---------------------------------------------------------------------------


@click.command()
@click.argument("file", type=_FILE)
@click.argument("line", type=_POSITIVE)
@click.option(
    "--apply",
    "apply_index",
    type=_POSITIVE,
    default=None,
    help="Apply the action with this number instead of listing actions.",
)
@click.option(
    "--backup/--no-backup",
    default=True,
    help="Keep a backup of FILE before applying an action.",
)
@click.option("--yes", "-y", is_flag=True, help="Apply without asking for confirmation.")
@pass_context
def fix(
    ctx: TomboContext,
    file: Path,
    line: int,
    apply_index: Optional[int],
    backup: bool,
    yes: bool,
) -> None:
    """List quick actions for LINE of FILE, or apply one with --apply N."""
    document = _load_document(file)
    _position(document, line, 1)
    actions: List[CodeAction] = _run(_fix_async(ctx, document, line - 1))

    if not actions:
        print_warning(f"No actions available on line {line}")
        return

    if apply_index is None:
        _display_actions(actions)
        return

    if apply_index > len(actions):
        raise click.BadParameter(
            f"there are only {len(actions)} action(s) on line {line}",
            param_hint="--apply",
        )

    action = actions[apply_index - 1]
    if not yes and not confirm(f"{action.title}?", default=True):
        print_warning("No changes made")
        return

    new_text = document.apply_edits(action.edits)
    try:
        backup_path = safe_write_file(file, new_text, create_backup_first=backup)
    except TomboError as e:
        print_error(f"{e}")
        sys.exit(1)

    print_success(action.title)
    if backup_path is not None:
        logger.info("Backup written to %s", backup_path)
        get_raw_console().print(f"[dim]Backup: {backup_path}[/dim]")


async def _fix_async(ctx: TomboContext, document: TextDocument, line: int) -> List[CodeAction]:
    async with PyPIService.from_config(ctx.config) as service:
        return await QuickActionProvider(service).provide(document, line)


def _display_actions(actions: List[CodeAction]) -> None:
    print_table(
        [
            {
                "#": str(number),
                "Action": action.title + (" [dim](preferred)[/dim]" if action.is_preferred else ""),
                "Kind": action.kind,
            }
            for number, action in enumerate(actions, start=1)
        ],
        title="Quick Actions",
        caption="Apply one with --apply N",
        column_styles={"#": {"justify": "right", "style": "bold"}},
    )
