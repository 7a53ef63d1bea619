"""Package lookup commands: ``tombo versions`` and ``tombo info``.

Both commands query the configured index through a short-lived
:class:`~tombo.core.service.PyPIService`.

Typical usage::

    $ tombo versions django --limit 5
    $ tombo versions numpy --pre --format json
    $ tombo info httpx
"""

from __future__ import annotations

import sys
import json
import click
import asyncio
from typing import Any, Dict, List, Optional, Tuple

from tombo.core import PyPIService
from tombo.exceptions import TomboError
from tombo.context import pass_context, TomboContext
from tombo.models import PackageInfo, VersionInfo
from tombo.utils import get_logger, get_raw_console, print_error, print_table

logger = get_logger("commands.lookup")


# ---------------------------------------------------------------------------
# versions
# ---------------------------------------------------------------------------


@click.command()
@click.argument("package")
@click.option(
    "--pre/--no-pre",
    default=None,
    help="Include pre-releases (defaults to the list_pre_releases setting).",
)
@click.option(
    "--limit",
    "-n",
    type=click.IntRange(min=1),
    default=20,
    show_default=True,
    help="Maximum number of versions to show.",
)
@click.option(
    "--format",
    "-f",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@pass_context
def versions(
    ctx: TomboContext,
    package: str,
    pre: Optional[bool],
    limit: int,
    format: str,
) -> None:
    """List the released versions of PACKAGE, newest upload first."""
    try:
        infos, latest = asyncio.run(_versions_async(ctx, package, pre))
    except TomboError as e:
        print_error(f"{e}")
        sys.exit(1)

    infos = infos[:limit]
    if format == "json":
        click.echo(json.dumps([_version_dict(v) for v in infos], indent=2))
        return

    print_table(
        [_version_row(v, latest) for v in infos],
        headers=["Version", "Released", "Status", "Python"],
        title=f"{package} versions",
        column_styles={
            "Version": {"style": "bold cyan", "no_wrap": True},
            "Released": {"justify": "center", "style": "dim"},
        },
    )


async def _versions_async(
    ctx: TomboContext,
    package: str,
    include_pre_releases: Optional[bool],
) -> Tuple[List[VersionInfo], Optional[str]]:
    async with PyPIService.from_config(ctx.config) as service:
        infos, latest = await asyncio.gather(
            service.get_package_versions(package, include_pre_releases),
            service.get_latest_version(package),
        )
        return infos, latest


def _version_dict(version: VersionInfo) -> Dict[str, Any]:
    return {
        "version": version.version,
        "released": version.release_date.isoformat() if version.release_date else None,
        "pre_release": version.is_pre_release,
        "yanked": version.is_yanked,
        "yanked_reason": version.yanked_reason,
        "requires_python": version.requires_python,
    }


def _version_row(version: VersionInfo, latest: Optional[str] = None) -> Dict[str, str]:
    if version.is_yanked:
        status = "[yanked]yanked[/yanked]"
    elif version.is_pre_release:
        status = "[prerelease]pre-release[/prerelease]"
    elif version.version == latest:
        status = "[success]latest[/success]"
    else:
        status = "[dim]-[/dim]"
    return {
        "Version": version.version,
        "Released": f"{version.release_date:%Y-%m-%d}" if version.release_date else "[dim]-[/dim]",
        "Status": status,
        "Python": version.requires_python or "[dim]-[/dim]",
    }


# ---------------------------------------------------------------------------
# info
# ---------------------------------------------------------------------------


@click.command()
@click.argument("package")
@click.option(
    "--format",
    "-f",
    type=click.Choice(["text", "json"], case_sensitive=False),
    default="text",
    help="Output format.",
)
@pass_context
def info(ctx: TomboContext, package: str, format: str) -> None:
    """Show summary, links and authorship of PACKAGE."""
    try:
        package_info = asyncio.run(_info_async(ctx, package))
    except TomboError as e:
        print_error(f"{e}")
        sys.exit(1)

    if format == "json":
        click.echo(json.dumps(_info_dict(package_info), indent=2))
        return

    console = get_raw_console()
    console.print(f"[bold cyan]{package_info.name}[/bold cyan] {package_info.version or ''}")
    if package_info.summary:
        console.print(package_info.summary)
    for label, value in (
        ("Requires Python", package_info.requires_python),
        ("License", package_info.license),
        ("Author", package_info.author),
        ("Maintainer", package_info.maintainer),
        ("Homepage", package_info.home_page),
        ("Documentation", package_info.docs_url),
    ):
        if value:
            console.print(f"[bold]{label}:[/bold] {value}")
    for label, url in package_info.project_urls.items():
        console.print(f"[bold]{label}:[/bold] {url}")


async def _info_async(ctx: TomboContext, package: str) -> PackageInfo:
    async with PyPIService.from_config(ctx.config) as service:
        return await service.get_package_info(package)


def _info_dict(package_info: PackageInfo) -> Dict[str, Any]:
    return {
        "name": package_info.name,
        "version": package_info.version,
        "summary": package_info.summary,
        "requires_python": package_info.requires_python,
        "license": package_info.license,
        "author": package_info.author,
        "maintainer": package_info.maintainer,
        "home_page": package_info.home_page,
        "docs_url": package_info.docs_url,
        "package_url": package_info.package_url,
        "project_urls": dict(package_info.project_urls),
        "classifiers": list(package_info.classifiers),
    }
