"""Package hover.

Hovering a package name shows a markdown card: summary, latest version,
Python requirement, the most recent releases with pre-release and yanked
markers, project links, maintainers, license and the classifiers worth
surfacing.

The three metadata views are requested together so the service's
in-flight deduplication turns them into a single PyPI request.
"""

from __future__ import annotations

import asyncio
import sys
from typing import Dict, List, Optional, Sequence

from tombo.constants import HOVER_RECENT_VERSIONS, IMPORTANT_CLASSIFIER_PREFIXES, PYPI_PROJECT_URL
from tombo.models.dependency import ParsedDependency
from tombo.models.document import Position, TextDocument
from tombo.models.metadata import PackageInfo, PackageMetadata, VersionInfo
from tombo.providers.base import BaseProvider, Hover, _cancelled
from tombo.utils.cancellation import CancellationToken
from tombo.utils.logger import get_logger

logger = get_logger("providers.hover")


class HoverProvider(BaseProvider):
    """Describe the package whose name is under the cursor."""

    def dependency_at(self, document: TextDocument, position: Position) -> Optional[ParsedDependency]:
        for dependency in self.dependencies_on_line(document, position.line):
            if dependency.name_span.contains(position.character):
                return dependency
        return None

    async def provide(
        self,
        document: TextDocument,
        position: Position,
        token: Optional[CancellationToken] = None,
    ) -> Optional[Hover]:
        dependency = self.dependency_at(document, position)
        if dependency is None or _cancelled(token):
            return None

        name = dependency.name
        views = await self._guarded(
            name,
            asyncio.gather(
                self.service.get_package_metadata(name, include_pre_releases=True),
                self.service.get_package_versions(name, include_pre_releases=True),
                self.service.get_package_info(name),
            ),
            token,
        )
        if views is None:
            return None

        metadata, versions, info = views
        return Hover(
            contents=render_hover(metadata, versions, info),
            line=dependency.line,
            span=dependency.name_span,
        )


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def render_hover(
    metadata: PackageMetadata,
    versions: Sequence[VersionInfo],
    info: PackageInfo,
    python_version: Optional[str] = None,
) -> str:
    """Build the hover markdown for one package.

    Args:
        metadata: Latest-release view of the package.
        versions: Releases, newest first.
        info: Project links and people.
        python_version: Interpreter version checked against
            ``requires_python``; defaults to the running interpreter.
    """
    if python_version is None:
        python_version = _current_python_version()

    parts: List[str] = [f"# {metadata.name}"]

    if metadata.summary:
        parts.append(metadata.summary)

    facts = []
    if metadata.latest_version:
        facts.append(f"**Latest Version:** `{metadata.latest_version}`")
    if metadata.requires_python:
        requirement = f"**Python Requirements:** `{metadata.requires_python}`"
        if not metadata.is_python_compatible(python_version):
            requirement += f" (not compatible with Python {python_version})"
        facts.append(requirement)
    if facts:
        parts.append("  \n".join(facts))

    recent = versions[:HOVER_RECENT_VERSIONS]
    if recent:
        parts.append("**Recent Versions:**\n" + "\n".join(_version_line(v) for v in recent))

    parts.append("**Links:**\n" + "\n".join(f"- [{label}]({url})" for label, url in _links(info).items()))

    people = []
    if info.author:
        people.append(f"- Author: {info.author}")
    if info.maintainer and info.maintainer != info.author:
        people.append(f"- Maintainer: {info.maintainer}")
    if people:
        parts.append("**Maintainers:**\n" + "\n".join(people))

    if info.license and len(info.license) <= 80:
        parts.append(f"**License:** {info.license}")

    important = [c for c in metadata.classifiers if c.startswith(IMPORTANT_CLASSIFIER_PREFIXES)]
    if important:
        parts.append("**Categories:**\n" + "\n".join(f"- {c}" for c in important))

    parts.append("---")
    return "\n\n".join(parts)


def _current_python_version() -> str:
    return f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"


def _version_line(version: VersionInfo) -> str:
    line = f"- `{version.version}`"
    if version.release_date is not None:
        line += f" ({version.release_date:%Y-%m-%d})"
    if version.is_pre_release:
        line += " *(pre-release)*"
    if version.is_yanked:
        line += " ~~yanked~~"
        if version.yanked_reason:
            line += f": {version.yanked_reason}"
    return line


def _links(info: PackageInfo) -> Dict[str, str]:
    links: Dict[str, str] = {"PyPI": info.package_url or PYPI_PROJECT_URL.format(package=info.name)}
    if info.home_page:
        links["Homepage"] = info.home_page
    for label, url in info.project_urls.items():
        if url not in links.values():
            links.setdefault(label, url)
    if info.docs_url and info.docs_url not in links.values():
        links.setdefault("Documentation", info.docs_url)
    return links
