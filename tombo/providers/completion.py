"""Version completion.

Given a cursor inside (or right after) a dependency's constraint, offer
the package's versions: the latest release first and preselected, then
up to :data:`~tombo.constants.MAX_COMPLETION_VERSIONS` others, newest
first. Pre-releases sort after stable releases and yanked releases sort
last and are flagged deprecated.
"""

from __future__ import annotations

from typing import List, Optional

from tombo.constants import MAX_COMPLETION_VERSIONS
from tombo.models.dependency import CompletionContext
from tombo.models.document import Position, TextDocument, TextEdit
from tombo.models.metadata import PackageMetadata
from tombo.providers.base import BaseProvider, CompletionItem, _cancelled
from tombo.utils.cancellation import CancellationToken
from tombo.utils.logger import get_logger

logger = get_logger("providers.completion")

_STABLE, _PRE_RELEASE, _YANKED = "1", "2", "9"


class CompletionProvider(BaseProvider):
    """Offer version completions for the dependency under the cursor."""

    def completion_context(
        self,
        document: TextDocument,
        position: Position,
    ) -> Optional[CompletionContext]:
        """Return where a completion would go, or ``None`` outside a constraint."""
        if position.line < 0 or position.line >= document.line_count:
            return None
        text = document.line_at(position.line)
        for dependency in self.dependencies_on_line(document, position.line):
            context = self.parser.completion_context_for(dependency, text, position.character)
            if context is not None:
                return context
        return None

    async def provide(
        self,
        document: TextDocument,
        position: Position,
        token: Optional[CancellationToken] = None,
        *,
        include_pre_releases: Optional[bool] = None,
    ) -> List[CompletionItem]:
        """Return completion items for ``position``; empty when none apply."""
        context = self.completion_context(document, position)
        if context is None or _cancelled(token):
            return []

        metadata = await self._guarded(
            context.name,
            self.service.get_package_metadata(context.name, include_pre_releases),
            token,
        )
        if metadata is None:
            return []

        items = build_items(metadata, context, position.line)
        logger.debug("Offering %d versions of %s", len(items), context.name)
        return items


def build_items(metadata: PackageMetadata, context: CompletionContext, line: int) -> List[CompletionItem]:
    """Turn metadata into ordered completion items for ``context``."""
    operator = context.default_operator if context.needs_operator else ""
    items: List[CompletionItem] = []

    def make(version: str, sort_text: str, detail: str, preselect: bool = False) -> CompletionItem:
        insert_text = operator + version
        return CompletionItem(
            label=version,
            insert_text=insert_text,
            edit=TextEdit(line, context.replace_span, insert_text),
            sort_text=sort_text,
            detail=detail,
            deprecated=metadata.is_yanked(version),
            preselect=preselect,
        )

    latest = metadata.latest_version
    if latest:
        items.append(make(latest, "0000", "latest", preselect=True))

    others = [v for v in metadata.versions if v != latest][:MAX_COMPLETION_VERSIONS]
    for index, version in enumerate(others):
        if metadata.is_yanked(version):
            group, detail = _YANKED, "yanked"
        elif metadata.is_pre_release(version):
            group, detail = _PRE_RELEASE, "pre-release"
        else:
            group, detail = _STABLE, ""
        items.append(make(version, f"{group}{index:04d}", detail))

    return items
