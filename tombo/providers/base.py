"""
Shared plumbing for the editor providers.

Providers answer one editor request each (completion, hover, quick
actions) against a :class:`~tombo.models.document.TextDocument`. They
share three behaviours implemented here:

* locating the dependency on a line, preferring the document-level parse
  (which knows the enclosing table) and falling back to a line parse;
* turning metadata failures into "no result" so the editor never shows
  an error popup;
* honouring a :class:`~tombo.utils.cancellation.CancellationToken` after
  every await.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Awaitable, List, Optional, Tuple, TypeVar

from tombo.core.parser import ManifestParser, find_enclosing_table
from tombo.core.service import PyPIService
from tombo.exceptions import PackageNotFoundError, PyPIError
from tombo.models.dependency import ParsedDependency, Span
from tombo.models.document import TextDocument, TextEdit
from tombo.utils.cancellation import CancellationToken
from tombo.utils.logger import get_logger

logger = get_logger("providers")

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CompletionItem:
    """One version suggestion.

    Attributes:
        label: Version shown in the list.
        insert_text: Text written into the document; includes an operator
            when the entry had none.
        edit: Edit applied when the item is accepted.
        sort_text: Key the editor sorts by.
        detail: Short annotation (``latest``, ``pre-release``, ``yanked``).
        deprecated: True for yanked releases.
        preselect: True for the item selected by default.
    """

    label: str
    insert_text: str
    edit: TextEdit
    sort_text: str
    detail: str = ""
    deprecated: bool = False
    preselect: bool = False


@dataclass(frozen=True)
class Hover:
    """Markdown shown for the package name under the cursor."""

    contents: str
    line: int
    span: Span


@dataclass(frozen=True)
class CodeAction:
    """A titled set of edits offered for one dependency."""

    title: str
    kind: str
    edits: Tuple[TextEdit, ...] = field(default_factory=tuple)
    is_preferred: bool = False


# ---------------------------------------------------------------------------
# Base provider
# ---------------------------------------------------------------------------


class BaseProvider:
    """Common state for providers.

    Args:
        service: Metadata source shared by every provider.
        parser: Manifest parser; a default one is created if omitted.
    """

    def __init__(self, service: PyPIService, parser: Optional[ManifestParser] = None) -> None:
        self.service = service
        self.parser = parser or ManifestParser()

    def dependencies_on_line(self, document: TextDocument, line: int) -> List[ParsedDependency]:
        """Return the dependencies written on ``line`` of ``document``."""
        if line < 0 or line >= document.line_count:
            return []

        found = [d for d in self.parser.parse_document(document.text, document.kind) if d.line == line]
        if found:
            return found

        section = find_enclosing_table(document.lines, line)
        return self.parser.parse_line(
            document.line_at(line),
            line,
            kind=document.kind,
            section=section,
        )

    async def _guarded(
        self,
        name: str,
        awaitable: Awaitable[T],
        token: Optional[CancellationToken],
    ) -> Optional[T]:
        """Await a metadata call, mapping failure or cancellation to ``None``.

        Unknown packages are expected while the user is typing and are
        not logged above debug level.
        """
        try:
            result = await awaitable
        except PackageNotFoundError:
            logger.debug("Package %s not found", name)
            return None
        except PyPIError as exc:
            logger.warning("Could not fetch metadata for %s: %s", name, exc)
            return None
        except Exception:
            logger.exception("Unexpected error while fetching metadata for %s", name)
            return None

        if _cancelled(token):
            logger.debug("Request for %s cancelled", name)
            return None
        return result


def _cancelled(token: Optional[CancellationToken]) -> bool:
    return token is not None and token.is_cancellation_requested
