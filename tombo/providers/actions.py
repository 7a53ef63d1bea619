"""Quick actions for dependency lines.

For every dependency on a line the provider offers:

* an update to the latest release (the preferred action);
* updates to the few most recent stable releases;
* for PEP 621 entries with a single version constraint, a change of
  operator (pin, compatible release, minimum, caret) keeping the version.

Actions are plain data. Nothing here edits a document; the ``fix``
command applies a chosen action explicitly.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from tombo.constants import CONSTRAINT_ACTION_OPERATORS, DEFAULT_OPERATOR, QUICK_ACTION_VERSIONS
from tombo.models.dependency import ParsedDependency, SyntaxDialect
from tombo.models.document import TextDocument, TextEdit
from tombo.models.metadata import PackageMetadata
from tombo.providers.base import BaseProvider, CodeAction, _cancelled
from tombo.utils.cancellation import CancellationToken
from tombo.utils.logger import get_logger
from tombo.utils.version_utils import split_constraint

logger = get_logger("providers.actions")

QUICKFIX = "quickfix"
REFACTOR = "refactor.rewrite"

OPERATOR_DESCRIPTIONS: Dict[str, str] = {
    "==": "exact version (pin)",
    "~=": "compatible release",
    ">=": "minimum version",
    "^": "caret constraint (semver)",
}


class QuickActionProvider(BaseProvider):
    """Offer version updates and constraint rewrites for a line."""

    async def provide(
        self,
        document: TextDocument,
        line: int,
        token: Optional[CancellationToken] = None,
    ) -> List[CodeAction]:
        actions: List[CodeAction] = []
        for dependency in self.dependencies_on_line(document, line):
            if _cancelled(token):
                return []
            metadata = await self._guarded(
                dependency.name,
                self.service.get_package_metadata(dependency.name, include_pre_releases=False),
                token,
            )
            if metadata is None:
                if _cancelled(token):
                    return []
                continue
            actions.extend(build_actions(dependency, metadata))

        logger.debug("Offering %d actions on line %d", len(actions), line)
        return actions


def build_actions(dependency: ParsedDependency, metadata: PackageMetadata) -> List[CodeAction]:
    """Return the actions for one dependency, preferred action first."""
    actions: List[CodeAction] = []
    _, current = split_constraint(_first_piece(dependency.version_constraint))
    name = dependency.name

    latest = metadata.latest_version
    if latest and latest != current:
        actions.append(
            CodeAction(
                title=f"Update {name} to latest version ({latest})",
                kind=QUICKFIX,
                edits=(_version_edit(dependency, latest),),
                is_preferred=True,
            )
        )

    recent = metadata.stable_versions[:QUICK_ACTION_VERSIONS]
    for index, version in enumerate(recent):
        if version == current:
            continue
        title = f"Update {name} to version {version}"
        if index == 0:
            title += " (latest)"
        actions.append(
            CodeAction(
                title=title,
                kind=QUICKFIX,
                edits=(_version_edit(dependency, version),),
            )
        )

    if (
        dependency.dialect is SyntaxDialect.PEP621_ARRAY
        and current
        and "," not in dependency.version_constraint
    ):
        for operator in CONSTRAINT_ACTION_OPERATORS:
            if operator == dependency.operator:
                continue
            actions.append(
                CodeAction(
                    title=f"Change {name} to {operator}{current} ({OPERATOR_DESCRIPTIONS[operator]})",
                    kind=REFACTOR,
                    edits=(TextEdit(dependency.line, dependency.span, f"{operator}{current}"),),
                )
            )

    return actions


def _first_piece(constraint: str) -> str:
    return constraint.split(",", 1)[0].strip()


def _version_edit(dependency: ParsedDependency, version: str) -> TextEdit:
    """Replace the whole constraint with ``version`` under the entry's operator.

    Multi-part constraints keep the first operator only, since the old
    upper bound may exclude the new version. Bare entries gain the default
    operator, except in Poetry tables where a bare version is valid.
    """
    operator, _ = split_constraint(_first_piece(dependency.version_constraint))
    if not operator and dependency.dialect is not SyntaxDialect.POETRY_TABLE:
        operator = DEFAULT_OPERATOR
    return TextEdit(dependency.line, dependency.span, f"{operator}{version}")
