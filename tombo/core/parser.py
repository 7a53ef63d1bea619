"""Dependency manifest parser.

Finds package names and version-constraint spans in ``pyproject.toml``
(PEP 621 arrays, Poetry tables, Poetry 2 parentheses) and
``requirements*.txt`` files. The parser is pure: it performs no I/O,
never raises on malformed input and returns the same result for the same
text.

Two entry points cover the editor use cases:

* **Line mode** (:meth:`ManifestParser.parse_line`,
  :meth:`ManifestParser.completion_context`,
  :meth:`ManifestParser.dependency_at`) looks at one line, optionally
  given the enclosing TOML table.
* **Document mode** (:meth:`ManifestParser.parse_document`) walks the
  whole file, tracks table headers and multi-line arrays, and tags each
  dependency with the group it belongs to.

Typical usage::

    parser = ManifestParser()
    deps = parser.parse_document(text, ManifestKind.PYPROJECT)

    ctx = parser.completion_context('requests>=', 10, kind=ManifestKind.REQUIREMENTS)
    ctx.replace_span      # Span(start=10, end=10)
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional, Sequence, Tuple

from tombo.utils.logger import get_logger
from tombo.utils.version_utils import detect_operator
from tombo.core.dialects import (
    Dialect,
    NameFilter,
    Pep621ArrayDialect,
    PoetryParenthesesDialect,
    PoetryTableDialect,
    RequirementsLineDialect,
    toml_code_end,
)
from tombo.models.dependency import (
    CompletionContext,
    DependencySource,
    ManifestKind,
    ParsedDependency,
    Span,
    SyntaxDialect,
)

logger = get_logger("parser")

__all__ = [
    "ManifestParser",
    "classify_source",
    "find_enclosing_table",
    "parse_table_header",
]

_TABLE_HEADER = re.compile(r"^\s*\[\[?\s*([^\[\]]+?)\s*\]\]?\s*$")
_ARRAY_KEY = re.compile(r"""^\s*((?:"[^"]*"|'[^']*'|[A-Za-z0-9_\-]+)(?:\s*\.\s*(?:"[^"]*"|'[^']*'|[A-Za-z0-9_\-]+))*)\s*=\s*\[""")

_POETRY_ROOTS = ("tool.poetry.dependencies", "tool.poetry.dev-dependencies")
_POETRY_GROUP = re.compile(r"^tool\.poetry\.group\.[^.]+\.dependencies$")


# ---------------------------------------------------------------------------
# Table helpers
# ---------------------------------------------------------------------------


def _normalize_dotted(name: str) -> str:
    parts = [p.strip().strip("\"'") for p in re.split(r"\.(?=(?:[^\"']*[\"'][^\"']*[\"'])*[^\"']*$)", name)]
    return ".".join(parts)


def parse_table_header(text: str) -> Optional[str]:
    """Return the normalised table name if ``text`` is a TOML header.

    Example::

        >>> parse_table_header('[tool.poetry.dependencies."zope.interface"]')
        'tool.poetry.dependencies.zope.interface'
    """
    match = _TABLE_HEADER.match(text[: toml_code_end(text)])
    if match is None:
        return None
    return _normalize_dotted(match.group(1))


def find_enclosing_table(lines: Sequence[str], line: int) -> Optional[str]:
    """Walk backward from ``line`` to the nearest table header."""
    for index in range(min(line, len(lines) - 1), -1, -1):
        header = parse_table_header(lines[index])
        if header is not None:
            return header
    return None


def _poetry_table(section: str) -> Optional[Tuple[DependencySource, Optional[str]]]:
    """Classify a Poetry dependency table.

    Returns ``(source, package)`` where ``package`` is set for
    ``[tool.poetry.dependencies.<package>]`` style sub-tables.
    """
    if section == "tool.poetry.dependencies":
        return DependencySource.DEPENDENCIES, None
    if section == "tool.poetry.dev-dependencies" or _POETRY_GROUP.match(section):
        return DependencySource.DEV_DEPENDENCIES, None

    for root in _POETRY_ROOTS:
        if section.startswith(root + "."):
            package = section[len(root) + 1:]
            source = (
                DependencySource.DEPENDENCIES
                if root == "tool.poetry.dependencies"
                else DependencySource.DEV_DEPENDENCIES
            )
            return source, package

    group = re.match(r"^tool\.poetry\.group\.[^.]+\.dependencies\.(.+)$", section)
    if group:
        return DependencySource.DEV_DEPENDENCIES, group.group(1)
    return None


def classify_source(section: Optional[str], key: Optional[str] = None) -> Optional[DependencySource]:
    """Map an enclosing table (and array key) to a dependency group.

    Args:
        section: Normalised table name, e.g. ``"project"``.
        key: Key of the array being read, e.g. ``"dependencies"`` or
            ``"optional-dependencies.dev"``. ``None`` for table entries.

    Returns:
        The group, or ``None`` when the location holds no dependencies.

    Example::

        >>> classify_source("project", "dependencies")
        <DependencySource.DEPENDENCIES: 'dependencies'>
        >>> classify_source("tool.poetry.group.test.dependencies")
        <DependencySource.DEV_DEPENDENCIES: 'dev-dependencies'>
    """
    if section is None:
        return None

    if key is None:
        poetry = _poetry_table(section)
        return poetry[0] if poetry else None

    if section == "project":
        if key == "dependencies":
            return DependencySource.DEPENDENCIES
        if key.startswith("optional-dependencies."):
            return DependencySource.OPTIONAL_DEPENDENCIES
        return None
    if section == "project.optional-dependencies":
        return DependencySource.OPTIONAL_DEPENDENCIES
    if section == "dependency-groups":
        return DependencySource.DEV_DEPENDENCIES
    if section == "tool.poetry" and key == "dependencies":
        return DependencySource.DEPENDENCIES
    return None


def _bracket_delta(text: str, start: int, end: int) -> int:
    """Net ``[`` minus ``]`` count in ``text[start:end]`` outside strings."""
    depth = 0
    quote: Optional[str] = None
    for char in text[start:end]:
        if quote:
            if char == quote:
                quote = None
        elif char in ('"', "'"):
            quote = char
        elif char == "[":
            depth += 1
        elif char == "]":
            depth -= 1
    return depth


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class ManifestParser:
    """Locate dependencies and constraint spans in manifest text.

    Args:
        name_filter: Package-name gate shared by every dialect. Pass a
            custom :class:`~tombo.core.dialects.NameFilter` to change the
            denylist.
    """

    def __init__(self, name_filter: Optional[NameFilter] = None) -> None:
        self.name_filter = name_filter or NameFilter()
        self.pep621 = Pep621ArrayDialect(self.name_filter)
        self.poetry_table = PoetryTableDialect(self.name_filter)
        self.poetry_parentheses = PoetryParenthesesDialect(self.name_filter)
        self.requirements = RequirementsLineDialect(self.name_filter)

    # ------------------------------------------------------------------
    # Line mode
    # ------------------------------------------------------------------

    def dialects_for(
        self,
        kind: ManifestKind,
        section: Optional[str] = None,
    ) -> Tuple[Dialect, ...]:
        """Dialects to try, in precedence order."""
        if kind is ManifestKind.REQUIREMENTS:
            return (self.requirements,)
        if section is None:
            return (self.pep621, self.poetry_table, self.poetry_parentheses)
        if _poetry_table(section) is not None:
            return (self.poetry_table,)
        return (self.pep621, self.poetry_parentheses)

    def parse_line(
        self,
        text: str,
        line: int = 0,
        *,
        kind: ManifestKind = ManifestKind.PYPROJECT,
        section: Optional[str] = None,
        source: Optional[DependencySource] = None,
    ) -> List[ParsedDependency]:
        """Parse a single line.

        Dialects are tried in precedence order; an entry found by an
        earlier dialect claims its columns, so later dialects only add
        entries that do not overlap it.

        Args:
            text: Line text without its terminator.
            line: Line number recorded on the results.
            kind: Manifest kind; requirements files use only the
                requirements dialect.
            section: Enclosing TOML table, if known. Poetry tables only
                match inside Poetry dependency tables when it is given.
            source: Group to record; defaults to one derived from ``section``.
        """
        if source is None:
            source = (classify_source(section) if section else None) or DependencySource.DEPENDENCIES

        if kind is ManifestKind.PYPROJECT and section is not None:
            poetry = _poetry_table(section)
            if poetry is not None and poetry[1] is not None:
                dependency = self.poetry_table.parse_version_key(text, poetry[1], line, poetry[0])
                return [dependency] if dependency is not None else []

        return self._merge(d.parse(text, line, source) for d in self.dialects_for(kind, section))

    @staticmethod
    def _merge(batches: Iterable[List[ParsedDependency]]) -> List[ParsedDependency]:
        claimed: List[Span] = []
        merged: List[ParsedDependency] = []
        for batch in batches:
            for dependency in batch:
                if any(_overlaps(dependency.name_span, span) for span in claimed):
                    continue
                claimed.append(dependency.name_span)
                merged.append(dependency)
        merged.sort(key=lambda d: d.name_span.start)
        return merged

    def completion_context(
        self,
        text: str,
        column: int,
        *,
        kind: ManifestKind = ManifestKind.PYPROJECT,
        section: Optional[str] = None,
        line: int = 0,
    ) -> Optional[CompletionContext]:
        """Return where a version completion belongs, if the cursor allows one."""
        for dependency in self.parse_line(text, line, kind=kind, section=section):
            context = self.completion_context_for(dependency, text, column)
            if context is not None:
                return context
        return None

    def completion_context_for(
        self,
        dependency: ParsedDependency,
        text: str,
        column: int,
    ) -> Optional[CompletionContext]:
        """Build the completion context for ``dependency`` at ``column``.

        The cursor must touch the constraint span. For comma-separated
        constraints only the version of the sub-constraint under the
        cursor is replaced. A bare entry gets an empty replacement span at
        its insertion point and, outside Poetry tables, requires an
        operator to be inserted.
        """
        span = dependency.span
        if not span.contains(column):
            return None

        if span.is_empty:
            return CompletionContext(
                dependency=dependency,
                replace_span=span,
                needs_operator=dependency.dialect is not SyntaxDialect.POETRY_TABLE,
            )

        start = span.start
        for piece in span.slice(text).split(","):
            end = start + len(piece)
            if start <= column <= end:
                return self._piece_context(dependency, text, column, start, end)
            start = end + 1
        return None

    @staticmethod
    def _piece_context(
        dependency: ParsedDependency,
        text: str,
        column: int,
        start: int,
        end: int,
    ) -> CompletionContext:
        piece = text[start:end]
        leading = len(piece) - len(piece.lstrip())
        operator = detect_operator(piece)

        version_start = start + leading + len(operator)
        while version_start < end and text[version_start].isspace():
            version_start += 1
        version_end = end
        while version_end > version_start and text[version_end - 1].isspace():
            version_end -= 1

        replace_span = Span(version_start, version_end)
        prefix = text[version_start:column] if replace_span.contains(column) else ""
        needs_operator = not operator and dependency.dialect is not SyntaxDialect.POETRY_TABLE

        return CompletionContext(
            dependency=dependency,
            replace_span=replace_span,
            prefix=prefix,
            needs_operator=needs_operator,
        )

    def dependency_at(
        self,
        text: str,
        column: int,
        *,
        kind: ManifestKind = ManifestKind.PYPROJECT,
        section: Optional[str] = None,
        line: int = 0,
    ) -> Optional[ParsedDependency]:
        """Return the dependency whose name is under ``column``."""
        for dependency in self.parse_line(text, line, kind=kind, section=section):
            if dependency.name_span.contains(column):
                return dependency
        return None

    # ------------------------------------------------------------------
    # Document mode
    # ------------------------------------------------------------------

    def parse_document(
        self,
        text: str,
        kind: ManifestKind = ManifestKind.PYPROJECT,
    ) -> List[ParsedDependency]:
        """Parse every dependency in a manifest.

        For TOML, only entries inside dependency arrays or Poetry
        dependency tables are returned, each tagged with its group.
        """
        lines = text.splitlines()
        if kind is ManifestKind.REQUIREMENTS:
            results: List[ParsedDependency] = []
            for number, line in enumerate(lines):
                results.extend(self.requirements.parse(line, number))
            return results
        return self._parse_toml(lines)

    def _parse_toml(self, lines: Sequence[str]) -> List[ParsedDependency]:
        results: List[ParsedDependency] = []
        section: Optional[str] = None
        array_source: Optional[DependencySource] = None
        depth = 0

        for number, line in enumerate(lines):
            code_end = toml_code_end(line)

            if depth <= 0:
                depth = 0
                array_source = None

                header = parse_table_header(line)
                if header is not None:
                    section = header
                    continue

                key = _ARRAY_KEY.match(line[:code_end])
                if key is not None:
                    array_source = classify_source(section, _normalize_dotted(key.group(1)))
                    depth = _bracket_delta(line, key.end() - 1, code_end)
                    if array_source is not None:
                        results.extend(self._array_line(line, number, array_source))
                    continue

                if section is not None:
                    results.extend(self._table_line(line, number, section))
                continue

            if array_source is not None:
                results.extend(self._array_line(line, number, array_source))
            depth += _bracket_delta(line, 0, code_end)

        logger.debug("Parsed %d dependencies from %d lines", len(results), len(lines))
        return results

    def _array_line(
        self,
        line: str,
        number: int,
        source: DependencySource,
    ) -> List[ParsedDependency]:
        return self._merge(
            [
                self.pep621.parse(line, number, source),
                self.poetry_parentheses.parse(line, number, source),
            ]
        )

    def _table_line(self, line: str, number: int, section: str) -> List[ParsedDependency]:
        poetry = _poetry_table(section)
        if poetry is None:
            return []
        source, package = poetry
        if package is not None:
            dependency = self.poetry_table.parse_version_key(line, package, number, source)
            return [dependency] if dependency is not None else []
        return self.poetry_table.parse(line, number, source)


def _overlaps(left: Span, right: Span) -> bool:
    return left.start < right.end and right.start < left.end
