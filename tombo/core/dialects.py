"""Line-level syntax strategies for dependency manifests.

Each dialect knows how to find dependencies in one line of one syntax and
nothing else; :class:`~tombo.core.parser.ManifestParser` decides which
dialects apply and in what order. Dialects never raise: a line they do
not understand yields an empty list.

Supported syntaxes::

    dependencies = ["requests[socks]>=2.31", "rich"]      # PEP 621 array
    requests = "^2.31"                                     # Poetry table
    httpx = { version = "~0.27", extras = ["http2"] }      # Poetry table
    "pandas (>=2.0,<3.0)"                                  # Poetry v2 parentheses
    requests>=2.31 ; python_version >= "3.8"  # pinned     # requirements.txt
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import ClassVar, FrozenSet, List, NamedTuple, Optional, Pattern, Tuple

from tombo.constants import DEFAULT_NAME_DENYLIST, NON_PACKAGE_KEYS, URL_SCHEMES
from tombo.models.dependency import (
    DependencySource,
    ParsedDependency,
    Span,
    SyntaxDialect,
)

__all__ = [
    "Dialect",
    "NameFilter",
    "Pep621ArrayDialect",
    "PoetryTableDialect",
    "PoetryParenthesesDialect",
    "RequirementsLineDialect",
    "toml_code_end",
]

#: Valid package names: at least two characters, no leading punctuation.
PACKAGE_NAME_PATTERN: Pattern[str] = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]+$")

_QUOTED = re.compile(r"""(["'])((?:(?!\1).)*)(\1)?""")

_REQUIREMENT_HEAD = re.compile(
    r"^(?P<lead>\s*)"
    r"(?P<name>[A-Za-z0-9][A-Za-z0-9._-]*)"
    r"(?P<extras>\s*\[(?P<extra_list>[^\]]*)\]?)?"
)

# PEP 508 style constraints must start with an operator
_OPERATOR_CONSTRAINT = re.compile(r"^[\^~=<>!][\w.*+!=<>~^,\s-]*$")

# Poetry also accepts bare versions, wildcards and "||" alternatives
_POETRY_CONSTRAINT = re.compile(r"^(?:[\^~=<>!*\d][\w.*+!=<>~^,|\s-]*)?$")

_POETRY_KEY = re.compile(
    r"""^\s*(?:"(?P<dq>[^"]+)"|'(?P<sq>[^']+)'|(?P<bare>[A-Za-z0-9][A-Za-z0-9._-]*))\s*=\s*"""
)
_INLINE_VERSION = re.compile(r"""\bversion\s*=\s*(["'])((?:(?!\1).)*)""")
_INLINE_EXTRAS = re.compile(r"\bextras\s*=\s*\[([^\]]*)\]?")

_PARENTHESES = re.compile(
    r"^(?P<lead>\s*)"
    r"(?P<name>[A-Za-z0-9][A-Za-z0-9._-]*)"
    r"(?P<extras>\s*\[(?P<extra_list>[^\]]*)\])?"
    r"\s*\((?P<expr>[^)]*)(?P<close>\))?"
)

_REQUIREMENTS_COMMENT = re.compile(r"(?:^|\s)#")
_REQUIREMENTS_OPTION = re.compile(r"\s--?[A-Za-z]")


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NameFilter:
    """Decides whether a token may be treated as a package name.

    Attributes:
        pattern: Regular expression the whole name must match.
        denylist: Lower-case identifiers rejected even if they match.
    """

    pattern: Pattern[str] = PACKAGE_NAME_PATTERN
    denylist: FrozenSet[str] = field(default=DEFAULT_NAME_DENYLIST)

    def accepts(self, name: str) -> bool:
        return bool(self.pattern.match(name)) and name.lower() not in self.denylist


class _Requirement(NamedTuple):
    name: str
    name_span: Span
    extras: Tuple[str, ...]
    constraint: str
    span: Span


def toml_code_end(text: str) -> int:
    """Return the column where a TOML comment starts, or ``len(text)``."""
    quote: Optional[str] = None
    for index, char in enumerate(text):
        if quote:
            if char == quote:
                quote = None
        elif char in ('"', "'"):
            quote = char
        elif char == "#":
            return index
    return len(text)


def _split_extras(raw: Optional[str]) -> Tuple[str, ...]:
    if not raw:
        return ()
    return tuple(e.strip().strip("\"'") for e in raw.split(",") if e.strip().strip("\"'"))


def _trimmed_span(text: str, start: int, end: int) -> Span:
    """Span of ``text[start:end]`` with surrounding whitespace removed."""
    while start < end and text[start].isspace():
        start += 1
    while end > start and text[end - 1].isspace():
        end -= 1
    return Span(start, end)


def _parse_requirement(content: str, offset: int) -> Optional[_Requirement]:
    """Parse ``name[extras] <op><version> ; marker`` from ``content``.

    ``offset`` is the column of ``content[0]`` in the full line; returned
    spans are absolute. The environment marker is dropped.
    """
    head = _REQUIREMENT_HEAD.match(content)
    if head is None:
        return None

    rest = content[head.end():]
    marker = rest.find(";")
    if marker != -1:
        rest = rest[:marker]

    name_start = offset + head.start("name")
    name_span = Span(name_start, name_start + len(head.group("name")))
    extras = _split_extras(head.group("extra_list"))

    rest_start = offset + head.end()
    constraint = rest.strip()
    if not constraint:
        insert_at = offset + head.end("extras") if head.group("extras") else name_span.end
        return _Requirement(head.group("name"), name_span, extras, "", Span(insert_at, insert_at))

    if not _OPERATOR_CONSTRAINT.match(constraint):
        return None

    span_start = rest_start + (len(rest) - len(rest.lstrip()))
    return _Requirement(
        head.group("name"),
        name_span,
        extras,
        constraint,
        Span(span_start, span_start + len(constraint)),
    )


def _is_array_element(text: str, quote_index: int) -> bool:
    """True if the string opening at ``quote_index`` sits in an array."""
    before = text[:quote_index].rstrip()
    return not before or before[-1] in "[,"


# ---------------------------------------------------------------------------
# Dialects
# ---------------------------------------------------------------------------


class Dialect:
    """Base class for one manifest syntax.

    Args:
        name_filter: Gate applied to every candidate package name.
    """

    dialect: ClassVar[SyntaxDialect]

    def __init__(self, name_filter: Optional[NameFilter] = None) -> None:
        self.name_filter = name_filter or NameFilter()

    def parse(
        self,
        text: str,
        line: int = 0,
        source: DependencySource = DependencySource.DEPENDENCIES,
    ) -> List[ParsedDependency]:
        """Return every dependency this dialect finds in ``text``."""
        raise NotImplementedError

    def _build(
        self,
        requirement: _Requirement,
        line: int,
        source: DependencySource,
    ) -> Optional[ParsedDependency]:
        if not self.name_filter.accepts(requirement.name):
            return None
        return ParsedDependency(
            name=requirement.name,
            version_constraint=requirement.constraint,
            span=requirement.span,
            name_span=requirement.name_span,
            line=line,
            source=source,
            dialect=self.dialect,
            extras=requirement.extras,
        )


class Pep621ArrayDialect(Dialect):
    """Quoted PEP 508 strings inside a TOML array.

    A string counts only when it opens an array element: it follows ``[``,
    ``,`` or nothing but indentation. An unterminated string runs to the
    end of the line so half-typed entries still resolve.
    """

    dialect = SyntaxDialect.PEP621_ARRAY

    def parse(
        self,
        text: str,
        line: int = 0,
        source: DependencySource = DependencySource.DEPENDENCIES,
    ) -> List[ParsedDependency]:
        results: List[ParsedDependency] = []
        for match in _QUOTED.finditer(text, 0, toml_code_end(text)):
            if not _is_array_element(text, match.start()):
                continue
            requirement = _parse_requirement(match.group(2), match.start(2))
            if requirement is None:
                continue
            dependency = self._build(requirement, line, source)
            if dependency is not None:
                results.append(dependency)
        return results


class PoetryTableDialect(Dialect):
    """``name = "<constraint>"`` or ``name = { version = "<constraint>" }``.

    Keys such as ``python`` or ``version`` are never packages. Poetry
    accepts a bare version (an exact pin), so no operator is required.
    """

    dialect = SyntaxDialect.POETRY_TABLE

    def parse(
        self,
        text: str,
        line: int = 0,
        source: DependencySource = DependencySource.DEPENDENCIES,
    ) -> List[ParsedDependency]:
        code = text[: toml_code_end(text)]
        key = _POETRY_KEY.match(code)
        if key is None:
            return []

        group = next(g for g in ("dq", "sq", "bare") if key.group(g) is not None)
        name = key.group(group)
        if name.lower() in NON_PACKAGE_KEYS:
            return []

        name_span = Span(key.start(group), key.end(group))
        value_start = key.end()
        value = code[value_start:]

        extras: Tuple[str, ...] = ()
        if value[:1] in ('"', "'"):
            content_start = value_start + 1
            closing = code.find(value[0], content_start)
            content_end = closing if closing != -1 else len(code)
        elif value[:1] == "{":
            version = _INLINE_VERSION.search(value)
            if version is None:
                return []
            content_start = value_start + version.start(2)
            content_end = value_start + version.end(2)
            extras_match = _INLINE_EXTRAS.search(value)
            if extras_match:
                extras = _split_extras(extras_match.group(1))
        else:
            return []

        requirement = self._constraint(code, name, name_span, extras, content_start, content_end)
        if requirement is None:
            return []
        dependency = self._build(requirement, line, source)
        return [dependency] if dependency is not None else []

    def parse_version_key(
        self,
        text: str,
        package: str,
        line: int = 0,
        source: DependencySource = DependencySource.DEPENDENCIES,
    ) -> Optional[ParsedDependency]:
        """Parse ``version = "..."`` inside ``[tool.poetry.dependencies.<package>]``."""
        code = text[: toml_code_end(text)]
        key = _POETRY_KEY.match(code)
        if key is None or key.group("bare") != "version":
            return None

        value = code[key.end():]
        if value[:1] not in ('"', "'"):
            return None
        content_start = key.end() + 1
        closing = code.find(value[0], content_start)
        content_end = closing if closing != -1 else len(code)

        requirement = self._constraint(
            code,
            package,
            Span(key.start("bare"), key.end("bare")),
            (),
            content_start,
            content_end,
        )
        if requirement is None:
            return None
        return self._build(requirement, line, source)

    @staticmethod
    def _constraint(
        code: str,
        name: str,
        name_span: Span,
        extras: Tuple[str, ...],
        start: int,
        end: int,
    ) -> Optional[_Requirement]:
        span = _trimmed_span(code, start, end)
        constraint = span.slice(code)
        if not _POETRY_CONSTRAINT.match(constraint):
            return None
        return _Requirement(name, name_span, extras, constraint, span)


class PoetryParenthesesDialect(Dialect):
    """Poetry 2 style ``"name (<constraint-expr>)"`` array strings.

    The span covers the expression strictly inside the parentheses, with
    surrounding whitespace trimmed. A missing ``)`` extends the span to
    the end of the string.
    """

    dialect = SyntaxDialect.POETRY_PARENTHESES

    def parse(
        self,
        text: str,
        line: int = 0,
        source: DependencySource = DependencySource.DEPENDENCIES,
    ) -> List[ParsedDependency]:
        results: List[ParsedDependency] = []
        for match in _QUOTED.finditer(text, 0, toml_code_end(text)):
            if not _is_array_element(text, match.start()):
                continue
            dependency = self._parse_string(text, match.group(2), match.start(2), line, source)
            if dependency is not None:
                results.append(dependency)
        return results

    def _parse_string(
        self,
        text: str,
        content: str,
        offset: int,
        line: int,
        source: DependencySource,
    ) -> Optional[ParsedDependency]:
        match = _PARENTHESES.match(content)
        if match is None:
            return None

        trailing = content[match.end():].strip()
        if trailing and not trailing.startswith(";"):
            return None

        span = _trimmed_span(text, offset + match.start("expr"), offset + match.end("expr"))
        constraint = span.slice(text)
        if constraint and not _OPERATOR_CONSTRAINT.match(constraint):
            return None

        name_start = offset + match.start("name")
        requirement = _Requirement(
            match.group("name"),
            Span(name_start, name_start + len(match.group("name"))),
            _split_extras(match.group("extra_list")),
            constraint,
            span,
        )
        return self._build(requirement, line, source)


class RequirementsLineDialect(Dialect):
    """One ``requirements.txt`` line.

    Options (``-r``, ``-e``, ``-c``, ``--hash`` ...), URL and VCS
    requirements, local paths and ``name @ url`` references yield nothing.
    Environment markers and comments are excluded from the span.
    """

    dialect = SyntaxDialect.REQUIREMENTS_LINE

    def parse(
        self,
        text: str,
        line: int = 0,
        source: DependencySource = DependencySource.DEPENDENCIES,
    ) -> List[ParsedDependency]:
        stripped = text.strip()
        if not stripped or stripped.startswith(("#", "-")):
            return []
        if stripped.lower().startswith(URL_SCHEMES) or stripped.startswith((".", "/", "~")):
            return []

        code = text
        comment = _REQUIREMENTS_COMMENT.search(code)
        if comment is not None:
            code = code[: comment.start()]
        option = _REQUIREMENTS_OPTION.search(code)
        if option is not None:
            code = code[: option.start()]
        code = code.rstrip()
        if code.endswith("\\"):
            code = code[:-1]

        requirement_part = code.split(";", 1)[0]
        if "@" in requirement_part or "://" in requirement_part:
            return []

        requirement = _parse_requirement(code, 0)
        if requirement is None:
            return []
        dependency = self._build(requirement, line, source)
        return [dependency] if dependency is not None else []
