"""
Dependency location models for tombo.

A :class:`ParsedDependency` records *where* a dependency lives in a
manifest line, not just what it says: the name, the raw constraint text
and the column span that completion or quick fixes replace. Instances are
produced fresh by every parse pass and are never mutated.
"""

from __future__ import annotations

import re
from enum import Enum
from dataclasses import dataclass
from pathlib import PurePath
from typing import Optional, Tuple

from tombo.constants import DEFAULT_OPERATOR
from tombo.utils.version_utils import detect_operator


def normalize_package_name(name: str) -> str:
    """Normalize a package name according to PEP 503.

    Example::

        >>> normalize_package_name("Flask_SQLAlchemy")
        'flask-sqlalchemy'
    """
    return re.sub(r"[-_.]+", "-", name).lower()


class SyntaxDialect(str, Enum):
    """Manifest syntax a dependency was written in."""

    PEP621_ARRAY = "pep621-array"
    POETRY_TABLE = "poetry-table"
    POETRY_PARENTHESES = "poetry-parentheses"
    REQUIREMENTS_LINE = "requirements-line"


class DependencySource(str, Enum):
    """Dependency group a manifest entry belongs to."""

    DEPENDENCIES = "dependencies"
    DEV_DEPENDENCIES = "dev-dependencies"
    OPTIONAL_DEPENDENCIES = "optional-dependencies"


class ManifestKind(str, Enum):
    """Kind of manifest file, which decides the dialects tried."""

    PYPROJECT = "pyproject"
    REQUIREMENTS = "requirements"

    @classmethod
    def from_filename(cls, filename: str) -> Optional["ManifestKind"]:
        """Guess the manifest kind from a file name.

        Example::

            >>> ManifestKind.from_filename("requirements-dev.txt")
            <ManifestKind.REQUIREMENTS: 'requirements'>
            >>> ManifestKind.from_filename("setup.cfg") is None
            True
        """
        name = PurePath(filename).name.lower()
        if name == "pyproject.toml":
            return cls.PYPROJECT
        if name.endswith(".txt") and "requirements" in name:
            return cls.REQUIREMENTS
        return None


@dataclass(frozen=True)
class Span:
    """Half-open column range ``[start, end)`` within one line."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"Invalid span [{self.start}, {self.end})")

    @property
    def is_empty(self) -> bool:
        return self.start == self.end

    def __len__(self) -> int:
        return self.end - self.start

    def contains(self, column: int) -> bool:
        """Return True if a cursor at ``column`` touches this span.

        The end column counts so a cursor right after the text is inside.
        """
        return self.start <= column <= self.end

    def slice(self, text: str) -> str:
        return text[self.start:self.end]


@dataclass(frozen=True)
class ParsedDependency:
    """One located dependency occurrence.

    Attributes:
        name: Package name exactly as written, extras stripped.
        version_constraint: Raw constraint text (``">=1.2"``, ``"^2.0"``)
            or ``""`` for a bare name.
        span: Columns holding the constraint text. Empty (an insertion
            point) when there is no constraint.
        name_span: Columns holding the package name.
        line: 0-based line number in the document.
        source: Dependency group the entry belongs to.
        dialect: Syntax the entry was written in.
        extras: Extras from the ``[...]`` suffix, in written order.
    """

    name: str
    version_constraint: str
    span: Span
    name_span: Span
    line: int = 0
    source: DependencySource = DependencySource.DEPENDENCIES
    dialect: SyntaxDialect = SyntaxDialect.REQUIREMENTS_LINE
    extras: Tuple[str, ...] = ()

    @property
    def normalized_name(self) -> str:
        """Case-insensitive lookup key for PyPI."""
        return normalize_package_name(self.name)

    @property
    def operator(self) -> str:
        return detect_operator(self.version_constraint)

    @property
    def has_constraint(self) -> bool:
        return bool(self.version_constraint.strip())


@dataclass(frozen=True)
class CompletionContext:
    """Where a version completion should be inserted.

    Attributes:
        dependency: The dependency under the cursor.
        replace_span: Version text that a chosen completion replaces.
        prefix: Part of the version text already typed before the cursor.
        needs_operator: True when the entry has no operator yet, so the
            inserted text must start with ``default_operator``.
        default_operator: Operator used when ``needs_operator`` is set.
    """

    dependency: ParsedDependency
    replace_span: Span
    prefix: str = ""
    needs_operator: bool = False
    default_operator: str = DEFAULT_OPERATOR

    @property
    def name(self) -> str:
        return self.dependency.name
