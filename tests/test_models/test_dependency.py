"""Unit tests for tombo.models.dependency module.

Test Coverage:
- PEP 503 name normalization
- Manifest kind detection from file names
- Span validation, containment and slicing
- ParsedDependency derived properties
- CompletionContext defaults
"""

from __future__ import annotations

import pytest

from tombo.models.dependency import (
    CompletionContext,
    DependencySource,
    ManifestKind,
    ParsedDependency,
    Span,
    SyntaxDialect,
    normalize_package_name,
)


def _dep(constraint: str = ">=2.31", name: str = "requests") -> ParsedDependency:
    start = len(name)
    return ParsedDependency(
        name=name,
        version_constraint=constraint,
        span=Span(start, start + len(constraint)),
        name_span=Span(0, start),
    )


@pytest.mark.unit
class TestNormalizePackageName:
    """Tests for normalize_package_name."""

    @pytest.mark.parametrize(
        "name, expected",
        [
            ("Django", "django"),
            ("Flask_SQLAlchemy", "flask-sqlalchemy"),
            ("zope.interface", "zope-interface"),
            ("my__weird--.name", "my-weird-name"),
            ("requests", "requests"),
        ],
    )
    def test_normalization(self, name: str, expected: str) -> None:
        """Runs of ``-``, ``_`` and ``.`` collapse to one dash, lowercased."""
        assert normalize_package_name(name) == expected


@pytest.mark.unit
class TestManifestKind:
    """Tests for ManifestKind.from_filename."""

    @pytest.mark.parametrize(
        "filename, expected",
        [
            ("pyproject.toml", ManifestKind.PYPROJECT),
            ("/repo/sub/PyProject.toml", ManifestKind.PYPROJECT),
            ("requirements.txt", ManifestKind.REQUIREMENTS),
            ("requirements-dev.txt", ManifestKind.REQUIREMENTS),
            ("dev-requirements.txt", ManifestKind.REQUIREMENTS),
            ("setup.cfg", None),
            ("requirements.in", None),
            ("notes.txt", None),
        ],
    )
    def test_from_filename(self, filename: str, expected) -> None:
        assert ManifestKind.from_filename(filename) is expected

    def test_enum_values_are_strings(self) -> None:
        """Enums serialize as their plain value in JSON output."""
        assert ManifestKind.PYPROJECT == "pyproject"
        assert SyntaxDialect.PEP621_ARRAY == "pep621-array"
        assert DependencySource.DEV_DEPENDENCIES == "dev-dependencies"


@pytest.mark.unit
class TestSpan:
    """Tests for the half-open column range."""

    def test_length_and_empty(self) -> None:
        assert len(Span(3, 7)) == 4
        assert Span(5, 5).is_empty
        assert not Span(5, 6).is_empty

    def test_contains_is_end_inclusive(self) -> None:
        """A cursor right after the text still counts as inside.

        This is what lets completion trigger after typing ``>=``.
        """
        span = Span(3, 7)
        assert span.contains(3)
        assert span.contains(7)
        assert not span.contains(2)
        assert not span.contains(8)

    def test_empty_span_contains_its_point(self) -> None:
        assert Span(4, 4).contains(4)

    def test_slice(self) -> None:
        assert Span(8, 13).slice("requests>=2.31") == ">=2.3"

    @pytest.mark.parametrize("start, end", [(-1, 2), (5, 4)])
    def test_invalid_spans_rejected(self, start: int, end: int) -> None:
        with pytest.raises(ValueError, match="Invalid span"):
            Span(start, end)

    def test_frozen(self) -> None:
        span = Span(0, 1)
        with pytest.raises(AttributeError):
            span.start = 2  # type: ignore[misc]


@pytest.mark.unit
class TestParsedDependency:
    """Tests for ParsedDependency derived properties."""

    def test_defaults(self) -> None:
        dep = _dep()
        assert dep.line == 0
        assert dep.source is DependencySource.DEPENDENCIES
        assert dep.dialect is SyntaxDialect.REQUIREMENTS_LINE
        assert dep.extras == ()

    def test_normalized_name(self) -> None:
        assert _dep(name="Flask_Login").normalized_name == "flask-login"

    @pytest.mark.parametrize(
        "constraint, operator",
        [
            (">=2.31", ">="),
            ("~=1.4", "~="),
            ("===1.0", "==="),
            ("^2.0", "^"),
            ("~0.27", "~"),
            ("2.0", ""),
            ("", ""),
        ],
    )
    def test_operator(self, constraint: str, operator: str) -> None:
        assert _dep(constraint).operator == operator

    def test_has_constraint(self) -> None:
        assert _dep(">=1").has_constraint
        assert not _dep("").has_constraint

    def test_equal_parses_compare_equal(self) -> None:
        """Value equality makes repeated parses comparable."""
        assert _dep() == _dep()
        assert hash(_dep()) == hash(_dep())


@pytest.mark.unit
class TestCompletionContext:
    def test_defaults(self) -> None:
        dep = _dep("")
        context = CompletionContext(dependency=dep, replace_span=dep.span)

        assert context.name == "requests"
        assert context.prefix == ""
        assert context.needs_operator is False
        assert context.default_operator == "~="
