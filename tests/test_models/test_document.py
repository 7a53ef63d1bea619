"""Unit tests for tombo.models.document module.

Test Coverage:
- Line access with LF and CRLF terminators
- Offset and position conversion, including clamping
- Word lookup under a position
- Manifest kind inference
- Applying text edits
"""

from __future__ import annotations

import pytest

from tombo.models.dependency import ManifestKind, Span
from tombo.models.document import Position, TextDocument, TextEdit

TEXT = 'dependencies = [\n    "requests>=2.31",\n]\n'


@pytest.mark.unit
class TestLines:
    """Tests for line access."""

    def test_line_count_includes_trailing_empty_line(self) -> None:
        """A final newline opens one more (empty) line, like an editor."""
        document = TextDocument(TEXT)
        assert document.line_count == 4
        assert document.line_at(3) == ""

    def test_line_at(self) -> None:
        document = TextDocument(TEXT)
        assert document.line_at(1) == '    "requests>=2.31",'

    def test_crlf_terminator_is_stripped(self) -> None:
        document = TextDocument("a = 1\r\nb = 2\r\n")
        assert document.lines == ["a = 1", "b = 2", ""]

    def test_line_out_of_range(self) -> None:
        with pytest.raises(IndexError):
            TextDocument(TEXT).line_at(10)
        with pytest.raises(IndexError):
            TextDocument(TEXT).line_at(-1)

    def test_empty_document_has_one_line(self) -> None:
        document = TextDocument("")
        assert document.line_count == 1
        assert document.line_at(0) == ""


@pytest.mark.unit
class TestOffsets:
    """Tests for offset/position conversion."""

    def test_offset_at(self) -> None:
        document = TextDocument(TEXT)
        assert document.offset_at(Position(0, 0)) == 0
        assert document.offset_at(Position(1, 4)) == 21

    def test_position_at(self) -> None:
        document = TextDocument(TEXT)
        assert document.position_at(21) == Position(1, 4)
        assert document.position_at(0) == Position(0, 0)

    def test_offset_position_are_inverse(self) -> None:
        document = TextDocument(TEXT)
        for offset in (0, 5, 17, 30, len(TEXT)):
            assert document.offset_at(document.position_at(offset)) == offset

    def test_clamping(self) -> None:
        """Out-of-range positions are clamped instead of raising."""
        document = TextDocument(TEXT)
        assert document.offset_at(Position(0, 999)) == len("dependencies = [")
        assert document.offset_at(Position(99, 0)) == len(TEXT)
        assert document.position_at(-5) == Position(0, 0)
        assert document.position_at(10_000) == Position(3, 0)


@pytest.mark.unit
class TestWordRange:
    def test_word_under_cursor(self) -> None:
        document = TextDocument(TEXT)
        span = document.word_range_at(Position(1, 7))

        assert span == Span(5, 13)
        assert span.slice(document.line_at(1)) == "requests"

    def test_cursor_right_after_word(self) -> None:
        assert TextDocument("flask==3.0").word_range_at(Position(0, 5)) == Span(0, 5)

    def test_no_word(self) -> None:
        document = TextDocument(TEXT)
        assert document.word_range_at(Position(2, 0)) is None
        assert document.word_range_at(Position(42, 0)) is None


@pytest.mark.unit
class TestKind:
    @pytest.mark.parametrize(
        "path, expected",
        [
            ("pyproject.toml", ManifestKind.PYPROJECT),
            ("requirements/dev-requirements.txt", ManifestKind.REQUIREMENTS),
            ("notes.md", ManifestKind.PYPROJECT),
            (None, ManifestKind.PYPROJECT),
        ],
    )
    def test_inferred_from_path(self, path, expected: ManifestKind) -> None:
        assert TextDocument("", path).kind is expected

    def test_explicit_kind_wins(self) -> None:
        document = TextDocument("", "pyproject.toml", kind=ManifestKind.REQUIREMENTS)
        assert document.kind is ManifestKind.REQUIREMENTS


@pytest.mark.unit
class TestApplyEdits:
    """Tests for TextDocument.apply_edits."""

    def test_single_edit(self) -> None:
        document = TextDocument(TEXT)
        new_text = document.apply_edits([TextEdit(1, Span(13, 19), "~=2.32")])
        assert new_text.splitlines()[1] == '    "requests~=2.32",'

    def test_insertion(self) -> None:
        document = TextDocument('"rich",\n')
        assert document.apply_edits([TextEdit(0, Span(5, 5), "~=13.7")]) == '"rich~=13.7",\n'

    def test_multiple_edits_in_any_order(self) -> None:
        """Edits are applied back to front so earlier offsets stay valid."""
        document = TextDocument("a==1\nb==2\n")
        edits = [TextEdit(0, Span(1, 4), ">=1.5"), TextEdit(1, Span(1, 4), "~=2.0")]

        assert document.apply_edits(edits) == "a>=1.5\nb~=2.0\n"
        assert document.apply_edits(list(reversed(edits))) == "a>=1.5\nb~=2.0\n"

    def test_overlapping_edits_rejected(self) -> None:
        document = TextDocument("requests>=2.31")
        with pytest.raises(ValueError, match="Overlapping"):
            document.apply_edits([TextEdit(0, Span(8, 14), "x"), TextEdit(0, Span(10, 12), "y")])

    def test_document_is_not_modified(self) -> None:
        document = TextDocument(TEXT)
        document.apply_edits([TextEdit(0, Span(0, 12), "deps")])
        assert document.text == TEXT

    def test_crlf_preserved(self) -> None:
        document = TextDocument("flask==2.0\r\nrich\r\n")
        new_text = document.apply_edits([TextEdit(0, Span(5, 10), "==3.0")])
        assert new_text == "flask==3.0\r\nrich\r\n"
