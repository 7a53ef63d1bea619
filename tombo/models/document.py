"""
Text buffer abstraction for tombo.

:class:`TextDocument` offers the small slice of an editor buffer API the
providers need: full text, one line, offset/position conversion and the
word under a position. Lines may end in ``\\n`` or ``\\r\\n``; the line
terminator is never part of the line text.
"""

from __future__ import annotations

import re
from bisect import bisect_right
from dataclasses import dataclass
from typing import List, Optional, Pattern, Sequence

from tombo.models.dependency import ManifestKind, Span

#: Characters that may form a package name or version under the cursor.
WORD_PATTERN: Pattern[str] = re.compile(r"[A-Za-z0-9][A-Za-z0-9_.\-]*")


@dataclass(frozen=True)
class Position:
    """Zero-based ``(line, character)`` location."""

    line: int
    character: int


class TextDocument:
    """Immutable snapshot of a manifest's text.

    Args:
        text: Full document text.
        path: File name or path, used to infer :attr:`kind`.
        kind: Explicit manifest kind; overrides inference from ``path``.
    """

    def __init__(
        self,
        text: str,
        path: Optional[str] = None,
        *,
        kind: Optional[ManifestKind] = None,
    ) -> None:
        self.text = text
        self.path = path
        self._kind = kind
        self._line_starts: List[int] = [0]
        for match in re.finditer("\n", text):
            self._line_starts.append(match.end())

    def __repr__(self) -> str:
        return f"TextDocument(path={self.path!r}, lines={self.line_count})"

    @property
    def kind(self) -> ManifestKind:
        """Manifest kind; unknown files are treated as ``pyproject.toml``."""
        if self._kind is not None:
            return self._kind
        if self.path:
            inferred = ManifestKind.from_filename(self.path)
            if inferred is not None:
                return inferred
        return ManifestKind.PYPROJECT

    @property
    def line_count(self) -> int:
        return len(self._line_starts)

    @property
    def lines(self) -> List[str]:
        return [self.line_at(n) for n in range(self.line_count)]

    def line_at(self, line: int) -> str:
        """Return the text of ``line`` without its terminator."""
        if line < 0 or line >= self.line_count:
            raise IndexError(f"Line {line} out of range (0..{self.line_count - 1})")
        start = self._line_starts[line]
        end = self._line_starts[line + 1] - 1 if line + 1 < self.line_count else len(self.text)
        return self.text[start:end].rstrip("\r")

    def offset_at(self, position: Position) -> int:
        """Convert a position to an absolute offset, clamping out-of-range values."""
        line = min(max(position.line, 0), self.line_count - 1)
        character = min(max(position.character, 0), len(self.line_at(line)))
        return self._line_starts[line] + character

    def position_at(self, offset: int) -> Position:
        """Convert an absolute offset to a position, clamping to the document."""
        offset = min(max(offset, 0), len(self.text))
        line = bisect_right(self._line_starts, offset) - 1
        character = min(offset - self._line_starts[line], len(self.line_at(line)))
        return Position(line, character)

    def word_range_at(
        self,
        position: Position,
        pattern: Pattern[str] = WORD_PATTERN,
    ) -> Optional[Span]:
        """Return the columns of the word touching ``position``, if any."""
        if position.line < 0 or position.line >= self.line_count:
            return None
        for match in pattern.finditer(self.line_at(position.line)):
            if match.start() <= position.character <= match.end():
                return Span(match.start(), match.end())
        return None

    def apply_edits(self, edits: Sequence["TextEdit"]) -> str:
        """Return the text with ``edits`` applied.

        Edits are applied from the end of the document backwards so
        earlier offsets stay valid. Overlapping edits are rejected.

        Raises:
            ValueError: Two edits overlap.
        """
        ranges = sorted(
            (
                (
                    self.offset_at(Position(e.line, e.span.start)),
                    self.offset_at(Position(e.line, e.span.end)),
                    e.new_text,
                )
                for e in edits
            ),
            key=lambda r: (r[0], r[1]),
        )
        for (_, prev_end, _), (start, _, _) in zip(ranges, ranges[1:]):
            if start < prev_end:
                raise ValueError("Overlapping text edits")

        text = self.text
        for start, end, new_text in reversed(ranges):
            text = text[:start] + new_text + text[end:]
        return text


@dataclass(frozen=True)
class TextEdit:
    """Replace the columns ``span`` of ``line`` with ``new_text``."""

    line: int
    span: Span
    new_text: str
