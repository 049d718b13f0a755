"""
Positions and spans over one immutable text snapshot.

Offsets are UTF-8 byte offsets; lines and columns are 1-based and columns
count bytes, matching what tree-sitter reports.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, order=True)
class Position:
    line: int
    column: int
    offset: int


@dataclass(frozen=True)
class Span:
    """Half-open byte range ``[start.offset, end.offset)``."""
    start: Position
    end: Position

    @classmethod
    def point(cls, position: Position) -> "Span":
        return cls(position, position)

    @property
    def length(self) -> int:
        return self.end.offset - self.start.offset

    @property
    def is_empty(self) -> bool:
        return self.start.offset == self.end.offset

    def contains(self, other: "Span") -> bool:
        return (
            self.start.offset <= other.start.offset
            and other.end.offset <= self.end.offset
        )

    def overlaps(self, other: "Span") -> bool:
        """True if the spans share a byte, or a point lies strictly inside the other span."""
        return (
            self.start.offset < other.end.offset
            and other.start.offset < self.end.offset
        )

    def slice(self, source: bytes) -> str:
        return source[self.start.offset:self.end.offset].decode("utf-8", errors="replace")


def position_at(source: bytes, offset: int) -> Position:
    """Compute the line/column of byte *offset* in *source*."""
    offset = max(0, min(offset, len(source)))
    line_start = source.rfind(b"\n", 0, offset) + 1
    return Position(
        line=source.count(b"\n", 0, offset) + 1,
        column=offset - line_start + 1,
        offset=offset,
    )
