"""
Segment buffer — the lines between two consecutive tool changes.

A segment starts empty (at file start, or right after the previous one
was flushed) and ends with the tool-change line that closed it, or with
the last line of the file.  All edits made by the relocation and skip
scans happen here, before the segment is drained to the output.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Line:
    """One G-code line.  ``number`` is the 1-based input line, None if inserted."""

    number: int | None
    text: str


class SegmentBuffer:
    def __init__(self) -> None:
        self._lines: list[Line] = []

    def __len__(self) -> int:
        return len(self._lines)

    def __getitem__(self, index: int) -> Line:
        return self._lines[index]

    def __iter__(self):
        return iter(self._lines)

    @property
    def last(self) -> Line:
        return self._lines[-1]

    def append(self, number: int | None, text: str) -> Line:
        line = Line(number, text)
        self._lines.append(line)
        return line

    def rewrite_last(self, text: str) -> None:
        """Replace the text of the closing line, keeping its line number."""
        if not self._lines:
            raise IndexError("rewrite_last on an empty segment")
        self._lines[-1].text = text

    def insert_after(self, index: int, texts: list[str]) -> None:
        """Splice synthetic lines in right after position *index*."""
        if not -len(self._lines) <= index < len(self._lines):
            raise IndexError(f"insert_after index {index} out of range")
        pos = index % len(self._lines) + 1
        self._lines[pos:pos] = [Line(None, t) for t in texts]

    def drain(self) -> list[Line]:
        """Hand over all lines in order and leave the buffer empty."""
        lines, self._lines = self._lines, []
        return lines
