"""
Forward skip evaluation — is the upcoming tool worth changing to at all?

When the segment after a tool change extrudes less than
``skip_threshold`` mm, the change is commented out instead of being
relocated.  Deciding that needs the lines *after* the tool change, so
the input is read through a ``LookaheadSource``: peeked lines are kept
and handed out again, in order, when the main loop reaches them.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Iterable, Iterator

from purgeless.core.state import ExtrusionAccumulator, RunningTotals
from purgeless.gcode.classifier import (
    LineClassifier,
    ToolChange,
    extrusion_amount,
    is_comment,
)
from purgeless.gcode.segment import Line, SegmentBuffer

log = logging.getLogger("purgeless.gcode.skipping")

# Stop looking ahead once the next segment is clearly over the skip
# threshold.  Tunable; kept at the value the tool has always used.
SKIP_EARLY_EXIT_FACTOR = 1.2

SKIPPED_TAG = "; purgeless: skipping tool change because of skip threshold"


class LookaheadSource:
    """Numbered line iterator that can peek ahead without consuming."""

    def __init__(self, lines: Iterable[str]):
        self._lines = iter(lines)
        self._pending: deque[Line] = deque()
        self.lines_read = 0

    def _read(self) -> Line | None:
        try:
            text = next(self._lines)
        except StopIteration:
            return None
        self.lines_read += 1
        return Line(self.lines_read, text.rstrip("\r\n"))

    def __iter__(self) -> Iterator[Line]:
        return self

    def __next__(self) -> Line:
        if self._pending:
            return self._pending.popleft()
        line = self._read()
        if line is None:
            raise StopIteration
        return line

    def peek(self) -> Iterator[str]:
        """Yield the text of upcoming lines; they stay queued for ``__next__``."""
        idx = 0
        while True:
            if idx < len(self._pending):
                yield self._pending[idx].text
                idx += 1
                continue
            line = self._read()
            if line is None:
                return
            self._pending.append(line)


@dataclass
class SkipDecision:
    skip: bool
    extrusion: float
    early_exit: bool = False


def evaluate_skip(
    lines: Iterable[str],
    classifier: LineClassifier,
    skip_threshold: float,
    early_exit_factor: float = SKIP_EARLY_EXIT_FACTOR,
) -> SkipDecision:
    """Sum the extrusions of the next segment and compare with *skip_threshold*.

    *lines* starts right after the tool change.  Scanning stops at the
    next tool change, at the end of the input, or as soon as the sum
    exceeds ``skip_threshold * early_exit_factor``.  Skips only if the
    sum is strictly below the threshold.
    """
    acc = ExtrusionAccumulator()
    limit = skip_threshold * early_exit_factor

    for text in lines:
        kind = classifier.classify(text)
        if is_comment(kind):
            continue
        if isinstance(kind, ToolChange):
            break
        acc.add(extrusion_amount(kind))
        if acc.exceeds(limit):
            return SkipDecision(skip=False, extrusion=acc.total, early_exit=True)

    return SkipDecision(skip=acc.total < skip_threshold, extrusion=acc.total)


def skip_tool_change(segment: SegmentBuffer, totals: RunningTotals) -> None:
    """Comment out the closing tool change; it stays visible in the output."""
    segment.rewrite_last(f"; {segment.last.text}\t{SKIPPED_TAG}")
    totals.skipped += 1
