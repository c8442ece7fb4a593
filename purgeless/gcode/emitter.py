"""
Emitter — writes finished segments and the trailing statistics block.

Write errors are not caught here: an ``OSError`` from the sink aborts the
run and whatever was already written stays in the output file.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, TextIO

from purgeless.config.settings import Settings
from purgeless.core.state import RunningTotals
from purgeless.gcode.segment import Line


def header_block(settings: Settings, now: datetime | None = None) -> list[str]:
    """Comment lines put in front of the processed G-code."""
    stamp = (now or datetime.now()).strftime("%Y-%m-%dT%H:%M:%S")
    return [
        f"; Post processed by purgeless {stamp}",
        f"; purgeless params: Purge threshold: {settings.threshold:.2f}mm; "
        f"Skip threshold: {settings.skip_threshold:.2f}mm",
    ]


def statistics_block(totals: RunningTotals) -> list[str]:
    return [
        "",
        "; " + "-" * 40,
        "; purgeless statistics",
        f"; tool changes: {totals.tool_changes}",
        f"; skipped: {totals.skipped}",
        f"; relocations accomplished: {totals.relocated}",
        f"; purges needed: {totals.purged}",
        "; " + "-" * 40,
    ]


class SegmentEmitter:
    """Line-oriented, append-only writer around a text sink."""

    def __init__(self, sink: TextIO):
        self.sink = sink
        self.lines_written = 0

    def emit(self, lines: Iterable[Line]) -> int:
        count = 0
        for line in lines:
            self.sink.write(line.text + "\n")
            count += 1
        self.lines_written += count
        return count

    def finish(self, totals: RunningTotals) -> None:
        """No more segments: append the statistics and flush the sink."""
        self.emit(Line(None, text) for text in statistics_block(totals))
        self.sink.flush()
