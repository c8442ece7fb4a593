"""
G-code post-processor — relocates tool changes so no purge is needed.

Slicers emit a tool change (``T0``, ``T1`` …) exactly where the new
material is first needed.  On a single-nozzle multi-material printer the
hotend still holds the old material at that point, which normally means
purging it onto a wipe tower.  This pass moves each tool change earlier
instead, so the last ``threshold`` mm of the *old* tool's planned
extrusion flushes the nozzle (threshold 50):

    G1 X10 Y10 E5.0                  G1 X10 Y10 E5.0
    G1 X20 Y10 E30.0        →        G1 X20 Y10 E30.0
    G1 X30 Y10 E40.0                 G1 X30 Y10 E40.0
    G1 X40 Y10 E20.0                 T1   ; purgeless: relocated tool change
    T1                               G1 X40 Y10 E20.0
                                     ; purgeless: relocated T1 from line 5 to line 3

The line where the running sum (counted backwards) first reaches the
threshold is the relocation point; the tool change goes right after it.

The input is streamed line by line.  Lines are collected into a segment
until a tool change closes it; the segment is then relocated (or skipped,
or purge-annotated), written out and dropped, so memory is bounded by
the longest span between two tool changes.  The first tool change in the
file only selects the starting tool and is left alone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, TextIO

from purgeless.config.settings import Settings
from purgeless.core.state import RunningTotals
from purgeless.gcode.classifier import LineClassifier, ToolChange
from purgeless.gcode.emitter import SegmentEmitter, header_block
from purgeless.gcode.relocation import RelocationOutcome, relocate_tool_change
from purgeless.gcode.segment import SegmentBuffer
from purgeless.gcode.skipping import LookaheadSource, evaluate_skip, skip_tool_change

log = logging.getLogger("purgeless.gcode.postprocessor")


@dataclass
class PostProcessResult:
    """Output of one post-processing pass."""

    totals: RunningTotals
    lines_read: int
    lines_written: int
    slicer: str | None = None
    first_tool: str | None = None
    first_tool_line: int | None = None
    outcomes: list[RelocationOutcome] = field(default_factory=list)
    stages: list[str] = field(default_factory=list)


def postprocess_lines(
    source: Iterable[str],
    sink: TextIO,
    settings: Settings,
    *,
    now: datetime | None = None,
) -> PostProcessResult:
    """Run the relocation pass from *source* into *sink*.

    Parameters
    ----------
    source : iterable of str
        Input G-code lines in file order (trailing newlines are ignored).
    sink : text stream
        Receives the processed G-code; must support ``write`` and ``flush``.
    settings : Settings
        Thresholds, splice-in code and patterns.  ``threshold`` must be set.
    now : datetime, optional
        Timestamp for the header comment (for reproducible output).

    Returns
    -------
    PostProcessResult
    """
    classifier = LineClassifier(settings.regex_patterns)
    totals = RunningTotals()
    emitter = SegmentEmitter(sink)
    lines = LookaheadSource(source)
    segment = SegmentBuffer()
    result = PostProcessResult(totals=totals, lines_read=0, lines_written=0)

    for text in header_block(settings, now):
        segment.append(None, text)

    for line in lines:
        segment.append(line.number, line.text)

        if result.slicer is None:
            slicer = classifier.slicer_name(line.text)
            if slicer:
                result.slicer = slicer
                log.info("Slicer: %s", slicer)

        kind = classifier.classify(line.text)
        if not isinstance(kind, ToolChange):
            continue

        # ── First tool change: selects the starting tool ──────────
        if result.first_tool is None:
            result.first_tool = kind.tool
            result.first_tool_line = line.number
            log.info("Printing starts at line %d with %s", line.number, kind.tool)
            continue

        totals.tool_changes += 1
        log.debug("%s in line %d", kind.tool, line.number)

        # ── Skip check: does the next tool extrude enough? ────────
        skipped = False
        if settings.skip_threshold > 0:
            decision = evaluate_skip(lines.peek(), classifier, settings.skip_threshold)
            if decision.skip:
                skip_tool_change(segment, totals)
                skipped = True
                log.info(
                    "%s in line %d: skip threshold not reached (amount: %.3f). "
                    "Skipping this tool change.",
                    kind.tool, line.number, decision.extrusion,
                )

        # ── Relocate (or purge) and flush the closed segment ──────
        if not skipped:
            result.outcomes.append(
                relocate_tool_change(segment, classifier, settings, totals)
            )
        emitter.emit(segment.drain())

    emitter.emit(segment.drain())
    emitter.finish(totals)

    result.lines_read = lines.lines_read
    result.lines_written = emitter.lines_written

    if result.first_tool is None:
        result.stages.append("No tool change found; G-code passed through unchanged")
    result.stages.append(f"Statistics: {totals.summary()}")
    log.info("Statistics: %s", totals.summary())
    return result
