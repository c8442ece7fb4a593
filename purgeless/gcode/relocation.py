"""
Backward relocation — move a tool change earlier in its segment.

The segment handed in ends with the tool-change line.  Walking back from
the line before it, extrusion amounts are summed until at least
``threshold`` mm of filament has been deposited; the tool change is then
re-inserted right after that line, so the old material is pushed out by
the print itself instead of a purge.

The scan gives up when it meets the previous tool change or runs out of
lines.  The tool change then stays where it is and the configured purge
code (or a placeholder asking for one) is spliced in after it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from purgeless.config.settings import Settings
from purgeless.core.state import ExtrusionAccumulator, RunningTotals
from purgeless.gcode.classifier import (
    LineClassifier,
    ToolChange,
    extrusion_amount,
    is_comment,
)
from purgeless.gcode.segment import SegmentBuffer

log = logging.getLogger("purgeless.gcode.relocation")

RELOCATED_TAG = "; purgeless: relocated tool change"


@dataclass
class RelocationOutcome:
    """Result of one backward scan."""

    success: bool
    tool: str
    tool_line: int | None
    relocation_line: int | None = None
    extrusion: float = 0.0
    hit_previous_tool_change: bool = False


def _split_block(code: str | None) -> list[str]:
    if not code:
        return []
    return code.splitlines()


def relocated_block(tool: str, settings: Settings) -> list[str]:
    """Lines spliced in at the relocation point."""
    return (
        _split_block(settings.pre_tool_change_code)
        + [f"{tool}\t{RELOCATED_TAG}"]
        + _split_block(settings.post_tool_change_code)
    )


def relocate_tool_change(
    segment: SegmentBuffer,
    classifier: LineClassifier,
    settings: Settings,
    totals: RunningTotals,
) -> RelocationOutcome:
    """Relocate the segment's closing tool change, or annotate it with purge code.

    Mutates *segment* in place and bumps either ``totals.relocated`` or
    ``totals.purged``.
    """
    closing = segment.last
    kind = classifier.classify(closing.text)
    if not isinstance(kind, ToolChange):
        raise ValueError(f"Segment does not end with a tool change: '{closing.text}'")
    tool = kind.tool

    acc = ExtrusionAccumulator()
    hit_tool_change = False

    for idx in range(len(segment) - 2, -1, -1):
        line = segment[idx]
        line_kind = classifier.classify(line.text)
        if is_comment(line_kind):
            continue

        acc.add(extrusion_amount(line_kind))
        if acc.reached(settings.threshold):
            log.debug(
                "%s relocated by -%.3f mm (line %s → line %s)",
                tool, acc.total, closing.number, line.number,
            )
            segment.insert_after(idx, relocated_block(tool, settings))
            segment.rewrite_last(
                f"; purgeless: relocated {tool} from line {closing.number} "
                f"to line {line.number}"
            )
            totals.relocated += 1
            return RelocationOutcome(
                success=True,
                tool=tool,
                tool_line=closing.number,
                relocation_line=line.number,
                extrusion=acc.total,
            )

        if isinstance(line_kind, ToolChange):
            log.debug(
                "Previous tool change encountered ('%s'). Stopping processing.",
                line.text,
            )
            hit_tool_change = True
            break

    # Relocation not possible, the old material has to be purged
    totals.purged += 1
    purge = settings.render_purge_code()
    if purge:
        segment.insert_after(len(segment) - 1, _split_block(purge))
        log.info(
            "%s in line %s: relocation failed (max. %.3f mm), purge code inserted",
            tool, closing.number, acc.total,
        )
    else:
        segment.insert_after(len(segment) - 1, [settings.render_purge_placeholder()])
        log.warning(
            "%s in line %s: relocation failed (max. %.3f mm), "
            "no purge code available, placeholder inserted",
            tool, closing.number, acc.total,
        )

    return RelocationOutcome(
        success=False,
        tool=tool,
        tool_line=closing.number,
        extrusion=acc.total,
        hit_previous_tool_change=hit_tool_change,
    )
