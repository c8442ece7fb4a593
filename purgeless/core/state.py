"""
Run state shared by the relocation and skip scans.

- RunningTotals: tool-change statistics for one post-processing run
- ExtrusionAccumulator: running filament sum for a single scan

Both are created per run and passed explicitly to the scans and the
emitter; nothing here is module-global.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class RunningTotals:
    """Counters reported in the statistics block at end of stream."""

    tool_changes: int = 0
    skipped: int = 0
    relocated: int = 0
    purged: int = 0

    @property
    def resolved(self) -> int:
        """Tool changes that were either relocated or purge-annotated."""
        return self.relocated + self.purged

    def summary(self) -> str:
        return (
            f"{self.tool_changes} tool change(s); {self.skipped} skipped; "
            f"{self.relocated} relocation(s) accomplished; {self.purged} purge(s) needed."
        )


class ExtrusionAccumulator:
    """Additive sum of extrusion amounts (mm of filament) seen by a scan."""

    def __init__(self) -> None:
        self.total = 0.0

    def reset(self) -> None:
        self.total = 0.0

    def add(self, amount: float) -> float:
        self.total += amount
        return self.total

    def reached(self, threshold: float) -> bool:
        return self.total >= threshold

    def exceeds(self, limit: float) -> bool:
        return self.total > limit
