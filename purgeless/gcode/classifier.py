"""
Line classifier — tags a single G-code line for the relocation scans.

Every line becomes exactly one of:

    Comment          ; anything starting with a semicolon
    FeatureMarker    ; feature outer perimeter   (slicer feature annotation)
    ToolChange       T1
    Extrusion        G1 X10 Y5 E0.5             (planar move *with* E)
    Other            everything else, including pure retractions (G1 E-2)

Moves without X/Y are retractions or primes and must not be counted as
deposited material, so the default extrusion pattern requires a planar
parameter before the E word.

The scans only depend on the tagged result, so a different matching
strategy can replace ``LineClassifier`` as long as ``classify`` returns
these types.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Union

from purgeless.config.settings import RegexPatterns, default_patterns

log = logging.getLogger("purgeless.gcode.classifier")


@dataclass(frozen=True)
class Comment:
    pass


@dataclass(frozen=True)
class FeatureMarker:
    name: str


@dataclass(frozen=True)
class ToolChange:
    tool: str


@dataclass(frozen=True)
class Extrusion:
    amount: float


@dataclass(frozen=True)
class Other:
    pass


LineKind = Union[Comment, FeatureMarker, ToolChange, Extrusion, Other]

COMMENT = Comment()
OTHER = Other()


def _capture(m: re.Match, name: str) -> str:
    """Text of group *name*, else of the last group that matched, else the match."""
    if name in m.re.groupindex and m.group(name) is not None:
        return m.group(name)
    for idx in range(m.re.groups, 0, -1):
        if m.group(idx) is not None:
            return m.group(idx)
    return m.group(0)


def is_comment(kind: LineKind) -> bool:
    return isinstance(kind, (Comment, FeatureMarker))


def extrusion_amount(kind: LineKind) -> float:
    """Filament deposited by a classified line (0 for non-extrusions)."""
    return kind.amount if isinstance(kind, Extrusion) else 0.0


class LineClassifier:
    """Regex-backed classifier built from the configured patterns."""

    def __init__(self, patterns: RegexPatterns | None = None):
        if patterns is None:
            patterns = default_patterns()
        self.tool_re = re.compile(patterns.tool, re.IGNORECASE)
        self.slicer_re = re.compile(patterns.slicer, re.IGNORECASE)
        self.extrusion_re = re.compile(patterns.extrusion, re.IGNORECASE)
        self.feature_re = re.compile(patterns.feature, re.IGNORECASE)

    def classify(self, line: str) -> LineKind:
        stripped = line.strip()

        m = self.feature_re.match(stripped)
        if m:
            return FeatureMarker(_capture(m, "name").strip())

        if stripped.startswith(";"):
            return COMMENT

        if self.tool_re.match(stripped):
            return ToolChange(stripped.split(";", 1)[0].strip())

        m = self.extrusion_re.match(stripped)
        if m:
            raw = _capture(m, "amount")
            try:
                return Extrusion(float(raw))
            except ValueError:
                log.error("Can't parse extrusion amount '%s' in line '%s'", raw, line)
                return OTHER

        return OTHER

    def slicer_name(self, line: str) -> str | None:
        """Slicer named by a "generated with/by" banner line, if any."""
        m = self.slicer_re.match(line.strip())
        if not m:
            return None
        return _capture(m, "slicer").strip() or None
