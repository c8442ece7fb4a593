"""
Post-processor settings — thresholds, splice-in GCode and regex patterns.

Loads the bundled configs/settings.json (or a user supplied file) and
validates it.  Command line values are layered on top with
``Settings.with_overrides``.

Regex patterns fall back to their defaults when unset or invalid, so a
broken pattern never stops a run.  Numeric settings are strict: a value
that is not a non-negative number is a configuration error.
"""

from __future__ import annotations

import json
import logging
import re
from importlib.resources import files
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator

log = logging.getLogger("purgeless.config.settings")


# Shipped with the package, so installed copies find it too
DEFAULT_SETTINGS_PATH = files("purgeless") / "configs" / "settings.json"

# ── Default regex patterns ─────────────────────────────────────────

DEFAULT_TOOL_PATTERN = r"^T\d(.*)$"
DEFAULT_SLICER_PATTERN = r"^.*?generated\s(?:with|by)\s(?P<slicer>\S.*?)\s*$"
# G1/G2/G3/G5 carrying X or Y *and* E; moves without X/Y are retractions
DEFAULT_EXTRUSION_PATTERN = (
    r"^G[1235]\b[^;]*?[XY][-+]?[\d.][^;]*?"
    r"E(?P<amount>[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:e[-+]?\d+)?)"
)
DEFAULT_FEATURE_PATTERN = r"^;\s?feature\s(?P<name>\b.*\b)$"

PURGE_PLACEHOLDER = "; purgeless: add your PURGE code [ i.e. M83 E{0:.3f} M82 ] here"


class SettingsError(ValueError):
    """Raised when the settings can't be used to run the post-processor."""


def _valid_pattern(value: str | None, default: str, name: str) -> str:
    if value is None or not value.strip():
        log.warning("Using default %s-RegEx pattern!", name)
        return default
    try:
        re.compile(value)
    except re.error as exc:
        log.error("RegEx pattern '%s' is invalid. Reason: %s", value, exc)
        log.warning("Using default %s-RegEx pattern!", name)
        return default
    return value


class RegexPatterns(BaseModel):
    """Patterns identifying tool changes, slicer banner, extrusions and features."""

    model_config = {"frozen": True, "validate_default": True}

    tool: str | None = None
    slicer: str | None = None
    extrusion: str | None = None
    feature: str | None = None

    @field_validator("tool")
    @classmethod
    def _tool(cls, v: str | None) -> str:
        return _valid_pattern(v, DEFAULT_TOOL_PATTERN, "Tool")

    @field_validator("slicer")
    @classmethod
    def _slicer(cls, v: str | None) -> str:
        return _valid_pattern(v, DEFAULT_SLICER_PATTERN, "Slicer")

    @field_validator("extrusion")
    @classmethod
    def _extrusion(cls, v: str | None) -> str:
        return _valid_pattern(v, DEFAULT_EXTRUSION_PATTERN, "Extrusion")

    @field_validator("feature")
    @classmethod
    def _feature(cls, v: str | None) -> str:
        return _valid_pattern(v, DEFAULT_FEATURE_PATTERN, "Feature")


def default_patterns() -> RegexPatterns:
    return RegexPatterns(
        tool=DEFAULT_TOOL_PATTERN,
        slicer=DEFAULT_SLICER_PATTERN,
        extrusion=DEFAULT_EXTRUSION_PATTERN,
        feature=DEFAULT_FEATURE_PATTERN,
    )


class Settings(BaseModel):
    """Everything the relocation engine reads.  Immutable once loaded."""

    model_config = {"frozen": True}

    verbose: bool = False
    threshold: float = Field(default=0.0, ge=0)
    """Filament (mm) that must be extruded between a relocated and the
    original tool change (a.k.a. length of the hotend melt zone)."""

    skip_threshold: float = Field(default=0.0, ge=0)
    """Skip a tool change if the next tool extrudes less than this.
    0 disables skipping."""

    purge_code: str | None = None
    pre_tool_change_code: str | None = None
    post_tool_change_code: str | None = None
    regex_patterns: RegexPatterns = Field(default_factory=default_patterns)

    # ── Derived helpers ────────────────────────────────────────────

    def with_overrides(
        self,
        *,
        threshold: float | None = None,
        skip_threshold: float | None = None,
        verbose: bool | None = None,
    ) -> "Settings":
        """Return a copy with command line values applied."""
        update = {}
        if threshold is not None:
            update["threshold"] = threshold
        if skip_threshold is not None:
            update["skip_threshold"] = skip_threshold
        if verbose:
            update["verbose"] = True
        if not update:
            return self
        try:
            return Settings.model_validate({**self.model_dump(), **update})
        except ValidationError as exc:
            raise SettingsError(_describe(exc)) from exc

    def require_threshold(self) -> float:
        if self.threshold <= 0:
            raise SettingsError("Threshold value is not defined! Aborting.")
        return self.threshold

    def render_purge_code(self) -> str | None:
        """Purge code with the threshold substituted, or None if not configured.

        ``{0}`` and ``{threshold}`` are both accepted as the slot.
        """
        if not self.purge_code:
            return None
        try:
            return self.purge_code.format(self.threshold, threshold=self.threshold)
        except (IndexError, KeyError, ValueError) as exc:
            raise SettingsError(
                f"Purge code template '{self.purge_code}' is invalid: {exc}"
            ) from exc

    def render_purge_placeholder(self) -> str:
        return PURGE_PLACEHOLDER.format(self.threshold)


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"])
        parts.append(f"{loc}: {err['msg']}")
    return "Invalid settings: " + "; ".join(parts)


def load_settings(path: Path | None = None) -> Settings:
    """Load and validate the settings file.

    A missing file is not an error (defaults are used); an unreadable or
    malformed one is.
    """
    cfg_file = Path(path) if path is not None else DEFAULT_SETTINGS_PATH
    if not cfg_file.is_file():
        log.warning("No Settings found at %s! Using default settings.", cfg_file)
        return Settings()

    try:
        raw = json.loads(cfg_file.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as exc:
        raise SettingsError(f"Can't open the settings file: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise SettingsError(f"Settings file {cfg_file} is not valid JSON: {exc}") from exc

    if not isinstance(raw, dict):
        raise SettingsError(f"Settings file {cfg_file} must contain a JSON object")

    # Absent patterns section → every pattern takes its default
    if raw.get("regex_patterns") is None:
        raw["regex_patterns"] = {}
    try:
        settings = Settings.model_validate(raw)
    except ValidationError as exc:
        raise SettingsError(_describe(exc)) from exc

    if not settings.purge_code:
        log.warning("No Purge GCode assigned!")
    log.debug("Loaded settings from %s", cfg_file)
    return settings
