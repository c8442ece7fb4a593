"""
G-code pipeline orchestrator — runs the file → post-process → file flow.

This is the single entry point the CLI (and any slicer integration)
calls.  It:

1. Loads and checks the settings (threshold required, purge template valid)
2. Opens the input G-code and a staging file beside the output
3. Streams the input through the relocation pass
4. Moves the staging file onto the output path
5. Returns a success/failure result with a human-readable message

Nothing is retried.  If the pass fails, the staging file is removed and
any existing output file is left as it was; the input may be processed
in place (output path == input path).
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO

from purgeless.config.settings import Settings, SettingsError, load_settings
from purgeless.gcode.postprocessor import PostProcessResult, postprocess_lines

log = logging.getLogger("purgeless.gcode.pipeline")

OUTPUT_SUFFIX = "_(purgeless)"


@dataclass
class PostProcessPipelineResult:
    """Full result of a post-processing run."""

    success: bool
    message: str
    input_path: Path | None = None
    output_path: Path | None = None
    postprocess: PostProcessResult | None = None
    stages: list[str] = field(default_factory=list)


def default_output_path(input_path: Path) -> Path:
    """``part.gcode`` → ``part_(purgeless).gcode`` next to the input."""
    input_path = Path(input_path)
    return input_path.with_name(f"{input_path.stem}{OUTPUT_SUFFIX}{input_path.suffix}")


def _failed(message: str, **kwargs) -> PostProcessPipelineResult:
    log.error(message)
    return PostProcessPipelineResult(success=False, message=message, **kwargs)


def _open_staging(output_path: Path, mode_from: Path) -> tuple[TextIO, Path]:
    """Open a temporary file beside *output_path* for writing."""
    sink = tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        newline="\n",
        dir=output_path.parent,
        prefix=f".{output_path.name}.",
        suffix=".tmp",
        delete=False,
    )
    staging_path = Path(sink.name)
    try:
        shutil.copymode(mode_from, staging_path)
    except OSError:
        sink.close()
        staging_path.unlink(missing_ok=True)
        raise
    return sink, staging_path


def run_postprocess(
    input_path: Path,
    output_path: Path | None = None,
    settings: Settings | None = None,
    *,
    settings_path: Path | None = None,
) -> PostProcessPipelineResult:
    """Post-process one G-code file.

    Parameters
    ----------
    input_path : Path
        The slicer G-code to process.
    output_path : Path, optional
        Where to write the result.  Defaults to ``default_output_path``.
    settings : Settings, optional
        Already loaded settings.  If *None*, ``settings_path`` (or the
        default settings file) is loaded.
    settings_path : Path, optional
        Settings file to load when *settings* is not given.

    Returns
    -------
    PostProcessPipelineResult
    """
    input_path = Path(input_path)
    stages: list[str] = []

    # ── 1. Settings ────────────────────────────────────────────────
    try:
        if settings is None:
            settings = load_settings(settings_path)
        threshold = settings.require_threshold()
        settings.render_purge_code()
    except SettingsError as exc:
        return _failed(str(exc), input_path=input_path, stages=stages)

    stages.append(
        f"Purge threshold: {threshold:.3f} mm; skip threshold: {settings.skip_threshold:.3f} mm"
    )

    # ── 2. Files ───────────────────────────────────────────────────
    if not input_path.is_file():
        return _failed(
            f"Input file '{input_path}' not found. Please check and try again!",
            input_path=input_path, stages=stages,
        )
    output_path = Path(output_path) if output_path is not None else default_output_path(input_path)
    log.info("Input file: %s", input_path)
    log.info("Output file: %s", output_path)

    try:
        src = input_path.open("r", encoding="utf-8")
    except OSError as exc:
        return _failed(
            f"Can't read the input file: {exc}",
            input_path=input_path, output_path=output_path, stages=stages,
        )

    # Output is staged next to the target and only replaces it once the
    # pass is complete, so input and output may be the same file.
    with src:
        try:
            sink, staging_path = _open_staging(output_path, input_path)
        except OSError as exc:
            return _failed(
                f"Can't open the output file: {exc}",
                input_path=input_path, output_path=output_path, stages=stages,
            )

        # ── 3. Relocation pass ─────────────────────────────────────
        try:
            with sink:
                pp_result = postprocess_lines(src, sink, settings)
        except UnicodeDecodeError as exc:
            staging_path.unlink(missing_ok=True)
            return _failed(
                f"Can't read the input file: {exc}",
                input_path=input_path, output_path=output_path, stages=stages,
            )
        except OSError as exc:
            staging_path.unlink(missing_ok=True)
            return _failed(
                f"Processing '{input_path}' failed: {exc}",
                input_path=input_path, output_path=output_path, stages=stages,
            )

    try:
        staging_path.replace(output_path)
    except OSError as exc:
        staging_path.unlink(missing_ok=True)
        return _failed(
            f"Can't write the output file: {exc}",
            input_path=input_path, output_path=output_path, stages=stages,
        )

    stages.extend(pp_result.stages)
    stages.append(f"Output written: {output_path}")
    log.info("Done parsing input file, output file written: %s", output_path)

    return PostProcessPipelineResult(
        success=True,
        message="Done parsing input file, output file written.",
        input_path=input_path,
        output_path=output_path,
        postprocess=pp_result,
        stages=stages,
    )
