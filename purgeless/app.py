import argparse
import logging
from pathlib import Path

from purgeless import __version__
from purgeless.config.settings import SettingsError, load_settings
from purgeless.gcode.pipeline import default_output_path, run_postprocess


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="purgeless",
        description="GCode post processor for purge-less multi material printing",
    )
    p.add_argument("input", help="Input G-code file")
    p.add_argument("-o", "--output", default=None,
                   help="Output file (default: <input>_(purgeless).<ext> next to the input)")
    p.add_argument("-v", "--verbose", action="store_true", help="Print all processing information")
    p.add_argument("-t", "--threshold", type=float, default=None,
                   help="Amount in mm of filament that needs to be purged (a.k.a. length of the hotend)")
    p.add_argument("-skip", "--skip", dest="skip_threshold", type=float, default=None,
                   help="Amount of filament in mm that will cause skipping a tool change if less")
    p.add_argument("--settings", type=Path, default=None, help="Path to a settings JSON file")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    print(">>> purgeless - GCode post processor for purge-less multi material printing.")
    print(f">>> Version {__version__}\n")

    try:
        settings = load_settings(args.settings).with_overrides(
            threshold=args.threshold,
            skip_threshold=args.skip_threshold,
            verbose=args.verbose,
        )
    except SettingsError as exc:
        print(f"Error: {exc}")
        return 1
    if settings.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    input_path = Path(args.input)
    output_path = Path(args.output) if args.output else default_output_path(input_path)
    print(f"Input file:\t\t\"{input_path}\"")
    print(f"Output file:\t\t\"{output_path}\"")
    print(f"Purge threshold:\t{settings.threshold:.3f}")
    print(f"Skip threshold:\t\t{settings.skip_threshold:.3f}")

    result = run_postprocess(input_path, output_path, settings)
    if not result.success:
        print(f"\nErrors encountered while processing '{input_path}': {result.message}")
        return 1

    print("-" * 94)
    print(f"Statistics: {result.postprocess.totals.summary()}")
    print("-" * 94)
    return 0
