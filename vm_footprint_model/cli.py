"""
Command-line interface for running footprint configs.

Usage:
    vm-footprint configs/example.json
    vm-footprint configs/*.json --output-dir results/
    vm-footprint configs/example.json --stdout
    vm-footprint configs/example.json --plot
    vm-footprint --list-instance-types aws
"""

import argparse
import sys
import json
import logging
from pathlib import Path
from typing import List, Optional

from .config import Vendor, load_config, validate_config
from .errors import FootprintModelError
from .formatter import colorize, info_line, kv_block, note_block, supports_color, table, title
from .model import FIELD_EMBODIED_CARBON, FIELD_ENERGY
from .registry import default_registry
from .runner import Runner, RunResult, save_result, generate_output_filename

# Optional plotting support
try:
    from .plot import plot_result
    HAS_PLOT = True
except ImportError:
    HAS_PLOT = False
    plot_result = None

# Records shown in the summary table
SUMMARY_MAX_ROWS = 20


def format_result_summary(result: RunResult) -> str:
    """Format a human-readable summary of a run."""
    model = result.config.get("model", {})
    items = [
        ("Variant", result.config.get("variant", "ccf")),
        ("Vendor", model.get("vendor", "(implied)")),
        ("Instance type", model.get("instance-type", "N/A")),
        ("Interpolation", model.get("interpolation", "linear")),
        ("Expected lifespan", f"{model.get('expected-lifespan', 4)} years"),
    ]

    rows = [
        [
            i,
            record.get("timestamp", ""),
            f"{record.get('duration', 0):g}",
            f"{record.get('cpu-util', 0):g}",
            f"{record[FIELD_ENERGY]:.6f}",
            f"{record[FIELD_EMBODIED_CARBON]:.6f}",
        ]
        for i, record in enumerate(result.outputs[:SUMMARY_MAX_ROWS])
    ]

    parts = [
        title(f"Footprint: {result.meta['experiment_name']}"),
        "",
        kv_block(items),
        "",
        table(
            ["#", "timestamp", "duration (s)", "cpu-util (%)", "energy (kWh)", "embodied (g)"],
            rows,
            aligns=['r', 'l', 'r', 'r', 'r', 'r'],
        ),
    ]
    if len(result.outputs) > SUMMARY_MAX_ROWS:
        parts.append(note_block([f"{len(result.outputs) - SUMMARY_MAX_ROWS} more records in the JSON output"]))

    parts.extend([
        "",
        info_line(f"Total energy: {result.totals[FIELD_ENERGY]:.6f} kWh"),
        info_line(f"Total embodied carbon: {result.totals[FIELD_EMBODIED_CARBON]:.6f} gCO2e"),
    ])
    return "\n".join(parts)


def format_instance_types(vendor: str) -> str:
    """Format the instance types of a vendor in the bundled tables."""
    registry = default_registry()
    rows = []
    for name in registry.instance_types(vendor):
        profile = registry.get(vendor, name)
        embodied = profile.embodied_emission_kg
        rows.append([
            name,
            f"{profile.vcpus}/{profile.max_vcpus}",
            f"{profile.consumption.min_watts:.2f}",
            f"{profile.consumption.max_watts:.2f}",
            "Yes" if profile.has_calibration else "No",
            f"{embodied:.1f}" if embodied is not None else "N/A",
        ])
    return "\n".join([
        title(f"{vendor} instance types"),
        "",
        table(
            ["instance type", "vCPU", "min W", "max W", "spline", "embodied kg"],
            rows,
            aligns=['l', 'r', 'r', 'r', 'c', 'r'],
        ),
    ])


def _print_summary(text: str, use_color: bool) -> None:
    """Print summary with optional ANSI colorization."""
    print(colorize(text) if use_color else text)


def run_single_config(
    config_path: Path,
    output_path: Optional[Path] = None,
    output_dir: Optional[Path] = None,
    stdout: bool = False,
    quiet: bool = False,
    plot: bool = False,
    plot_save_path: Optional[Path] = None,
) -> bool:
    """
    Run a single config file.

    Returns True on success, False on failure.
    """
    try:
        config = load_config(config_path)
    except FileNotFoundError:
        print(f"Error: Config file not found: {config_path}", file=sys.stderr)
        return False
    except ValueError as e:
        print(f"Error: Invalid JSON in {config_path}: {e}", file=sys.stderr)
        return False

    errors = validate_config(config)
    if errors:
        print(f"Error: Invalid config {config_path}:", file=sys.stderr)
        for err in errors:
            print(f"  - {err}", file=sys.stderr)
        return False

    try:
        runner = Runner(config, config_path=str(config_path))
        result = runner.run()
    except (FootprintModelError, FileNotFoundError, ValueError) as e:
        print(f"Error running {config_path}: {e}", file=sys.stderr)
        return False

    if stdout:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        if output_path is None:
            if output_dir is None:
                output_dir = Path("results")
            filename = generate_output_filename(config, result.meta["timestamp"])
            output_path = output_dir / filename

        save_result(result, output_path)

        if not quiet:
            print(f"Results saved to: {output_path}")
            print()
            _print_summary(format_result_summary(result), supports_color())

    if plot:
        if not HAS_PLOT:
            print("Warning: --plot requires matplotlib. Install with: pip install -e '.[plot]'",
                  file=sys.stderr)
        else:
            if plot_save_path is None and output_path is not None:
                # Default: same name as output but with .png extension
                plot_save_path = output_path.with_suffix('.png')

            plot_result(result, save_path=plot_save_path, show=(plot_save_path is None))

            if plot_save_path and not quiet:
                print(f"Plot saved to: {plot_save_path}")

    return True


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Estimate VM instance energy and embodied carbon from utilization records",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s configs/example.json
  %(prog)s configs/*.json --output-dir results/
  %(prog)s configs/example.json --stdout
  %(prog)s configs/example.json -o custom_output.json
  %(prog)s configs/example.json --plot --plot-save my_plot.png
  %(prog)s --list-instance-types gcp
        """,
    )

    parser.add_argument(
        "configs",
        nargs="*",
        type=Path,
        help="Config file(s) to run",
    )
    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Output file path (only valid with single config)",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Output directory (default: results/)",
    )
    parser.add_argument(
        "--stdout",
        action="store_true",
        help="Print JSON result to stdout instead of saving",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress summary output (only save/print JSON)",
    )
    parser.add_argument(
        "--plot",
        action="store_true",
        help="Generate visualization plot (requires matplotlib)",
    )
    parser.add_argument(
        "--plot-save",
        type=Path,
        default=None,
        help="Save plot to file (defaults to output path with .png extension)",
    )
    parser.add_argument(
        "--list-instance-types",
        metavar="VENDOR",
        choices=[v.value for v in Vendor],
        default=None,
        help="List the instance types bundled for a vendor and exit",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Log progress to stderr (-vv for debug)",
    )

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG if args.verbose > 1 else logging.INFO,
            format="%(levelname)s %(name)s: %(message)s",
        )

    if args.list_instance_types:
        _print_summary(format_instance_types(args.list_instance_types), supports_color())
        return 0

    if not args.configs:
        parser.error("at least one config file is required")

    if args.output and len(args.configs) > 1:
        parser.error("--output can only be used with a single config file")

    if args.stdout and args.output:
        parser.error("Cannot use --stdout with --output")

    success_count = 0
    fail_count = 0

    for config_path in args.configs:
        success = run_single_config(
            config_path,
            output_path=args.output,
            output_dir=args.output_dir,
            stdout=args.stdout,
            quiet=args.quiet,
            plot=args.plot,
            plot_save_path=args.plot_save,
        )
        if success:
            success_count += 1
        else:
            fail_count += 1

        if len(args.configs) > 1 and not args.stdout and not args.quiet:
            print("\n" + "=" * 60 + "\n")

    if len(args.configs) > 1 and not args.quiet:
        print(f"Completed: {success_count} succeeded, {fail_count} failed")

    return 0 if fail_count == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
