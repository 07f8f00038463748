#!/usr/bin/env python3
"""
RallyClip - Main Entry Point

Rally classification from per-frame motion signals.

Usage:
    python main.py <command> <frames.csv> [options]

Examples:
    # Print the detected rally intervals
    python main.py classify match_beach_frames.csv

    # Print state statistics for the run
    python main.py stats match_beach_frames.csv --no-warmup

    # Write a diagnostics folder (summary.json + CSV traces)
    python main.py export match_beach_frames.csv -o diagnostics

    # Re-classify with several action thresholds
    python main.py sweep match_beach_frames.csv --values 0.5 0.55 0.6
"""

import argparse
import sys
from dataclasses import replace
from pathlib import Path

from rallyclip.config import build_configs, load_config
from rallyclip.exporter import DiagnosticsExporter
from rallyclip.frames import load_frames
from rallyclip.rally import classify, get_summary
from rallyclip.stats import compute_state_stats, coverage_seconds, format_stats
from tqdm import tqdm


def prepare_run(args):
    """Load frames and configs, applying command line overrides."""
    config = load_config(args.config)
    if args.format:
        config["format"] = args.format

    game_format, padding, tuning = build_configs(config, filename=args.frames)

    if args.pre_padding is not None:
        padding = replace(padding, pre_padding=args.pre_padding)
    if args.post_padding is not None:
        padding = replace(padding, post_padding=args.post_padding)
    if args.min_duration is not None:
        padding = replace(padding, min_raw_duration=args.min_duration)
    if args.no_warmup:
        tuning = replace(tuning, enable_warmup_skipping=False)

    padding.validate()
    tuning.validate()

    frames = load_frames(args.frames)
    return frames, game_format, padding, tuning


def print_header(title: str):
    print(f"\n{'=' * 60}")
    print(title)
    print(f"{'=' * 60}\n")


def classify_frames(args):
    """Classify and print the final rally intervals."""
    frames, game_format, padding, tuning = prepare_run(args)

    print_header("RALLY CLASSIFICATION")
    print(f"Frames: {args.frames} ({len(frames)} frames)")
    print(f"Format: {game_format.display_name}")

    intervals, _ = classify(frames, tuning, padding)

    print()
    print(get_summary(intervals))
    print(f"{'=' * 60}\n")
    return intervals


def show_stats(args):
    """Classify and print the state statistics."""
    frames, game_format, padding, tuning = prepare_run(args)

    print_header("CLASSIFICATION STATISTICS")
    print(f"Frames: {args.frames}")
    print(f"Format: {game_format.display_name}\n")

    intervals, diagnostics = classify(frames, tuning, padding)
    stats = compute_state_stats(diagnostics, intervals)

    print(format_stats(stats))
    print(f"{'=' * 60}\n")
    return stats


def export_diagnostics(args):
    """Classify and write the diagnostics folder."""
    frames, game_format, padding, tuning = prepare_run(args)

    print_header("DIAGNOSTICS EXPORT")

    intervals, diagnostics = classify(frames, tuning, padding)

    exporter = DiagnosticsExporter(
        output_dir=args.output,
        export_frames=not args.skip_frames,
        export_debug=not args.skip_debug,
    )
    run_dir = exporter.export(
        source=args.frames,
        game_format=game_format,
        padding=padding,
        tuning=tuning,
        frames=frames,
        diagnostics=diagnostics,
        intervals=intervals,
    )

    print(f"\nDiagnostics saved: {run_dir}")
    return run_dir


def sweep_thresholds(args):
    """Re-classify the same frames across action energy thresholds."""
    frames, game_format, padding, tuning = prepare_run(args)

    print_header("ACTION THRESHOLD SWEEP")
    print(f"Frames: {args.frames} ({len(frames)} frames)\n")

    results = []
    for value in tqdm(args.values, desc="Sweeping"):
        candidate = replace(tuning, action_energy_threshold=value)
        candidate.validate()
        intervals, _ = classify(frames, candidate, padding)
        results.append((value, len(intervals), coverage_seconds(intervals)))

    print(f"\n{'threshold':>10} {'rallies':>8} {'covered':>9}")
    for value, count, covered in results:
        print(f"{value:>10.2f} {count:>8d} {covered:>8.1f}s")
    print(f"{'=' * 60}\n")
    return results


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="RallyClip - Rally classification from motion signals",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py classify frames.csv          Print detected rallies
  python main.py stats frames.csv             Print state statistics
  python main.py export frames.csv -o out     Write diagnostics folder
  python main.py sweep frames.csv             Compare action thresholds
        """,
    )

    parser.add_argument(
        "command",
        choices=["classify", "stats", "export", "sweep"],
        help="Command to run",
    )
    parser.add_argument(
        "frames",
        help="Path to signal frames CSV",
    )
    parser.add_argument(
        "-c",
        "--config",
        default="config/settings.yaml",
        help="Path to configuration file",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=["auto", "beach", "grass", "indoor"],
        help="Game format preset (overrides config)",
    )
    parser.add_argument("--pre-padding", type=float, help="Seconds before each rally")
    parser.add_argument("--post-padding", type=float, help="Seconds after each rally")
    parser.add_argument(
        "--min-duration",
        type=float,
        help="Drop raw rallies shorter than this (seconds)",
    )
    parser.add_argument(
        "--no-warmup",
        action="store_true",
        help="Disable warmup skipping",
    )
    parser.add_argument(
        "-o",
        "--output",
        default="diagnostics",
        help="Output directory (for export command)",
    )
    parser.add_argument(
        "--skip-frames",
        action="store_true",
        help="Do not write frames.csv (for export command)",
    )
    parser.add_argument(
        "--skip-debug",
        action="store_true",
        help="Do not write debug.csv (for export command)",
    )
    parser.add_argument(
        "--values",
        type=float,
        nargs="+",
        default=[0.45, 0.50, 0.55, 0.60, 0.65],
        help="Action energy thresholds to try (for sweep command)",
    )

    args = parser.parse_args(argv)

    # Check frames file exists
    if not Path(args.frames).exists():
        print(f"Error: Frames file not found: {args.frames}")
        sys.exit(1)

    try:
        if args.command == "classify":
            classify_frames(args)

        elif args.command == "stats":
            show_stats(args)

        elif args.command == "export":
            export_diagnostics(args)

        elif args.command == "sweep":
            sweep_thresholds(args)

    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
