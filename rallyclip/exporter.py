"""
Diagnostics Export Module

Writes the result of a classification run to a folder of JSON and CSV
files, so thresholds can be tuned offline against the per-frame trace.
"""

import csv
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .config import GameFormat, PaddingConfig, TuningConfig
from .frames import FRAME_FIELDS, DiagnosticFrame, SignalFrame
from .rally import Interval
from .stats import StateStats, compute_state_stats

SCHEMA_VERSION = 3

CLIP_FIELDS = ["start_s", "end_s", "duration_s"]
DEBUG_FIELDS = [
    "index",
    "timestamp",
    "state",
    "is_ready_position",
    "is_clustered",
    "low_energy_seconds",
    "active_count",
    "energy",
    "clustering_score",
]
TRANSITION_FIELDS = [
    "timestamp",
    "from_state",
    "to_state",
    "active_count",
    "energy",
    "clustering_score",
    "is_ready_position",
    "is_clustered",
    "low_energy_seconds",
]


class DiagnosticsExporter:
    """
    Exports a classifier run as a diagnostics folder.

    The folder is named ``<source>_diagnostics_<UTC timestamp>`` and holds:

    - summary.json: configs, predicted clips, coverage and state stats
    - predicted_clips.csv: final intervals
    - transitions.csv: one row per state change
    - frames.csv: the input signal frames (optional)
    - debug.csv: the full diagnostic trace (optional)
    """

    def __init__(
        self,
        output_dir: str = "diagnostics",
        export_frames: bool = True,
        export_debug: bool = True,
    ):
        """
        Initialize the exporter.

        Args:
            output_dir: Directory the run folder is created in
            export_frames: Whether to write frames.csv
            export_debug: Whether to write debug.csv
        """
        self.output_dir = Path(output_dir)
        self.export_frames = export_frames
        self.export_debug = export_debug

    def export(
        self,
        source: str,
        game_format: GameFormat,
        padding: PaddingConfig,
        tuning: TuningConfig,
        frames: list[SignalFrame],
        diagnostics: list[DiagnosticFrame],
        intervals: list[Interval],
        stats: Optional[StateStats] = None,
        created_at: Optional[datetime] = None,
    ) -> Path:
        """
        Export one run.

        Args:
            source: Name or path of the analysed input
            game_format: Format whose preset the tuning started from
            padding: Padding config used for the run
            tuning: Tuning config used for the run
            frames: Input signal frames
            diagnostics: Classifier trace for the frames
            intervals: Final intervals
            stats: Precomputed stats (computed here when None)
            created_at: Run time, defaults to now (UTC)

        Returns:
            Path to the created run folder
        """
        if not frames:
            raise ValueError("No frames to export")

        created_at = created_at or datetime.now(timezone.utc)
        if stats is None:
            stats = compute_state_stats(diagnostics, intervals)

        base = Path(source).stem or "run"
        run_dir = self._create_run_dir(
            f"{base}_diagnostics_{created_at.strftime('%Y%m%d-%H%M%S')}"
        )

        print(f"\nExporting diagnostics to {run_dir}/...")

        summary = {
            "schema": SCHEMA_VERSION,
            "created_at": created_at.isoformat(),
            "source_file": Path(source).name,
            "source_path": str(source),
            "format": game_format.value,
            "padding_config": padding.to_dict(),
            "tuning_config": tuning.to_dict(),
            "predicted_clips": [self._clip_row(i) for i in intervals],
            "sequence_duration_s": stats.sequence_duration_s,
            "predicted_coverage_s": stats.covered_s,
            "predicted_coverage_ratio": stats.coverage_ratio,
            "frame_count": len(frames),
            "debug_frame_count": len(diagnostics),
            "state_stats": stats.to_dict(),
        }

        with open(run_dir / "summary.json", "w") as f:
            json.dump(summary, f, indent=2, sort_keys=True)

        self._write_csv(
            run_dir / "predicted_clips.csv",
            CLIP_FIELDS,
            [self._clip_row(i) for i in intervals],
        )
        self._write_csv(
            run_dir / "transitions.csv",
            TRANSITION_FIELDS,
            self._transition_rows(diagnostics),
        )

        if self.export_frames:
            self._write_csv(
                run_dir / "frames.csv",
                FRAME_FIELDS,
                [
                    {name: getattr(frame, name) for name in FRAME_FIELDS}
                    for frame in frames
                ],
            )
        if self.export_debug:
            self._write_csv(
                run_dir / "debug.csv",
                DEBUG_FIELDS,
                [self._debug_row(d) for d in diagnostics],
            )

        print(f"  Clips: {len(intervals)}")
        print(f"  Coverage: {stats.covered_s:.1f}s of {stats.sequence_duration_s:.1f}s")
        return run_dir

    def _create_run_dir(self, name: str) -> Path:
        """Create a fresh run folder, suffixing _2, _3, ... if the name is taken."""
        self.output_dir.mkdir(parents=True, exist_ok=True)

        run_dir = self.output_dir / name
        attempt = 1
        while True:
            try:
                run_dir.mkdir()
                return run_dir
            except FileExistsError:
                attempt += 1
                run_dir = self.output_dir / f"{name}_{attempt}"

    @staticmethod
    def _clip_row(interval: Interval) -> dict:
        return {
            "start_s": interval.start,
            "end_s": interval.end,
            "duration_s": interval.duration,
        }

    @staticmethod
    def _debug_row(row: DiagnosticFrame) -> dict:
        return {
            "index": row.index,
            "timestamp": row.timestamp,
            "state": row.state.value,
            "is_ready_position": row.is_ready_position,
            "is_clustered": row.is_clustered,
            "low_energy_seconds": row.low_energy_seconds,
            "active_count": row.active_count,
            "energy": row.energy,
            "clustering_score": row.clustering_score,
        }

    @staticmethod
    def _transition_rows(diagnostics: list[DiagnosticFrame]) -> list[dict]:
        rows = []
        for prev, row in zip(diagnostics, diagnostics[1:]):
            if row.state is prev.state:
                continue
            rows.append(
                {
                    "timestamp": row.timestamp,
                    "from_state": prev.state.value,
                    "to_state": row.state.value,
                    "active_count": row.active_count,
                    "energy": row.energy,
                    "clustering_score": row.clustering_score,
                    "is_ready_position": row.is_ready_position,
                    "is_clustered": row.is_clustered,
                    "low_energy_seconds": row.low_energy_seconds,
                }
            )
        return rows

    @staticmethod
    def _write_csv(path: Path, fieldnames: list[str], rows: list[dict]):
        with open(path, "w", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=fieldnames)
            writer.writeheader()
            writer.writerows(rows)
