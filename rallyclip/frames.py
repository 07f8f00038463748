"""
Signal Frame Module

Per-frame signal samples produced by the perception step, and the
diagnostic records the rally classifier emits for each of them.
"""

import csv
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

FRAME_FIELDS = ["index", "timestamp", "active_count", "energy", "clustering_score"]


class RallyState(str, Enum):
    """Classifier state recorded for every frame."""

    IDLE = "IDLE"
    READY = "READY"
    ACTION = "ACTION"
    COOLDOWN = "COOLDOWN"


@dataclass(frozen=True)
class SignalFrame:
    """One timestamped sample of aggregate motion signals."""

    index: int
    timestamp: float  # Seconds since start of source media
    active_count: int  # Visible entities passing the size filter
    energy: float  # Normalized motion intensity (0-1)
    clustering_score: float  # Inverse spatial spread, large when huddled


@dataclass(frozen=True)
class DiagnosticFrame:
    """Classifier trace for a single input frame."""

    index: int
    timestamp: float
    active_count: int
    energy: float
    clustering_score: float
    is_clustered: bool
    is_ready_position: bool
    low_energy_seconds: float
    state: RallyState


def make_frames(rows: list[tuple[float, int, float, float]]) -> list[SignalFrame]:
    """
    Build a frame sequence from (timestamp, active_count, energy, clustering_score) rows.

    Frames are indexed by their position in the list.
    """
    return [
        SignalFrame(
            index=i,
            timestamp=float(t),
            active_count=int(count),
            energy=float(energy),
            clustering_score=float(score),
        )
        for i, (t, count, energy, score) in enumerate(rows)
    ]


def load_frames(csv_path: str) -> list[SignalFrame]:
    """
    Load signal frames from a CSV file.

    The file must have the header
    ``index,timestamp,active_count,energy,clustering_score``; this is the
    same layout the diagnostics exporter writes to ``frames.csv``.

    Args:
        csv_path: Path to the frames CSV

    Returns:
        Frames in file order

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: On a missing column, an unparsable row, or a
            timestamp that goes backwards
    """
    path = Path(csv_path)
    if not path.exists():
        raise FileNotFoundError(f"Frames file not found: {csv_path}")

    frames = []
    with open(path, newline="") as f:
        reader = csv.DictReader(f)
        missing = [name for name in FRAME_FIELDS if name not in (reader.fieldnames or [])]
        if missing:
            raise ValueError(f"{path.name}: missing columns {', '.join(missing)}")

        for line_no, row in enumerate(reader, start=2):
            try:
                frame = SignalFrame(
                    index=int(row["index"]),
                    timestamp=float(row["timestamp"]),
                    active_count=int(row["active_count"]),
                    energy=float(row["energy"]),
                    clustering_score=float(row["clustering_score"]),
                )
            except (TypeError, ValueError) as e:
                raise ValueError(f"{path.name}:{line_no}: bad frame row ({e})") from e

            if frames and frame.timestamp < frames[-1].timestamp:
                raise ValueError(
                    f"{path.name}:{line_no}: timestamp {frame.timestamp} "
                    f"precedes {frames[-1].timestamp}"
                )
            frames.append(frame)

    return frames
