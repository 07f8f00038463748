"""
Classification Statistics Module

Summarizes a classifier run from its diagnostic trace: how long each state
was occupied, how often the machine switched, why rallies stopped, and how
the input signals were distributed per state.
"""

from dataclasses import asdict, dataclass, field
from typing import Optional

import numpy as np

from .frames import DiagnosticFrame, RallyState
from .rally import Interval

# Inter-frame gaps outside (0, MAX_FRAME_DELTA) are ignored for the median
MAX_FRAME_DELTA = 1.0
HIGH_VALUE_THRESHOLD = 0.95


@dataclass(frozen=True)
class Percentiles:
    p10: float = 0.0
    p50: float = 0.0
    p90: float = 0.0
    mean: float = 0.0
    max: float = 0.0
    fraction_ge_95: float = 0.0


@dataclass
class StateStats:
    """Read-only summary of one classification run."""

    frame_count: int = 0
    frame_counts: dict[str, int] = field(default_factory=dict)
    seconds_by_state: dict[str, float] = field(default_factory=dict)
    transition_count: int = 0
    cooldown_trigger_count: int = 0
    cooldown_reason_counts: dict[str, int] = field(default_factory=dict)
    action_segment_count: int = 0
    action_segment_duration_s: Percentiles = field(default_factory=Percentiles)
    action_segment_gap_s: Percentiles = field(default_factory=Percentiles)
    energy_overall: Percentiles = field(default_factory=Percentiles)
    energy_by_state: dict[str, Percentiles] = field(default_factory=dict)
    clustering_score_overall: Percentiles = field(default_factory=Percentiles)
    clustering_score_by_state: dict[str, Percentiles] = field(default_factory=dict)
    active_count_overall: Percentiles = field(default_factory=Percentiles)
    active_count_by_state: dict[str, Percentiles] = field(default_factory=dict)
    sequence_duration_s: float = 0.0
    covered_s: float = 0.0
    coverage_ratio: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


def percentiles(values: list[float]) -> Percentiles:
    """
    Nearest-rank style percentiles.

    The value for quantile q is ``sorted[floor((n - 1) * q)]``. Empty input
    gives all zeros.
    """
    if len(values) == 0:
        return Percentiles()

    ordered = np.sort(np.asarray(values, dtype=np.float64))
    n = len(ordered)

    def at(q: float) -> float:
        idx = int((n - 1) * q)
        return float(ordered[max(0, min(n - 1, idx))])

    return Percentiles(
        p10=at(0.10),
        p50=at(0.50),
        p90=at(0.90),
        mean=float(np.mean(ordered)),
        max=float(ordered[-1]),
        fraction_ge_95=float(np.count_nonzero(ordered >= HIGH_VALUE_THRESHOLD)) / n,
    )


def median_frame_delta(diagnostics: list[DiagnosticFrame]) -> float:
    """
    Typical time between frames.

    Only gaps strictly between 0 and one second count, so duplicated or
    dropped frames do not skew it. Needs at least three frames; returns 0
    otherwise.
    """
    if len(diagnostics) < 3:
        return 0.0

    timestamps = np.array([d.timestamp for d in diagnostics], dtype=np.float64)
    deltas = np.diff(timestamps)
    deltas = np.sort(deltas[(deltas > 0) & (deltas < MAX_FRAME_DELTA)])
    if len(deltas) == 0:
        return 0.0
    return float(deltas[len(deltas) // 2])


def action_segments(
    diagnostics: list[DiagnosticFrame],
) -> tuple[list[float], list[float]]:
    """
    Find contiguous ACTION runs.

    A run starts at its first ACTION frame and ends at the next
    non-ACTION frame, or at the last frame if the trace ends mid-run.

    Returns:
        (durations, gaps between consecutive runs)
    """
    if len(diagnostics) < 2:
        return [], []

    segments = []
    start: Optional[float] = None
    for row in diagnostics:
        if row.state is RallyState.ACTION:
            if start is None:
                start = row.timestamp
        elif start is not None:
            segments.append((start, row.timestamp))
            start = None
    if start is not None:
        segments.append((start, diagnostics[-1].timestamp))

    durations = [max(0.0, end - begin) for begin, end in segments]
    gaps = [
        max(0.0, segments[i + 1][0] - segments[i][1])
        for i in range(len(segments) - 1)
    ]
    return durations, gaps


def coverage_seconds(intervals: list[Interval]) -> float:
    """Total length of the union of the intervals."""
    if not intervals:
        return 0.0

    ordered = sorted(intervals, key=lambda i: i.start)
    total = 0.0
    cur_start, cur_end = ordered[0].start, ordered[0].end
    for interval in ordered[1:]:
        if interval.start <= cur_end:
            cur_end = max(cur_end, interval.end)
        else:
            total += max(0.0, cur_end - cur_start)
            cur_start, cur_end = interval.start, interval.end
    total += max(0.0, cur_end - cur_start)
    return total


def compute_state_stats(
    diagnostics: list[DiagnosticFrame],
    intervals: Optional[list[Interval]] = None,
) -> StateStats:
    """
    Summarize a diagnostic trace.

    Args:
        diagnostics: Full per-frame classifier trace
        intervals: Final intervals, used for coverage

    Returns:
        StateStats for the run
    """
    states = [s.value for s in RallyState]
    frame_counts = {s: 0 for s in states}
    energy_by_state: dict[str, list[float]] = {s: [] for s in states}
    clustering_by_state: dict[str, list[float]] = {s: [] for s in states}
    active_by_state: dict[str, list[float]] = {s: [] for s in states}

    for row in diagnostics:
        state = row.state.value
        frame_counts[state] += 1
        energy_by_state[state].append(row.energy)
        clustering_by_state[state].append(row.clustering_score)
        active_by_state[state].append(float(row.active_count))

    dt = median_frame_delta(diagnostics)
    seconds_by_state = {s: count * dt for s, count in frame_counts.items()}

    transition_count = sum(
        1
        for prev, row in zip(diagnostics, diagnostics[1:])
        if row.state is not prev.state
    )

    cooldowns = [d for d in diagnostics if d.state is RallyState.COOLDOWN]
    clustering_stops = sum(1 for d in cooldowns if d.is_clustered)
    cooldown_reason_counts = {
        "clustering": clustering_stops,
        "energy": len(cooldowns) - clustering_stops,
    }

    durations, gaps = action_segments(diagnostics)

    if diagnostics:
        duration = diagnostics[-1].timestamp - diagnostics[0].timestamp
    else:
        duration = 0.0
    covered = coverage_seconds(intervals or [])
    coverage_ratio = covered / duration if duration > 0 else 0.0

    return StateStats(
        frame_count=len(diagnostics),
        frame_counts=frame_counts,
        seconds_by_state=seconds_by_state,
        transition_count=transition_count,
        cooldown_trigger_count=len(cooldowns),
        cooldown_reason_counts=cooldown_reason_counts,
        action_segment_count=len(durations),
        action_segment_duration_s=percentiles(durations),
        action_segment_gap_s=percentiles(gaps),
        energy_overall=percentiles([d.energy for d in diagnostics]),
        energy_by_state={s: percentiles(v) for s, v in energy_by_state.items()},
        clustering_score_overall=percentiles([d.clustering_score for d in diagnostics]),
        clustering_score_by_state={
            s: percentiles(v) for s, v in clustering_by_state.items()
        },
        active_count_overall=percentiles([float(d.active_count) for d in diagnostics]),
        active_count_by_state={s: percentiles(v) for s, v in active_by_state.items()},
        sequence_duration_s=duration,
        covered_s=covered,
        coverage_ratio=min(1.0, coverage_ratio),
    )


def format_stats(stats: StateStats) -> str:
    """Human-readable report of a StateStats summary."""
    lines = [
        f"Frames: {stats.frame_count} over {stats.sequence_duration_s:.1f}s",
        f"Coverage: {stats.covered_s:.1f}s ({stats.coverage_ratio * 100:.1f}%)",
        f"Transitions: {stats.transition_count}",
        (
            f"Rally stops: {stats.cooldown_trigger_count} "
            f"(clustering={stats.cooldown_reason_counts.get('clustering', 0)}, "
            f"energy={stats.cooldown_reason_counts.get('energy', 0)})"
        ),
        "",
        "State occupancy:",
    ]

    for state, count in stats.frame_counts.items():
        energy = stats.energy_by_state[state]
        lines.append(
            f"  {state:<9} {count:>6} frames  {stats.seconds_by_state[state]:>7.1f}s  "
            f"energy p50={energy.p50:.2f} p90={energy.p90:.2f}"
        )

    seg = stats.action_segment_duration_s
    lines.extend(
        [
            "",
            f"Action segments: {stats.action_segment_count} "
            f"(p10={seg.p10:.1f}s p50={seg.p50:.1f}s p90={seg.p90:.1f}s max={seg.max:.1f}s)",
        ]
    )
    return "\n".join(lines)
