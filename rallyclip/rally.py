"""
Rally Classification Module

Turns a sequence of per-frame signals into rally intervals.
A rally runs from a stable pre-serve formation, through a burst of
high-energy play, until the players huddle or the energy stays low.
"""

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from .config import PaddingConfig, TuningConfig
from .frames import DiagnosticFrame, RallyState, SignalFrame

# Fraction of the stability window that must be covered before a ready test counts
READY_MIN_WINDOW_COVERAGE = 0.9


@dataclass(frozen=True)
class Interval:
    """A rally time range in source seconds."""

    start: float
    end: float

    @property
    def duration(self) -> float:
        """Duration in seconds."""
        return self.end - self.start

    @staticmethod
    def format_time(seconds: float) -> str:
        """Format seconds as MM:SS."""
        mins = int(seconds // 60)
        secs = int(seconds % 60)
        return f"{mins:02d}:{secs:02d}"

    @property
    def time_range(self) -> str:
        """Formatted time range string."""
        return f"{self.format_time(self.start)} - {self.format_time(self.end)}"

    def __str__(self) -> str:
        return f"Interval({self.time_range}, duration={self.duration:.1f}s)"


class GateState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"


class WarmupGate:
    """
    One-way latch that suppresses rally output during warmup.

    The gate opens the first time the players huddle, or when energy stays
    at or above the action threshold for long enough. Once open it never
    closes again for the rest of the run.
    """

    def __init__(self, tuning: TuningConfig):
        self.tuning = tuning
        self.state = GateState.CLOSED if tuning.enable_warmup_skipping else GateState.OPEN
        self.run_start: Optional[float] = None
        self.sustained_seconds = 0.0

    @property
    def is_open(self) -> bool:
        return self.state is GateState.OPEN

    def update(self, frame: SignalFrame, delta: float, clustered: bool):
        if self.is_open:
            return

        if frame.energy >= self.tuning.action_energy_threshold:
            if self.run_start is None:
                self.run_start = frame.timestamp
                self.sustained_seconds = 0.0
            else:
                self.sustained_seconds += delta
        else:
            self.run_start = None
            self.sustained_seconds = 0.0

        if (
            clustered
            or self.sustained_seconds >= self.tuning.warmup_min_sustained_action_seconds
        ):
            self.state = GateState.OPEN


class StabilityWindow:
    """
    Trailing window of frames used for the ready-position test.

    Keeps running sums of the active counts so the variance is
    updated in constant time as frames enter and leave.
    """

    def __init__(self, window_seconds: float):
        self.window_seconds = window_seconds
        self.frames: deque[SignalFrame] = deque()
        self._count_sum = 0
        self._count_sq_sum = 0

    def push(self, frame: SignalFrame):
        """Add a frame and drop those older than the window."""
        self.frames.append(frame)
        self._count_sum += frame.active_count
        self._count_sq_sum += frame.active_count * frame.active_count

        while frame.timestamp - self.frames[0].timestamp > self.window_seconds:
            old = self.frames.popleft()
            self._count_sum -= old.active_count
            self._count_sq_sum -= old.active_count * old.active_count

    @property
    def span(self) -> float:
        if not self.frames:
            return 0.0
        return self.frames[-1].timestamp - self.frames[0].timestamp

    @property
    def count_variance(self) -> float:
        """Population variance of active_count across the window."""
        n = len(self.frames)
        if n == 0:
            return 0.0
        # Integer numerator keeps the result exact
        return (n * self._count_sq_sum - self._count_sum * self._count_sum) / (n * n)

    def is_ready_position(self, tuning: TuningConfig) -> bool:
        if not self.frames:
            return False
        latest = self.frames[-1]
        if latest.active_count <= 0:
            return False
        if self.span < self.window_seconds * READY_MIN_WINDOW_COVERAGE:
            return False
        if latest.energy > tuning.ready_max_energy:
            return False
        return self.count_variance < tuning.ready_active_count_variance_max


class RallyClassifier:
    """
    Classifies signal frames into rallies with a four-state machine.

    IDLE waits for a stable, low-energy formation (READY). READY turns into
    ACTION when energy crosses the action threshold, or falls back to IDLE
    when the formation breaks up or times out. ACTION ends on a huddle or
    after energy has stayed at walking level for the reset time; the rally
    is recorded and the machine passes through COOLDOWN back to IDLE.

    One instance covers one run. Frames can be fed one at a time with
    ``process_frame`` and the result collected with ``finish``, or the
    whole sequence handled with ``classify``.
    """

    def __init__(self, tuning: TuningConfig, padding: PaddingConfig):
        """
        Initialize the classifier.

        Args:
            tuning: Classifier thresholds and timers
            padding: Padding and minimum duration for output intervals
        """
        self.tuning = tuning
        self.padding = padding
        self.reset()

    def reset(self):
        """Reset internal state."""
        self.state = RallyState.IDLE
        self.gate = WarmupGate(self.tuning)
        self.window = StabilityWindow(self.tuning.ready_stability_window_seconds)

        self.ready_start: Optional[float] = None
        self.action_start: Optional[float] = None
        self.ready_seconds = 0.0
        self.low_energy_seconds = 0.0

        self.first_timestamp: Optional[float] = None
        self.last_timestamp: Optional[float] = None
        self.raw_intervals: list[Interval] = []
        self.diagnostics: list[DiagnosticFrame] = []

    def is_clustered(self, frame: SignalFrame) -> bool:
        return frame.clustering_score >= self.tuning.clustering_threshold

    def process_frame(self, frame: SignalFrame) -> DiagnosticFrame:
        """
        Process a single frame.

        Args:
            frame: Next frame, not earlier than the previous one

        Returns:
            Diagnostic record for this frame
        """
        tuning = self.tuning

        if self.first_timestamp is None:
            self.first_timestamp = frame.timestamp
            delta = 0.0
        else:
            delta = max(0.0, frame.timestamp - self.last_timestamp)
        self.last_timestamp = frame.timestamp

        self.window.push(frame)
        ready_pos = self.window.is_ready_position(tuning)
        clustered = self.is_clustered(frame)

        self.gate.update(frame, delta, clustered)

        if self.state is RallyState.IDLE:
            self.ready_seconds = 0.0
            self.low_energy_seconds = 0.0
            self.action_start = None
            if ready_pos:
                self.state = RallyState.READY
                self.ready_start = frame.timestamp

        elif self.state is RallyState.READY:
            self.ready_seconds += delta
            if frame.energy >= tuning.action_energy_threshold:
                self.state = RallyState.ACTION
                self.action_start = frame.timestamp
            elif not ready_pos or self.ready_seconds >= tuning.ready_timeout_seconds:
                self.state = RallyState.IDLE
                self.ready_start = None

        elif self.state is RallyState.ACTION:
            if self.action_start is None:
                self.action_start = frame.timestamp

            if frame.energy <= tuning.walking_energy_threshold:
                self.low_energy_seconds += delta
            else:
                self.low_energy_seconds = 0.0

            if clustered or self.low_energy_seconds >= tuning.reset_low_energy_seconds:
                self._end_rally(frame, clustered)
                self.state = RallyState.COOLDOWN

        elif self.state is RallyState.COOLDOWN:
            self.state = RallyState.IDLE
            self.ready_start = None
            self.action_start = None
            self.low_energy_seconds = 0.0
            self.ready_seconds = 0.0

        record = DiagnosticFrame(
            index=frame.index,
            timestamp=frame.timestamp,
            active_count=frame.active_count,
            energy=frame.energy,
            clustering_score=frame.clustering_score,
            is_clustered=clustered,
            is_ready_position=ready_pos,
            low_energy_seconds=self.low_energy_seconds,
            state=self.state,
        )
        self.diagnostics.append(record)
        return record

    def _end_rally(self, frame: SignalFrame, clustered: bool):
        """Record the rally that just stopped, unless still in warmup."""
        if clustered:
            end = frame.timestamp
        else:
            # Energy dropped reset_low_energy_seconds ago
            end = max(
                self.first_timestamp,
                frame.timestamp - self.tuning.reset_low_energy_seconds,
            )

        if self.ready_start is not None:
            start = self.ready_start
        elif self.action_start is not None:
            start = self.action_start
        else:
            start = frame.timestamp

        if self.gate.is_open:
            self.raw_intervals.append(Interval(start=start, end=end))

    def finish(self) -> list[Interval]:
        """
        Call when all frames have been processed.

        Returns:
            Padded, merged, disjoint intervals in time order
        """
        if len(self.diagnostics) < 2:
            return []

        return postprocess_intervals(
            self.raw_intervals,
            self.padding,
            self.first_timestamp,
            self.last_timestamp,
        )

    def classify(
        self, frames: Iterable[SignalFrame]
    ) -> tuple[list[Interval], list[DiagnosticFrame]]:
        """
        Classify a complete frame sequence from a fresh state.

        Args:
            frames: Frames in timestamp order

        Returns:
            (final_intervals, diagnostics), one diagnostic per frame
        """
        self.reset()

        for frame in frames:
            self.process_frame(frame)

        return self.finish(), list(self.diagnostics)


def classify(
    frames: Iterable[SignalFrame],
    tuning: TuningConfig,
    padding: PaddingConfig,
) -> tuple[list[Interval], list[DiagnosticFrame]]:
    """Classify frames into final rally intervals plus a per-frame trace."""
    return RallyClassifier(tuning, padding).classify(frames)


def filter_short_intervals(intervals: list[Interval], min_duration: float) -> list[Interval]:
    """Drop intervals shorter than min_duration."""
    return [i for i in intervals if i.end - i.start >= min_duration]


def pad_intervals(
    intervals: list[Interval],
    pre_padding: float,
    post_padding: float,
    sequence_start: float,
    sequence_end: float,
) -> list[Interval]:
    """
    Extend each interval by the padding, clamped to the sequence bounds.

    The padded end never precedes the padded start.
    """
    padded = []
    for interval in intervals:
        start = max(sequence_start, interval.start - pre_padding)
        end = min(sequence_end, max(start, interval.end + post_padding))
        padded.append(Interval(start=start, end=end))
    return padded


def merge_intervals(intervals: list[Interval]) -> list[Interval]:
    """
    Merge overlapping or touching intervals.

    Returns:
        Disjoint intervals sorted by start
    """
    if not intervals:
        return []

    ordered = sorted(intervals, key=lambda i: i.start)
    merged = []
    current = ordered[0]

    for next_interval in ordered[1:]:
        if next_interval.start <= current.end:
            current = Interval(start=current.start, end=max(current.end, next_interval.end))
        else:
            merged.append(current)
            current = next_interval

    merged.append(current)
    return merged


def postprocess_intervals(
    raw_intervals: list[Interval],
    padding: PaddingConfig,
    sequence_start: float,
    sequence_end: float,
) -> list[Interval]:
    """Filter, pad and merge raw rally intervals into output clips."""
    kept = filter_short_intervals(raw_intervals, padding.min_raw_duration)
    padded = pad_intervals(
        kept,
        padding.pre_padding,
        padding.post_padding,
        sequence_start,
        sequence_end,
    )
    return merge_intervals(padded)


def get_summary(intervals: list[Interval]) -> str:
    """Generate a summary of detected rallies."""
    if not intervals:
        return "No rallies detected."

    total_duration = sum(i.duration for i in intervals)
    avg_duration = total_duration / len(intervals)

    lines = [
        f"Detected {len(intervals)} rallies:",
        f"  Total highlight time: {total_duration:.1f}s",
        f"  Average rally duration: {avg_duration:.1f}s",
        "",
        "Rally breakdown:",
    ]

    for i, interval in enumerate(intervals, 1):
        lines.append(f"  {i}. {interval.time_range} ({interval.duration:.1f}s)")

    return "\n".join(lines)
