import pytest

from rallyclip.config import PaddingConfig, TuningConfig
from rallyclip.frames import make_frames


def build_segments(segments, step=0.5):
    """Frames from (active_count, energy, clustering_score, seconds) blocks."""
    rows = []
    t = 0.0
    for count, energy, score, seconds in segments:
        local = 0.0
        while local < seconds:
            rows.append((t, count, energy, score))
            t += step
            local += step
    return make_frames(rows)


@pytest.fixture
def segment_frames():
    return build_segments


@pytest.fixture
def reset_stop_frames():
    return make_frames([
        # idle / warmup
        (0.0, 5, 0.35, 2),
        (0.5, 6, 0.30, 2),
        (1.0, 5, 0.25, 2),
        (1.5, 6, 0.30, 2),
        # ready (stable, low energy)
        (2.0, 6, 0.10, 2),
        (2.5, 6, 0.09, 2),
        (3.0, 6, 0.10, 2),
        (3.5, 6, 0.11, 2),
        # action
        (4.0, 6, 0.80, 2),
        (4.5, 6, 0.75, 2),
        (5.0, 6, 0.70, 2),
        (5.5, 6, 0.78, 2),
        (6.0, 6, 0.82, 2),
        (6.5, 6, 0.74, 2),
        (7.0, 6, 0.79, 2),
        (7.5, 6, 0.73, 2),
        # low energy for 2s => stop
        (8.0, 6, 0.10, 2),
        (8.5, 6, 0.10, 2),
        (9.0, 6, 0.10, 2),
        (9.5, 6, 0.10, 2),
        (10.0, 6, 0.10, 2),
        (11.0, 6, 0.10, 2),
    ])


@pytest.fixture
def clustering_stop_frames():
    return make_frames([
        (0.0, 2, 0.30, 2),
        (0.5, 2, 0.28, 2),
        (1.0, 2, 0.22, 2),
        (1.5, 2, 0.25, 2),
        (2.0, 2, 0.10, 2),
        (2.5, 2, 0.10, 2),
        (3.0, 2, 0.10, 2),
        (3.5, 2, 0.10, 2),
        (4.0, 2, 0.80, 2),
        (4.5, 2, 0.78, 2),
        (5.0, 2, 0.82, 2),
        (5.5, 2, 0.76, 2),
        (6.0, 2, 0.81, 2),
        (6.5, 2, 0.74, 2),
        (7.0, 2, 0.79, 2),
        (7.5, 2, 0.77, 2),
        # huddle spike
        (8.0, 2, 0.30, 30),
        (8.5, 2, 0.25, 30),
        (9.0, 2, 0.22, 30),
    ])


@pytest.fixture
def two_rally_frames():
    return build_segments([
        (6, 0.30, 2, 2.0),  # idle
        (6, 0.10, 2, 2.0),  # ready
        (6, 0.80, 2, 4.0),  # action
        (6, 0.10, 2, 2.5),  # reset stop
        (6, 0.30, 2, 1.0),  # short gap
        (6, 0.10, 2, 2.0),  # ready
        (6, 0.80, 2, 3.0),  # action
        (6, 0.10, 2, 2.5),  # reset stop
    ])


@pytest.fixture
def warmup_frames():
    return make_frames([
        (0.0, 6, 0.10, 2),
        (0.5, 6, 0.10, 2),
        (1.0, 6, 0.10, 2),
        (1.5, 6, 0.10, 2),
        # short burst
        (2.0, 6, 0.80, 2),
        (2.5, 6, 0.80, 2),
        (3.0, 6, 0.10, 2),
        (3.5, 6, 0.10, 2),
        (4.0, 6, 0.10, 2),
        (5.0, 6, 0.10, 2),
        (5.5, 6, 0.10, 2),
        (6.0, 6, 0.10, 2),
        (6.5, 6, 0.10, 2),
        # sustained action opens the gate
        (7.0, 6, 0.80, 2),
        (7.5, 6, 0.80, 2),
        (8.0, 6, 0.80, 2),
        (8.5, 6, 0.80, 2),
        (9.0, 6, 0.80, 2),
        (9.5, 6, 0.80, 2),
        (10.0, 6, 0.10, 2),
        (10.5, 6, 0.10, 2),
        (11.0, 6, 0.10, 2),
        (11.5, 6, 0.10, 2),
    ])


@pytest.fixture
def no_warmup_tuning():
    return TuningConfig(enable_warmup_skipping=False)


@pytest.fixture
def padding():
    return PaddingConfig(pre_padding=2.0, post_padding=3.0, min_raw_duration=3.0)
