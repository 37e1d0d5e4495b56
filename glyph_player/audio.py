"""Audio feature fusion: intensity, tiers, beat detection and easing."""

import math
from collections import deque
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import IntEnum

DEFAULT_TIER_THRESHOLDS = (0.15, 0.4, 0.7, 0.85)

BEAT_HISTORY_SIZE = 8
MIN_BEAT_HISTORY = 4
BEAT_THRESHOLD = 0.7
BEAT_RELATIVE_MULTIPLIER = 1.3

EASING_TYPES = ("linear", "cubic", "elastic")
ELASTIC_PERIOD = 0.3


@dataclass(frozen=True)
class AudioData:
    """One sample of audio features, every level normalized to 0..1."""

    beat_intensity: float = 0.0
    bass_level: float = 0.0
    mid_level: float = 0.0
    treble_level: float = 0.0
    is_playing: bool = False

    @classmethod
    def silent(cls) -> "AudioData":
        return cls()


class IntensityTier(IntEnum):
    QUIET = 0
    MODERATE = 1
    ENERGETIC = 2
    LOUD = 3
    VERY_LOUD = 4


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def weighted_intensity(data: AudioData, bass_weight: float, mid_weight: float,
                       treble_weight: float, beat_weight: float = 1.0) -> float:
    """Weighted mean of the four features, clamped to 0..1."""
    total = beat_weight + bass_weight + mid_weight + treble_weight
    if total <= 0:
        raise ValueError(f"Feature weights must sum to a positive value, got {total}")
    weighted = (
        data.beat_intensity * beat_weight
        + data.bass_level * bass_weight
        + data.mid_level * mid_weight
        + data.treble_level * treble_weight
    )
    return _clamp01(weighted / total)


def classify_intensity(value: float,
                       thresholds: Sequence[float] = DEFAULT_TIER_THRESHOLDS) -> int:
    """Index of the first threshold strictly above value, or len(thresholds)."""
    for i, threshold in enumerate(thresholds):
        if value < threshold:
            return i
    return len(thresholds)


def detect_beat(history: Iterable[float], current: float,
                static_threshold: float = BEAT_THRESHOLD,
                relative_multiplier: float = BEAT_RELATIVE_MULTIPLIER) -> bool:
    """True when current beats both a fixed threshold and the recent average.

    Needs at least MIN_BEAT_HISTORY samples of history.
    """
    samples = list(history)
    if len(samples) < MIN_BEAT_HISTORY:
        return False
    average = sum(samples) / len(samples)
    return current > static_threshold and current > average * relative_multiplier


class BeatDetector:
    """Rolling beat detector; each theme instance owns its own history."""

    def __init__(self, static_threshold: float = BEAT_THRESHOLD,
                 relative_multiplier: float = BEAT_RELATIVE_MULTIPLIER,
                 history_size: int = BEAT_HISTORY_SIZE):
        self.static_threshold = static_threshold
        self.relative_multiplier = relative_multiplier
        self.history: deque[float] = deque(maxlen=history_size)

    def update(self, intensity: float) -> bool:
        """Test intensity against the history collected so far, then record it."""
        beat = detect_beat(self.history, intensity,
                           self.static_threshold, self.relative_multiplier)
        self.history.append(intensity)
        return beat

    def clear(self) -> None:
        self.history.clear()


def ease_linear(t: float) -> float:
    return t


def ease_cubic(t: float) -> float:
    if t < 0.5:
        return 4 * t ** 3
    return 1 - (-2 * t + 2) ** 3 / 2


def ease_elastic(t: float, period: float = ELASTIC_PERIOD) -> float:
    if t <= 0.0 or t >= 1.0:
        return t
    s = period / 4
    return 2 ** (-10 * t) * math.sin((t - s) * (2 * math.pi) / period) + 1


def ease(current: float, target: float, t: float, kind: str = "linear",
         period: float = ELASTIC_PERIOD) -> float:
    """Move from current toward target by eased progress t (clamped to 0..1)."""
    t = _clamp01(t)
    if kind == "cubic":
        progress = ease_cubic(t)
    elif kind == "elastic":
        progress = ease_elastic(t, period)
    elif kind == "linear":
        progress = t
    else:
        raise ValueError(f"Unknown easing type: {kind!r}")
    return current + (target - current) * progress
