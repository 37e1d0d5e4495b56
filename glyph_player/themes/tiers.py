"""Loudness-tier visualizer: one effect per intensity tier."""

from collections.abc import Mapping, Sequence
from typing import Any

import numpy as np

from glyph_player.audio import (
    DEFAULT_TIER_THRESHOLDS,
    AudioData,
    IntensityTier,
    classify_intensity,
    weighted_intensity,
)
from glyph_player.frame import (
    CENTER,
    apply_mask,
    draw_circle,
    draw_dot,
    empty_frame,
    rotating_line_frame,
)
from glyph_player.state import PlayerState
from glyph_player.themes.base import (
    Theme,
    ThemeConfigError,
    brightness_setting,
    setting_float,
)

BASS_WEIGHT = 1.5
MID_WEIGHT = 1.0
TREBLE_WEIGHT = 0.8
IDLE_FRAMES = 12
SPIN_STEP_DEG = 15


class TierTheme(Theme):
    name = "tiers"
    description = "Switches effect as the music gets louder"

    def __init__(self, bass_boost: float = 1.2,
                 thresholds: Sequence[float] = DEFAULT_TIER_THRESHOLDS,
                 brightness: int = 255):
        if len(thresholds) != len(IntensityTier) - 1:
            raise ThemeConfigError(
                f"Need {len(IntensityTier) - 1} tier thresholds, got {len(thresholds)}"
            )
        if list(thresholds) != sorted(thresholds) or not all(0 < t < 1 for t in thresholds):
            raise ThemeConfigError(f"Tier thresholds must be ascending in (0, 1): {thresholds}")
        super().__init__(
            animation_speed=100,
            brightness=brightness,
            state_frames={PlayerState.OFFLINE: rotating_line_frame(0, 4, 50)},
        )
        self.bass_boost = bass_boost
        self.thresholds = tuple(thresholds)
        self.last_tier = IntensityTier.QUIET

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any]) -> "TierTheme":
        return cls(
            bass_boost=setting_float(settings, "bass_boost", 1.2, 0.5, 3.0),
            brightness=brightness_setting(settings),
        )

    @property
    def frame_count(self) -> int:
        return IDLE_FRAMES

    def generate_frame(self, index: int) -> np.ndarray:
        return apply_mask(rotating_line_frame(index * 180 / IDLE_FRAMES, 8, 160))

    def as_audio_reactive(self) -> "TierTheme":
        return self

    def tier(self, audio: AudioData) -> IntensityTier:
        intensity = weighted_intensity(
            audio, BASS_WEIGHT * self.bass_boost, MID_WEIGHT, TREBLE_WEIGHT
        )
        return IntensityTier(classify_intensity(intensity, self.thresholds))

    def generate_audio_frame(self, index: int, audio: AudioData) -> np.ndarray:
        tier = self.tier(audio)
        self.last_tier = tier

        if tier is IntensityTier.QUIET:
            frame = empty_frame()
            draw_dot(frame, CENTER, CENTER, 1, 80)
        elif tier is IntensityTier.MODERATE:
            frame = empty_frame()
            draw_dot(frame, CENTER, CENTER, 1, 160)
            draw_circle(frame, CENTER, CENTER, 4, 140)
        elif tier is IntensityTier.ENERGETIC:
            frame = empty_frame()
            draw_circle(frame, CENTER, CENTER, 4, 200)
            draw_circle(frame, CENTER, CENTER, 8, 140)
        elif tier is IntensityTier.LOUD:
            frame = rotating_line_frame(index * SPIN_STEP_DEG, 10, 255)
            draw_circle(frame, CENTER, CENTER, 8, 200)
        else:
            frame = empty_frame()
            draw_dot(frame, CENTER, CENTER, 10, 255)
            draw_circle(frame, CENTER, CENTER, 12, 180)
        return apply_mask(frame)
