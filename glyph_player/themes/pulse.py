"""Audio-reactive pulse: a sphere that swells with the bass and throws rings on beats."""

import math
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

import numpy as np

from glyph_player.audio import (
    EASING_TYPES,
    AudioData,
    BeatDetector,
    ease,
    weighted_intensity,
)
from glyph_player.frame import (
    CENTER,
    apply_mask,
    draw_circle,
    draw_dot,
    empty_frame,
    pulse_frame,
    set_pixel,
)
from glyph_player.state import PlayerState
from glyph_player.themes.base import (
    Theme,
    ThemeConfigError,
    brightness_setting,
    setting_bool,
    setting_choice,
    setting_float,
)

BEAT_WEIGHT = 1.2
BASS_WEIGHT = 2.0
MID_WEIGHT = 1.0
TREBLE_WEIGHT = 0.5

EASE_FACTOR = 0.12
BEAT_BOOST = 1.3
PARTICLE_THRESHOLD = 0.85
STRONG_BASS = 0.7

STYLES = ("sphere", "burst")
SCALE_RANGES = {"sphere": (0.5, 1.2), "burst": (0.3, 2.5)}
BASE_RADIUS = {"sphere": 8, "burst": 5}

RING_FADE = 0.92
MAX_RINGS = 4
RING_INTERVAL_S = 0.18
RING_MIN_BRIGHTNESS = 10
PARTICLE_COUNT = 8
PARTICLE_RADIUS = 11

BREATH_FRAMES = 16


@dataclass
class Ring:
    radius: float
    brightness: float


class PulseTheme(Theme):
    name = "pulse"
    description = "Bass-driven sphere with beat rings"

    def __init__(self, sensitivity: float = 1.0, easing: str = "linear",
                 rings: bool = True, style: str = "sphere", brightness: int = 255,
                 clock: Callable[[], float] = time.monotonic):
        if easing not in EASING_TYPES:
            raise ThemeConfigError(f"Easing must be one of {EASING_TYPES}, got {easing!r}")
        if style not in STYLES:
            raise ThemeConfigError(f"Pulse style must be one of {STYLES}, got {style!r}")
        if sensitivity <= 0:
            raise ThemeConfigError(f"Sensitivity must be positive, got {sensitivity}")
        super().__init__(
            animation_speed=60,
            brightness=brightness,
            state_frames={
                PlayerState.PAUSED: pulse_frame(4, 90),
                PlayerState.OFFLINE: pulse_frame(2, 40),
            },
        )
        self.sensitivity = sensitivity
        self.easing = easing
        self.rings_enabled = rings
        self.style = style
        self._clock = clock

        self.min_scale, self.max_scale = SCALE_RANGES[style]
        self.scale = self.min_scale
        self.beats = BeatDetector()
        self.rings: list[Ring] = []
        self._last_ring = -math.inf
        self._breath = [self._breath_frame(i) for i in range(BREATH_FRAMES)]

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any]) -> "PulseTheme":
        return cls(
            sensitivity=setting_float(settings, "sensitivity", 1.0, 0.1, 3.0),
            easing=setting_choice(settings, "easing", "linear", EASING_TYPES),
            rings=setting_bool(settings, "rings", True),
            style=setting_choice(settings, "style", "sphere", STYLES),
            brightness=brightness_setting(settings),
        )

    @property
    def frame_count(self) -> int:
        return BREATH_FRAMES

    def _breath_frame(self, index: int) -> np.ndarray:
        phase = (1 - math.cos(2 * math.pi * index / BREATH_FRAMES)) / 2
        radius = round(2 + phase * 4)
        return pulse_frame(radius, round(80 + phase * 120))

    def generate_frame(self, index: int) -> np.ndarray:
        """Idle breathing, used when no audio is playing."""
        return self._breath[index % BREATH_FRAMES].copy()

    def as_audio_reactive(self) -> "PulseTheme":
        return self

    def intensity(self, audio: AudioData) -> float:
        raw = weighted_intensity(audio, BASS_WEIGHT, MID_WEIGHT, TREBLE_WEIGHT, BEAT_WEIGHT)
        return min(1.0, raw * self.sensitivity)

    def generate_audio_frame(self, index: int, audio: AudioData) -> np.ndarray:
        intensity = self.intensity(audio)
        beat = self.beats.update(intensity)

        target = self.min_scale + (self.max_scale - self.min_scale) * intensity
        if beat:
            target = min(self.max_scale, target * BEAT_BOOST)
        self.scale = ease(self.scale, target, EASE_FACTOR, self.easing)

        frame = empty_frame()
        self._update_rings(beat)
        for ring in self.rings:
            draw_circle(frame, CENTER, CENTER, round(ring.radius), round(ring.brightness))

        radius = max(1, round(self.scale * BASE_RADIUS[self.style]))
        level = round(120 + 135 * intensity)
        if self.style == "sphere":
            draw_dot(frame, CENTER, CENTER, radius, level)
        else:
            draw_circle(frame, CENTER, CENTER, radius, level)
            draw_dot(frame, CENTER, CENTER, 1, level)

        if audio.beat_intensity > PARTICLE_THRESHOLD and audio.bass_level > STRONG_BASS:
            self._draw_particles(frame, index)
        return apply_mask(frame)

    def _update_rings(self, beat: bool) -> None:
        for ring in self.rings:
            ring.radius += 1
            ring.brightness *= RING_FADE
        self.rings = [
            r for r in self.rings
            if r.brightness >= RING_MIN_BRIGHTNESS and r.radius <= PARTICLE_RADIUS + 2
        ]
        if not (self.rings_enabled and beat):
            return
        now = self._clock()
        if now - self._last_ring > RING_INTERVAL_S:
            self._last_ring = now
            start = self.scale * BASE_RADIUS[self.style]
            self.rings.append(Ring(radius=start, brightness=255.0))
            del self.rings[:-MAX_RINGS]

    def _draw_particles(self, frame: np.ndarray, index: int) -> None:
        offset = index * 0.35
        for i in range(PARTICLE_COUNT):
            angle = offset + 2 * math.pi * i / PARTICLE_COUNT
            x = CENTER + round(math.cos(angle) * PARTICLE_RADIUS)
            y = CENTER + round(math.sin(angle) * PARTICLE_RADIUS)
            set_pixel(frame, x, y, 255)
