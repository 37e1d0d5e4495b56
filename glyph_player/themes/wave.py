"""Scrolling sine wave.

The wave keeps its own clock: the scroll offset follows wall time while
running and holds still while paused, so resuming continues from the
exact position it stopped at instead of restarting.
"""

import time
from collections.abc import Callable, Mapping
from typing import Any

import numpy as np

from glyph_player.frame import wave_frame
from glyph_player.state import PlayerState
from glyph_player.themes.base import Theme, brightness_setting, setting_float


class WaveTheme(Theme):
    name = "wave"
    description = "Sine wave scrolling across the matrix"

    def __init__(self, speed: float = 6.0, amplitude: float = 5.0,
                 wavelength: float = 12.0, brightness: int = 255,
                 clock: Callable[[], float] = time.monotonic):
        super().__init__(
            animation_speed=50,
            brightness=brightness,
            state_frames={PlayerState.OFFLINE: wave_frame(0.0, amplitude=0.0, brightness=50)},
        )
        self.speed = speed
        self.amplitude = amplitude
        self.wavelength = wavelength
        self._clock = clock
        self._offset = 0.0
        self._started: float | None = clock()

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any]) -> "WaveTheme":
        return cls(
            speed=setting_float(settings, "speed", 6.0, 0.5, 30.0),
            amplitude=setting_float(settings, "amplitude", 5.0, 1.0, 10.0),
            wavelength=setting_float(settings, "wavelength", 12.0, 4.0, 25.0),
            brightness=brightness_setting(settings),
        )

    @property
    def frame_count(self) -> int:
        return 1

    @property
    def running(self) -> bool:
        return self._started is not None

    def offset(self) -> float:
        """Current scroll position in cells."""
        if self._started is None:
            return self._offset
        return self._offset + (self._clock() - self._started) * self.speed

    def pause(self) -> None:
        if self._started is not None:
            self._offset = self.offset()
            self._started = None

    def resume(self) -> None:
        if self._started is None:
            self._started = self._clock()

    def as_resumable(self) -> "WaveTheme":
        return self

    def generate_frame(self, index: int) -> np.ndarray:
        return wave_frame(self.offset(), self.amplitude, self.wavelength)
