"""Blinking cross with per-frame timing."""

from collections.abc import Mapping
from typing import Any

import numpy as np

from glyph_player.frame import CENTER, apply_mask, draw_dot, draw_line, empty_frame
from glyph_player.state import PlayerState
from glyph_player.themes.base import (
    TemplateTheme,
    ThemeConfigError,
    brightness_setting,
    setting_choice,
    setting_float,
)

BASE_DURATIONS = (250, 150, 100, 400)
ARM = 9
STYLES = ("plus", "diagonal")


def _plus(brightness: int) -> np.ndarray:
    frame = empty_frame()
    draw_line(frame, CENTER - ARM, CENTER, CENTER + ARM, CENTER, brightness)
    draw_line(frame, CENTER, CENTER - ARM, CENTER, CENTER + ARM, brightness)
    return apply_mask(frame)


def _diagonal(brightness: int) -> np.ndarray:
    arm = ARM * 3 // 4
    frame = empty_frame()
    draw_line(frame, CENTER - arm, CENTER - arm, CENTER + arm, CENTER + arm, brightness)
    draw_line(frame, CENTER - arm, CENTER + arm, CENTER + arm, CENTER - arm, brightness)
    return apply_mask(frame)


def _dot(brightness: int) -> np.ndarray:
    frame = empty_frame()
    draw_dot(frame, CENTER, CENTER, 2, brightness)
    return frame


class CrossTheme(TemplateTheme):
    name = "cross"
    description = "Blinking cross with per-frame timing"

    def __init__(self, speed: float = 1.0, brightness: int = 255, style: str = "plus"):
        if style not in STYLES:
            raise ThemeConfigError(f"Cross style must be one of {STYLES}, got {style!r}")
        if speed <= 0:
            raise ThemeConfigError(f"Cross speed must be positive, got {speed}")
        primary = _plus if style == "plus" else _diagonal
        secondary = _diagonal if style == "plus" else _plus
        frames = [primary(255), primary(120), secondary(200), _dot(255)]
        durations = [max(50, min(2000, round(d / speed))) for d in BASE_DURATIONS]
        super().__init__(
            frames,
            animation_speed=max(50, min(1000, round(200 / speed))),
            brightness=brightness,
            frame_durations=durations,
            state_frames={
                PlayerState.PAUSED: primary(80),
                PlayerState.OFFLINE: _dot(60),
                PlayerState.LOADING: secondary(120),
            },
        )
        self.style = style

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any]) -> "CrossTheme":
        return cls(
            speed=setting_float(settings, "speed", 1.0, 0.25, 4.0),
            brightness=brightness_setting(settings),
            style=setting_choice(settings, "style", "plus", STYLES),
        )
