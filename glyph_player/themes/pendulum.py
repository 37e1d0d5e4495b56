"""Swinging pendulum driven by frame transitions."""

import math
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
)
from glyph_player.transitions import FrameTransition as T

PIVOT_Y = 2
LENGTH = 14
BOB_RADIUS = 2
ANGLES = (-45, -22, 0, 22, 45)
REST = ANGLES.index(0)

PATTERNS = {
    "normal": [T(0, 1, 1, 140), T(2, 3, 1, 140), T(4, 3, 1, 140), T(2, 1, 1, 140)],
    "fast": [T(0, 1, 1, 80), T(2, 3, 1, 80), T(4, 3, 1, 80), T(2, 1, 1, 80)],
    "bouncy": [T(1, 3, 3, 90), T(0, 4, 2, 180)],
}
OPENING = [T(REST, 1, 1, 300), T(REST, 3, 1, 300)]


def pendulum_frame(angle_deg: float, brightness: int = 255) -> np.ndarray:
    frame = empty_frame()
    rad = math.radians(angle_deg)
    bob_x = CENTER + round(math.sin(rad) * LENGTH)
    bob_y = PIVOT_Y + round(math.cos(rad) * LENGTH)
    draw_line(frame, CENTER, PIVOT_Y, bob_x, bob_y, brightness // 2)
    draw_dot(frame, bob_x, bob_y, BOB_RADIUS, brightness)
    return apply_mask(frame)


class PendulumTheme(TemplateTheme):
    name = "pendulum"
    description = "Pendulum that eases in with an opening swing, then loops a pattern"

    def __init__(self, pattern: str = "normal", brightness: int = 255):
        if pattern not in PATTERNS:
            raise ThemeConfigError(f"Unknown pendulum pattern: {pattern!r}")
        super().__init__(
            [pendulum_frame(a) for a in ANGLES],
            animation_speed=140,
            brightness=brightness,
            transitions=PATTERNS[pattern],
            opening=OPENING,
            state_frames={
                PlayerState.OFFLINE: pendulum_frame(0, 60),
                PlayerState.LOADING: pendulum_frame(0, 140),
            },
        )
        self.pattern = pattern

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any]) -> "PendulumTheme":
        return cls(
            pattern=setting_choice(settings, "pattern", "normal", tuple(PATTERNS)),
            brightness=brightness_setting(settings),
        )
