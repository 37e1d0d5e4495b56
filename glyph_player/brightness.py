"""Mapping from theme brightness to hardware values and preview opacity.

The matrix LEDs are already bright at low drive values, so the preview
uses a square-root curve with a visibility floor rather than a linear
alpha.
"""

import math

import numpy as np

MIN_VISIBLE_ALPHA = 0.5
MAX_BRIGHTNESS = 255


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clamp(value: int) -> int:
    return max(0, min(MAX_BRIGHTNESS, value))


def final_brightness(pixel: int, theme_brightness: int) -> int:
    """Hardware value for a stored pixel under the theme's brightness."""
    if pixel == 0:
        return 0
    return _clamp(_round_half_up(pixel * theme_brightness / MAX_BRIGHTNESS))


def preview_alpha(pixel: int, theme_brightness: int) -> float:
    """Opacity used to draw a cell in a preview image."""
    if pixel == 0:
        return 0.0
    normalized = final_brightness(pixel, theme_brightness) / MAX_BRIGHTNESS
    return max(0.0, min(1.0, MIN_VISIBLE_ALPHA + math.sqrt(normalized) * (1.0 - MIN_VISIBLE_ALPHA)))


def multiplier_to_brightness(multiplier: float) -> int:
    return _clamp(_round_half_up(multiplier * MAX_BRIGHTNESS))


def brightness_to_multiplier(brightness: int) -> float:
    return max(0.0, min(1.0, brightness / MAX_BRIGHTNESS))


def apply_brightness(frame: np.ndarray, theme_brightness: int) -> np.ndarray:
    """Vectorized final_brightness over a whole frame."""
    scaled = np.floor(frame.astype(np.float64) * theme_brightness / MAX_BRIGHTNESS + 0.5)
    out = np.clip(scaled, 0, MAX_BRIGHTNESS).astype(np.uint8)
    out[frame == 0] = 0
    return out


def preview_alphas(frame: np.ndarray, theme_brightness: int) -> np.ndarray:
    """Vectorized preview_alpha over a whole frame (float array in 0..1)."""
    final = apply_brightness(frame, theme_brightness).astype(np.float64)
    alpha = MIN_VISIBLE_ALPHA + np.sqrt(final / MAX_BRIGHTNESS) * (1.0 - MIN_VISIBLE_ALPHA)
    alpha = np.clip(alpha, 0.0, 1.0)
    alpha[frame == 0] = 0.0
    return alpha
