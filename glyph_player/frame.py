"""Pixel frames for the 25x25 circular matrix.

A frame is a flat uint8 numpy array of 625 brightness values, row-major:
index i maps to cell (row = i // 25, col = i % 25). Only cells within
12.5 cells of the centre (12, 12) are physically present; the rest are
masked off before a frame is shown.
"""

import logging
import math
from functools import lru_cache

import numpy as np

logger = logging.getLogger(__name__)

GRID_SIZE = 25
FRAME_SIZE = GRID_SIZE * GRID_SIZE
CENTER = 12
MASK_RADIUS = 12.5

# Visible cells per row (top to bottom), 489 in total
GLYPH_SHAPE = (7, 11, 15, 17, 19, 21, 21, 23, 23, 25, 25, 25, 25,
               25, 25, 25, 23, 23, 21, 21, 19, 17, 15, 11, 7)
VISIBLE_CELLS = sum(GLYPH_SHAPE)


def empty_frame() -> np.ndarray:
    """Return an all-dark frame."""
    return np.zeros(FRAME_SIZE, dtype=np.uint8)


@lru_cache(maxsize=1)
def _mask() -> np.ndarray:
    rows, cols = np.divmod(np.arange(FRAME_SIZE), GRID_SIZE)
    dist = np.hypot(cols - CENTER, rows - CENTER)
    mask = dist <= MASK_RADIUS
    mask.setflags(write=False)
    return mask


def circular_mask() -> np.ndarray:
    """Boolean array marking the physically present cells."""
    return _mask()


def is_visible(x: int, y: int) -> bool:
    if not (0 <= x < GRID_SIZE and 0 <= y < GRID_SIZE):
        return False
    return bool(_mask()[y * GRID_SIZE + x])


def apply_mask(frame: np.ndarray) -> np.ndarray:
    """Zero every cell outside the circle (returns a new array)."""
    return np.where(_mask(), frame, 0).astype(np.uint8)


def clamp_brightness(value: float) -> int:
    return max(0, min(255, int(value)))


def set_pixel(frame: np.ndarray, x: int, y: int, brightness: int) -> None:
    """Set a cell if it lies on the grid; out-of-range cells are ignored."""
    if 0 <= x < GRID_SIZE and 0 <= y < GRID_SIZE:
        frame[y * GRID_SIZE + x] = clamp_brightness(brightness)


def draw_line(frame: np.ndarray, x1: int, y1: int, x2: int, y2: int,
              brightness: int) -> None:
    """Draw a straight line by interpolating along its longest axis."""
    steps = max(abs(x2 - x1), abs(y2 - y1))
    if steps == 0:
        set_pixel(frame, x1, y1, brightness)
        return
    for i in range(steps + 1):
        t = i / steps
        x = x1 + round((x2 - x1) * t)
        y = y1 + round((y2 - y1) * t)
        set_pixel(frame, x, y, brightness)


def draw_circle(frame: np.ndarray, cx: int, cy: int, radius: int,
                brightness: int) -> None:
    """Draw a circle outline, sampling roughly eight points per unit of radius."""
    if radius <= 0:
        set_pixel(frame, cx, cy, brightness)
        return
    points = max(8, radius * 8)
    for angle in np.linspace(0.0, 2 * math.pi, points, endpoint=False):
        x = cx + int(math.cos(angle) * radius)
        y = cy + int(math.sin(angle) * radius)
        set_pixel(frame, x, y, brightness)


def draw_dot(frame: np.ndarray, cx: int, cy: int, radius: int,
             brightness: int) -> None:
    """Draw a filled disk."""
    grid = frame.reshape(GRID_SIZE, GRID_SIZE)
    ys, xs = np.ogrid[:GRID_SIZE, :GRID_SIZE]
    disk = (xs - cx) ** 2 + (ys - cy) ** 2 <= radius * radius
    grid[disk] = clamp_brightness(brightness)


def shaped_to_flat(values) -> np.ndarray:
    """Expand visible-cell-only data (row by row, centred) into a full frame.

    Raises ValueError if the input does not hold exactly one value per
    visible cell.
    """
    values = np.asarray(values, dtype=np.int64)
    if values.shape != (VISIBLE_CELLS,):
        raise ValueError(
            f"Shaped frame needs {VISIBLE_CELLS} values, got {values.size}"
        )
    frame = empty_frame()
    pos = 0
    for row, width in enumerate(GLYPH_SHAPE):
        start = row * GRID_SIZE + (GRID_SIZE - width) // 2
        frame[start:start + width] = np.clip(values[pos:pos + width], 0, 255)
        pos += width
    return frame


def flat_to_shaped(frame) -> np.ndarray:
    """Inverse of shaped_to_flat: keep only the visible cells."""
    frame = np.asarray(frame)
    if frame.shape != (FRAME_SIZE,):
        raise ValueError(f"Frame needs {FRAME_SIZE} values, got {frame.size}")
    parts = []
    for row, width in enumerate(GLYPH_SHAPE):
        start = row * GRID_SIZE + (GRID_SIZE - width) // 2
        parts.append(frame[start:start + width])
    return np.concatenate(parts).astype(np.uint8)


def sanitize_frame(frame) -> np.ndarray:
    """Coerce theme output into a valid frame.

    Anything that is not exactly 625 values becomes an all-dark frame so a
    broken theme can never push a malformed buffer downstream. Values are
    clipped into 0..255.
    """
    if frame is None:
        logger.warning("Theme produced no frame, showing blank frame")
        return empty_frame()
    try:
        arr = np.asarray(frame, dtype=np.float64).reshape(-1)
    except (TypeError, ValueError) as e:
        logger.warning(f"Theme produced an unreadable frame ({e}), showing blank frame")
        return empty_frame()
    if arr.size != FRAME_SIZE:
        logger.warning(
            f"Theme produced {arr.size} values instead of {FRAME_SIZE}, showing blank frame"
        )
        return empty_frame()
    return np.clip(np.nan_to_num(arr), 0, 255).astype(np.uint8)


# Procedural generators shared by the bundled themes

def rotating_line_frame(angle_deg: float, length: int = 10,
                        brightness: int = 255) -> np.ndarray:
    frame = empty_frame()
    rad = math.radians(angle_deg)
    dx = round(math.cos(rad) * length)
    dy = round(math.sin(rad) * length)
    draw_line(frame, CENTER - dx, CENTER - dy, CENTER + dx, CENTER + dy, brightness)
    return frame


def pulse_frame(radius: int, brightness: int = 255) -> np.ndarray:
    frame = empty_frame()
    draw_dot(frame, CENTER, CENTER, radius, brightness)
    return apply_mask(frame)


def wave_frame(phase: float, amplitude: float = 5.0, wavelength: float = 12.0,
               brightness: int = 255) -> np.ndarray:
    """Horizontal sine wave; phase is in cells."""
    frame = empty_frame()
    for x in range(GRID_SIZE):
        y = CENTER + round(amplitude * math.sin(2 * math.pi * (x + phase) / wavelength))
        set_pixel(frame, x, y, brightness)
    return apply_mask(frame)
