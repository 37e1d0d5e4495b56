"""Display outputs: the Linux framebuffer and a PNG preview.

Both receive the stored frame together with the theme brightness and apply
the brightness transfer model themselves; the framebuffer gets hardware
values, the preview gets the perceptual alpha curve.
"""

import logging
import mmap
import os
from typing import Protocol

import numpy as np
from PIL import Image, ImageDraw

from glyph_player.brightness import apply_brightness, preview_alphas
from glyph_player.frame import GRID_SIZE, circular_mask

logger = logging.getLogger(__name__)

DEFAULT_WIDTH = 480
DEFAULT_HEIGHT = 480
LED_COLOR = (255, 255, 255)
OFF_COLOR = (24, 24, 24)
BG_COLOR = (0, 0, 0)


class Display(Protocol):
    def render(self, frame: np.ndarray, brightness: int) -> None: ...

    def close(self) -> None: ...


def get_fb_info(fb_path: str = "/sys/class/graphics/fb0") -> tuple[int, int, int, int]:
    """Read framebuffer geometry from sysfs."""
    try:
        with open(f"{fb_path}/virtual_size") as f:
            vw, vh = f.read().strip().split(",")
        with open(f"{fb_path}/bits_per_pixel") as f:
            bpp = int(f.read().strip())
        with open(f"{fb_path}/stride") as f:
            stride = int(f.read().strip())
        return int(vw), int(vh), bpp, stride
    except FileNotFoundError:
        return DEFAULT_WIDTH, DEFAULT_HEIGHT, 32, DEFAULT_WIDTH * 4


def rgb_to_fb_native(rgb_array: np.ndarray, bpp: int) -> np.ndarray:
    """Convert RGB numpy array to native FB pixel format array.

    Returns uint16 (h,w) for 16bpp or uint8 (h,w,4) for 32bpp.
    """
    if bpp == 16:
        r = rgb_array[:, :, 0].astype(np.uint16)
        g = rgb_array[:, :, 1].astype(np.uint16)
        b = rgb_array[:, :, 2].astype(np.uint16)
        return (((r >> 3) << 11) | ((g >> 2) << 5) | (b >> 3)).astype(np.uint16)
    h, w = rgb_array.shape[:2]
    bgra = np.empty((h, w, 4), dtype=np.uint8)
    bgra[:, :, 0] = rgb_array[:, :, 2]
    bgra[:, :, 1] = rgb_array[:, :, 1]
    bgra[:, :, 2] = rgb_array[:, :, 0]
    bgra[:, :, 3] = 255
    return bgra


def matrix_to_rgb(levels: np.ndarray, cell: int) -> np.ndarray:
    """Scale a 625-value level frame up to an RGB image of square cells.

    Masked-out cells stay background, dark LEDs get OFF_COLOR.
    """
    grid = levels.reshape(GRID_SIZE, GRID_SIZE).astype(np.float64) / 255.0
    mask = circular_mask().reshape(GRID_SIZE, GRID_SIZE)
    on = np.array(LED_COLOR, dtype=np.float64)
    off = np.array(OFF_COLOR, dtype=np.float64)
    rgb = off + (on - off) * grid[:, :, None]
    rgb[~mask] = BG_COLOR
    rgb = np.repeat(np.repeat(rgb, cell, axis=0), cell, axis=1)
    # one-pixel gap between LEDs
    if cell > 2:
        rgb[cell - 1::cell, :, :] = BG_COLOR
        rgb[:, cell - 1::cell, :] = BG_COLOR
    return rgb.astype(np.uint8)


class FramebufferDisplay:
    """Draws the matrix centred on a memory-mapped framebuffer."""

    def __init__(self, device: str = "/dev/fb0", sysfs_path: str = "/sys/class/graphics/fb0"):
        self.device = device
        self.sysfs_path = sysfs_path
        self._fd: int | None = None
        self._mmap: mmap.mmap | None = None
        self.width, self.height, self.bpp, self.stride = get_fb_info(sysfs_path)
        self.cell = max(1, min(self.width, self.height) // GRID_SIZE)
        side = self.cell * GRID_SIZE
        self.x = (self.width - side) // 2
        self.y = (self.height - side) // 2

    def open(self) -> None:
        logger.info(
            f"Framebuffer: {self.width}x{self.height}, {self.bpp}bpp, "
            f"stride={self.stride}, cell={self.cell}px"
        )
        fd = os.open(self.device, os.O_RDWR)
        self._mmap = mmap.mmap(fd, self.stride * self.height, mmap.MAP_SHARED,
                               mmap.PROT_WRITE | mmap.PROT_READ)
        self._fd = fd

    def render(self, frame: np.ndarray, brightness: int) -> None:
        if self._mmap is None:
            return
        rgb = matrix_to_rgb(apply_brightness(frame, brightness), self.cell)
        fb_pixels = rgb_to_fb_native(rgb, self.bpp)
        bpp_bytes = self.bpp // 8
        for row in range(fb_pixels.shape[0]):
            self._mmap.seek((self.y + row) * self.stride + self.x * bpp_bytes)
            self._mmap.write(fb_pixels[row].tobytes())

    def close(self) -> None:
        if self._mmap is not None:
            self._mmap.close()
            self._mmap = None
        if self._fd is not None:
            os.close(self._fd)
            self._fd = None


class PreviewDisplay:
    """Writes each frame to a PNG, drawing LEDs with the preview alpha curve."""

    def __init__(self, path: str, cell: int = 16):
        self.path = path
        self.cell = cell
        self.frames_written = 0

    def image(self, frame: np.ndarray, brightness: int) -> Image.Image:
        size = self.cell * GRID_SIZE
        img = Image.new("RGB", (size, size), BG_COLOR)
        draw = ImageDraw.Draw(img)
        alphas = preview_alphas(frame, brightness)
        mask = circular_mask()
        pad = max(1, self.cell // 8)
        for i in np.flatnonzero(mask):
            row, col = divmod(int(i), GRID_SIZE)
            a = float(alphas[i])
            color = tuple(round(o + (c - o) * a) for c, o in zip(LED_COLOR, OFF_COLOR))
            x0, y0 = col * self.cell + pad, row * self.cell + pad
            draw.ellipse([x0, y0, x0 + self.cell - 2 * pad, y0 + self.cell - 2 * pad], fill=color)
        return img

    def render(self, frame: np.ndarray, brightness: int) -> None:
        tmp = f"{self.path}.tmp"
        self.image(frame, brightness).save(tmp, format="PNG")
        os.replace(tmp, self.path)
        self.frames_written += 1

    def close(self) -> None:
        logger.info(f"Preview closed after {self.frames_written} frames: {self.path}")
