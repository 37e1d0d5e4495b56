"""Tests for framebuffer and preview display outputs."""

import numpy as np
import pytest
from PIL import Image

from glyph_player.display import (
    BG_COLOR,
    OFF_COLOR,
    FramebufferDisplay,
    PreviewDisplay,
    get_fb_info,
    matrix_to_rgb,
    rgb_to_fb_native,
)
from glyph_player.frame import CENTER, FRAME_SIZE, GRID_SIZE, empty_frame


class TestRgbToFbNative:
    """Test RGB to framebuffer native format conversion."""

    def test_rgb565_white(self):
        rgb = np.full((1, 1, 3), 255, dtype=np.uint8)
        assert rgb_to_fb_native(rgb, 16)[0, 0] == 0xFFFF

    def test_rgb565_red(self):
        rgb = np.array([[[255, 0, 0]]], dtype=np.uint8)
        result = rgb_to_fb_native(rgb, 16)
        assert result.dtype == np.uint16
        assert result[0, 0] == 0xF800

    def test_bgra_swaps_channels(self):
        rgb = np.array([[[255, 0, 0]]], dtype=np.uint8)
        assert rgb_to_fb_native(rgb, 32)[0, 0].tolist() == [0, 0, 255, 255]


class TestGetFbInfo:
    def test_missing_sysfs_falls_back(self, tmp_path):
        assert get_fb_info(str(tmp_path / "fb9")) == (480, 480, 32, 1920)

    def test_reads_sysfs(self, tmp_path):
        (tmp_path / "virtual_size").write_text("800,480\n")
        (tmp_path / "bits_per_pixel").write_text("16\n")
        (tmp_path / "stride").write_text("1600\n")
        assert get_fb_info(str(tmp_path)) == (800, 480, 16, 1600)


class TestMatrixToRgb:
    """Test level frame -> RGB cell image."""

    def test_shape(self):
        assert matrix_to_rgb(empty_frame(), 4).shape == (100, 100, 3)

    def test_masked_corner_is_background(self):
        frame = np.full(FRAME_SIZE, 255, dtype=np.uint8)
        rgb = matrix_to_rgb(frame, 4)
        assert tuple(rgb[0, 0]) == BG_COLOR

    def test_dark_led_uses_off_color(self):
        rgb = matrix_to_rgb(empty_frame(), 4)
        assert tuple(rgb[CENTER * 4, CENTER * 4]) == OFF_COLOR

    def test_lit_led_and_gap(self):
        frame = np.full(FRAME_SIZE, 255, dtype=np.uint8)
        rgb = matrix_to_rgb(frame, 4)
        assert tuple(rgb[CENTER * 4, CENTER * 4]) == (255, 255, 255)
        assert tuple(rgb[CENTER * 4 + 3, CENTER * 4]) == BG_COLOR


class TestFramebufferDisplay:
    """Render into a plain file standing in for /dev/fb0."""

    @pytest.fixture
    def fb(self, tmp_path):
        sysfs = tmp_path / "sysfs"
        sysfs.mkdir()
        (sysfs / "virtual_size").write_text("100,100\n")
        (sysfs / "bits_per_pixel").write_text("32\n")
        (sysfs / "stride").write_text("400\n")
        device = tmp_path / "fb0"
        device.write_bytes(bytes(400 * 100))
        display = FramebufferDisplay(str(device), str(sysfs))
        display.open()
        yield display, device
        display.close()

    def test_geometry(self, fb):
        display, _ = fb
        assert display.cell == 4
        assert (display.x, display.y) == (0, 0)

    def test_render_applies_brightness(self, fb):
        display, device = fb
        frame = empty_frame()
        frame[CENTER * GRID_SIZE + CENTER] = 255
        display.render(frame, 128)
        display.close()
        data = np.frombuffer(device.read_bytes(), dtype=np.uint8).reshape(100, 100, 4)
        # 24 + 231 * 128 / 255, truncated
        assert data[CENTER * 4, CENTER * 4].tolist() == [139, 139, 139, 255]
        assert data[0, 0].tolist() == [0, 0, 0, 255]

    def test_render_after_close_is_noop(self, fb):
        display, device = fb
        display.close()
        display.render(np.full(FRAME_SIZE, 255, dtype=np.uint8), 255)
        assert not any(device.read_bytes())


class TestPreviewDisplay:
    """Test PNG preview output."""

    def test_writes_png(self, tmp_path):
        path = tmp_path / "preview.png"
        preview = PreviewDisplay(str(path), cell=8)
        preview.render(empty_frame(), 255)
        assert preview.frames_written == 1
        assert not (tmp_path / "preview.png.tmp").exists()
        with Image.open(path) as img:
            assert img.size == (200, 200)

    def test_lit_cell_is_white(self):
        frame = empty_frame()
        frame[CENTER * GRID_SIZE + CENTER] = 255
        img = PreviewDisplay("unused.png", cell=16).image(frame, 255)
        mid = CENTER * 16 + 8
        assert img.getpixel((mid, mid)) == (255, 255, 255)

    def test_dim_cell_stays_visible(self):
        frame = empty_frame()
        frame[CENTER * GRID_SIZE + CENTER] = 255
        img = PreviewDisplay("unused.png", cell=16).image(frame, 1)
        mid = CENTER * 16 + 8
        r, _, _ = img.getpixel((mid, mid))
        assert r > (255 + OFF_COLOR[0]) // 2 - 2

    def test_dark_and_masked_cells(self):
        img = PreviewDisplay("unused.png", cell=16).image(empty_frame(), 255)
        assert img.getpixel((CENTER * 16 + 8, CENTER * 16 + 8)) == OFF_COLOR
        assert img.getpixel((8, 8)) == BG_COLOR
