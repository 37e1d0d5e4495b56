"""Runtime configuration, read once from the environment at startup."""

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

PLAYBACK_SOURCES = ("metadata", "mpd")
DISPLAY_OUTPUTS = ("framebuffer", "preview")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _int(env: Mapping[str, str], key: str, default: int, low: int, high: int) -> int:
    raw = env.get(key, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from None
    if not low <= value <= high:
        raise ValueError(f"{key} must be in {low}..{high}, got {value}")
    return value


def _choice(env: Mapping[str, str], key: str, default: str, choices: tuple[str, ...]) -> str:
    value = env.get(key, default)
    if value not in choices:
        raise ValueError(f"{key} must be one of {choices}, got {value!r}")
    return value


@dataclass(frozen=True)
class DriverConfig:
    """Timing of the animation driver, all in milliseconds."""

    prediction_timeout_ms: int = 1000
    idle_poll_ms: int = 10
    offline_poll_ms: int = 100
    audio_interval_playing_ms: int = 100
    audio_interval_idle_ms: int = 200
    min_frame_ms: int = 25
    min_audio_frame_ms: int = 40

    def __post_init__(self) -> None:
        for name in ("prediction_timeout_ms", "idle_poll_ms", "offline_poll_ms",
                     "audio_interval_playing_ms", "audio_interval_idle_ms",
                     "min_frame_ms", "min_audio_frame_ms"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")

    @classmethod
    def from_env(cls, env: Mapping[str, str] = os.environ) -> "DriverConfig":
        return cls(
            prediction_timeout_ms=_int(env, "PREDICTION_TIMEOUT_MS", 1000, 100, 10000),
            idle_poll_ms=_int(env, "IDLE_POLL_MS", 10, 1, 5000),
            offline_poll_ms=_int(env, "OFFLINE_POLL_MS", 100, 1, 60000),
        )


@dataclass(frozen=True)
class ServiceConfig:
    playback_source: str = "metadata"
    metadata_url: str = "http://localhost:8080/metadata.json"
    metadata_ws_url: str = "ws://localhost:8082"
    mpd_host: str = "localhost"
    mpd_port: int = 6600
    spectrum_ws_url: str = "ws://localhost:8081"
    display_output: str = "framebuffer"
    fb_device: str = "/dev/fb0"
    preview_path: str = "/tmp/glyph-preview.png"
    theme: str = "cross"
    theme_settings: dict[str, Any] = field(default_factory=dict)
    log_level: str = "INFO"
    driver: DriverConfig = field(default_factory=DriverConfig)

    @classmethod
    def from_env(cls, env: Mapping[str, str] = os.environ) -> "ServiceConfig":
        raw_settings = env.get("GLYPH_THEME_SETTINGS", "{}")
        try:
            theme_settings = json.loads(raw_settings)
        except json.JSONDecodeError as e:
            raise ValueError(f"GLYPH_THEME_SETTINGS is not valid JSON: {e}") from e
        if not isinstance(theme_settings, dict):
            raise ValueError("GLYPH_THEME_SETTINGS must be a JSON object")

        return cls(
            playback_source=_choice(env, "PLAYBACK_SOURCE", "metadata", PLAYBACK_SOURCES),
            metadata_url=env.get("METADATA_URL", cls.metadata_url),
            metadata_ws_url=env.get("METADATA_WS_URL", cls.metadata_ws_url),
            mpd_host=env.get("MPD_HOST", cls.mpd_host),
            mpd_port=_int(env, "MPD_PORT", 6600, 1, 65535),
            spectrum_ws_url=env.get("SPECTRUM_WS_URL", cls.spectrum_ws_url),
            display_output=_choice(env, "DISPLAY_OUTPUT", "framebuffer", DISPLAY_OUTPUTS),
            fb_device=env.get("FB_DEVICE", cls.fb_device),
            preview_path=env.get("PREVIEW_PATH", cls.preview_path),
            theme=env.get("GLYPH_THEME", cls.theme),
            theme_settings=theme_settings,
            log_level=_choice(env, "LOG_LEVEL", "INFO", LOG_LEVELS),
            driver=DriverConfig.from_env(env),
        )
