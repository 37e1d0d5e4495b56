"""Theme abstraction.

A theme turns a frame index into a frame. Optional behaviour is exposed
through capability queries that return an object implementing the
capability, or None:

- as_audio_reactive(): generate_audio_frame(index, audio)
- as_frame_duration_provider(): frame_duration(index), uses_transitions,
  create_transition_sequence()
- as_resumable(): pause() / resume() for themes that keep their own clock
"""

from collections.abc import Mapping
from typing import Any, Protocol

import numpy as np

from glyph_player.audio import AudioData
from glyph_player.brightness import multiplier_to_brightness
from glyph_player.frame import FRAME_SIZE
from glyph_player.state import PlayerState
from glyph_player.transitions import (
    MAX_DURATION_MS,
    MIN_DURATION_MS,
    FrameTransition,
    FrameTransitionSequence,
)

MIN_ANIMATION_SPEED_MS = 50
MAX_ANIMATION_SPEED_MS = 1000
LOOP_MODES = ("normal", "reverse", "ping-pong")


class ThemeConfigError(ValueError):
    """Invalid theme definition or settings."""


class AudioReactive(Protocol):
    def generate_audio_frame(self, index: int, audio: AudioData) -> np.ndarray: ...


class FrameDurationProvider(Protocol):
    uses_transitions: bool

    def frame_duration(self, index: int) -> int: ...

    def create_transition_sequence(self) -> FrameTransitionSequence | None: ...


class Resumable(Protocol):
    def pause(self) -> None: ...

    def resume(self) -> None: ...


# Settings parsing ----------------------------------------------------------

def setting_float(settings: Mapping[str, Any], key: str, default: float,
                  low: float, high: float) -> float:
    raw = settings.get(key, default)
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ThemeConfigError(f"Setting {key!r} must be a number, got {raw!r}") from None
    if not low <= value <= high:
        raise ThemeConfigError(f"Setting {key!r} must be in {low}..{high}, got {value}")
    return value


def setting_int(settings: Mapping[str, Any], key: str, default: int,
                low: int, high: int) -> int:
    return int(round(setting_float(settings, key, default, low, high)))


def setting_choice(settings: Mapping[str, Any], key: str, default: str,
                   choices: tuple[str, ...]) -> str:
    value = str(settings.get(key, default))
    if value not in choices:
        raise ThemeConfigError(f"Setting {key!r} must be one of {choices}, got {value!r}")
    return value


def setting_bool(settings: Mapping[str, Any], key: str, default: bool) -> bool:
    raw = settings.get(key, default)
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str) and raw.lower() in ("true", "1", "yes", "on"):
        return True
    if isinstance(raw, str) and raw.lower() in ("false", "0", "no", "off"):
        return False
    raise ThemeConfigError(f"Setting {key!r} must be a boolean, got {raw!r}")


def brightness_setting(settings: Mapping[str, Any], default: int = 255) -> int:
    """Theme brightness from a 0..1 'brightness' multiplier setting."""
    if "brightness" not in settings:
        return default
    multiplier = setting_float(settings, "brightness", 1.0, 0.0, 1.0)
    return multiplier_to_brightness(multiplier)


def _check_frame(frame, label: str) -> np.ndarray:
    arr = np.asarray(frame)
    if arr.shape != (FRAME_SIZE,):
        raise ThemeConfigError(f"{label} must have {FRAME_SIZE} values, got {arr.size}")
    if arr.min() < 0 or arr.max() > 255:
        raise ThemeConfigError(f"{label} values must be in 0..255")
    return arr.astype(np.uint8)


class Theme:
    """Base class: plain indexed animation with a fixed speed."""

    name = "theme"
    description = ""

    def __init__(self, animation_speed: int = 150, brightness: int = 255,
                 state_frames: Mapping[PlayerState, Any] | None = None):
        if not MIN_ANIMATION_SPEED_MS <= animation_speed <= MAX_ANIMATION_SPEED_MS:
            raise ThemeConfigError(
                f"Animation speed must be in {MIN_ANIMATION_SPEED_MS}.."
                f"{MAX_ANIMATION_SPEED_MS}ms, got {animation_speed}"
            )
        if not 1 <= brightness <= 255:
            raise ThemeConfigError(f"Brightness must be in 1..255, got {brightness}")
        self.animation_speed = animation_speed
        self.brightness = brightness
        self._state_frames: dict[PlayerState, np.ndarray] = {}
        for state, frame in (state_frames or {}).items():
            if frame is not None:
                self._state_frames[state] = _check_frame(frame, f"{state.value} frame")

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any]) -> "Theme":
        return cls()

    @property
    def frame_count(self) -> int:
        raise NotImplementedError

    def generate_frame(self, index: int) -> np.ndarray:
        raise NotImplementedError

    def state_frame(self, state: PlayerState) -> np.ndarray | None:
        """Fixed frame to show for a non-playing state, or None to freeze."""
        frame = self._state_frames.get(state)
        return None if frame is None else frame.copy()

    def as_audio_reactive(self) -> AudioReactive | None:
        return None

    def as_frame_duration_provider(self) -> FrameDurationProvider | None:
        return None

    def as_resumable(self) -> Resumable | None:
        return None

    def info(self) -> str:
        caps = [name for name, cap in (
            ("audio", self.as_audio_reactive()),
            ("durations", self.as_frame_duration_provider()),
            ("resumable", self.as_resumable()),
        ) if cap is not None]
        return (
            f"{self.name}: {self.frame_count} frames, speed={self.animation_speed}ms, "
            f"brightness={self.brightness}, capabilities={caps or 'none'}"
        )


class TemplateTheme(Theme):
    """Theme defined by a frame table plus optional durations and transitions.

    Transition frame indices refer to the frame table directly, so
    transitions require the 'normal' loop mode.
    """

    def __init__(self, frames, animation_speed: int = 150, brightness: int = 255,
                 frame_durations: list[int] | None = None,
                 transitions: list[FrameTransition] | None = None,
                 opening: list[FrameTransition] | None = None,
                 loop_mode: str = "normal",
                 state_frames: Mapping[PlayerState, Any] | None = None):
        super().__init__(animation_speed, brightness, state_frames)
        if len(frames) == 0:
            raise ThemeConfigError("Theme needs at least one frame")
        self.frames = [_check_frame(f, f"Frame {i}") for i, f in enumerate(frames)]

        if frame_durations is not None:
            if len(frame_durations) != len(self.frames):
                raise ThemeConfigError(
                    f"Got {len(frame_durations)} frame durations for {len(self.frames)} frames"
                )
            for d in frame_durations:
                if not MIN_DURATION_MS <= d <= MAX_DURATION_MS:
                    raise ThemeConfigError(
                        f"Frame duration must be in {MIN_DURATION_MS}..{MAX_DURATION_MS}ms, got {d}"
                    )
        self.frame_durations = list(frame_durations) if frame_durations else None

        if loop_mode not in LOOP_MODES:
            raise ThemeConfigError(f"Loop mode must be one of {LOOP_MODES}, got {loop_mode!r}")
        if opening and not transitions:
            raise ThemeConfigError("Opening transitions need a main transition list")
        if transitions and loop_mode != "normal":
            raise ThemeConfigError("Frame transitions require the 'normal' loop mode")
        self.loop_mode = loop_mode
        self.transitions = list(transitions) if transitions else None
        self.opening = list(opening) if opening else None
        if self.transitions:
            try:
                self.create_transition_sequence()
            except ValueError as e:
                raise ThemeConfigError(str(e)) from e

        n = len(self.frames)
        if loop_mode == "reverse":
            self._order = list(range(n - 1, -1, -1))
        elif loop_mode == "ping-pong" and n > 1:
            self._order = list(range(n)) + list(range(n - 2, 0, -1))
        else:
            self._order = list(range(n))

    @property
    def frame_count(self) -> int:
        if self.transitions:
            return len(self.frames)
        return len(self._order)

    def generate_frame(self, index: int) -> np.ndarray:
        if self.transitions:
            return self.frames[index % len(self.frames)].copy()
        return self.frames[self._order[index % len(self._order)]].copy()

    @property
    def uses_transitions(self) -> bool:
        return self.transitions is not None

    def frame_duration(self, index: int) -> int:
        if self.frame_durations is None:
            return self.animation_speed
        return self.frame_durations[self._order[index % len(self._order)]]

    def create_transition_sequence(self) -> FrameTransitionSequence | None:
        if not self.transitions:
            return None
        return FrameTransitionSequence(self.transitions, len(self.frames), self.opening)

    def as_frame_duration_provider(self) -> FrameDurationProvider | None:
        if self.frame_durations is None and self.transitions is None:
            return None
        return self
