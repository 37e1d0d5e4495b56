"""Animation driver: player-state machine, frame generation and cadence.

Every tick the driver polls playback status, reconciles it with its own
state, samples audio, picks up theme changes from the catalog, renders a
frame and hands it to the presenter, then sleeps for the frame duration.

Toggling playback does not wait for the player: the driver records a
prediction of the new state and renders it at once. The prediction wins
over polled status until the player confirms it, until it times out, or
until the toggle command fails and it is reverted.
"""

import asyncio
import logging
import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import numpy as np

from glyph_player.audio import AudioData
from glyph_player.catalog import ThemeCatalog
from glyph_player.config import DriverConfig
from glyph_player.display import Display
from glyph_player.frame import apply_mask, empty_frame, sanitize_frame
from glyph_player.sources import AudioSource, PlaybackSource
from glyph_player.state import PlaybackStatus, PlayerState
from glyph_player.themes.base import Theme, ThemeConfigError
from glyph_player.transitions import FrameTransitionSequence

logger = logging.getLogger(__name__)

AUDIO_REACTIVE_SPEEDUP = 0.85
AUDIO_REACTIVE_BEAT = 0.7
BEAT_SPEEDUP = 0.3
BEAT_MIN = 0.1

TOGGLE_TARGETS = {
    PlayerState.PLAYING: PlayerState.PAUSED,
    PlayerState.PAUSED: PlayerState.PLAYING,
}


@dataclass(frozen=True)
class Prediction:
    """Expected state after a toggle, plus where the animation stood before it."""

    state: PlayerState
    deadline: float
    previous: PlayerState
    theme: Theme | None = None
    frame_index: int = 0
    paused_frame_index: int = 0
    cursor: tuple | None = None


class FramePresenter:
    """Hands the most recent frame to the display off the control loop.

    submit() only swaps the pending frame under a lock; run() pushes it to
    the display in an executor thread. Frames submitted while the display
    is busy are coalesced, so only the latest one is shown. Resubmitting
    the pending frame unchanged does not wake the display.
    """

    def __init__(self, display: Display):
        self.display = display
        self._lock = threading.Lock()
        self._frame: np.ndarray | None = None
        self._brightness = 255
        self._version = 0
        self._presented = 0
        self._closed = False
        self._wake = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed

    def submit(self, frame: np.ndarray, brightness: int) -> bool:
        with self._lock:
            if self._closed:
                return False
            if (self._frame is not None and brightness == self._brightness
                    and np.array_equal(frame, self._frame)):
                return True
            self._frame = frame
            self._brightness = brightness
            self._version += 1
        self._wake.set()
        return True

    def latest(self) -> tuple[np.ndarray | None, int, int]:
        with self._lock:
            return self._frame, self._brightness, self._version

    async def run(self) -> None:
        loop = asyncio.get_event_loop()
        while True:
            await self._wake.wait()
            self._wake.clear()
            with self._lock:
                if self._closed:
                    break
                frame, brightness, version = self._frame, self._brightness, self._version
            if frame is None or version == self._presented:
                continue
            try:
                await loop.run_in_executor(None, self.display.render, frame, brightness)
            except Exception as e:
                logger.error(f"Display write failed: {e}")
            self._presented = version

    def close(self) -> None:
        with self._lock:
            self._closed = True
        self._wake.set()


class AnimationDriver:
    def __init__(self, catalog: ThemeCatalog, playback: PlaybackSource,
                 audio: AudioSource, presenter: FramePresenter,
                 config: DriverConfig | None = None,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.catalog = catalog
        self.playback = playback
        self.audio_source = audio
        self.presenter = presenter
        self.config = config or DriverConfig()
        self._clock = clock
        self._sleep = sleep

        self.state = PlayerState.OFFLINE
        self.media_available = False
        self.prediction: Prediction | None = None
        self.audio = AudioData.silent()
        self._last_audio_sample = -float("inf")

        self.theme: Theme | None = None
        self.sequence: FrameTransitionSequence | None = None
        self.frame_index = 0
        self.paused_frame_index = 0
        self._catalog_version = -1
        self._theme_key: tuple | None = None
        self._stopped = False

        self.refresh_theme()

    # Theme handling --------------------------------------------------------

    def refresh_theme(self) -> bool:
        """Pick up selection or settings changes from the catalog.

        A theme that fails to build leaves the current one active; at
        startup, when there is no current theme, the error propagates.
        """
        snap = self.catalog.snapshot()
        if snap.version == self._catalog_version:
            return False
        self._catalog_version = snap.version
        key = (snap.name, snap.settings)
        if self.theme is not None and key == self._theme_key:
            return False
        try:
            theme = self.catalog.build(snap)
        except ThemeConfigError as e:
            if self.theme is None:
                raise
            logger.error(f"Rejected settings for theme {snap.name}, keeping {self.theme.name}: {e}")
            return False
        self._theme_key = key
        self.activate_theme(theme)
        return True

    def activate_theme(self, theme: Theme) -> None:
        self.theme = theme
        provider = theme.as_frame_duration_provider()
        if provider is not None and provider.uses_transitions:
            self.sequence = provider.create_transition_sequence()
        else:
            self.sequence = None
        self.frame_index = self.sequence.current_frame_index() if self.sequence else 0
        self.paused_frame_index = self.frame_index

        resumable = theme.as_resumable()
        if resumable is not None and self.effective_state() is not PlayerState.PLAYING:
            resumable.pause()
        logger.info(f"Theme activated: {theme.info()}")
        if self.sequence is not None:
            logger.debug(self.sequence.describe())

    # State machine ---------------------------------------------------------

    def effective_state(self) -> PlayerState:
        if self.prediction is not None:
            return self.prediction.state
        return self.state

    def _on_state_change(self, old: PlayerState, new: PlayerState) -> None:
        if old is new:
            return
        logger.info(f"Player state: {old.value} -> {new.value}")
        resumable = self.theme.as_resumable()
        if old is PlayerState.PLAYING:
            self.paused_frame_index = self.frame_index
            if resumable is not None:
                resumable.pause()
        if new is PlayerState.PLAYING:
            if resumable is not None:
                resumable.resume()
            if old is PlayerState.PAUSED:
                if self.sequence is not None:
                    self.sequence.reset(include_opening=True)
                    self.frame_index = self.sequence.current_frame_index()
                else:
                    self.frame_index = self.paused_frame_index

    def _observe(self, observed: PlayerState) -> None:
        if self.prediction is not None:
            if self._clock() < self.prediction.deadline:
                if observed is self.prediction.state:
                    logger.debug(f"Prediction {observed.value} confirmed")
                    self.state = observed
                    self.prediction = None
                return
            prediction = self.prediction
            self.prediction = None
            logger.warning(
                f"Predicted {prediction.state.value} not confirmed in "
                f"{self.config.prediction_timeout_ms}ms, player reports {observed.value}"
            )
            self.state = observed
            self._undo(prediction)
            return
        old = self.state
        self.state = observed
        self._on_state_change(old, observed)

    def reconcile(self, status: PlaybackStatus) -> None:
        self.media_available = status.media_available
        self._observe(status.to_state())

    def record_poll_error(self, error: Exception) -> None:
        if self.state is not PlayerState.ERROR:
            logger.error(f"Playback status query failed: {error}")
        else:
            logger.debug(f"Playback status query still failing: {error}")
        self.media_available = False
        self._observe(PlayerState.ERROR)

    async def poll(self) -> None:
        try:
            status = await self.playback.poll()
        except Exception as e:
            self.record_poll_error(e)
            return
        self.reconcile(status)

    def predict(self) -> Prediction | None:
        """Apply the expected result of a toggle immediately."""
        current = self.effective_state()
        target = TOGGLE_TARGETS.get(current)
        if target is None:
            return None
        self.prediction = Prediction(
            target,
            self._clock() + self.config.prediction_timeout_ms / 1000,
            previous=current,
            theme=self.theme,
            frame_index=self.frame_index,
            paused_frame_index=self.paused_frame_index,
            cursor=self.sequence.cursor() if self.sequence is not None else None,
        )
        self._on_state_change(current, target)
        self.render_now()
        return self.prediction

    def _undo(self, prediction: Prediction) -> None:
        """Leave a dropped prediction for the canonical state.

        Going back to the state the prediction replaced restores the frame
        position as it was; any other state is a regular transition.
        """
        if self.state is not prediction.previous or self.theme is not prediction.theme:
            self._on_state_change(prediction.state, self.state)
            return
        logger.info(f"Player state: {prediction.state.value} -> {self.state.value} (undone)")
        resumable = self.theme.as_resumable()
        if resumable is not None:
            if self.state is PlayerState.PLAYING:
                resumable.resume()
            else:
                resumable.pause()
        self.frame_index = prediction.frame_index
        self.paused_frame_index = prediction.paused_frame_index
        if self.sequence is not None and prediction.cursor is not None:
            self.sequence.restore(prediction.cursor)

    def revert_prediction(self) -> None:
        if self.prediction is None:
            return
        prediction = self.prediction
        self.prediction = None
        logger.warning(f"Reverting predicted {prediction.state.value} to {self.state.value}")
        self._undo(prediction)
        self.render_now()

    async def toggle_playback(self) -> bool:
        prediction = self.predict()
        if prediction is None:
            logger.info(f"Toggle ignored while {self.effective_state().value}")
            return False
        try:
            ok = await self.playback.toggle()
        except Exception as e:
            logger.error(f"Playback toggle raised: {e}")
            ok = False
        if not ok and self.prediction is prediction:
            self.revert_prediction()
        return ok

    # Audio -----------------------------------------------------------------

    def sample_audio(self) -> None:
        now = self._clock()
        if self.effective_state() is PlayerState.PLAYING:
            interval = self.config.audio_interval_playing_ms
        else:
            interval = self.config.audio_interval_idle_ms
        if now - self._last_audio_sample < interval / 1000:
            return
        self._last_audio_sample = now
        try:
            self.audio = self.audio_source.sample()
        except Exception as e:
            logger.warning(f"Audio sampling failed: {e}")
            self.audio = AudioData.silent()

    # Frames and timing -----------------------------------------------------

    def generate_frame(self) -> np.ndarray:
        theme = self.theme
        state = self.effective_state()
        try:
            frame = None
            if state is not PlayerState.PLAYING:
                frame = theme.state_frame(state)
            if frame is None:
                reactive = theme.as_audio_reactive()
                if reactive is not None and self.audio.is_playing:
                    frame = reactive.generate_audio_frame(self.frame_index, self.audio)
                else:
                    frame = theme.generate_frame(self.frame_index)
        except Exception as e:
            logger.error(f"Theme {theme.name} failed on frame {self.frame_index}: {e}")
            return empty_frame()
        return apply_mask(sanitize_frame(frame))

    def render_now(self) -> None:
        self.presenter.submit(self.generate_frame(), self.theme.brightness)

    def frame_duration(self) -> int:
        if self.sequence is not None:
            return self.sequence.current_duration()
        provider = self.theme.as_frame_duration_provider()
        if provider is not None:
            return provider.frame_duration(self.frame_index)
        return self.theme.animation_speed

    def next_delay_ms(self, animating: bool) -> float:
        if not animating:
            return self.config.idle_poll_ms if self.media_available else self.config.offline_poll_ms

        duration = float(self.frame_duration())
        beat = self.audio.beat_intensity
        if self.audio.is_playing and self.theme.as_audio_reactive() is not None:
            if beat > AUDIO_REACTIVE_BEAT:
                duration *= AUDIO_REACTIVE_SPEEDUP
            duration = max(duration, self.config.min_audio_frame_ms)
        elif self.audio.is_playing and beat > BEAT_MIN:
            duration *= 1 - beat * BEAT_SPEEDUP
        return max(duration, self.config.min_frame_ms)

    def advance_frame(self) -> None:
        if self.sequence is not None:
            self.sequence.advance()
            self.frame_index = self.sequence.current_frame_index()
            logger.debug(self.sequence.describe())
        else:
            self.frame_index = (self.frame_index + 1) % max(1, self.theme.frame_count)

    # Loop ------------------------------------------------------------------

    async def tick(self) -> tuple[bool, float]:
        """One control-loop pass; returns (animating, delay_ms)."""
        await self.poll()
        self.sample_audio()
        self.refresh_theme()
        animating = self.effective_state() is PlayerState.PLAYING
        self.render_now()
        return animating, self.next_delay_ms(animating)

    async def run(self) -> None:
        logger.info(f"Animation driver started with theme {self.theme.name}")
        while not self._stopped:
            animating, delay_ms = await self.tick()
            await self._sleep(delay_ms / 1000)
            if animating and not self._stopped and self.effective_state() is PlayerState.PLAYING:
                self.advance_frame()
        logger.info("Animation driver stopped")

    def stop(self) -> None:
        self._stopped = True
        self.presenter.close()
