"""Adapters for the playback and audio collaborators.

Playback status comes either from the metadata service (HTTP document plus
its WebSocket control channel) or straight from MPD. Audio features are
derived from the spectrum analyzer's WebSocket stream of per-band dBFS
values.
"""

import asyncio
import json
import logging
import socket
import time
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

import numpy as np
import requests
import websockets
from websockets.exceptions import WebSocketException

from glyph_player.audio import AudioData
from glyph_player.state import OFFLINE_STATUS, PlaybackStatus

logger = logging.getLogger(__name__)

NUM_BANDS = 19  # default, updated on first WS message
NOISE_FLOOR = -72.0  # dBFS
REF_LEVEL = 0.0  # dBFS
DB_RANGE = REF_LEVEL - NOISE_FLOOR
ACTIVE_MARGIN_DB = 3.0

BEAT_TRIGGER = 0.3
BEAT_MIN_GAP_S = 0.2
BEAT_DECAY = 0.95
STALE_AFTER_S = 1.0
RECONNECT_DELAY_S = 5


class PlaybackSource(Protocol):
    async def poll(self) -> PlaybackStatus: ...

    async def toggle(self) -> bool: ...


class AudioSource(Protocol):
    def sample(self) -> AudioData: ...


def status_from_metadata(data: dict[str, Any] | None) -> PlaybackStatus:
    """Map a metadata.json document onto a playback status.

    A stream flagged as playing without a title yet is still buffering.
    """
    if not data:
        return OFFLINE_STATUS
    playing = bool(data.get("playing"))
    has_track = bool(data.get("title"))
    if playing:
        return PlaybackStatus(media_available=True, playing=True, buffering=not has_track)
    if has_track:
        return PlaybackStatus(media_available=True, playing=False)
    return OFFLINE_STATUS


class MetadataPlaybackSource:
    """Polls metadata.json; toggles through the metadata service's control socket."""

    def __init__(self, metadata_url: str, control_ws_url: str, timeout: float = 3):
        self.metadata_url = metadata_url
        self.control_ws_url = control_ws_url
        self.timeout = timeout

    def fetch(self) -> dict[str, Any]:
        resp = requests.get(self.metadata_url, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    async def poll(self) -> PlaybackStatus:
        data = await asyncio.get_event_loop().run_in_executor(None, self.fetch)
        return status_from_metadata(data)

    async def toggle(self) -> bool:
        try:
            async with websockets.connect(self.control_ws_url, open_timeout=self.timeout) as ws:
                await ws.send(json.dumps({"cmd": "toggle_play"}))
            return True
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            logger.warning(f"Playback toggle via {self.control_ws_url} failed: {e}")
            return False


class MpdClient:
    """Minimal blocking MPD protocol client (one connection per request)."""

    def __init__(self, host: str, port: int, timeout: float = 5):
        self.host = host
        self.port = port
        self.timeout = timeout

    def _connect(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(self.timeout)
        try:
            sock.connect((self.host, self.port))
            self.read_greeting(sock)
        except OSError:
            sock.close()
            raise
        return sock

    @staticmethod
    def read_response(sock: socket.socket) -> bytes:
        """Read MPD response until OK or ACK"""
        response = b""
        while True:
            chunk = sock.recv(1024)
            if not chunk:
                break  # connection closed
            response += chunk
            if MpdClient.is_complete(response):
                break
        return response

    @staticmethod
    def is_complete(response: bytes) -> bool:
        """True once the last full line is the OK or ACK terminator."""
        if not response.endswith(b"\n"):
            return False
        last = response[:-1].rsplit(b"\n", 1)[-1]
        return last == b"OK" or last.startswith(b"ACK ")

    @staticmethod
    def parse_response(response: bytes) -> dict[str, str]:
        lines = response.decode("utf-8", errors="replace").split("\n")
        return {
            key: value for line in lines
            if ": " in line
            for key, value in [line.split(": ", 1)]
        }

    @staticmethod
    def read_greeting(sock: socket.socket) -> None:
        greeting = sock.recv(1024)
        if not greeting.startswith(b"OK MPD"):
            raise ConnectionError(f"Unexpected MPD greeting: {greeting[:40]!r}")

    def command(self, sock: socket.socket, line: str) -> dict[str, str]:
        sock.sendall(f"{line}\n".encode())
        response = self.read_response(sock)
        if response.startswith(b"ACK"):
            raise ConnectionError(f"MPD rejected {line!r}: {response.decode(errors='replace').strip()}")
        return self.parse_response(response)

    def status(self) -> dict[str, str]:
        sock = self._connect()
        try:
            return self.command(sock, "status")
        finally:
            sock.close()

    def toggle(self) -> bool:
        sock = self._connect()
        try:
            state = self.command(sock, "status").get("state", "stop")
            if state == "play":
                self.command(sock, "pause 1")
                logger.info("MPD: paused")
            else:
                self.command(sock, "play")
                logger.info("MPD: playing")
            return True
        finally:
            sock.close()


def status_from_mpd(status: dict[str, str]) -> PlaybackStatus:
    state = status.get("state", "stop")
    if state == "play":
        return PlaybackStatus(media_available=True, playing=True)
    if state == "pause":
        return PlaybackStatus(media_available=True, playing=False)
    return OFFLINE_STATUS


class MpdPlaybackSource:
    def __init__(self, client: MpdClient):
        self.client = client

    async def poll(self) -> PlaybackStatus:
        status = await asyncio.get_event_loop().run_in_executor(None, self.client.status)
        return status_from_mpd(status)

    async def toggle(self) -> bool:
        try:
            return await asyncio.get_event_loop().run_in_executor(None, self.client.toggle)
        except OSError as e:
            logger.warning(f"MPD playback toggle failed: {e}")
            return False


class BandFeatureExtractor:
    """Reduce per-band dBFS values to the four audio features.

    Bands are assumed log-spaced from low to high; the lower, middle and
    upper thirds stand in for bass, mids and treble. The beat envelope
    jumps to the overall energy when it crosses BEAT_TRIGGER (at most once
    every BEAT_MIN_GAP_S) and decays geometrically otherwise.
    """

    def __init__(self) -> None:
        self.beat = 0.0
        self._last_beat = -float("inf")

    def extract(self, bands_db: np.ndarray, now: float) -> AudioData:
        levels = np.clip((bands_db - NOISE_FLOOR) / DB_RANGE, 0.0, 1.0)
        bass, mid, treble = (
            float(part.mean()) if part.size else 0.0
            for part in np.array_split(levels, 3)
        )
        energy = float(np.sqrt(np.mean(levels ** 2))) if levels.size else 0.0
        if energy > BEAT_TRIGGER and now - self._last_beat >= BEAT_MIN_GAP_S:
            self.beat = energy
            self._last_beat = now
        else:
            self.beat *= BEAT_DECAY
        active = bool(np.any(bands_db > NOISE_FLOOR + ACTIVE_MARGIN_DB))
        return AudioData(
            beat_intensity=min(1.0, self.beat),
            bass_level=bass,
            mid_level=mid,
            treble_level=treble,
            is_playing=active,
        )


class SpectrumAudioSource:
    """Keeps the latest spectrum frame from the analyzer WebSocket."""

    def __init__(self, ws_url: str, clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.ws_url = ws_url
        self._clock = clock
        self._sleep = sleep
        self.bands = np.full(NUM_BANDS, NOISE_FLOOR)
        self.extractor = BandFeatureExtractor()
        self._last_message: float | None = None

    def update(self, message: str | bytes) -> None:
        """Parse one "v1;v2;...;vN" message of dBFS values."""
        if isinstance(message, bytes):
            message = message.decode("utf-8", errors="replace")
        values = message.split(";")
        if len(values) != len(self.bands):
            self.bands = np.full(len(values), NOISE_FLOOR)
        for i, raw in enumerate(values):
            try:
                v = float(raw)
                self.bands[i] = v if not np.isnan(v) else NOISE_FLOOR
            except ValueError:
                self.bands[i] = NOISE_FLOOR
        self._last_message = self._clock()

    def sample(self) -> AudioData:
        now = self._clock()
        if self._last_message is None or now - self._last_message > STALE_AFTER_S:
            return AudioData.silent()
        return self.extractor.extract(self.bands, now)

    async def run(self) -> None:
        while True:
            try:
                async with websockets.connect(self.ws_url) as ws:
                    logger.info(f"Connected to spectrum WebSocket: {self.ws_url}")
                    async for message in ws:
                        self.update(message)
            except Exception as e:
                logger.debug(f"Spectrum WS error: {e}")
            self.bands[:] = NOISE_FLOOR
            self._last_message = None
            await self._sleep(RECONNECT_DELAY_S)


class SilentAudioSource:
    def sample(self) -> AudioData:
        return AudioData.silent()
