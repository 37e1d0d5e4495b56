"""Tests for playback and audio source adapters (no network)."""

import asyncio
import json
import socket
from unittest.mock import AsyncMock, MagicMock, call, patch

import numpy as np
import pytest
import requests

from glyph_player.sources import (
    NOISE_FLOOR,
    BandFeatureExtractor,
    MetadataPlaybackSource,
    MpdClient,
    MpdPlaybackSource,
    SilentAudioSource,
    SpectrumAudioSource,
    status_from_metadata,
    status_from_mpd,
)
from glyph_player.state import PlayerState


def _mpd_socket(*responses: bytes) -> MagicMock:
    sock = MagicMock(spec=socket.socket)
    sock.recv.side_effect = [b"OK MPD 0.23.5\n", *responses]
    return sock


def _run_with_socket(sock: MagicMock, make_coro):
    """Run a coroutine with socket.socket patched, creating the event loop
    first so its internal self-pipe is built from real sockets."""
    loop = asyncio.new_event_loop()
    try:
        with patch("socket.socket", return_value=sock):
            return loop.run_until_complete(make_coro())
    finally:
        loop.close()


class TestStatusFromMetadata:
    """Test metadata.json -> playback status mapping."""

    def test_playing_with_title(self):
        status = status_from_metadata({"playing": True, "title": "Song"})
        assert status.to_state() is PlayerState.PLAYING

    def test_playing_without_title_is_loading(self):
        status = status_from_metadata({"playing": True, "title": ""})
        assert status.to_state() is PlayerState.LOADING

    def test_stopped_with_track_is_paused(self):
        status = status_from_metadata({"playing": False, "title": "Song"})
        assert status.to_state() is PlayerState.PAUSED

    def test_nothing_is_offline(self):
        assert status_from_metadata({"playing": False, "source": "MPD"}).to_state() is PlayerState.OFFLINE
        assert status_from_metadata({}).to_state() is PlayerState.OFFLINE
        assert status_from_metadata(None).to_state() is PlayerState.OFFLINE


class TestStatusFromMpd:
    def test_states(self):
        assert status_from_mpd({"state": "play"}).to_state() is PlayerState.PLAYING
        assert status_from_mpd({"state": "pause"}).to_state() is PlayerState.PAUSED
        assert status_from_mpd({"state": "stop"}).to_state() is PlayerState.OFFLINE
        assert status_from_mpd({}).to_state() is PlayerState.OFFLINE


class TestMpdClient:
    """Test the MPD protocol client against a mocked socket."""

    def test_read_response_stops_on_ok(self):
        sock = MagicMock(spec=socket.socket)
        sock.recv.side_effect = [b"state: play\n", b"volume: 40\nOK\n"]
        assert MpdClient.read_response(sock) == b"state: play\nvolume: 40\nOK\n"

    def test_read_response_connection_closed(self):
        sock = MagicMock(spec=socket.socket)
        sock.recv.return_value = b""
        assert MpdClient.read_response(sock) == b""
        sock.recv.assert_called_once_with(1024)

    def test_read_response_terminator_split_across_reads(self):
        sock = MagicMock(spec=socket.socket)
        sock.recv.side_effect = [b"state: play\nO", b"K\n"]
        assert MpdClient.read_response(sock) == b"state: play\nOK\n"
        assert sock.recv.call_count == 2

    def test_read_response_value_ending_in_ok(self):
        sock = MagicMock(spec=socket.socket)
        sock.recv.side_effect = [b"title: BOOK\n", b"OK\n"]
        assert MpdClient.read_response(sock) == b"title: BOOK\nOK\n"
        assert sock.recv.call_count == 2

    def test_read_response_ack_split_across_reads(self):
        sock = MagicMock(spec=socket.socket)
        sock.recv.side_effect = [b"AC", b"K [5@0] {} unknown command\n"]
        assert MpdClient.read_response(sock).startswith(b"ACK [5@0]")

    def test_parse_response(self):
        parsed = MpdClient.parse_response(b"state: pause\ntitle: A: B\nOK\n")
        assert parsed == {"state": "pause", "title": "A: B"}

    def test_status(self):
        sock = _mpd_socket(b"volume: 50\nstate: play\nOK\n")
        with patch("socket.socket", return_value=sock):
            status = MpdClient("localhost", 6600).status()
        assert status["state"] == "play"
        sock.sendall.assert_called_once_with(b"status\n")
        sock.close.assert_called_once()

    def test_bad_greeting(self):
        sock = MagicMock(spec=socket.socket)
        sock.recv.return_value = b"HTTP/1.1 400\n"
        with patch("socket.socket", return_value=sock):
            with pytest.raises(ConnectionError):
                MpdClient("localhost", 6600).status()
        sock.close.assert_called_once()

    def test_ack_raises(self):
        sock = _mpd_socket(b"ACK [5@0] {} unknown command\n")
        with patch("socket.socket", return_value=sock):
            with pytest.raises(ConnectionError):
                MpdClient("localhost", 6600).status()

    def test_toggle_pauses_when_playing(self):
        sock = _mpd_socket(b"state: play\nOK\n", b"OK\n")
        with patch("socket.socket", return_value=sock):
            assert MpdClient("localhost", 6600).toggle()
        assert sock.sendall.call_args_list == [call(b"status\n"), call(b"pause 1\n")]

    def test_toggle_plays_when_paused(self):
        sock = _mpd_socket(b"state: pause\nOK\n", b"OK\n")
        with patch("socket.socket", return_value=sock):
            assert MpdClient("localhost", 6600).toggle()
        assert sock.sendall.call_args_list[-1] == call(b"play\n")


class TestMpdPlaybackSource:
    def test_poll(self):
        sock = _mpd_socket(b"state: pause\nOK\n")
        status = _run_with_socket(sock, MpdPlaybackSource(MpdClient("localhost", 6600)).poll)
        assert status.to_state() is PlayerState.PAUSED

    def test_poll_connection_refused_propagates(self):
        sock = MagicMock(spec=socket.socket)
        sock.connect.side_effect = ConnectionRefusedError("refused")
        with pytest.raises(ConnectionRefusedError):
            _run_with_socket(sock, MpdPlaybackSource(MpdClient("localhost", 6600)).poll)

    def test_toggle_failure_returns_false(self):
        sock = MagicMock(spec=socket.socket)
        sock.connect.side_effect = ConnectionRefusedError("refused")
        assert not _run_with_socket(sock, MpdPlaybackSource(MpdClient("localhost", 6600)).toggle)


class TestMetadataPlaybackSource:
    """Test HTTP polling and the WebSocket toggle command."""

    def _source(self) -> MetadataPlaybackSource:
        return MetadataPlaybackSource("http://localhost:8080/metadata.json", "ws://localhost:8082")

    def test_poll(self):
        resp = MagicMock()
        resp.json.return_value = {"playing": True, "title": "Song"}
        with patch("glyph_player.sources.requests.get", return_value=resp) as get:
            status = asyncio.run(self._source().poll())
        assert status.to_state() is PlayerState.PLAYING
        get.assert_called_once_with("http://localhost:8080/metadata.json", timeout=3)

    def test_poll_error_propagates(self):
        with patch("glyph_player.sources.requests.get",
                   side_effect=requests.ConnectionError("down")):
            with pytest.raises(requests.ConnectionError):
                asyncio.run(self._source().poll())

    def test_toggle_sends_command(self):
        ws = AsyncMock()
        connection = MagicMock()
        connection.__aenter__.return_value = ws
        with patch("glyph_player.sources.websockets.connect", return_value=connection):
            assert asyncio.run(self._source().toggle())
        ws.send.assert_awaited_once_with(json.dumps({"cmd": "toggle_play"}))

    def test_toggle_connection_failure(self):
        with patch("glyph_player.sources.websockets.connect",
                   side_effect=OSError("refused")):
            assert not asyncio.run(self._source().toggle())


class FakeClock:
    def __init__(self, now: float = 50.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestBandFeatureExtractor:
    """Test dBFS bands -> audio features."""

    def test_silence(self):
        data = BandFeatureExtractor().extract(np.full(19, NOISE_FLOOR), 0.0)
        assert not data.is_playing
        assert data.bass_level == 0.0
        assert data.beat_intensity == 0.0

    def test_bass_mid_treble_split(self):
        bands = np.array([0.0, -36.0, -72.0])
        data = BandFeatureExtractor().extract(bands, 0.0)
        assert data.bass_level == pytest.approx(1.0)
        assert data.mid_level == pytest.approx(0.5)
        assert data.treble_level == pytest.approx(0.0)
        assert data.is_playing

    def test_loud_frame_triggers_beat(self):
        data = BandFeatureExtractor().extract(np.full(19, -10.0), 0.0)
        assert data.beat_intensity == pytest.approx(62 / 72)

    def test_beat_gap_and_decay(self):
        extractor = BandFeatureExtractor()
        first = extractor.extract(np.full(19, -10.0), 0.0).beat_intensity
        second = extractor.extract(np.full(19, -10.0), 0.1).beat_intensity
        assert second == pytest.approx(first * 0.95)
        third = extractor.extract(np.full(19, -10.0), 0.3).beat_intensity
        assert third == pytest.approx(first)

    def test_short_band_list(self):
        data = BandFeatureExtractor().extract(np.array([-20.0]), 0.0)
        assert data.mid_level == 0.0
        assert data.treble_level == 0.0


class TestSpectrumAudioSource:
    """Test spectrum message parsing and staleness."""

    def test_no_data_is_silent(self):
        assert SpectrumAudioSource("ws://x", clock=FakeClock()).sample() == SilentAudioSource().sample()

    def test_update_resizes_bands(self):
        source = SpectrumAudioSource("ws://x", clock=FakeClock())
        source.update("-72;-10;-20")
        assert source.bands.tolist() == [-72.0, -10.0, -20.0]

    def test_invalid_values_use_noise_floor(self):
        source = SpectrumAudioSource("ws://x", clock=FakeClock())
        source.update("abc;nan;-30")
        assert source.bands.tolist() == [NOISE_FLOOR, NOISE_FLOOR, -30.0]

    def test_sample_after_update(self):
        clock = FakeClock()
        source = SpectrumAudioSource("ws://x", clock=clock)
        source.update(";".join(["-20"] * 19))
        clock.now += 0.1
        data = source.sample()
        assert data.is_playing
        assert data.bass_level == pytest.approx(52 / 72)

    def test_stale_data_is_silent(self):
        clock = FakeClock()
        source = SpectrumAudioSource("ws://x", clock=clock)
        source.update(";".join(["-20"] * 19))
        clock.now += 2.0
        assert not source.sample().is_playing

    def test_binary_message_decoded(self):
        source = SpectrumAudioSource("ws://x", clock=FakeClock())
        source.update(b"-20;-30")
        assert source.bands.tolist() == [-20.0, -30.0]

    def test_garbage_binary_message_uses_noise_floor(self):
        source = SpectrumAudioSource("ws://x", clock=FakeClock())
        source.update(b"\x00\x01")
        assert source.bands.tolist() == [NOISE_FLOOR]


class StopReader(Exception):
    pass


class TestSpectrumReader:
    """The reader loop survives bad frames and connection errors."""

    def _run_once(self, source: SpectrumAudioSource, connect: MagicMock) -> AsyncMock:
        sleep = AsyncMock(side_effect=StopReader)
        source._sleep = sleep
        with patch("glyph_player.sources.websockets.connect", connect):
            with pytest.raises(StopReader):
                asyncio.run(source.run())
        return sleep

    def test_binary_frames_do_not_kill_reader(self):
        ws = MagicMock()
        ws.__aiter__.return_value = [b"\x00\x01", "-20;-30"]
        connection = MagicMock()
        connection.__aenter__.return_value = ws
        source = SpectrumAudioSource("ws://x", clock=FakeClock())
        source.update = MagicMock(wraps=source.update)

        sleep = self._run_once(source, MagicMock(return_value=connection))

        assert source.update.call_count == 2
        sleep.assert_awaited_once_with(5)

    def test_unexpected_error_reconnects(self):
        source = SpectrumAudioSource("ws://x", clock=FakeClock())
        source.update(";".join(["-20"] * 19))

        sleep = self._run_once(source, MagicMock(side_effect=RuntimeError("bad frame")))

        sleep.assert_awaited_once_with(5)
        assert not source.sample().is_playing
