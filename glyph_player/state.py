"""Player states and the playback status reported by a media source."""

from dataclasses import dataclass
from enum import Enum


class PlayerState(Enum):
    PLAYING = "playing"
    PAUSED = "paused"
    OFFLINE = "offline"
    LOADING = "loading"
    ERROR = "error"


@dataclass(frozen=True)
class PlaybackStatus:
    media_available: bool
    playing: bool
    buffering: bool = False

    def to_state(self) -> PlayerState:
        if not self.media_available:
            return PlayerState.OFFLINE
        if self.buffering:
            return PlayerState.LOADING
        return PlayerState.PLAYING if self.playing else PlayerState.PAUSED


OFFLINE_STATUS = PlaybackStatus(media_available=False, playing=False)
