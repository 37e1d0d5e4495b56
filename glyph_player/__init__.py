"""Animation engine for a circular 25x25 LED matrix that follows playback state."""

__version__ = "0.4.0"
