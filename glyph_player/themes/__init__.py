"""Bundled themes."""

from glyph_player.themes.base import Theme, ThemeConfigError
from glyph_player.themes.cross import CrossTheme
from glyph_player.themes.pendulum import PendulumTheme
from glyph_player.themes.pulse import PulseTheme
from glyph_player.themes.tiers import TierTheme
from glyph_player.themes.wave import WaveTheme

BUNDLED_THEMES: dict[str, type[Theme]] = {
    cls.name: cls
    for cls in (CrossTheme, PendulumTheme, PulseTheme, TierTheme, WaveTheme)
}

__all__ = [
    "BUNDLED_THEMES",
    "CrossTheme",
    "PendulumTheme",
    "PulseTheme",
    "Theme",
    "ThemeConfigError",
    "TierTheme",
    "WaveTheme",
]
