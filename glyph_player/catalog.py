"""Shared theme selection and per-theme settings.

One ThemeCatalog is created at startup and handed to every driver that
renders themes. Selection and settings changes bump a version number;
drivers compare it against the version they last applied, the same
change-detection scheme used for metadata updates.
"""

import logging
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from glyph_player.themes import BUNDLED_THEMES
from glyph_player.themes.base import Theme, ThemeConfigError

logger = logging.getLogger(__name__)

ThemeFactory = Callable[[Mapping[str, Any]], Theme]


@dataclass(frozen=True)
class CatalogSnapshot:
    name: str
    settings: dict[str, Any] = field(default_factory=dict)
    version: int = 0


class ThemeCatalog:
    def __init__(self, factories: Mapping[str, ThemeFactory], selected: str):
        if selected not in factories:
            raise ThemeConfigError(f"Unknown theme: {selected!r}")
        self._factories = dict(factories)
        self._lock = threading.Lock()
        self._selected = selected
        self._settings: dict[str, dict[str, Any]] = {}
        self._version = 0

    @property
    def names(self) -> list[str]:
        return sorted(self._factories)

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    def select(self, name: str) -> None:
        if name not in self._factories:
            raise ThemeConfigError(f"Unknown theme: {name!r}")
        with self._lock:
            if name == self._selected:
                return
            self._selected = name
            self._version += 1
        logger.info(f"Theme selected: {name}")

    def update_settings(self, name: str, settings: Mapping[str, Any]) -> None:
        """Replace the settings of a theme (selected or not)."""
        if name not in self._factories:
            raise ThemeConfigError(f"Unknown theme: {name!r}")
        with self._lock:
            self._settings[name] = dict(settings)
            self._version += 1
        logger.info(f"Settings changed for {name}: {dict(settings)}")

    def settings(self, name: str) -> dict[str, Any]:
        with self._lock:
            return dict(self._settings.get(name, {}))

    def snapshot(self) -> CatalogSnapshot:
        with self._lock:
            return CatalogSnapshot(
                name=self._selected,
                settings=dict(self._settings.get(self._selected, {})),
                version=self._version,
            )

    def build(self, snapshot: CatalogSnapshot | None = None) -> Theme:
        """Instantiate the selected theme with its settings.

        Raises ThemeConfigError if the settings are rejected.
        """
        snap = snapshot or self.snapshot()
        return self._factories[snap.name](snap.settings)


def bundled_catalog(selected: str = "cross") -> ThemeCatalog:
    return ThemeCatalog(
        {name: cls.from_settings for name, cls in BUNDLED_THEMES.items()}, selected
    )
