"""Service entry point: wires sources, catalog, driver and display together."""

import asyncio
import logging
import signal

from glyph_player.catalog import bundled_catalog
from glyph_player.config import ServiceConfig
from glyph_player.display import FramebufferDisplay, PreviewDisplay
from glyph_player.driver import AnimationDriver, FramePresenter
from glyph_player.sources import (
    MetadataPlaybackSource,
    MpdClient,
    MpdPlaybackSource,
    SilentAudioSource,
    SpectrumAudioSource,
)

logger = logging.getLogger(__name__)


def build_playback_source(config: ServiceConfig):
    if config.playback_source == "mpd":
        return MpdPlaybackSource(MpdClient(config.mpd_host, config.mpd_port))
    return MetadataPlaybackSource(config.metadata_url, config.metadata_ws_url)


def build_display(config: ServiceConfig):
    if config.display_output == "preview":
        return PreviewDisplay(config.preview_path)
    display = FramebufferDisplay(config.fb_device)
    display.open()
    return display


async def main(config: ServiceConfig) -> None:
    """Start all tasks."""
    logger.info("Starting glyph player")
    logger.info(f"  Playback source: {config.playback_source}")
    logger.info(f"  Spectrum WS: {config.spectrum_ws_url or 'disabled'}")
    logger.info(f"  Output: {config.display_output}")

    catalog = bundled_catalog(config.theme)
    if config.theme_settings:
        catalog.update_settings(config.theme, config.theme_settings)
    # Reject bad theme settings before touching the display
    catalog.build()

    audio = SpectrumAudioSource(config.spectrum_ws_url) if config.spectrum_ws_url else SilentAudioSource()
    display = build_display(config)
    presenter = FramePresenter(display)
    try:
        driver = AnimationDriver(catalog, build_playback_source(config), audio, presenter, config.driver)
        tasks = [asyncio.create_task(driver.run()), asyncio.create_task(presenter.run())]
        if isinstance(audio, SpectrumAudioSource):
            tasks.append(asyncio.create_task(audio.run()))

        def shutdown() -> None:
            logger.info("Shutting down")
            driver.stop()
            for task in tasks:
                task.cancel()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, shutdown)

        try:
            await asyncio.gather(*tasks)
        except asyncio.CancelledError:
            pass
    finally:
        presenter.close()
        display.close()
