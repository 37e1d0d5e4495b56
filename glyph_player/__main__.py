#!/usr/bin/env python3
"""Run the glyph player service: python -m glyph_player"""

import asyncio
import logging
import sys

from glyph_player.config import ServiceConfig
from glyph_player.service import main
from glyph_player.themes import ThemeConfigError


def run() -> None:
    try:
        config = ServiceConfig.from_env()
    except ValueError as e:
        logging.basicConfig(level=logging.INFO)
        logging.getLogger("glyph_player").error(f"Invalid configuration: {e}")
        sys.exit(1)

    logging.basicConfig(level=getattr(logging, config.log_level))
    try:
        asyncio.run(main(config))
    except ThemeConfigError as e:
        logging.getLogger("glyph_player").error(f"Invalid theme configuration: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
