#!/usr/bin/env python3
"""
main.py — Quick-start entry point.

Configure through the environment or a .env / 00-<GO_ENV>.env file
(see tile_mosaic.config.ENV_VARS) and run:

    python main.py build

Or pass everything on the command line:

    python -m tile_mosaic.cli index --tiles photos/ --tile-size 48
    python -m tile_mosaic.cli build portrait.jpg --tiles photos/ -o mosaic.png
"""

from tile_mosaic.cli import app

if __name__ == "__main__":
    app()
