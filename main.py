#!/usr/bin/env python3
"""AstroCam - batch camera images into archives and deliver them to the server.

Examples:
    # Get help
    python -m main --help

    # Create config.env and areas.txt templates
    python -m main config init

    # Continuous monitoring
    python -m main run

    # CI run: fail fast, exit 0 after two idle minutes
    python -m main run --test
"""

from cli.main import cli

if __name__ == '__main__':
    cli()
