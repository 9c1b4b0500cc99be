"""The monitoring loop command."""

import logging
import sys
import threading

import click

from cli.utils import build_app, handle_error, load_app_config, print_banner, setup_logging
from errors import FatalError, IdleTimeout
from pipeline import install_signal_handlers

logger = logging.getLogger(__name__)


def register_commands(cli):
    """Register run command with main CLI."""

    @cli.command('run')
    @click.option('--test', 'test_mode', is_flag=True,
                  help='Test mode: exit on errors, exit 0 after 2 minutes without new images')
    @click.option('--once', is_flag=True, help='Run a single scan and exit')
    @click.pass_context
    def run(ctx, test_mode, once):
        """Monitor the camera directory and deliver archives.

        Every scan first retries archives left in the temp directory, then
        archives one batch per area that has enough images.

        Examples:
            # Continuous monitoring until Ctrl+C
            python -m main run

            # Single pass, e.g. from cron
            python -m main run --once

            # Automated testing
            python -m main run --test
        """
        verbose = ctx.obj['verbose']

        try:
            config, areas, base_dir = load_app_config(ctx.obj['config_path'], ctx.obj['areas_path'])
            setup_logging(config, verbose, base_dir)
            app = build_app(config, areas, base_dir, test_mode=test_mode)
        except Exception as e:
            handle_error(e, verbose)
            return

        print_banner(app)

        stop_event = threading.Event()
        install_signal_handlers(stop_event)

        try:
            app.run(stop_event, once=once)
        except IdleTimeout as e:
            click.echo(f"Test timeout: {e}. Exiting.")
            sys.exit(0)
        except FatalError as e:
            logger.error(f"FATAL ERROR (Test Mode): {e}")
            click.echo(f"FATAL ERROR: {e}", err=True)
            sys.exit(1)
