"""Shared utilities for CLI commands."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional, Tuple

import click

from archiver import ArchiveBackend, select_backend
from config import Config, MIN_INTERVAL, create_directories_if_needed, load_areas, load_config
from file_locator import determine_fits_extension
from pipeline import AstroCam


def load_app_config(config_path: Optional[str],
                    areas_path: Optional[str]) -> Tuple[Config, List[str], Path]:
    """Load configuration and the monitored areas.

    Returns:
        Tuple of (config, areas, base_dir)

    Raises:
        FileNotFoundError: If areas.txt (or an explicit config path) is missing
    """
    config, base_dir = load_config(config_path)
    areas = load_areas(areas_path)
    return config, areas, base_dir


def setup_logging(config: Config, verbose: bool = False, base_dir: Optional[Path] = None):
    """Log to a rotating file and to the console.

    Args:
        config: Application configuration
        verbose: Whether to show debug messages on the console
        base_dir: Directory relative log file paths are resolved against
    """
    log_file = Path(config.logging.file)
    if not log_file.is_absolute() and base_dir is not None:
        log_file = Path(base_dir) / log_file
    log_file.parent.mkdir(parents=True, exist_ok=True)

    # Clear any existing handlers
    root_logger = logging.getLogger()
    root_logger.handlers = []

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=config.logging.max_bytes,
        backupCount=config.logging.backup_count
    )
    file_handler.setLevel(getattr(logging, config.logging.level))
    file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s: %(message)s'))

    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    # Quiet HTTP client internals
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)


def handle_error(error: Exception, verbose: bool = False):
    """Handle and display errors consistently.

    Args:
        error: Exception to handle
        verbose: Whether to show full traceback
    """
    click.echo(f"Error: {error}", err=True)
    if verbose:
        import traceback
        click.echo(traceback.format_exc(), err=True)
    sys.exit(1)


def build_app(config: Config, areas: List[str], base_dir: Path, test_mode: bool = False,
              backend: Optional[ArchiveBackend] = None) -> AstroCam:
    """Create directories, pick the archive backend and probe the FITS extension."""
    temp_dir = create_directories_if_needed(config, base_dir)
    backend = backend or select_backend(config.archive_mode)
    fits_extension = determine_fits_extension(config.camera_directory)

    return AstroCam(
        config,
        areas,
        backend,
        temp_directory=str(temp_dir),
        fits_extension=fits_extension,
        test_mode=test_mode
    )


def print_banner(app: AstroCam):
    """Show the effective configuration at startup."""
    config = app.config
    mode = "TEST" if app.test_mode else "NORMAL OPERATION"

    click.echo("=" * 40)
    click.echo(f"ASTROCAM STARTING IN {mode} MODE")
    if app.test_mode:
        click.echo(f"Test timeout: {app.idle_timeout / 60:.0f} minutes")
    click.echo("=" * 40)
    click.echo("Configuration:")

    actual = config.effective_interval
    if config.requested_interval != actual:
        click.echo(f"  Scan interval: {actual} seconds "
                   f"(requested: {config.requested_interval}, minimum: {MIN_INTERVAL}, using: {actual})")
    else:
        click.echo(f"  Scan interval: {actual} seconds (minimum: {MIN_INTERVAL})")

    click.echo(f"  Files per archive: {config.count}")
    click.echo(f"  Areas: {', '.join(app.areas) if app.areas else '(none)'}")
    click.echo(f"  Camera directory: {config.camera_directory}")
    click.echo(f"  Processed directory: {config.processed_directory}")
    click.echo(f"  Temp directory: {app.temp_directory}")
    click.echo(f"  Archive mode: {config.archive_mode}")
    click.echo(f"  Archive format: {app.backend.description}")
    click.echo(f"  FITS file extension: {app.fits_extension}")
    click.echo(f"  Server: {config.server or '(not set)'}")

    if config.has_credentials():
        click.echo(f"  Authentication: Enabled (username: {config.username})")
    else:
        click.echo("  Authentication: Disabled (no credentials provided)")
    click.echo("=" * 40)
