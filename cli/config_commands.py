"""Configuration management commands."""

from pathlib import Path

import click

from archiver import select_backend
from config import AREAS_FILENAME, CONFIG_FILENAME, create_default_config
from cli.utils import handle_error, load_app_config


def register_commands(cli):
    """Register config commands with main CLI."""

    @cli.group('config')
    @click.pass_context
    def config_group(ctx):
        """Configuration management commands.

        Create template files and inspect the effective configuration.
        """
        pass

    @config_group.command('init')
    @click.pass_context
    def init_config(ctx):
        """Create template config.env and areas.txt files.

        Examples:
            # Create config.env and areas.txt in the current directory
            python -m main config init

            # Create them at custom locations
            python -m main --config site.env --areas site_areas.txt config init
        """
        config_path = ctx.obj['config_path'] or CONFIG_FILENAME
        areas_path = ctx.obj['areas_path'] or AREAS_FILENAME

        if Path(config_path).exists():
            click.echo(f"Configuration file already exists: {config_path}")
            if not click.confirm("Overwrite existing configuration?"):
                return

        # Never clobber an existing area list
        write_areas = not Path(areas_path).exists()
        create_default_config(config_path, areas_path if write_areas else None)

        click.echo(f"✓ Created configuration file: {config_path}")
        if write_areas:
            click.echo(f"✓ Created areas file: {areas_path}")
        else:
            click.echo(f"Kept existing areas file: {areas_path}")
        click.echo("\nNext steps:")
        click.echo("  1. Set SAI_SERVER and, if required, SAI_USERNAME / SAI_PASSWORD")
        click.echo("  2. Point SAI_CAMERA_DIRECTORY at the camera output folder")
        click.echo("  3. List the monitored areas in areas.txt, one per line")
        click.echo("  4. Check the result with: python -m main config show")

    @config_group.command('show')
    @click.pass_context
    def show_config(ctx):
        """Show the effective configuration and archive backend."""
        verbose = ctx.obj['verbose']

        try:
            config, areas, base_dir = load_app_config(ctx.obj['config_path'], ctx.obj['areas_path'])
            backend = select_backend(config.archive_mode)
        except Exception as e:
            handle_error(e, verbose)
            return

        click.echo(f"Base directory:      {base_dir}")
        click.echo(f"Server:              {config.server or '(not set)'}")
        click.echo(f"Username:            {config.username or '(none)'}")
        click.echo(f"Password:            {'********' if config.password else '(none)'}")
        click.echo(f"Camera directory:    {config.camera_directory}")
        click.echo(f"Processed directory: {config.processed_directory}")
        click.echo(f"Scan interval:       {config.effective_interval}s (requested {config.requested_interval}s)")
        click.echo(f"Files per archive:   {config.count}")
        click.echo(f"Prefix / postfix:    '{config.prefix}' / '{config.postfix}'")
        click.echo(f"Archive mode:        {config.archive_mode}")
        click.echo(f"Archive format:      {backend.description}")
        click.echo(f"Log file:            {config.logging.file} ({config.logging.level})")
        click.echo(f"Areas ({len(areas)}):")
        for area in areas:
            click.echo(f"  - {area}")
