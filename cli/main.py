"""Main CLI entry point - Root command group with global options."""

import click

from version import __version__


@click.group()
@click.option('--config', '-c', default=None, help='config.env path (default: search app dir, then cwd)')
@click.option('--areas', '-a', default=None, help='areas.txt path (default: search app dir, then cwd)')
@click.option('--verbose', '-v', is_flag=True, help='Show debug logging on console')
@click.version_option(version=__version__, prog_name='AstroCam')
@click.pass_context
def cli(ctx, config, areas, verbose):
    """AstroCam - camera image batching and upload.

    Watches the camera directory, packs every COUNT images of an area into
    one archive, moves the images to the processed directory and uploads
    the archive to the server.

    Examples:
        # Create template configuration files
        python -m main config init

        # Start monitoring
        python -m main run

        # Automated test run
        python -m main run --test
    """
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config
    ctx.obj['areas_path'] = areas
    ctx.obj['verbose'] = verbose


def register_all_commands():
    """Register all command modules with the main CLI."""
    from cli import config_commands, run_commands

    config_commands.register_commands(cli)
    run_commands.register_commands(cli)


# Register all commands when module is imported
register_all_commands()
