import logging
import subprocess
from importlib.metadata import PackageNotFoundError, version as dist_version

logger = logging.getLogger(__name__)

DIST_NAME = "astrocam"


def _git_version():
    """Version from git tags and commit status."""
    tag = subprocess.check_output(
        ['git', 'describe', '--tags', '--abbrev=0'],
        stderr=subprocess.DEVNULL,
        text=True
    ).strip()

    commit = subprocess.check_output(
        ['git', 'rev-parse', '--short', 'HEAD'],
        stderr=subprocess.DEVNULL,
        text=True
    ).strip()

    tag_commit = subprocess.check_output(
        ['git', 'rev-list', '-n', '1', tag],
        stderr=subprocess.DEVNULL,
        text=True
    ).strip()[:7]

    has_changes = subprocess.call(
        ['git', 'diff-index', '--quiet', 'HEAD', '--'],
        stderr=subprocess.DEVNULL
    ) != 0

    version = tag if commit == tag_commit else f"{tag}-{commit}"
    if has_changes:
        version += "-dev"
    return version


def get_version():
    """Installed package version, else git describe, else a fallback."""
    try:
        return dist_version(DIST_NAME)
    except PackageNotFoundError:
        pass

    try:
        return _git_version()
    except (subprocess.CalledProcessError, FileNotFoundError):
        logger.debug("Could not determine version from git, using fallback")
        return "v0.0.0"


__version__ = get_version()
