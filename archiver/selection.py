"""Archive backend selection from the configured archive mode."""

import logging
from typing import Callable, Optional

from .base import ArchiveBackend
from .rar_archive import RarArchiveBackend, find_rar_executable
from .zip_archive import ZipArchiveBackend

logger = logging.getLogger(__name__)


def select_backend(archive_mode: str = "auto",
                   rar_finder: Callable[[], Optional[str]] = find_rar_executable) -> ArchiveBackend:
    """Pick the archive backend once at startup.

    auto prefers rar when installed and falls back to compressed ZIP.
    An explicit rar request without the tool also falls back, with a warning.
    """
    if archive_mode == "zip":
        return ZipArchiveBackend(compressed=True)
    if archive_mode == "zip-uncompressed":
        return ZipArchiveBackend(compressed=False)

    rar_path = rar_finder()

    if archive_mode == "rar" and not rar_path:
        logger.warning("RAR mode requested but rar command not found, falling back to compressed ZIP")

    if rar_path:
        return RarArchiveBackend(rar_path)
    return ZipArchiveBackend(compressed=True)
