"""Built-in ZIP archive backend."""

import logging
import os
import zipfile
import zlib
from typing import List

from .base import ArchiveBackend, ArchiveError

logger = logging.getLogger(__name__)

# Bytes read from each member during the integrity test
TEST_READ_SIZE = 1024


class ZipArchiveBackend(ArchiveBackend):
    """Standard ZIP container, deflate or store per member."""

    extension = ".zip"

    def __init__(self, compressed: bool = True):
        self.compressed = compressed
        self.compression = zipfile.ZIP_DEFLATED if compressed else zipfile.ZIP_STORED
        self.label = "ZIP" if compressed else "ZIP (uncompressed)"

    @property
    def description(self) -> str:
        if self.compressed:
            return "ZIP compressed (built-in)"
        return "ZIP uncompressed (built-in)"

    def create(self, archive_path: str, members: List[str]) -> None:
        # A failure leaves a partial file behind; it stays untrusted until test() passes
        try:
            # Members dated before 1980 are clamped to 1980-01-01 instead of rejected
            with zipfile.ZipFile(archive_path, 'w', compression=self.compression,
                                 strict_timestamps=False) as zf:
                for member in members:
                    try:
                        zf.write(member, arcname=os.path.basename(member))
                    except (OSError, ValueError) as e:
                        raise ArchiveError(f"failed to add file {member} to archive: {e}") from e
        except ArchiveError:
            raise
        except (OSError, ValueError) as e:
            raise ArchiveError(f"failed to create archive file: {e}") from e

        logger.debug(f"Wrote {len(members)} files to {archive_path}")

    def test(self, archive_path: str) -> None:
        try:
            zf = zipfile.ZipFile(archive_path, 'r')
        except (zipfile.BadZipFile, OSError) as e:
            raise ArchiveError(f"failed to open ZIP file for testing: {e}") from e

        with zf:
            for info in zf.infolist():
                try:
                    with zf.open(info) as member:
                        member.read(TEST_READ_SIZE)
                except (zipfile.BadZipFile, zlib.error, EOFError, OSError) as e:
                    raise ArchiveError(f"failed to read file {info.filename} in archive: {e}") from e
