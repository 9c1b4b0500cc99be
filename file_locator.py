"""Area-based discovery of camera files and batch selection."""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

# Probed in this order; the first one present in the camera directory wins
FITS_EXTENSIONS = ('.fts', '.fits', '.fit')
DEFAULT_FITS_EXTENSION = '.fts'


@dataclass
class FileBatch:
    """A full batch of same-area files selected for one archive."""
    area: str
    archive_names: List[str] = field(default_factory=list)  # basenames stored in the archive
    source_paths: List[str] = field(default_factory=list)   # absolute paths for relocation

    def __len__(self) -> int:
        return len(self.archive_names)


def area_pattern(area: str, extension: str) -> re.Pattern:
    """Regex for files belonging to an area: AREA_... or AREA-SF_..., ending in extension."""
    return re.compile(f"^{re.escape(area)}(_|-SF_).*{re.escape(extension)}$")


def sort_by_name_part(file_path: str) -> str:
    """Sort key for camera files.

    Camera files are named AREA_DATE_TIME...ext, so everything after the first
    underscore (minus the extension) orders them chronologically.
    """
    filename = os.path.basename(file_path)
    pos = filename.find('_')
    if pos == -1:
        return filename
    last_dot = filename.rfind('.')
    if last_dot <= pos:
        return filename[pos + 1:]
    return filename[pos + 1:last_dot]


def find_area_files(area: str, directory: str, extension: str) -> List[str]:
    """Find files for an area, ordered oldest first.

    Subdirectories are never matched. An unreadable directory raises OSError.
    """
    pattern = area_pattern(area, extension)

    files = []
    with os.scandir(directory) as entries:
        for entry in entries:
            if entry.is_dir():
                continue
            if pattern.match(entry.name):
                files.append(os.path.join(directory, entry.name))

    return sorted(files, key=sort_by_name_part)


def select_batch(area: str, files: List[str], count: int) -> Optional[FileBatch]:
    """Take the oldest `count` files as a batch.

    Returns None when fewer than `count` files exist; partial batches are
    never produced.
    """
    if count < 1:
        raise ValueError(f"Batch size must be at least 1, got {count}")

    if len(files) < count:
        return None

    batch = FileBatch(area=area)
    for file_path in files[:count]:
        logger.info(f"Processing file: {file_path}")
        batch.archive_names.append(os.path.basename(file_path))
        batch.source_paths.append(os.path.abspath(file_path))
    return batch


def determine_fits_extension(directory: str) -> str:
    """Detect which FITS extension the camera writes.

    Tries .fts, .fits and .fit in that order and falls back to .fts when the
    directory holds none of them.
    """
    logger.info(f"Determining FITS extension in: {directory}")
    directory_path = Path(directory)

    for extension in FITS_EXTENSIONS:
        matches = list(directory_path.glob(f"*{extension}"))
        if matches:
            logger.info(f"FITS file extension detected: {extension} (found {len(matches)} files)")
            return extension
        logger.debug(f"No {extension} files found")

    logger.info(f"FITS file extension: {DEFAULT_FITS_EXTENSION} (default, no existing files found)")
    return DEFAULT_FITS_EXTENSION
