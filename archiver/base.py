"""Archive backend interface."""

import logging
import os
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import List

logger = logging.getLogger(__name__)


class ArchiveError(RuntimeError):
    """Archive creation or integrity test failed."""

    def __init__(self, message: str, output: str = ""):
        if output:
            message = f"{message}, output: {output.strip()}"
        super().__init__(message)
        self.output = output


class ArchiveBackend(ABC):
    """Creates and tests batch archives.

    Member names are passed as basenames and resolved against the current
    working directory, so callers must run ``create`` inside
    ``working_directory(camera_dir)``. Only basenames end up in the archive.
    """

    #: File extension including the dot
    extension: str = ""

    #: Short label used in log messages
    label: str = ""

    @property
    def description(self) -> str:
        """Human readable format description for the startup banner."""
        return self.label

    @abstractmethod
    def create(self, archive_path: str, members: List[str]) -> None:
        """Create `archive_path` from `members`.

        Raises:
            ArchiveError: If the archive could not be written
        """

    @abstractmethod
    def test(self, archive_path: str) -> None:
        """Verify archive integrity.

        Raises:
            ArchiveError: If the archive is unreadable or corrupt
        """


@contextmanager
def working_directory(path: str):
    """Temporarily change the process working directory.

    Not reentrant: the pipeline is single threaded and only one archive is
    built at a time.
    """
    original_dir = os.getcwd()
    os.chdir(path)
    try:
        yield
    finally:
        os.chdir(original_dir)
