"""Move archived camera files into the processed directory."""

import logging
import os
import time
from dataclasses import dataclass, field
from typing import Callable, List

from errors import FatalError

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 2
RETRY_DELAY_SECONDS = 3.0


@dataclass
class RelocationResult:
    """Result of relocating one batch."""
    moved: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    attempts: int = 0

    @property
    def success(self) -> bool:
        return not self.failed


class FileRelocator:
    """Moves batch source files out of the camera directory.

    A file whose name already exists in the processed directory is deleted
    instead of moved. Failed files are retried once after a short pause.
    """

    def __init__(self, processed_directory: str, test_mode: bool = False,
                 sleep: Callable[[float], None] = time.sleep,
                 max_attempts: int = MAX_ATTEMPTS,
                 retry_delay: float = RETRY_DELAY_SECONDS):
        self.processed_directory = processed_directory
        self.test_mode = test_mode
        self.sleep = sleep
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay

    def _relocate_one(self, file_path: str, result: RelocationResult, attempt: int) -> bool:
        basename = os.path.basename(file_path)
        target_path = os.path.join(self.processed_directory, basename)

        try:
            if os.path.exists(target_path):
                os.remove(file_path)
                result.deleted.append(file_path)
            else:
                os.rename(file_path, target_path)
                result.moved.append(file_path)
        except OSError as e:
            logger.error(f"Cannot move file {basename} (attempt {attempt}/{self.max_attempts}): {e}")
            return False
        return True

    def relocate(self, files: List[str]) -> RelocationResult:
        """Relocate a batch.

        In test mode files left behind after the last attempt raise
        FatalError. Otherwise they are reported and the batch counts as done,
        since its archive already exists and they will simply be picked up in
        a later batch.
        """
        result = RelocationResult()
        pending = list(files)

        for attempt in range(1, self.max_attempts + 1):
            result.attempts = attempt
            pending = [f for f in pending if not self._relocate_one(f, result, attempt)]

            if not pending:
                return result

            if attempt < self.max_attempts:
                logger.info(f"Waiting {self.retry_delay:.0f}s before retry...")
                self.sleep(self.retry_delay)

        result.failed = pending
        names = ", ".join(os.path.basename(f) for f in pending)

        if self.test_mode:
            raise FatalError(
                f"Failed to move {len(pending)} files after {self.max_attempts} attempts: {names}"
            )

        logger.warning(
            f"Failed to move {len(pending)} files after {self.max_attempts} attempts. "
            f"Files remain in camera directory: {names}"
        )
        logger.warning("Continuing: the archive for this batch exists and will still be delivered")
        return result
