"""AstroCam program loop: batch camera files, archive, relocate and deliver."""

import logging
import os
import signal
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from archive_naming import archive_sort_key, make_archive_name
from archiver import ArchiveBackend, ArchiveError, working_directory
from config import Config
from errors import FatalError, IdleTimeout
from file_locator import find_area_files, select_batch
from relocation import FileRelocator
from uploader import ArchiveUploader, DeliveryState

logger = logging.getLogger(__name__)

# Pause after a full batch is found so the camera can finish writing
SETTLE_SECONDS = 5.0

# Test mode ends successfully after this long without a new batch
TEST_IDLE_TIMEOUT_SECONDS = 120.0

FAILED_SUFFIX = ".failed"


class AstroCam:
    """Single-threaded pipeline controller.

    Each iteration first re-delivers archives left in the scratch directory,
    then builds and delivers at most one archive per area.
    """

    def __init__(self, config: Config, areas: List[str], backend: ArchiveBackend,
                 temp_directory: str, fits_extension: str,
                 state: Optional[DeliveryState] = None,
                 uploader: Optional[ArchiveUploader] = None,
                 relocator: Optional[FileRelocator] = None,
                 test_mode: bool = False,
                 settle_seconds: float = SETTLE_SECONDS,
                 idle_timeout: float = TEST_IDLE_TIMEOUT_SECONDS,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep,
                 now: Callable[[], datetime] = datetime.now):
        self.config = config
        self.areas = list(areas)
        self.backend = backend
        self.temp_directory = str(temp_directory)
        self.fits_extension = fits_extension
        self.test_mode = test_mode
        self.settle_seconds = settle_seconds
        self.idle_timeout = idle_timeout
        self.clock = clock
        self.sleep = sleep
        self.now = now

        self.state = state or DeliveryState(idle_started=clock())
        self.uploader = uploader or ArchiveUploader(
            config.server,
            self.state,
            username=config.username,
            password=config.password,
            clock=clock,
            sleep=sleep
        )
        self.relocator = relocator or FileRelocator(
            config.processed_directory,
            test_mode=test_mode,
            sleep=sleep
        )

        # Batches whose archive failed creation or testing, keyed by area and members
        self.failed_batches = set()

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def get_archive_files(self) -> List[str]:
        """Archives waiting in the scratch directory, oldest first."""
        files = [str(p) for p in Path(self.temp_directory).glob(f"*{self.backend.extension}")]
        return sorted(
            files,
            key=lambda f: archive_sort_key(f, self.backend.extension, self.config.postfix)
        )

    def deliver_archive(self, archive_path: str) -> bool:
        """Upload an archive and delete it once the server accepted it.

        A failed upload leaves the archive in place for the next re-delivery
        scan (or is fatal in test mode).
        """
        result = self.uploader.upload(archive_path)

        if not result.success:
            if self.test_mode:
                raise FatalError(f"Upload failed for {os.path.basename(archive_path)}: {result.error}")
            logger.error(f"Upload error: {result.error}")
            return False

        try:
            os.remove(archive_path)
        except OSError as e:
            logger.warning(f"Error deleting {os.path.basename(archive_path)} after upload: {e}")
        return True

    def deliver_pending_archives(self) -> int:
        """Re-delivery scan. Returns the number of archives delivered."""
        try:
            archive_files = self.get_archive_files()
        except OSError as e:
            logger.error(f"Error scanning archive files: {e}")
            return 0

        delivered = 0
        for archive_file in archive_files:
            logger.info(f"Found existing archive: {os.path.basename(archive_file)}")
            if self.deliver_archive(archive_file):
                delivered += 1
        return delivered

    # ------------------------------------------------------------------
    # Archive creation
    # ------------------------------------------------------------------

    def _abandon_archive(self, archive_path: str) -> None:
        """Keep a suspect archive for the operator but out of the re-delivery scan."""
        if not os.path.exists(archive_path):
            return
        failed_path = archive_path + FAILED_SUFFIX
        try:
            os.replace(archive_path, failed_path)
            logger.warning(f"Suspect archive kept for inspection: {failed_path}")
        except OSError as e:
            logger.error(f"Could not set aside suspect archive {archive_path}: {e}")

    def pack_images_for_area(self, area: str, files: List[str]) -> Optional[str]:
        """Archive, test and relocate one batch for an area.

        Returns:
            Path of the tested archive, or None when no batch was archived
        """
        batch = select_batch(area, files, self.config.count)
        if batch is None:
            return None

        batch_key = (area, tuple(batch.archive_names))
        if batch_key in self.failed_batches:
            logger.warning(
                f"Skipping area {area}: archive for {batch.archive_names[0]} and following files "
                f"already failed, see {FAILED_SUFFIX} archives in {self.temp_directory}"
            )
            return None

        logger.info(
            f"Found {len(batch)} files for area {area}, "
            f"waiting {self.settle_seconds:.0f} seconds for writes to complete..."
        )
        self.sleep(self.settle_seconds)

        archive_name = make_archive_name(
            self.now(), area,
            prefix=self.config.prefix,
            postfix=self.config.postfix,
            extension=self.backend.extension
        )
        archive_path = os.path.join(os.path.abspath(self.temp_directory), archive_name)

        logger.info(f"Creating {self.backend.label} archive: {archive_name}")
        try:
            with working_directory(self.config.camera_directory):
                self.backend.create(archive_path, batch.archive_names)
                self.backend.test(archive_path)
        except (ArchiveError, OSError) as e:
            if self.test_mode:
                raise FatalError(f"Archive creation failed for area {area}: {e}") from e
            logger.error(f"Archive creation failed for area {area}: {e}")
            self.failed_batches.add(batch_key)
            self._abandon_archive(archive_path)
            return None

        self.relocator.relocate(batch.source_paths)
        return archive_path

    # ------------------------------------------------------------------
    # Program loop
    # ------------------------------------------------------------------

    def process_areas(self) -> bool:
        """Area scan. Returns True when any area had a full batch."""
        has_new_files = False

        for area in self.areas:
            try:
                files = find_area_files(area, self.config.camera_directory, self.fits_extension)
            except OSError as e:
                logger.error(f"Could not read camera directory for area {area}: {e}")
                continue

            if files:
                logger.info(f"Area '{area}' has {len(files)} files (need {self.config.count})")

            if len(files) < self.config.count:
                continue

            has_new_files = True
            archive_path = self.pack_images_for_area(area, files)
            if archive_path is None:
                continue

            logger.info(f"Archive created: {os.path.basename(archive_path)}")
            self.deliver_archive(archive_path)

        if has_new_files:
            self.state.idle_started = self.clock()
        return has_new_files

    def check_idle_timeout(self) -> None:
        """End a test run once no batch has appeared for the idle window."""
        if not self.test_mode:
            return
        if self.clock() - self.state.idle_started > self.idle_timeout:
            raise IdleTimeout(self.idle_timeout)

    def program_loop(self) -> None:
        """One full iteration: re-delivery scan, area scan, idle check."""
        logger.info(f"Scanning temp directory... {self.temp_directory}")
        self.deliver_pending_archives()

        logger.info(f"Scanning camera directory... {self.config.camera_directory}")
        self.process_areas()

        self.check_idle_timeout()

    def run(self, stop_event: Optional[threading.Event] = None, once: bool = False) -> None:
        """Run immediately, then every effective interval until stopped.

        The stop event is checked before each iteration; no final scan is
        performed on shutdown.
        """
        stop_event = stop_event or threading.Event()
        interval = self.config.effective_interval

        self.program_loop()
        if once:
            return

        while not stop_event.wait(interval):
            self.program_loop()

        logger.info("Shutdown signal received, stopping")


def install_signal_handlers(stop_event: threading.Event) -> None:
    """Set `stop_event` on SIGINT or SIGTERM."""
    def _handle(signum, frame):
        logger.info(f"Received signal {signal.Signals(signum).name}")
        stop_event.set()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)
