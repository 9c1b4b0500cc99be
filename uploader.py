"""Throttled HTTP upload of archives to the collection server."""

import logging
import os
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

import httpx

logger = logging.getLogger(__name__)

UPLOAD_THROTTLE_SECONDS = 120.0
UPLOAD_TIMEOUT_SECONDS = 300.0


@dataclass
class DeliveryState:
    """Mutable delivery state shared by the controller and the uploader.

    Only the single controller thread writes to it.
    """
    last_upload_time: Optional[float] = None  # start of the previous upload attempt
    idle_started: float = field(default_factory=time.monotonic)


@dataclass
class UploadResult:
    """Result of one upload attempt."""
    success: bool
    archive_path: str
    status_code: Optional[int] = None
    error: Optional[str] = None
    elapsed: float = 0.0


class ArchiveUploader:
    """Posts archives to the server as a multipart file field.

    Attempts are spaced at least `throttle_seconds` apart, measured from the
    start of each attempt whether or not it succeeded.
    """

    def __init__(self, server: str, state: DeliveryState,
                 username: str = "", password: str = "",
                 throttle_seconds: float = UPLOAD_THROTTLE_SECONDS,
                 timeout: float = UPLOAD_TIMEOUT_SECONDS,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep,
                 transport: Optional[httpx.BaseTransport] = None):
        self.server = server
        self.state = state
        self.username = (username or "").strip()
        self.password = (password or "").strip()
        self.throttle_seconds = throttle_seconds
        self.timeout = timeout
        self.clock = clock
        self.sleep = sleep
        self.transport = transport

    def has_credentials(self) -> bool:
        return bool(self.username) and bool(self.password)

    def wait_for_throttle(self) -> float:
        """Block until the throttle window since the last attempt has passed.

        Returns:
            Seconds waited
        """
        if self.state.last_upload_time is None:
            return 0.0

        since_last = self.clock() - self.state.last_upload_time
        if since_last >= self.throttle_seconds:
            return 0.0

        wait_time = self.throttle_seconds - since_last
        logger.info(f"Upload throttling: Waiting {wait_time:.0f}s before next upload attempt...")
        self.sleep(wait_time)
        return wait_time

    def upload(self, archive_path: str) -> UploadResult:
        """Upload one archive. 2xx is success, anything else is a failure."""
        self.wait_for_throttle()

        filename = os.path.basename(archive_path)
        logger.info(f"Uploading to server: {filename}")

        started = self.clock()
        self.state.last_upload_time = started

        auth = None
        if self.has_credentials():
            auth = (self.username, self.password)
            logger.info("Using authentication for upload")
        else:
            logger.info("Uploading without authentication (no credentials provided)")

        try:
            with open(archive_path, 'rb') as f:
                with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                    response = client.post(
                        self.server,
                        files={'file': (filename, f, 'application/octet-stream')},
                        auth=auth
                    )
        except OSError as e:
            logger.error(f"Failed to open {filename} for upload: {e}")
            return UploadResult(
                success=False,
                archive_path=archive_path,
                error=f"failed to open file: {e}",
                elapsed=self.clock() - started
            )
        except httpx.HTTPError as e:
            logger.error(f"Upload failed: {e}")
            return UploadResult(
                success=False,
                archive_path=archive_path,
                error=f"upload failed: {e}",
                elapsed=self.clock() - started
            )

        elapsed = self.clock() - started

        if 200 <= response.status_code < 300:
            logger.info(f"Successfully uploaded: {filename}")
            return UploadResult(
                success=True,
                archive_path=archive_path,
                status_code=response.status_code,
                elapsed=elapsed
            )

        error = f"server returned status {response.status_code}: {response.reason_phrase}"
        logger.error(f"Upload of {filename} failed: {error}")
        return UploadResult(
            success=False,
            archive_path=archive_path,
            status_code=response.status_code,
            error=error,
            elapsed=elapsed
        )
