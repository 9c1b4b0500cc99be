"""Exceptions that end the AstroCam program loop."""


class FatalError(RuntimeError):
    """Unrecoverable pipeline failure (test mode turns degraded paths into this)."""


class IdleTimeout(Exception):
    """No new batches appeared within the test-mode idle window.

    This is the expected, successful end of a test run.
    """

    def __init__(self, idle_seconds: float):
        super().__init__(f"No new images found within {idle_seconds:.0f} seconds")
        self.idle_seconds = idle_seconds
