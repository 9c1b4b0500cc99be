"""External ``rar`` tool archive backend."""

import logging
import os
import shutil
import subprocess
import sys
from typing import List, Optional

from .base import ArchiveBackend, ArchiveError

logger = logging.getLogger(__name__)

IS_WINDOWS = sys.platform == "win32"

# Checked when rar is not on PATH under Windows
WINDOWS_RAR_PATHS = [
    r"C:\Program Files\WinRAR\rar.exe",
    r"C:\Program Files (x86)\WinRAR\rar.exe",
]


def find_rar_executable() -> Optional[str]:
    """Locate the rar command on PATH or in the default WinRAR locations."""
    rar_path = shutil.which('rar')
    if rar_path:
        return rar_path

    if IS_WINDOWS:
        for path in WINDOWS_RAR_PATHS:
            if os.path.exists(path):
                return path

    return None


class RarArchiveBackend(ArchiveBackend):
    """RAR archives built by the external rar tool."""

    extension = ".rar"
    label = "RAR"

    def __init__(self, rar_path: str):
        self.rar_path = rar_path

    @property
    def description(self) -> str:
        return f"RAR (using {self.rar_path})"

    def _run(self, args: List[str], action: str) -> None:
        try:
            result = subprocess.run(
                [self.rar_path] + args,
                capture_output=True,
                text=True
            )
        except OSError as e:
            raise ArchiveError(f"rar {action} failed: {e}") from e

        if result.returncode != 0:
            raise ArchiveError(
                f"rar {action} failed: exit status {result.returncode}",
                output=(result.stdout or "") + (result.stderr or "")
            )

    def create(self, archive_path: str, members: List[str]) -> None:
        # a = add, -ep1 = store paths relative to the current directory
        self._run(['a', '-ep1', archive_path] + list(members), 'creation')

    def test(self, archive_path: str) -> None:
        self._run(['t', archive_path], 'test')
