"""Archive backends for AstroCam.

Two interchangeable backends create and self-test batch archives: the external
``rar`` tool and the built-in ZIP writer.
"""

from .base import ArchiveBackend, ArchiveError, working_directory
from .rar_archive import RarArchiveBackend, find_rar_executable
from .zip_archive import ZipArchiveBackend
from .selection import select_backend

__all__ = [
    'ArchiveBackend',
    'ArchiveError',
    'RarArchiveBackend',
    'ZipArchiveBackend',
    'find_rar_executable',
    'select_backend',
    'working_directory',
]
