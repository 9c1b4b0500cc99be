"""Shared pytest fixtures for AstroCam tests."""

import logging
from pathlib import Path

import pytest

from config import Config


class FakeClock:
    """Monotonic clock whose sleep() just advances time."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def camera_dir(tmp_path) -> Path:
    path = tmp_path / "camera"
    path.mkdir()
    return path


@pytest.fixture
def processed_dir(tmp_path) -> Path:
    path = tmp_path / "processed"
    path.mkdir()
    return path


@pytest.fixture
def temp_dir(tmp_path) -> Path:
    path = tmp_path / "temp"
    path.mkdir()
    return path


@pytest.fixture
def make_camera_files(camera_dir):
    """Create camera files; returns their paths in creation order."""
    def _make(*names, content=None):
        paths = []
        for name in names:
            path = camera_dir / name
            path.write_bytes(content if content is not None else f"SIMPLE = T / {name}\n".encode() * 50)
            paths.append(path)
        return paths
    return _make


@pytest.fixture
def app_config(camera_dir, processed_dir) -> Config:
    return Config(
        server="http://upload.test/upload",
        camera_directory=str(camera_dir),
        processed_directory=str(processed_dir),
        count=3,
    )


@pytest.fixture
def restore_logging():
    """Undo root logger changes made by CLI setup_logging."""
    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    yield
    for handler in root_logger.handlers:
        if handler not in handlers:
            handler.close()
    root_logger.handlers = handlers
    root_logger.setLevel(level)
