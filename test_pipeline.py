"""Tests for the AstroCam program loop."""

import os
import threading
import zipfile
from datetime import datetime, timedelta

import httpx
import pytest

from archiver import ArchiveError, ZipArchiveBackend
from errors import FatalError, IdleTimeout
from pipeline import AstroCam
from uploader import ArchiveUploader, DeliveryState

FILES_064 = [
    "064_2025-01-01_10-00-00.fts",
    "064_2025-01-01_10-00-05.fts",
    "064_2025-01-01_09-59-55.fts",
]


class MockServer:
    def __init__(self, status=200):
        self.status = status
        self.uploaded = []

    def __call__(self, request):
        body = request.read()
        start = body.index(b'filename="') + len(b'filename="')
        self.uploaded.append(body[start:body.index(b'"', start)].decode())
        return httpx.Response(self.status)


class FailingBackend(ZipArchiveBackend):
    """ZIP backend whose integrity test always fails."""

    def test(self, archive_path):
        raise ArchiveError("simulated CRC mismatch")


class StepClock:
    """Wall clock for archive names: one second later on every call."""

    def __init__(self):
        self.current = datetime(2025, 1, 1, 10, 5, 0)

    def __call__(self):
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture
def server():
    return MockServer()


@pytest.fixture
def make_app(app_config, temp_dir, clock, server):
    def _make(areas=("064",), test_mode=False, backend=None, **config_overrides):
        config = app_config.copy(update=config_overrides)
        state = DeliveryState(idle_started=clock())
        uploader = ArchiveUploader(
            config.server, state,
            username=config.username, password=config.password,
            clock=clock, sleep=clock.sleep,
            transport=httpx.MockTransport(server),
        )
        return AstroCam(
            config, list(areas), backend or ZipArchiveBackend(),
            temp_directory=str(temp_dir),
            fits_extension=".fts",
            state=state,
            uploader=uploader,
            test_mode=test_mode,
            settle_seconds=0,
            clock=clock,
            sleep=clock.sleep,
            now=StepClock(),
        )
    return _make


def test_full_batch_is_archived_relocated_and_delivered(make_app, make_camera_files, camera_dir,
                                                        processed_dir, temp_dir, server):
    make_camera_files(*FILES_064)
    app = make_app()

    app.program_loop()

    assert server.uploaded == ["2025-01-01_064_100501.zip"]
    assert list(temp_dir.iterdir()) == []
    assert sorted(os.listdir(processed_dir)) == sorted(FILES_064)
    assert os.listdir(camera_dir) == []


def test_archive_contains_batch_in_order(make_app, make_camera_files, temp_dir, server):
    make_camera_files(*FILES_064)
    server.status = 500
    app = make_app()

    app.program_loop()

    with zipfile.ZipFile(temp_dir / "2025-01-01_064_100501.zip") as zf:
        assert zf.namelist() == [
            "064_2025-01-01_09-59-55.fts",
            "064_2025-01-01_10-00-00.fts",
            "064_2025-01-01_10-00-05.fts",
        ]


def test_failed_upload_is_redelivered_next_iteration(make_app, make_camera_files, camera_dir,
                                                     processed_dir, temp_dir, server, clock):
    make_camera_files(*FILES_064)
    server.status = 500
    app = make_app()

    app.program_loop()

    archive = temp_dir / "2025-01-01_064_100501.zip"
    assert archive.exists()
    assert sorted(os.listdir(processed_dir)) == sorted(FILES_064)
    assert os.listdir(camera_dir) == []

    server.status = 200
    clock.advance(15)
    app.program_loop()

    assert server.uploaded == [archive.name, archive.name]
    assert not archive.exists()


def test_partial_batch_is_skipped(make_app, make_camera_files, camera_dir, temp_dir, server):
    make_camera_files(*FILES_064[:2])
    app = make_app()

    assert app.process_areas() is False
    assert server.uploaded == []
    assert list(temp_dir.iterdir()) == []
    assert len(os.listdir(camera_dir)) == 2


def test_one_batch_per_area_per_iteration(make_app, make_camera_files, camera_dir, server):
    make_camera_files(*[f"064_2025-01-01_10-00-{i:02d}.fts" for i in range(7)])
    make_camera_files(*[f"091-SF_2025-01-01_11-00-{i:02d}.fts" for i in range(3)])
    app = make_app(areas=("091", "064"))

    app.program_loop()

    assert server.uploaded == ["2025-01-01_091_100501.zip", "2025-01-01_064_100502.zip"]
    assert sorted(os.listdir(camera_dir)) == [
        "064_2025-01-01_10-00-03.fts",
        "064_2025-01-01_10-00-04.fts",
        "064_2025-01-01_10-00-05.fts",
        "064_2025-01-01_10-00-06.fts",
    ]


def test_redelivery_scan_runs_oldest_first(make_app, temp_dir, server):
    for name in ["2025-01-02_064_000001.zip", "2024-12-31_091_235959.zip", "2025-01-01_064_120000.zip",
                 "2025-01-01_064_120000.zip.failed", "notes.txt"]:
        (temp_dir / name).write_bytes(b"data")
    app = make_app()

    assert app.deliver_pending_archives() == 3

    assert server.uploaded == [
        "2024-12-31_091_235959.zip",
        "2025-01-01_064_120000.zip",
        "2025-01-02_064_000001.zip",
    ]
    assert sorted(os.listdir(temp_dir)) == ["2025-01-01_064_120000.zip.failed", "notes.txt"]


def test_redelivery_sort_uses_prefix_and_postfix(make_app, temp_dir, server):
    for name in ["2025-01-01_CI_064_100000_TEST.zip", "2025-01-01_CI_064_090000_TEST.zip"]:
        (temp_dir / name).write_bytes(b"data")
    app = make_app(prefix="CI_", postfix="_TEST")

    app.deliver_pending_archives()

    assert server.uploaded == ["2025-01-01_CI_064_090000_TEST.zip", "2025-01-01_CI_064_100000_TEST.zip"]


def test_upload_failure_is_fatal_in_test_mode(make_app, make_camera_files, server):
    make_camera_files(*FILES_064)
    server.status = 503
    app = make_app(test_mode=True)

    with pytest.raises(FatalError, match="status 503"):
        app.program_loop()


def test_integrity_failure_abandons_archive(make_app, make_camera_files, camera_dir, temp_dir, server):
    make_camera_files(*FILES_064)
    app = make_app(backend=FailingBackend())

    app.program_loop()

    assert server.uploaded == []
    assert os.listdir(temp_dir) == ["2025-01-01_064_100501.zip.failed"]
    assert sorted(os.listdir(camera_dir)) == sorted(FILES_064)

    # The abandoned archive is never picked up by the re-delivery scan
    app.deliver_pending_archives()
    assert server.uploaded == []


def test_failed_batch_is_not_rebuilt_every_scan(make_app, make_camera_files, camera_dir, temp_dir,
                                                clock, caplog):
    make_camera_files(*FILES_064)
    app = make_app(backend=FailingBackend())

    for _ in range(3):
        app.program_loop()
        clock.advance(15)

    assert os.listdir(temp_dir) == ["2025-01-01_064_100501.zip.failed"]
    assert sorted(os.listdir(camera_dir)) == sorted(FILES_064)
    assert "Skipping area 064" in caplog.text


def test_changed_batch_after_failure_is_tried_again(make_app, make_camera_files, camera_dir, temp_dir):
    paths = make_camera_files(*FILES_064)
    app = make_app(backend=FailingBackend())
    app.program_loop()

    os.remove(paths[0])
    make_camera_files("064_2025-01-01_10-00-10.fts")
    app.program_loop()

    assert sorted(os.listdir(temp_dir)) == [
        "2025-01-01_064_100501.zip.failed",
        "2025-01-01_064_100502.zip.failed",
    ]


def test_pre_1980_camera_files_are_delivered(make_app, make_camera_files, processed_dir, server):
    for path in make_camera_files(*FILES_064):
        os.utime(path, (0, 0))
    app = make_app()

    assert app.process_areas() is True

    assert server.uploaded == ["2025-01-01_064_100501.zip"]
    assert sorted(os.listdir(processed_dir)) == sorted(FILES_064)


def test_integrity_failure_is_fatal_in_test_mode(make_app, make_camera_files):
    make_camera_files(*FILES_064)
    app = make_app(test_mode=True, backend=FailingBackend())

    with pytest.raises(FatalError, match="simulated CRC mismatch"):
        app.program_loop()


def test_missing_camera_directory_skips_areas(make_app, tmp_path, server):
    app = make_app(camera_directory=str(tmp_path / "missing"))

    assert app.process_areas() is False
    assert server.uploaded == []


def test_archive_creation_restores_working_directory(make_app, make_camera_files, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    make_camera_files(*FILES_064)

    make_app().program_loop()

    assert os.path.samefile(os.getcwd(), tmp_path)


def test_settle_delay_before_archiving(app_config, make_camera_files, temp_dir, clock, server):
    make_camera_files(*FILES_064)
    state = DeliveryState(idle_started=clock())
    uploader = ArchiveUploader(app_config.server, state, clock=clock, sleep=clock.sleep,
                               transport=httpx.MockTransport(server))
    app = AstroCam(app_config, ["064"], ZipArchiveBackend(), str(temp_dir), ".fts",
                   state=state, uploader=uploader, clock=clock, sleep=clock.sleep)

    app.process_areas()

    assert clock.sleeps == [5.0]


def test_idle_timeout_in_test_mode(make_app, clock):
    app = make_app(test_mode=True)

    app.program_loop()
    clock.advance(119)
    app.program_loop()
    clock.advance(2)

    with pytest.raises(IdleTimeout):
        app.program_loop()


def test_new_batch_resets_idle_window(make_app, make_camera_files, clock):
    app = make_app(test_mode=True)
    clock.advance(100)
    make_camera_files(*FILES_064)

    app.program_loop()
    clock.advance(100)
    app.program_loop()

    assert app.state.idle_started == 1100.0


def test_idle_timeout_ignored_in_production(make_app, clock):
    app = make_app()
    clock.advance(10000)

    app.program_loop()


def test_run_once(make_app, make_camera_files, server):
    make_camera_files(*FILES_064)
    app = make_app()

    app.run(once=True)

    assert len(server.uploaded) == 1


def test_run_stops_when_signalled(make_app, server, monkeypatch):
    app = make_app()
    calls = []
    monkeypatch.setattr(app, "program_loop", lambda: calls.append(1))
    stop_event = threading.Event()
    stop_event.set()

    app.run(stop_event)

    assert calls == [1]
