import os
import time

import pytest

from vidproxy.core.errors import InvalidInputError
from vidproxy.services import cleanup
from vidproxy.services.cleanup import disk_usage, remove_file, start_scheduler, sweep, SWEEP_JOB_ID

HOUR = 3600


def aged(directory, name, hours, now, content=b"x"):
    path = directory / name
    path.write_bytes(content)
    mtime = now - hours * HOUR
    os.utime(path, (mtime, mtime))
    return path


def test_sweep_deletes_only_files_past_the_threshold(tmp_path):
    now = time.time()
    aged(tmp_path, "fresh.mp4", 1, now)
    aged(tmp_path, "old.mp4", 25, now)
    aged(tmp_path, "ancient.mp3", 48, now)
    (tmp_path / "subdir").mkdir()

    report = sweep(str(tmp_path), 24 * HOUR, now=now)

    assert sorted(report.deleted) == ["ancient.mp3", "old.mp4"]
    assert report.failed == []
    assert report.scanned == 3
    assert sorted(os.listdir(tmp_path)) == ["fresh.mp4", "subdir"]


def test_sweep_continues_after_a_failed_delete(tmp_path, monkeypatch):
    now = time.time()
    aged(tmp_path, "a.mp4", 30, now)
    aged(tmp_path, "b.mp4", 30, now)

    real_remove = os.remove

    def flaky_remove(path):
        if path.endswith("a.mp4"):
            raise PermissionError("locked")
        real_remove(path)

    monkeypatch.setattr(cleanup.os, "remove", flaky_remove)
    report = sweep(str(tmp_path), 24 * HOUR, now=now)

    assert report.failed == ["a.mp4"]
    assert report.deleted == ["b.mp4"]
    assert (tmp_path / "a.mp4").exists()


def test_sweep_missing_directory(tmp_path):
    report = sweep(str(tmp_path / "nope"), HOUR)
    assert report.scanned == 0


def test_disk_usage(tmp_path):
    (tmp_path / "a.mp4").write_bytes(b"123")
    (tmp_path / "b.mp4").write_bytes(b"4567")
    (tmp_path / "sub").mkdir()

    assert disk_usage(str(tmp_path)) == (7, 2)
    assert disk_usage(str(tmp_path / "nope")) == (0, 0)


def test_remove_file(tmp_path):
    (tmp_path / "a.mp4").write_bytes(b"1")

    assert remove_file(str(tmp_path), "a.mp4") is True
    assert not (tmp_path / "a.mp4").exists()
    assert remove_file(str(tmp_path), "a.mp4") is False


@pytest.mark.parametrize("name", ["../a.mp4", "..", "dir/a.mp4"])
def test_remove_file_rejects_path_escapes(tmp_path, name):
    with pytest.raises(InvalidInputError) as exc_info:
        remove_file(str(tmp_path), name)
    assert exc_info.value.message == "error.invalid_filename"


@pytest.mark.asyncio
async def test_scheduler_registers_the_sweep(cfg):
    scheduler = start_scheduler(cfg)
    try:
        job = scheduler.get_job(SWEEP_JOB_ID)
        assert job is not None
        assert job.args == (cfg,)
    finally:
        scheduler.shutdown(wait=False)
