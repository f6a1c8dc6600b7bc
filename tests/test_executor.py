import threading
import time
from unittest.mock import patch

import pytest
import requests

from tvloop.errors import ConfigurationError, ContentError, ErrorKind
from tvloop.executor import DownloadExecutor, DownloadTask


class FakeCache:
    def unrestrict(self, link):
        if link == "dead":
            raise ContentError("hoster link expired")
        if link == "revoked":
            raise ConfigurationError("Real-Debrid rejected the credentials (HTTP 401)")
        return f"https://download/{link}"


class FakeResponse:
    def __init__(self, status_code=200, chunks=(b"video",)):
        self.status_code = status_code
        self.chunks = chunks

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")

    def iter_content(self, chunk_size=None):
        yield from self.chunks


class RecordingExecutor(DownloadExecutor):
    """Executor whose transfers only record their concurrency"""

    def __init__(self, fail=()):
        super().__init__(FakeCache(), max_workers=3)
        self.fail = set(fail)
        self.running = 0
        self.peak = 0
        self.lock = threading.Lock()
        self.seen_active = []

    def transfer(self, link, dest):
        with self.lock:
            self.running += 1
            self.peak = max(self.peak, self.running)
        try:
            time.sleep(0.02)
            if link in self.fail:
                raise ContentError(f"{link} failed")
            dest.write_bytes(link.encode())
        finally:
            with self.lock:
                self.running -= 1


def tasks(tmp_path, count):
    return [
        DownloadTask(link=f"link{n}", dest=tmp_path / f"E{n:02d}.mkv", key=f"K{n}")
        for n in range(count)
    ]


def test_transfer_streams_to_final_name(tmp_path):
    executor = DownloadExecutor(FakeCache())
    dest = tmp_path / "Season 01" / "Show - S01E01 - Pilot.mkv"

    with patch("tvloop.executor.requests.get", return_value=FakeResponse(chunks=(b"ab", b"cd"))) as get:
        executor.transfer("link1", dest)

    assert dest.read_bytes() == b"abcd"
    assert not (dest.parent / (dest.name + ".downloading")).exists()
    assert get.call_args.args[0] == "https://download/link1"


def test_failed_transfer_leaves_no_partial_file(tmp_path):
    executor = DownloadExecutor(FakeCache())
    dest = tmp_path / "E01.mkv"

    with patch("tvloop.executor.requests.get", return_value=FakeResponse(status_code=503)):
        results = executor.run([DownloadTask("link1", dest, "K1")])

    assert not results[0].success
    assert "503" in results[0].error
    assert results[0].kind == ErrorKind.TRANSIENT
    assert list(tmp_path.iterdir()) == []


def test_pool_is_bounded_and_failures_are_isolated(tmp_path):
    executor = RecordingExecutor(fail={"link2", "link5"})
    failures = []

    results = executor.run(
        tasks(tmp_path, 8), on_failure=lambda task, error: failures.append(task.key)
    )

    assert executor.peak <= 3
    assert [r.task.key for r in results] == [f"K{n}" for n in range(8)]
    assert [r.success for r in results] == [n not in (2, 5) for n in range(8)]
    assert sorted(failures) == ["K2", "K5"]
    assert len(list(tmp_path.glob("*.mkv"))) == 6


def test_active_transfers_are_registered_while_running(tmp_path):
    executor = RecordingExecutor()
    active = {}
    observed = []

    def on_start(task):
        observed.append(dict(active))

    executor.run(tasks(tmp_path, 2), active_transfers=active, on_start=on_start)

    assert all(any(key in snapshot for key in ("K0", "K1")) for snapshot in observed)
    assert active == {}


def test_unrestrict_failure_is_reported(tmp_path):
    executor = DownloadExecutor(FakeCache())

    results = executor.run([DownloadTask("dead", tmp_path / "E01.mkv", "K1")])

    assert results[0].success is False
    assert "expired" in results[0].error
    assert results[0].kind == ErrorKind.CONTENT


def test_rejected_credentials_abort_the_batch(tmp_path):
    executor = DownloadExecutor(FakeCache(), max_workers=1)
    active = {}
    failures = []
    batch = [DownloadTask("revoked", tmp_path / "E00.mkv", "K0")] + tasks(tmp_path, 3)[1:]

    with patch("tvloop.executor.requests.get", return_value=FakeResponse()):
        with pytest.raises(ConfigurationError):
            executor.run(
                batch,
                active_transfers=active,
                on_failure=lambda task, result: failures.append((task.key, result.kind)),
            )

    assert failures == [("K0", ErrorKind.CONFIGURATION)]
    assert active == {}
    assert not (tmp_path / "E00.mkv").exists()
