import io
import subprocess
import tarfile
from pathlib import Path
from typing import List

import pytest
import requests

from pyenvman.core.builder import SourceBuilder
from pyenvman.core.config_manager import ConfigManager
from pyenvman.core.errors import BuildFailure
from pyenvman.utils.retry import RetryHandler


def _tarball(members: dict) -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for name, content in members.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            tar.addfile(info, io.BytesIO(content))
    return buffer.getvalue()


class FakeResponse:
    def __init__(self, body: bytes = b"", status: int = 200):
        self.body = body
        self.status_code = status

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc) -> None:
        return None

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code}", response=self)

    def iter_content(self, chunk_size: int = 1):
        for i in range(0, len(self.body), chunk_size):
            yield self.body[i:i + chunk_size]


class FakeSession:
    def __init__(self, responses: list):
        self.responses = list(responses)
        self.urls: List[str] = []

    def get(self, url: str, **kwargs):
        self.urls.append(url)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class RecordingRunner:
    def __init__(self, fail_on: str = ""):
        self.calls: List[tuple] = []
        self.fail_on = fail_on

    def __call__(self, args, cwd=None, check=False):
        self.calls.append((list(args), cwd))
        if self.fail_on and self.fail_on in args[-1]:
            raise subprocess.CalledProcessError(2, args)
        return subprocess.CompletedProcess(args, 0)


@pytest.fixture
def no_sleep_retry() -> RetryHandler:
    return RetryHandler(max_retries=2, jitter=False, sleep=lambda _: None)


def test_build_runs_configure_make_install(
    config: ConfigManager, tmp_path: Path, no_sleep_retry: RetryHandler
) -> None:
    archive = _tarball({"Python-3.12.4/configure": b"#!/bin/sh\n"})
    session = FakeSession([FakeResponse(archive)])
    runner = RecordingRunner()
    builder = SourceBuilder(config, session=session, retry_handler=no_sleep_retry, runner=runner, jobs=4)
    work_dir = tmp_path / "work"
    work_dir.mkdir()
    destination = tmp_path / "dest"

    builder.build("3.12.4", destination, work_dir)

    assert session.urls == ["https://www.python.org/ftp/python/3.12.4/Python-3.12.4.tgz"]
    source_dir = str(work_dir / "Python-3.12.4")
    configure, make, install = runner.calls
    assert configure[0][:2] == ["./configure", f"--prefix={destination}"]
    assert "--enable-optimizations" in configure[0]
    assert configure[1] == source_dir
    assert make == (["make", "-j4"], source_dir)
    assert install == (["make", "install"], source_dir)
    assert destination.is_dir()


def test_download_retries_transient_errors(
    config: ConfigManager, tmp_path: Path, no_sleep_retry: RetryHandler
) -> None:
    session = FakeSession([requests.ConnectionError("reset"), FakeResponse(b"data")])
    builder = SourceBuilder(config, session=session, retry_handler=no_sleep_retry)

    archive = builder.download("3.11.10", tmp_path)

    assert archive.read_bytes() == b"data"
    assert len(session.urls) == 2


def test_download_not_found_is_build_failure(
    config: ConfigManager, tmp_path: Path, no_sleep_retry: RetryHandler
) -> None:
    session = FakeSession([FakeResponse(status=404)])
    builder = SourceBuilder(config, session=session, retry_handler=no_sleep_retry)

    with pytest.raises(BuildFailure):
        builder.download("3.11.99", tmp_path)
    assert len(session.urls) == 1


def test_extract_rejects_path_traversal(config: ConfigManager, tmp_path: Path) -> None:
    archive = tmp_path / "Python-3.12.4.tgz"
    archive.write_bytes(_tarball({"../evil.sh": b"rm -rf /"}))
    work_dir = tmp_path / "work"
    work_dir.mkdir()

    with pytest.raises(BuildFailure):
        SourceBuilder(config).extract(archive, work_dir)
    assert not (tmp_path / "evil.sh").exists()


def test_failed_step_is_build_failure(
    config: ConfigManager, tmp_path: Path, no_sleep_retry: RetryHandler
) -> None:
    archive = _tarball({"Python-3.12.4/configure": b"#!/bin/sh\n"})
    runner = RecordingRunner(fail_on="-j")
    builder = SourceBuilder(
        config, session=FakeSession([FakeResponse(archive)]), retry_handler=no_sleep_retry, runner=runner
    )

    with pytest.raises(BuildFailure):
        builder.build("3.12.4", tmp_path / "dest", tmp_path)
    assert [call[0][0] for call in runner.calls] == ["./configure", "make"]


def test_missing_tools_only_warn(config: ConfigManager) -> None:
    settings = config.get_builtin_defaults()
    settings["required_build_tools"] = ["surely-not-a-real-tool-xyz"]
    config.save_settings(settings)

    assert SourceBuilder(config).check_dependencies() == ["surely-not-a-real-tool-xyz"]


def test_extract_without_tar_filters(
    config: ConfigManager, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    archive = tmp_path / "Python-3.12.4.tgz"
    archive.write_bytes(_tarball({"Python-3.12.4/configure": b"#!/bin/sh\n"}))
    work_dir = tmp_path / "work"
    work_dir.mkdir()
    monkeypatch.delattr(tarfile, "data_filter", raising=False)

    source_dir = SourceBuilder(config).extract(archive, work_dir)

    assert source_dir == work_dir / "Python-3.12.4"
    assert (source_dir / "configure").is_file()
