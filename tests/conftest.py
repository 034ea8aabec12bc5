import os
import signal
import stat
import tempfile

# Route import-time logging away from the real home directory.
os.environ.setdefault("PYENVMAN_HOME", tempfile.mkdtemp(prefix="pyenvman-tests-"))

from pathlib import Path
from typing import List, Optional, Tuple

import pytest

from pyenvman.core.config_manager import ConfigManager
from pyenvman.core.errors import BuildFailure
from pyenvman.core.interfaces import IBuilder
from pyenvman.core.registry import Registry
from pyenvman.core.version_catalog import VersionCatalog

CATALOG_TEXT = """# Python Version Catalog
3.10=3.10.14
3.10.versions=14,13,12
3.11=3.11.10   # latest
3.11.versions=10,9,8
3.12=3.12.4
3.12.versions=4,3
"""

FAKE_PYTHON = """#!/bin/sh
if [ "$1" = "-m" ]; then
    echo "pip 24.0 from {path}"
    exit {pip_status}
fi
echo "Python {version}"
"""


def make_fake_python(root: Path, version: str, layout: str = "bin", pip: bool = True) -> Path:
    """Create a shell script that answers `--version` like a Python interpreter."""
    if layout == "bin":
        executable = root / "bin" / "python3"
    else:
        executable = root / "python"
    executable.parent.mkdir(parents=True, exist_ok=True)
    executable.write_text(
        FAKE_PYTHON.format(path=root, version=version, pip_status=0 if pip else 1),
        encoding="utf-8",
    )
    executable.chmod(executable.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    (root / "lib").mkdir(exist_ok=True)
    return executable


class FakeBuilder(IBuilder):
    """Builder double that lays down a fake interpreter instead of compiling."""

    def __init__(
        self,
        reported_version: Optional[str] = None,
        fail: bool = False,
        interrupt: bool = False,
        skip_executable: bool = False,
        terminate: bool = False,
    ):
        self.reported_version = reported_version
        self.fail = fail
        self.interrupt = interrupt
        self.skip_executable = skip_executable
        self.terminate = terminate
        self.calls: List[Tuple[str, Path, Path]] = []
        self.work_dirs_existed: List[bool] = []

    def build(self, version: str, destination: Path, work_dir: Path) -> None:
        self.calls.append((version, destination, work_dir))
        self.work_dirs_existed.append(work_dir.is_dir())
        (work_dir / f"Python-{version}.tgz").write_bytes(b"archive")
        destination.mkdir(parents=True, exist_ok=True)
        (destination / "partial.txt").write_text("half built", encoding="utf-8")
        if self.interrupt:
            raise KeyboardInterrupt()
        if self.terminate:
            os.kill(os.getpid(), signal.SIGTERM)
        if self.fail:
            raise BuildFailure("make 失败（退出码 2）")
        if not self.skip_executable:
            make_fake_python(destination, self.reported_version or version)


@pytest.fixture
def config(tmp_path: Path) -> ConfigManager:
    manager = ConfigManager(home=tmp_path / "home", env_dir=tmp_path / "envs")
    manager.ensure_dirs()
    return manager


@pytest.fixture
def registry(config: ConfigManager) -> Registry:
    reg = Registry(config.registry_file)
    reg.initialize()
    return reg


@pytest.fixture
def catalog() -> VersionCatalog:
    return VersionCatalog.parse(CATALOG_TEXT)


@pytest.fixture
def catalog_file(config: ConfigManager) -> Path:
    config.catalog_file.write_text(CATALOG_TEXT, encoding="utf-8")
    return config.catalog_file
