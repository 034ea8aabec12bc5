import shutil
from pathlib import Path
from typing import List

import pytest

from pyenvman.core.errors import IndexOutOfRange, RemovalError, ValidationMismatch
from pyenvman.core.registry import Registry
from pyenvman.core.validation import ValidationSweep, remove_environment_files

from conftest import make_fake_python


def _install(registry: Registry, root: Path, version: str) -> None:
    make_fake_python(root, version)
    registry.add(version, root)


@pytest.fixture
def four_envs(registry: Registry, tmp_path: Path) -> List[Path]:
    roots = [tmp_path / f"env{i}" for i in range(1, 5)]
    for root, version in zip(roots, ["3.10.14", "3.11.9", "3.11.10", "3.12.4"]):
        _install(registry, root, version)
    return roots


def test_validate_valid_environment(registry: Registry, four_envs: List[Path]) -> None:
    result = ValidationSweep(registry).validate_index(1)

    assert result.valid
    assert result.index == 1
    assert result.actual_version == "3.10.14"
    assert result.executable == four_envs[0] / "bin" / "python3"
    assert result.mismatch is None


def test_validate_missing_directory(registry: Registry, four_envs: List[Path]) -> None:
    shutil.rmtree(four_envs[1])

    result = ValidationSweep(registry).validate_index(2)

    assert not result.valid
    assert result.reason == "目录不存在"


def test_validate_missing_executable(registry: Registry, four_envs: List[Path]) -> None:
    (four_envs[2] / "bin" / "python3").unlink()

    result = ValidationSweep(registry).validate_index(3)

    assert not result.valid
    assert result.executable is None


def test_flat_layout_executable_is_found(registry: Registry, tmp_path: Path) -> None:
    root = tmp_path / "flat"
    make_fake_python(root, "3.12.4", layout="flat")
    registry.add("3.12.4", root)

    result = ValidationSweep(registry).validate_index(1)

    assert result.valid
    assert result.executable == root / "python"


def test_version_mismatch_is_a_warning_only(registry: Registry, tmp_path: Path) -> None:
    root = tmp_path / "mismatch"
    make_fake_python(root, "3.11.8")
    registry.add("3.11.10", root)

    result = ValidationSweep(registry).validate_index(1)

    assert result.valid
    assert isinstance(result.mismatch, ValidationMismatch)
    assert result.mismatch.recorded == "3.11.10"
    assert result.mismatch.actual == "3.11.8"


def test_validate_all_never_mutates(registry: Registry, four_envs: List[Path]) -> None:
    shutil.rmtree(four_envs[3])
    before = registry.registry_file.read_text(encoding="utf-8")

    report = ValidationSweep(registry).validate_all()

    assert report.total == 4
    assert [r.index for r in report.invalid] == [4]
    assert len(report.valid) == 3
    assert registry.registry_file.read_text(encoding="utf-8") == before


def test_cleanup_removes_only_invalid_entries_highest_index_first(
    registry: Registry, four_envs: List[Path]
) -> None:
    # Entry 2 loses its interpreter, entry 4 loses its directory.
    (four_envs[1] / "bin" / "python3").unlink()
    shutil.rmtree(four_envs[3])

    removed = ValidationSweep(registry).cleanup_invalid()

    assert [e.path for e in removed] == [str(four_envs[3]), str(four_envs[1])]
    assert [e.path for e in registry.list_all()] == [str(four_envs[0]), str(four_envs[2])]
    assert not four_envs[1].exists()
    assert four_envs[0].exists() and four_envs[2].exists()


def test_cleanup_with_nothing_invalid(registry: Registry, four_envs: List[Path]) -> None:
    assert ValidationSweep(registry).cleanup_invalid() == []
    assert registry.count() == 4


def test_details_reports_pip(registry: Registry, tmp_path: Path) -> None:
    make_fake_python(tmp_path / "nopip", "3.11.10", pip=False)
    registry.add("3.11.10", tmp_path / "nopip")
    _install(registry, tmp_path / "pip", "3.12.4")
    sweep = ValidationSweep(registry)

    assert sweep.details(1).pip_available is False
    assert sweep.details(2).pip_available is True
    with pytest.raises(IndexOutOfRange):
        sweep.details(3)


def test_cleanup_skips_entries_removed_after_snapshot(
    registry: Registry, four_envs: List[Path], monkeypatch: pytest.MonkeyPatch
) -> None:
    (four_envs[1] / "bin" / "python3").unlink()
    shutil.rmtree(four_envs[3])
    sweep = ValidationSweep(registry)
    snapshot = sweep.validate_all

    def validate_then_race():
        report = snapshot()
        # Another process drops entry 4 before the sweep reaches it.
        registry.remove_by_path(four_envs[3])
        return report

    monkeypatch.setattr(sweep, "validate_all", validate_then_race)

    removed = sweep.cleanup_invalid()

    assert [e.path for e in removed] == [str(four_envs[1])]
    assert [e.path for e in registry.list_all()] == [str(four_envs[0]), str(four_envs[2])]


def test_cleanup_reports_removal_failure(
    registry: Registry, four_envs: List[Path], monkeypatch: pytest.MonkeyPatch
) -> None:
    (four_envs[1] / "bin" / "python3").unlink()

    def deny(path, *args, **kwargs):
        raise PermissionError(13, "Permission denied", str(path))

    monkeypatch.setattr(shutil, "rmtree", deny)

    with pytest.raises(RemovalError):
        ValidationSweep(registry).cleanup_invalid()
    assert registry.count() == 4


def test_remove_environment_files_handles_file_and_missing_path(tmp_path: Path) -> None:
    stray = tmp_path / "stray"
    stray.write_text("not a directory", encoding="utf-8")

    assert remove_environment_files(stray)
    assert not stray.exists()
    assert not remove_environment_files(tmp_path / "missing")
