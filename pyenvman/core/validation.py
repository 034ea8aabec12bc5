"""
环境校验模块。

实时检查注册表中每个环境是否仍然可用，并可清理失效的环境。
注册表中的 status 字段从不作为健康状态的依据。
"""

import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from pyenvman.core import python_probe
from pyenvman.core.errors import NotFound, RemovalError, ValidationMismatch
from pyenvman.core.registry import InstalledEnvironment, Registry
from pyenvman.utils.logger import get_logger

logger = get_logger()


@dataclass
class ValidationResult:
    """单个环境的校验结果。"""

    index: int
    entry: InstalledEnvironment
    valid: bool
    executable: Optional[Path] = None
    actual_version: Optional[str] = None
    reason: str = ""
    mismatch: Optional[ValidationMismatch] = None


@dataclass
class ValidationReport:
    """全部环境的校验报告。"""

    results: List[ValidationResult] = field(default_factory=list)

    @property
    def valid(self) -> List[ValidationResult]:
        return [r for r in self.results if r.valid]

    @property
    def invalid(self) -> List[ValidationResult]:
        return [r for r in self.results if not r.valid]

    @property
    def total(self) -> int:
        return len(self.results)


def remove_environment_files(root: Path) -> bool:
    """
    删除环境目录（或占用该路径的文件）。

    参数:
        root: 环境路径

    返回:
        路径存在并已删除返回 True，路径不存在返回 False

    抛出:
        RemovalError: 删除失败时抛出
    """
    try:
        if root.is_dir() and not root.is_symlink():
            shutil.rmtree(root)
        elif root.exists() or root.is_symlink():
            root.unlink()
        else:
            return False
    except OSError as e:
        raise RemovalError(f"无法删除环境目录 {root}: {e}") from e
    return True


@dataclass
class EnvironmentDetails:
    """环境详细信息：记录、实时校验结果和 pip 可用性。"""

    result: ValidationResult
    pip_available: bool = False


class ValidationSweep:
    """
    环境校验器类。

    环境有效的条件：目录存在、能找到 Python 可执行文件、
    且可执行文件能报告版本号。版本与记录不一致只发出警告。
    """

    def __init__(self, registry: Registry):
        self.registry = registry

    def validate(self, entry: InstalledEnvironment, index: int = 0) -> ValidationResult:
        """
        校验单个环境，不修改注册表。

        参数:
            entry: 环境记录
            index: 该环境的 1 起始序号，仅用于展示

        返回:
            ValidationResult 校验结果
        """
        root = Path(entry.path)
        if not root.is_dir():
            logger.warning(f"环境目录不存在: {entry.path}")
            return ValidationResult(index, entry, False, reason="目录不存在")

        executable = python_probe.find_python_executable(root)
        if executable is None:
            logger.warning(f"未找到 Python 可执行文件: {entry.path}")
            return ValidationResult(index, entry, False, reason="未找到 Python 可执行文件")

        actual = python_probe.get_python_version(executable)
        if actual is None:
            logger.warning(f"无法获取 Python 版本: {executable}")
            return ValidationResult(index, entry, False, executable, reason="无法获取 Python 版本")

        result = ValidationResult(index, entry, True, executable, actual)
        if actual != entry.version:
            result.mismatch = ValidationMismatch(entry.version, actual)
            logger.warning(str(result.mismatch))
        return result

    def validate_index(self, index: int) -> ValidationResult:
        """按序号校验环境，序号越界抛出 IndexOutOfRange。"""
        return self.validate(self.registry.get_by_index(index), index)

    def validate_all(self) -> ValidationReport:
        """基于同一份注册表快照校验所有环境。"""
        snapshot = self.registry.list_all()
        report = ValidationReport(
            [self.validate(entry, i) for i, entry in enumerate(snapshot, start=1)]
        )
        logger.info(f"校验完成: 共 {report.total} 个环境，有效 {len(report.valid)}，无效 {len(report.invalid)}")
        return report

    def cleanup_invalid(self) -> List[InstalledEnvironment]:
        """
        清理所有无效环境。

        先基于同一份快照计算无效集合，再从最大序号向最小序号依次处理：
        删除环境目录（若存在），然后按路径移除注册表记录。

        返回:
            被移除的环境记录，按处理顺序排列
        """
        report = self.validate_all()
        invalid = sorted(report.invalid, key=lambda r: r.index, reverse=True)
        if not invalid:
            logger.info("没有需要清理的无效环境")
            return []

        removed = []
        for result in invalid:
            entry = result.entry
            if remove_environment_files(Path(entry.path)):
                logger.info(f"已删除无效环境目录: {entry.path}")
            try:
                removed.append(self.registry.remove_by_path(entry.path))
            except NotFound:
                logger.warning(f"环境 {entry.path} 已不在注册表中，跳过")
                continue
            logger.info(f"已清理无效环境 [{result.index}] Python {entry.version}")
        return removed

    def details(self, index: int) -> EnvironmentDetails:
        """
        获取环境详细信息。

        参数:
            index: 1 起始的序号
        """
        result = self.validate_index(index)
        pip_available = bool(result.executable) and python_probe.has_pip(result.executable)
        return EnvironmentDetails(result, pip_available)
