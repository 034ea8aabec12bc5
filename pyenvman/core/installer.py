"""
安装事务模块。

安装流程是一个状态机：
PENDING -> PATH_CHECKED -> BUILT -> VERIFIED -> REGISTERED，
任一步骤失败（包括 Ctrl+C）都进入 ROLLED_BACK，
删除临时目录和本次创建的安装目录，注册表保持不变。
"""

import shutil
import tempfile
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from pyenvman.core import python_probe, version_utils
from pyenvman.core.builder import SourceBuilder
from pyenvman.core.config_manager import ConfigManager
from pyenvman.core.errors import (
    ExecutableNotFound,
    PathAlreadyRegistered,
    PathNotEmpty,
    UnsupportedInstallMethod,
)
from pyenvman.core.interfaces import IBuilder
from pyenvman.core.registry import InstalledEnvironment, InstallMethod, Registry, normalize_path
from pyenvman.core.version_catalog import VersionCatalog
from pyenvman.core.version_resolver import ResolvedVersion, VersionResolver
from pyenvman.utils.logger import get_logger

logger = get_logger()

TEMP_DIR_PREFIX = "pyenvman-"


class TransactionState(Enum):
    """安装事务状态。"""

    PENDING = "pending"
    PATH_CHECKED = "path_checked"
    BUILT = "built"
    VERIFIED = "verified"
    REGISTERED = "registered"
    ROLLED_BACK = "rolled_back"


def _is_empty_dir(path: Path) -> bool:
    return path.is_dir() and not any(path.iterdir())


class InstallTransaction:
    """
    单次安装事务。

    作为上下文管理器使用：进入时创建临时工作目录，退出时总是删除临时目录；
    若未到达 REGISTERED 状态，还会删除安装目录。已注册的目标目录永远不会被删除。

    用法:
        with InstallTransaction(version, target, builder, registry) as tx:
            entry = tx.run()
    """

    def __init__(
        self,
        version: str,
        target: Union[str, Path],
        builder: IBuilder,
        registry: Registry,
        method: InstallMethod = InstallMethod.SOURCE,
    ):
        self.version = version
        self.target = Path(normalize_path(target))
        self.builder = builder
        self.registry = registry
        self.method = method
        self.state = TransactionState.PENDING
        self.completed = False
        self.work_dir: Optional[Path] = None
        self.entry: Optional[InstalledEnvironment] = None
        self.actual_version: Optional[str] = None
        self._owns_target = False

    def __enter__(self) -> "InstallTransaction":
        self.work_dir = Path(tempfile.mkdtemp(prefix=TEMP_DIR_PREFIX))
        logger.debug(f"创建临时工作目录: {self.work_dir}")
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> bool:
        try:
            if not self.completed:
                if exc_type is not None:
                    logger.error(f"安装 Python {self.version} 失败: {exc_value or exc_type.__name__}")
                self.rollback()
        finally:
            self._remove_work_dir()
        return False

    def _remove_work_dir(self) -> None:
        if self.work_dir is not None and self.work_dir.exists():
            shutil.rmtree(self.work_dir, ignore_errors=True)
            logger.debug(f"已删除临时工作目录: {self.work_dir}")
        self.work_dir = None

    def check_path(self) -> None:
        """
        检查安装目录：不存在、为空目录或已注册均可继续。

        抛出:
            PathNotEmpty: 目录非空且未注册时抛出
        """
        if self.target.exists():
            if self.registry.path_exists(self.target):
                logger.info(f"安装目录已注册，将重新构建并验证: {self.target}")
            elif not _is_empty_dir(self.target):
                raise PathNotEmpty(str(self.target))
            else:
                self._owns_target = True
        else:
            self._owns_target = True
        self.state = TransactionState.PATH_CHECKED

    def build(self) -> None:
        """调用构建器安装到目标目录，失败抛出 BuildFailure，不自动重试。"""
        logger.info(f"开始构建 Python {self.version} -> {self.target}")
        self.builder.build(self.version, self.target, self.work_dir)
        self.state = TransactionState.BUILT

    def verify(self) -> str:
        """
        验证安装结果。

        返回:
            可执行文件报告的版本号

        抛出:
            ExecutableNotFound: 未找到可执行文件或无法获取版本时抛出
        """
        executable = python_probe.find_python_executable(self.target)
        if executable is None:
            raise ExecutableNotFound(str(self.target))
        actual = python_probe.get_python_version(executable)
        if actual is None:
            raise ExecutableNotFound(str(executable))

        if version_utils.series_of(actual) != version_utils.series_of(self.version):
            logger.warning(f"版本不匹配: 期望 {self.version}，实际 {actual}")
        if not python_probe.has_pip(executable):
            logger.warning("pip 不可用，可能需要手动安装 pip")

        self.actual_version = actual
        self.state = TransactionState.VERIFIED
        logger.info(f"安装验证通过: Python {actual} ({executable})")
        return actual

    def register(self) -> InstalledEnvironment:
        """
        将环境写入注册表并标记事务完成。

        抛出:
            PathAlreadyRegistered: 路径已注册时抛出，触发回滚
        """
        self.entry = self.registry.add(self.version, self.target, self.method)
        self.completed = True
        self.state = TransactionState.REGISTERED
        return self.entry

    def run(self) -> InstalledEnvironment:
        """依次执行全部步骤并返回注册的环境记录。"""
        self.check_path()
        self.build()
        self.verify()
        return self.register()

    def rollback(self) -> None:
        """删除本次创建的安装目录，已注册或预先存在的非空目录不受影响。"""
        if self.completed:
            return
        if self._owns_target and self.target.exists():
            logger.info(f"回滚安装，删除目录: {self.target}")
            shutil.rmtree(self.target, ignore_errors=True)
        self.state = TransactionState.ROLLED_BACK


class Installer:
    """
    安装器类。

    负责版本解析、默认安装路径生成、安装前检查和安装方式选择，
    实际的安装步骤交给 InstallTransaction。
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        registry: Registry,
        builder: Optional[IBuilder] = None,
        catalog: Optional[VersionCatalog] = None,
    ):
        """
        初始化安装器。

        参数:
            config_manager: 配置管理器实例
            registry: 环境注册表
            builder: 构建器，为 None 时使用 SourceBuilder
            catalog: 版本目录，为 None 时每次安装从目录文件重新加载
        """
        self.config_manager = config_manager
        self.registry = registry
        self.builder = builder or SourceBuilder(config_manager)
        self.catalog = catalog

    def resolve(self, spec: str) -> ResolvedVersion:
        """解析版本号并检查是否在支持范围内。"""
        catalog = self.catalog if self.catalog is not None else VersionCatalog.load(self.config_manager.catalog_file)
        resolver = VersionResolver(
            catalog,
            min_version=self.config_manager.get("min_python_version"),
            max_version=self.config_manager.get("max_python_version"),
        )
        resolved = resolver.resolve(spec)
        resolver.check_supported(resolved.version)
        return resolved

    def generate_install_path(self, version: str, now: Optional[datetime] = None) -> Path:
        """生成默认安装路径 <env_dir>/python_<版本>_<时间戳>。"""
        timestamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
        return self.config_manager.env_dir / f"python_{version}_{timestamp}"

    def pre_install_check(self, path: Union[str, Path]) -> None:
        """
        安装前检查目标路径。

        抛出:
            PathAlreadyRegistered: 路径已注册
            PathNotEmpty: 路径存在且非空
        """
        if self.registry.path_exists(path):
            raise PathAlreadyRegistered(normalize_path(path))
        target = Path(path)
        if target.exists() and not _is_empty_dir(target):
            raise PathNotEmpty(normalize_path(path))

    def install(
        self,
        spec: str,
        path: Optional[Union[str, Path]] = None,
        method: Union[str, InstallMethod] = InstallMethod.SOURCE,
    ) -> InstalledEnvironment:
        """
        安装指定版本的 Python。

        参数:
            spec: x.y 或 x.y.z 版本号
            path: 安装路径，为 None 时自动生成
            method: 安装方式，目前只支持 source

        返回:
            注册的环境记录
        """
        resolved = self.resolve(spec)
        if resolved.not_latest:
            logger.warning(
                f"{resolved.version} 不是 {resolved.series} 系列的最新版本，最新版本为 {resolved.latest}"
            )

        try:
            method = InstallMethod(method)
        except ValueError:
            raise UnsupportedInstallMethod(f"不支持的安装方式: {method}")
        if method is not InstallMethod.SOURCE:
            raise UnsupportedInstallMethod(f"安装方式 '{method.value}' 尚未实现，请使用 source")

        target = Path(path) if path else self.generate_install_path(resolved.version)
        self.pre_install_check(target)
        logger.info(f"准备安装 Python {resolved.version} 到 {normalize_path(target)}")

        with InstallTransaction(resolved.version, target, self.builder, self.registry, method) as tx:
            entry = tx.run()
        logger.info(f"Python {entry.version} 安装完成: {entry.path}")
        return entry
