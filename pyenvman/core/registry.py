"""
环境注册表模块。

维护已安装 Python 环境的持久化列表（environments.json）。
每次修改都在文件锁保护下读取整个文档、在内存中修改、更新 last_updated，
再原子替换整个文件，不做局部更新。

对外以 1 起始的序号标识环境；删除靠前的环境后，后面环境的序号会前移。
"""

import json
import os
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, List, Optional, TypeVar, Union

from filelock import FileLock

from pyenvman.core import version_utils
from pyenvman.core.config_manager import atomic_save_json
from pyenvman.core.errors import IndexOutOfRange, NotFound, PathAlreadyRegistered, RegistryCorrupted
from pyenvman.utils.logger import get_logger

logger = get_logger()

T = TypeVar("T")

DOCUMENT_VERSION = "1.0"
TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class InstallMethod(str, Enum):
    """安装方式。"""

    SOURCE = "source"
    PACKAGE = "package"


def format_time(value: Optional[Union[str, datetime]] = None) -> str:
    """将时间格式化为注册表使用的字符串，None 表示当前时间。"""
    if isinstance(value, str):
        return value
    return (value or datetime.now()).strftime(TIME_FORMAT)


def normalize_path(path: Union[str, Path]) -> str:
    """将路径规范化为绝对路径字符串，用于唯一性比较。"""
    return os.path.normpath(os.path.abspath(os.path.expanduser(str(path))))


@dataclass
class InstalledEnvironment:
    """
    已安装的 Python 环境记录。

    status 仅供展示，实际健康状态由 ValidationSweep 实时计算。
    """

    version: str
    path: str
    install_method: InstallMethod = InstallMethod.SOURCE
    install_time: str = field(default_factory=format_time)
    status: str = "active"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InstalledEnvironment":
        """从注册表文档中的字典创建记录。"""
        return cls(
            version=str(data["version"]),
            path=str(data["path"]),
            install_method=InstallMethod(data.get("install_method", InstallMethod.SOURCE.value)),
            install_time=str(data.get("install_time", "")),
            status=str(data.get("status", "active")),
        )

    def to_dict(self) -> dict[str, Any]:
        """转换为注册表文档中的字典。"""
        data = asdict(self)
        data["install_method"] = self.install_method.value
        return data


@dataclass
class RegistryDocument:
    """注册表文档：环境列表加最后更新时间。"""

    version: str = DOCUMENT_VERSION
    last_updated: str = ""
    environments: List[InstalledEnvironment] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "RegistryDocument":
        """
        从 JSON 数据创建文档。

        抛出:
            RegistryCorrupted: 结构不符合要求时抛出
        """
        if not isinstance(data, dict) or not isinstance(data.get("environments"), list):
            raise RegistryCorrupted("注册表文档缺少 environments 列表")
        try:
            environments = [InstalledEnvironment.from_dict(e) for e in data["environments"]]
        except (KeyError, TypeError, ValueError) as e:
            raise RegistryCorrupted(f"注册表中存在无效的环境记录: {e}") from e
        return cls(
            version=str(data.get("version", DOCUMENT_VERSION)),
            last_updated=str(data.get("last_updated", "")),
            environments=environments,
        )

    def to_dict(self) -> dict[str, Any]:
        """转换为 JSON 数据。"""
        return {
            "version": self.version,
            "last_updated": self.last_updated,
            "environments": [e.to_dict() for e in self.environments],
        }


class Registry:
    """
    环境注册表类。

    唯一性约束：任意两个环境的 path 不能相同。
    多进程并发修改通过 <registry>.lock 文件锁串行化。
    """

    def __init__(self, registry_file: Path, lock_timeout: float = 30):
        """
        初始化注册表。

        参数:
            registry_file: 注册表文件路径
            lock_timeout: 获取文件锁的超时时间（秒），-1 表示一直等待
        """
        self.registry_file = Path(registry_file)
        self._lock = FileLock(f"{self.registry_file}.lock", timeout=lock_timeout)

    def initialize(self) -> None:
        """注册表文件不存在时创建空文档。"""
        self.registry_file.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            if not self.registry_file.exists():
                self._write(RegistryDocument())
                logger.info(f"初始化注册表文件: {self.registry_file}")

    def load(self) -> RegistryDocument:
        """
        读取整个注册表文档。

        返回:
            RegistryDocument，文件不存在时返回空文档

        抛出:
            RegistryCorrupted: 文件无法解析时抛出
        """
        if not self.registry_file.exists():
            return RegistryDocument()
        try:
            with open(self.registry_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise RegistryCorrupted(f"注册表文件格式无效 {self.registry_file}: {e}") from e
        return RegistryDocument.from_dict(data)

    def _write(self, document: RegistryDocument) -> None:
        """原子写入整个注册表文档。"""
        self.registry_file.parent.mkdir(parents=True, exist_ok=True)
        atomic_save_json(self.registry_file, document.to_dict())
        logger.debug(f"注册表已更新: {self.registry_file}")

    def _mutate(self, change: Callable[[List[InstalledEnvironment]], T]) -> T:
        """
        在文件锁内读取、修改并写回整个文档。

        参数:
            change: 接收环境列表并原地修改的函数，其返回值原样返回

        返回:
            change 的返回值
        """
        self.registry_file.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            document = self.load()
            result = change(document.environments)
            document.last_updated = format_time()
            self._write(document)
        return result

    def list_all(self) -> List[InstalledEnvironment]:
        """按注册顺序返回所有环境。"""
        return list(self.load().environments)

    def count(self) -> int:
        """返回环境数量。"""
        return len(self.load().environments)

    def path_exists(self, path: Union[str, Path]) -> bool:
        """检查路径是否已注册。"""
        return self.find_index(path) is not None

    def find_index(self, path: Union[str, Path]) -> Optional[int]:
        """
        查找路径对应的序号。

        参数:
            path: 安装路径

        返回:
            1 起始的序号，未注册返回 None
        """
        target = normalize_path(path)
        for i, env in enumerate(self.load().environments, start=1):
            if normalize_path(env.path) == target:
                return i
        return None

    def add(
        self,
        version: str,
        path: Union[str, Path],
        method: Union[str, InstallMethod] = InstallMethod.SOURCE,
        install_time: Optional[Union[str, datetime]] = None,
    ) -> InstalledEnvironment:
        """
        添加环境到注册表。

        参数:
            version: 完整版本号
            path: 安装路径
            method: 安装方式
            install_time: 安装时间，None 表示当前时间

        返回:
            新添加的环境记录

        抛出:
            PathAlreadyRegistered: 路径已注册时抛出，注册表保持不变
        """
        entry = InstalledEnvironment(
            version=version,
            path=normalize_path(path),
            install_method=InstallMethod(method),
            install_time=format_time(install_time),
        )

        def append(environments: List[InstalledEnvironment]) -> InstalledEnvironment:
            if any(normalize_path(e.path) == entry.path for e in environments):
                logger.warning(f"路径已存在于注册表中: {entry.path}")
                raise PathAlreadyRegistered(entry.path)
            environments.append(entry)
            return entry

        self._mutate(append)
        logger.info(f"已添加 Python 环境: {entry.version} ({entry.path})")
        return entry

    def get_by_index(self, index: int) -> InstalledEnvironment:
        """
        按序号获取环境。

        参数:
            index: 1 起始的序号

        抛出:
            IndexOutOfRange: 序号越界时抛出
        """
        environments = self.load().environments
        _check_index(index, len(environments))
        return environments[index - 1]

    def get_by_version_pattern(self, spec: str) -> InstalledEnvironment:
        """
        按版本号查找环境。

        先精确匹配；若 spec 为 x.y 格式，再匹配第一个以 "x.y." 开头的环境
        （序号最小者）。

        参数:
            spec: 版本号或 x.y 系列

        抛出:
            NotFound: 没有匹配的环境时抛出
        """
        spec = spec.strip()
        environments = self.load().environments
        for env in environments:
            if env.version == spec:
                return env
        if version_utils.is_series(spec):
            prefix = spec + "."
            for env in environments:
                if env.version.startswith(prefix):
                    return env
        raise NotFound(f"未找到 Python 版本: {spec}")

    def remove_by_index(self, index: int) -> InstalledEnvironment:
        """
        按序号删除环境，之后所有更大的序号都减一。

        参数:
            index: 1 起始的序号

        返回:
            被删除的环境记录

        抛出:
            IndexOutOfRange: 序号越界时抛出
        """
        def pop(environments: List[InstalledEnvironment]) -> InstalledEnvironment:
            _check_index(index, len(environments))
            return environments.pop(index - 1)

        removed = self._mutate(pop)
        logger.info(f"已从注册表移除 Python 环境: {removed.version} ({removed.path})")
        return removed

    def remove_by_path(self, path: Union[str, Path]) -> InstalledEnvironment:
        """
        按路径删除环境，不受序号前移影响。

        参数:
            path: 安装路径

        返回:
            被删除的环境记录

        抛出:
            NotFound: 路径未注册时抛出
        """
        target = normalize_path(path)

        def pop(environments: List[InstalledEnvironment]) -> InstalledEnvironment:
            for i, env in enumerate(environments):
                if normalize_path(env.path) == target:
                    return environments.pop(i)
            raise NotFound(f"注册表中未找到路径: {target}")

        removed = self._mutate(pop)
        logger.info(f"已从注册表移除 Python 环境: {removed.version} ({removed.path})")
        return removed


def _check_index(index: int, count: int) -> None:
    """检查 1 起始的序号是否在 [1, count] 内。"""
    if isinstance(index, bool) or not isinstance(index, int) or index < 1 or index > count:
        raise IndexOutOfRange(index, count)
