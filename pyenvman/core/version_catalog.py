"""
版本目录模块。

负责读取和生成扁平的 key=value 版本目录文件：

    # 注释行会被忽略
    3.11=3.11.10
    3.11.versions=10,9,8

"X.Y.versions" 中的条目既可以是补丁号，也可以是完整版本号，顺序不限。
"""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from pyenvman.core import version_utils
from pyenvman.core.errors import CatalogError
from pyenvman.utils.logger import get_logger

logger = get_logger()

VERSIONS_SUFFIX = ".versions"


@dataclass(frozen=True)
class CatalogEntry:
    """
    单个版本系列的目录条目。

    versions 按版本号降序排列且已去重，latest_patch 总是包含在其中。
    """

    major_minor: str
    latest_patch: str
    versions: Tuple[str, ...]


def _strip_comment(line: str) -> str:
    """去除行内注释和首尾空白。"""
    return line.split("#", 1)[0].strip()


def _expand_patch(series: str, item: str) -> Optional[str]:
    """
    将补丁号或完整版本号展开为完整版本号。

    参数:
        series: 所属系列，如 "3.11"
        item: "10" 或 "3.11.10"

    返回:
        完整版本号，不属于该系列或格式错误返回 None
    """
    item = item.strip()
    if not item:
        return None
    if item.isdigit():
        return f"{series}.{int(item)}"
    if version_utils.is_full_version(item) and version_utils.series_of(item) == series:
        return item
    return None


class VersionCatalog:
    """
    版本目录类。

    加载后不可变，由 VersionResolver 显式持有，不依赖任何全局状态。
    """

    def __init__(self, entries: Mapping[str, CatalogEntry]):
        self._entries = MappingProxyType(dict(entries))

    @classmethod
    def parse(cls, text: str, source: str = "<string>") -> "VersionCatalog":
        """
        从目录文本解析版本目录。

        参数:
            text: 目录文件内容
            source: 来源描述，用于日志

        返回:
            VersionCatalog 实例
        """
        latest_map: Dict[str, str] = {}
        series_map: Dict[str, List[str]] = {}

        for lineno, raw_line in enumerate(text.splitlines(), start=1):
            line = _strip_comment(raw_line)
            if not line:
                continue
            key, sep, value = line.partition("=")
            key, value = key.strip(), value.strip()
            if not sep or not key:
                logger.warning(f"{source}:{lineno} 无法解析的目录行，已跳过: {raw_line!r}")
                continue

            if key.endswith(VERSIONS_SUFFIX):
                series = key[:-len(VERSIONS_SUFFIX)]
                if not version_utils.is_series(series):
                    logger.warning(f"{source}:{lineno} 无效的版本系列 {series}，已跳过")
                    continue
                expanded = []
                for item in value.split(","):
                    version = _expand_patch(series, item)
                    if version is None:
                        if item.strip():
                            logger.warning(f"{source}:{lineno} 忽略无效的补丁版本 {item.strip()!r}")
                        continue
                    expanded.append(version)
                series_map.setdefault(series, []).extend(expanded)
            else:
                if not version_utils.is_series(key):
                    logger.warning(f"{source}:{lineno} 无效的版本系列 {key}，已跳过")
                    continue
                if not version_utils.is_full_version(value) or version_utils.series_of(value) != key:
                    logger.warning(f"{source}:{lineno} {key} 的最新版本 {value!r} 无效，已跳过")
                    continue
                latest_map[key] = value

        entries = {}
        for series in set(latest_map) | set(series_map):
            versions = version_utils.sort_versions_desc(
                series_map.get(series, []) + ([latest_map[series]] if series in latest_map else [])
            )
            if not versions:
                logger.warning(f"{source} 中 {series} 系列没有任何有效版本，已跳过")
                continue
            latest = latest_map.get(series) or version_utils.max_version(versions)
            entries[series] = CatalogEntry(series, latest, tuple(versions))

        return cls(entries)

    @classmethod
    def load(cls, path: Path) -> "VersionCatalog":
        """
        从目录文件加载版本目录。

        参数:
            path: 目录文件路径

        返回:
            VersionCatalog 实例

        抛出:
            CatalogError: 文件不存在或无法读取时抛出
        """
        if not path.exists():
            raise CatalogError(f"版本目录文件不存在: {path}，请先运行 update-catalog 生成")
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise CatalogError(f"无法读取版本目录文件 {path}: {e}") from e
        catalog = cls.parse(text, source=str(path))
        logger.debug(f"从 {path} 加载了 {len(catalog)} 个版本系列")
        return catalog

    @classmethod
    def from_versions(cls, versions: Iterable[str]) -> "VersionCatalog":
        """
        根据完整版本号列表构建目录，每个系列的最新版本为其最大版本。

        参数:
            versions: 完整版本号列表

        返回:
            VersionCatalog 实例
        """
        grouped: Dict[str, List[str]] = {}
        for version in versions:
            if version_utils.is_full_version(version):
                grouped.setdefault(version_utils.series_of(version), []).append(version)
        entries = {}
        for series, items in grouped.items():
            ordered = version_utils.sort_versions_desc(items)
            entries[series] = CatalogEntry(series, ordered[0], tuple(ordered))
        return cls(entries)

    def get(self, series: str) -> Optional[CatalogEntry]:
        """获取指定系列的目录条目，不存在返回 None。"""
        return self._entries.get(series)

    def series(self) -> List[str]:
        """按版本号升序返回所有系列。"""
        return version_utils.sort_versions_asc(self._entries)

    def entries(self) -> List[CatalogEntry]:
        """按系列升序返回所有目录条目。"""
        return [self._entries[s] for s in self.series()]

    def __contains__(self, series: object) -> bool:
        return series in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def to_text(self, updated: Optional[datetime] = None) -> str:
        """
        序列化为目录文件文本，补丁列表只写补丁号且降序排列。

        参数:
            updated: 写入头部注释的更新时间

        返回:
            目录文件内容
        """
        updated = updated or datetime.now()
        lines = [
            "# Python Version Catalog",
            "# Format: MAJOR.MINOR=MAJOR.MINOR.PATCH (latest version)",
            "# Format: MAJOR.MINOR.versions=PATCH1,PATCH2,... (all versions)",
            f"# Last updated: {updated.strftime('%Y-%m-%d')}",
            "",
        ]
        for entry in self.entries():
            patches = ",".join(v.rsplit(".", 1)[1] for v in entry.versions)
            lines.append(f"# Python {entry.major_minor} series")
            lines.append(f"{entry.major_minor}={entry.latest_patch}")
            lines.append(f"{entry.major_minor}{VERSIONS_SUFFIX}={patches}")
            lines.append("")
        return "\n".join(lines)
