"""
版本解析模块。

将用户输入的 x.y 或 x.y.z 解析为完整的 x.y.z 版本号。
"""

from dataclasses import dataclass
from typing import Optional

from pyenvman.core import version_utils
from pyenvman.core.errors import InvalidVersionFormat, UnsupportedVersion, VersionNotInCatalog
from pyenvman.core.version_catalog import VersionCatalog
from pyenvman.utils.logger import get_logger

logger = get_logger()


@dataclass(frozen=True)
class ResolvedVersion:
    """版本解析结果。not_latest 为真时调用方应提示用户存在更新的补丁版本。"""

    requested: str
    version: str
    series: str
    latest: str
    not_latest: bool = False


class VersionResolver:
    """
    版本解析器类。

    对同一个目录，解析同一个 x.y 总是得到同一个完整版本；
    显式指定的 x.y.z 原样返回，从不替换为其他版本。
    """

    def __init__(
        self,
        catalog: VersionCatalog,
        min_version: Optional[str] = None,
        max_version: Optional[str] = None,
    ):
        """
        初始化版本解析器。

        参数:
            catalog: 版本目录
            min_version: 支持的最低系列（如 "3.6"），为空不限制
            max_version: 支持的最高系列，为空不限制
        """
        self.catalog = catalog
        self.min_version = min_version or None
        self.max_version = max_version or None

    def resolve(self, spec: str) -> ResolvedVersion:
        """
        解析版本号。

        参数:
            spec: 用户输入的版本号

        返回:
            ResolvedVersion 解析结果

        抛出:
            InvalidVersionFormat: 格式不是 x.y 或 x.y.z
            VersionNotInCatalog: 系列不在目录中
        """
        spec = (spec or "").strip()
        if not version_utils.is_version_spec(spec):
            raise InvalidVersionFormat(spec)

        series = version_utils.series_of(spec)
        entry = self.catalog.get(series)
        if entry is None:
            logger.error(f"版本系列 {series} 不在版本目录中")
            raise VersionNotInCatalog(spec, self.catalog.series())

        if version_utils.is_series(spec):
            logger.info(f"解析版本 {spec} -> {entry.latest_patch}")
            return ResolvedVersion(spec, entry.latest_patch, series, entry.latest_patch)

        if spec == entry.latest_patch:
            logger.info(f"使用版本: {spec}")
            return ResolvedVersion(spec, spec, series, entry.latest_patch)

        logger.warning(f"版本 {spec} 不是 {series} 系列的最新版本（最新: {entry.latest_patch}），仍使用指定版本")
        return ResolvedVersion(spec, spec, series, entry.latest_patch, not_latest=True)

    def check_supported(self, version: str) -> None:
        """
        检查版本所属系列是否在支持范围内。

        参数:
            version: 版本号

        抛出:
            UnsupportedVersion: 超出支持范围时抛出
        """
        series = version_utils.series_of(version)
        too_old = self.min_version and version_utils.compare_versions(series, self.min_version) < 0
        too_new = self.max_version and version_utils.compare_versions(series, self.max_version) > 0
        if too_old or too_new:
            bounds = f"{self.min_version or '*'} - {self.max_version or '*'}"
            raise UnsupportedVersion(f"不支持的 Python 版本: {version}（支持范围: {bounds}）")
