"""
版本目录更新模块。

从 python.org 源码下载页抓取所有已发布的版本号，重新生成版本目录文件。
"""

import re
import shutil
from pathlib import Path
from typing import List, Optional

import requests

from pyenvman.core import version_utils
from pyenvman.core.config_manager import ConfigManager, atomic_save_text
from pyenvman.core.errors import CatalogError
from pyenvman.core.interfaces import ICatalogFetcher
from pyenvman.core.version_catalog import VersionCatalog
from pyenvman.utils.logger import get_logger
from pyenvman.utils.retry import RetryHandler

logger = get_logger()

RELEASE_PATTERN = re.compile(r"Python (\d+\.\d+\.\d+)")
BACKUP_SUFFIX = ".bak"


class CatalogFetcher(ICatalogFetcher):
    """
    版本目录获取器类。

    负责抓取远程版本列表并整体重写版本目录文件。
    实现 ICatalogFetcher 抽象接口。
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        session: Optional[requests.Session] = None,
        retry_handler: Optional[RetryHandler] = None,
    ):
        """
        初始化版本目录获取器。

        参数:
            config_manager: 配置管理器实例
            session: HTTP 会话
            retry_handler: 请求重试处理器
        """
        self.config_manager = config_manager
        self.session = session or requests.Session()
        self.retry_handler = retry_handler or RetryHandler(
            max_retries=config_manager.get("download_retry_count", 3)
        )

    def _fetch_page(self, url: str) -> str:
        timeout = self.config_manager.get("request_timeout", 30)

        def _do_request() -> str:
            response = self.session.get(url, timeout=timeout)
            response.raise_for_status()
            return response.text

        return self.retry_handler.execute(_do_request)

    def _in_supported_range(self, version: str) -> bool:
        series = version_utils.series_of(version)
        min_version = self.config_manager.get("min_python_version")
        max_version = self.config_manager.get("max_python_version")
        if min_version and version_utils.compare_versions(series, min_version) < 0:
            return False
        if max_version and version_utils.compare_versions(series, max_version) > 0:
            return False
        return True

    def fetch_versions(self) -> List[str]:
        """
        获取远程可用的完整版本号列表。

        返回:
            降序排列的版本号列表，只包含支持范围内的版本

        抛出:
            CatalogError: 请求失败或页面中没有任何版本时抛出
        """
        url = self.config_manager.get("catalog_source_url")
        logger.info(f"正在从 {url} 获取 Python 版本列表")
        try:
            page = self._fetch_page(url)
        except requests.RequestException as e:
            logger.error(f"获取版本列表失败: {e}")
            raise CatalogError(f"无法获取版本列表 {url}: {e}") from e

        versions = [v for v in set(RELEASE_PATTERN.findall(page)) if self._in_supported_range(v)]
        if not versions:
            raise CatalogError(f"未能从 {url} 解析到任何 Python 版本")
        versions = version_utils.sort_versions_desc(versions)
        logger.info(f"获取到 {len(versions)} 个 Python 版本")
        return versions

    def update_catalog(self, catalog_file: Path) -> VersionCatalog:
        """
        获取远程版本并重写版本目录文件，旧文件备份为 <目录文件>.bak。

        参数:
            catalog_file: 版本目录文件路径

        返回:
            新的 VersionCatalog
        """
        catalog = VersionCatalog.from_versions(self.fetch_versions())
        catalog_file = Path(catalog_file)
        catalog_file.parent.mkdir(parents=True, exist_ok=True)
        try:
            if catalog_file.exists():
                backup = catalog_file.with_name(catalog_file.name + BACKUP_SUFFIX)
                shutil.copy2(catalog_file, backup)
                logger.info(f"已备份原版本目录: {backup}")
            atomic_save_text(catalog_file, catalog.to_text())
        except OSError as e:
            raise CatalogError(f"无法写入版本目录文件 {catalog_file}: {e}") from e
        logger.info(f"版本目录已更新: {catalog_file}（{len(catalog)} 个系列）")
        return catalog
