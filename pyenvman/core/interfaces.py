"""
核心模块抽象接口定义。

定义安装事务依赖的构建器接口和版本目录获取器接口。
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List


class IBuilder(ABC):
    """构建器抽象接口。"""

    @abstractmethod
    def build(self, version: str, destination: Path, work_dir: Path) -> None:
        """
        下载、编译并安装指定版本到目标目录。

        失败时抛出 BuildFailure；对同一目标目录重复调用是安全的。
        """
        pass


class ICatalogFetcher(ABC):
    """版本目录获取器抽象接口。"""

    @abstractmethod
    def fetch_versions(self) -> List[str]:
        """获取远程可用的完整版本号列表。"""
        pass

    @abstractmethod
    def update_catalog(self, catalog_file: Path):
        """获取远程版本并重写版本目录文件，返回新的 VersionCatalog。"""
        pass
