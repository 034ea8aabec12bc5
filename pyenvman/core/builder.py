"""
源码构建模块。

提供 CPython 源码的下载、解压、configure、编译和安装功能。
构建器不保存任何状态，失败一律抛出 BuildFailure。
"""

import os
import shutil
import subprocess
import tarfile
from pathlib import Path
from typing import Callable, List, Optional

import requests

from pyenvman.core.config_manager import ConfigManager
from pyenvman.core.errors import BuildFailure
from pyenvman.core.interfaces import IBuilder
from pyenvman.utils.logger import get_logger
from pyenvman.utils.retry import RetryHandler

logger = get_logger()

CHUNK_SIZE = 64 * 1024


def _safe_join(base: Path, name: str) -> Path:
    """拼接压缩包成员路径，防止路径遍历。"""
    base = base.resolve()
    joined = (base / name).resolve()
    if joined != base and base not in joined.parents:
        raise BuildFailure(f"压缩包包含非法路径: {name}")
    return joined


class SourceBuilder(IBuilder):
    """
    源码构建器类。

    负责从源码编译安装 Python。
    实现 IBuilder 抽象接口。
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        session: Optional[requests.Session] = None,
        retry_handler: Optional[RetryHandler] = None,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        jobs: Optional[int] = None,
    ):
        """
        初始化源码构建器。

        参数:
            config_manager: 配置管理器实例
            session: HTTP 会话
            retry_handler: 下载重试处理器
            runner: 执行构建命令的函数
            jobs: 并行编译任务数，None 表示使用配置值
        """
        self.config_manager = config_manager
        self.session = session or requests.Session()
        self.retry_handler = retry_handler or RetryHandler(
            max_retries=config_manager.get("download_retry_count", 3)
        )
        self.runner = runner
        self.jobs = jobs or config_manager.get_build_jobs()

    def check_dependencies(self) -> List[str]:
        """
        检查构建所需的工具是否可用。

        缺少工具只记录警告，真正的失败由后续构建步骤报告。

        返回:
            缺少的工具列表
        """
        required = self.config_manager.get("required_build_tools", [])
        missing = [tool for tool in required if shutil.which(tool) is None]
        if missing:
            logger.warning(
                f"缺少构建工具: {' '.join(missing)}，构建可能失败"
                f"（例如: sudo apt install -y build-essential zlib1g-dev libssl-dev libffi-dev）"
            )
        else:
            logger.info("构建依赖检查通过")
        return missing

    def download(self, version: str, work_dir: Path) -> Path:
        """
        下载源码压缩包。

        参数:
            version: 完整版本号
            work_dir: 临时工作目录

        返回:
            压缩包路径
        """
        url = self.config_manager.get_source_url(version)
        archive_path = work_dir / f"Python-{version}.tgz"
        timeout = self.config_manager.get("request_timeout", 30)
        logger.info(f"正在下载 Python {version} 源码: {url}")

        def _do_download() -> None:
            with self.session.get(url, stream=True, timeout=timeout) as response:
                response.raise_for_status()
                with open(archive_path, "wb") as f:
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)

        try:
            self.retry_handler.execute(_do_download)
        except (requests.RequestException, OSError) as e:
            raise BuildFailure(f"下载 Python {version} 源码失败: {e}") from e

        logger.info(f"源码下载完成: {archive_path}")
        return archive_path

    def extract(self, archive_path: Path, work_dir: Path) -> Path:
        """
        解压源码压缩包，防止路径遍历漏洞。

        参数:
            archive_path: 压缩包路径
            work_dir: 解压目录

        返回:
            解压后的源码目录
        """
        logger.info(f"正在解压源码: {archive_path}")
        try:
            with tarfile.open(archive_path, "r:*") as tar:
                for member in tar.getmembers():
                    _safe_join(work_dir, member.name)
                    if member.issym() or member.islnk():
                        _safe_join(work_dir, os.path.join(os.path.dirname(member.name), member.linkname))
                if hasattr(tarfile, "data_filter"):
                    tar.extractall(work_dir, filter="data")
                else:
                    tar.extractall(work_dir)
        except (tarfile.TarError, OSError) as e:
            raise BuildFailure(f"解压源码失败: {e}") from e

        source_dir = work_dir / archive_path.name[:-len(".tgz")]
        if not source_dir.is_dir():
            raise BuildFailure(f"解压后未找到源码目录: {source_dir}")
        logger.info(f"源码解压完成: {source_dir}")
        return source_dir

    def _run(self, args: List[str], cwd: Path, step: str) -> None:
        """执行一个构建步骤，非零退出码视为失败。"""
        logger.info(f"{step}: {' '.join(args)}")
        try:
            self.runner(args, cwd=str(cwd), check=True)
        except subprocess.CalledProcessError as e:
            logger.error(f"{step}失败，退出码 {e.returncode}")
            raise BuildFailure(f"{step}失败（退出码 {e.returncode}）") from e
        except OSError as e:
            raise BuildFailure(f"{step}失败: {e}") from e

    def configure(self, source_dir: Path, prefix: Path) -> None:
        """配置构建，安装前缀为目标目录。"""
        options = self.config_manager.get("configure_options", [])
        self._run(["./configure", f"--prefix={prefix}", *options], source_dir, "配置 Python 构建")

    def compile(self, source_dir: Path) -> None:
        """并行编译。"""
        self._run(["make", f"-j{self.jobs}"], source_dir, "编译 Python")

    def install(self, source_dir: Path) -> None:
        """执行 make install。"""
        self._run(["make", "install"], source_dir, "安装 Python")

    def build(self, version: str, destination: Path, work_dir: Path) -> None:
        """
        从源码构建并安装 Python。

        参数:
            version: 完整版本号
            destination: 安装目录（configure 的 --prefix）
            work_dir: 由调用方管理的临时工作目录
        """
        self.check_dependencies()
        destination.mkdir(parents=True, exist_ok=True)
        archive_path = self.download(version, work_dir)
        source_dir = self.extract(archive_path, work_dir)
        self.configure(source_dir, destination)
        self.compile(source_dir)
        self.install(source_dir)
        logger.info(f"Python {version} 已安装到 {destination}")
