"""
配置管理器模块。

提供应用程序目录布局、设置文件的加载、保存和验证功能。
"""

import json
import os
from pathlib import Path
from typing import Any, Optional

from pyenvman.core.errors import ConfigError
from pyenvman.utils.logger import get_logger

logger = get_logger()

HOME_ENV_VAR = "PYENVMAN_HOME"
ENV_DIR_ENV_VAR = "PYENVMAN_ENV_DIR"


def get_default_home() -> Path:
    """
    获取应用程序根目录路径。

    返回:
        PYENVMAN_HOME 指定的目录，未设置时为 ~/.pyenvman
    """
    home = os.environ.get(HOME_ENV_VAR)
    if home:
        return Path(home).expanduser().absolute()
    return Path.home() / ".pyenvman"


def atomic_save_text(file_path: Path, text: str) -> None:
    """
    原子保存文本到文件，文件内容要么是旧的完整内容，要么是新的完整内容。

    参数:
        file_path: 目标文件路径
        text: 要保存的文本
    """
    temp_path = file_path.with_name(f".{file_path.name}.{os.getpid()}.tmp")
    try:
        with open(temp_path, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_path, file_path)
    except BaseException:
        if temp_path.exists():
            temp_path.unlink()
        raise


def atomic_save_json(file_path: Path, data: Any, indent: int = 2) -> None:
    """
    原子保存 JSON 数据到文件，防止写入中断导致文件损坏。

    参数:
        file_path: 目标文件路径
        data: 要保存的数据
        indent: JSON 缩进
    """
    atomic_save_text(file_path, json.dumps(data, indent=indent, ensure_ascii=False) + "\n")


class ConfigManager:
    """
    配置管理器类。

    负责目录布局（设置文件、注册表、版本目录、默认安装目录、日志目录）
    以及 settings.json 的加载、保存、验证和访问。
    """

    SETTINGS_FILE_NAME = "settings.json"
    REGISTRY_FILE_NAME = "environments.json"
    CATALOG_FILE_NAME = "version.config"

    SETTINGS_FIELDS = {
        "source_url_template": str,
        "catalog_source_url": str,
        "build_jobs": int,
        "configure_options": list,
        "required_build_tools": list,
        "download_retry_count": int,
        "request_timeout": int,
        "min_python_version": str,
        "max_python_version": str,
        "pip_mirrors": list,
    }

    def __init__(self, home: Optional[Path] = None, env_dir: Optional[Path] = None):
        """
        初始化配置管理器。

        参数:
            home: 根目录，为 None 时使用 PYENVMAN_HOME 或 ~/.pyenvman
            env_dir: 默认安装目录，为 None 时使用 PYENVMAN_ENV_DIR 或 <home>/python_env
        """
        self.home = Path(home).expanduser().absolute() if home else get_default_home()
        if env_dir is None and os.environ.get(ENV_DIR_ENV_VAR):
            env_dir = Path(os.environ[ENV_DIR_ENV_VAR])
        self.env_dir = Path(env_dir).expanduser().absolute() if env_dir else self.home / "python_env"
        self.settings_file = self.home / self.SETTINGS_FILE_NAME
        self.registry_file = self.home / self.REGISTRY_FILE_NAME
        self.catalog_file = self.home / self.CATALOG_FILE_NAME
        self.logs_dir = self.home / "logs"
        self._settings: dict[str, Any] = {}

    def ensure_dirs(self) -> None:
        """确保根目录和默认安装目录存在。"""
        self.home.mkdir(parents=True, exist_ok=True)
        self.env_dir.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def get_builtin_defaults() -> dict[str, Any]:
        """获取内置默认设置。"""
        return {
            "source_url_template": "https://www.python.org/ftp/python/{version}/Python-{version}.tgz",
            "catalog_source_url": "https://www.python.org/downloads/source/",
            "build_jobs": 0,
            "configure_options": [
                "--enable-optimizations",
                "--with-ensurepip=install",
                "--disable-shared",
                "--with-system-ffi",
                "--with-system-expat",
            ],
            "required_build_tools": ["tar", "make", "gcc"],
            "download_retry_count": 3,
            "request_timeout": 30,
            "min_python_version": "3.6",
            "max_python_version": "",
            "pip_mirrors": [
                {"name": "PyPI", "url": "https://pypi.org/simple"},
                {"name": "Tsinghua", "url": "https://pypi.tuna.tsinghua.edu.cn/simple"},
                {"name": "Aliyun", "url": "https://mirrors.aliyun.com/pypi/simple/"},
                {"name": "Huawei Cloud", "url": "https://repo.huaweicloud.com/repository/pypi/simple"},
            ],
        }

    def load_settings(self) -> dict[str, Any]:
        """
        加载设置文件并合并内置默认值。

        设置文件不存在或无效时使用默认设置。

        返回:
            设置字典
        """
        settings = self.get_builtin_defaults()
        if not self.settings_file.exists():
            logger.debug(f"设置文件不存在，使用默认设置: {self.settings_file}")
            self._settings = settings
            return self._settings

        try:
            with open(self.settings_file, "r", encoding="utf-8") as f:
                loaded = json.load(f)
            if not isinstance(loaded, dict):
                raise ConfigError("设置文件顶层必须是对象")
            settings.update(loaded)
            self.validate_settings(settings)
            self._settings = settings
            logger.debug("设置加载成功")
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"加载设置文件失败，使用默认设置: {e}")
            self._settings = self.get_builtin_defaults()
        except ConfigError as e:
            logger.error(f"设置验证失败，使用默认设置: {e}")
            self._settings = self.get_builtin_defaults()
        return self._settings

    def validate_settings(self, settings: dict[str, Any]) -> bool:
        """
        验证设置的有效性。

        参数:
            settings: 要验证的设置字典

        返回:
            验证通过返回 True

        抛出:
            ConfigError: 设置验证失败时抛出
        """
        for field, expected_type in self.SETTINGS_FIELDS.items():
            if field not in settings:
                raise ConfigError(f"缺少必需字段: {field}")
            value = settings[field]
            # bool 是 int 的子类
            if not isinstance(value, expected_type) or isinstance(value, bool):
                raise ConfigError(
                    f"字段 '{field}' 必须是 {expected_type.__name__} 类型，"
                    f"实际为 {type(value).__name__}"
                )
        if settings["build_jobs"] < 0:
            raise ConfigError("build_jobs 不能为负数")
        return True

    def save_settings(self, settings: Optional[dict[str, Any]] = None) -> None:
        """
        保存设置到文件。

        参数:
            settings: 要保存的设置字典，如果为 None 则保存当前设置
        """
        if settings is not None:
            self._settings = settings
        self.validate_settings(self._settings)
        try:
            self.home.mkdir(parents=True, exist_ok=True)
            atomic_save_json(self.settings_file, self._settings)
            logger.debug(f"设置已保存到 {self.settings_file}")
        except OSError as e:
            logger.error(f"保存设置失败: {e}")
            raise ConfigError(f"无法保存设置到 {self.settings_file}: {e}") from e

    @property
    def settings(self) -> dict[str, Any]:
        """获取设置字典（延迟加载）。"""
        if not self._settings:
            self.load_settings()
        return self._settings

    def get(self, key: str, default: Any = None) -> Any:
        """
        获取指定键的设置值。

        参数:
            key: 设置键名
            default: 默认值

        返回:
            设置值或默认值
        """
        return self.settings.get(key, default)

    def get_source_url(self, version: str) -> str:
        """获取指定版本的源码下载地址。"""
        return self.settings["source_url_template"].format(version=version)

    def get_build_jobs(self) -> int:
        """获取并行编译任务数，0 表示使用 CPU 核心数。"""
        jobs = self.settings["build_jobs"]
        return jobs or os.cpu_count() or 1

    def get_pip_mirrors(self) -> list[dict[str, str]]:
        """获取 pip 镜像源列表。"""
        return list(self.settings["pip_mirrors"])
