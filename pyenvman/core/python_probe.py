"""
Python 可执行文件探测模块。

提供安装目录中可执行文件的查找以及版本、pip 可用性检测功能。
"""

import os
import re
import subprocess
from pathlib import Path
from typing import Optional, Union

from pyenvman.utils.logger import get_logger

logger = get_logger()

VERSION_PATTERN = re.compile(r"Python (\d+\.\d+\.\d+)", re.IGNORECASE)
PROBE_TIMEOUT = 10

EXECUTABLE_CANDIDATES = (
    ("bin", "python3"),
    ("python",),
)


def _is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


def find_python_executable(install_path: Union[str, Path]) -> Optional[Path]:
    """
    在安装目录中查找 Python 可执行文件。

    依次尝试 <path>/bin/python3 和 <path>/python。

    参数:
        install_path: 安装目录

    返回:
        可执行文件路径，未找到返回 None
    """
    root = Path(install_path)
    for parts in EXECUTABLE_CANDIDATES:
        candidate = root.joinpath(*parts)
        if _is_executable(candidate):
            return candidate
    logger.debug(f"未在 {root} 中找到 Python 可执行文件")
    return None


def get_python_version(executable: Union[str, Path]) -> Optional[str]:
    """
    执行 `python --version` 获取版本号。

    参数:
        executable: Python 可执行文件路径

    返回:
        x.y.z 版本字符串，获取失败返回 None
    """
    try:
        result = subprocess.run(
            [str(executable), "--version"],
            capture_output=True,
            text=True,
            timeout=PROBE_TIMEOUT,
        )
    except subprocess.TimeoutExpired:
        logger.warning(f"获取 {executable} 版本超时 ({PROBE_TIMEOUT}秒)")
        return None
    except OSError as e:
        logger.warning(f"无法执行 {executable}: {e}")
        return None

    match = VERSION_PATTERN.search(result.stdout + result.stderr)
    if match:
        return match.group(1)
    logger.debug(f"无法从 {executable} 的输出中解析版本")
    return None


def has_pip(executable: Union[str, Path]) -> bool:
    """
    检查 pip 是否可用。

    参数:
        executable: Python 可执行文件路径

    返回:
        `python -m pip --version` 成功返回 True
    """
    try:
        result = subprocess.run(
            [str(executable), "-m", "pip", "--version"],
            capture_output=True,
            text=True,
            timeout=PROBE_TIMEOUT * 3,
        )
    except (subprocess.TimeoutExpired, OSError) as e:
        logger.warning(f"检查 pip 失败: {e}")
        return False
    return result.returncode == 0
