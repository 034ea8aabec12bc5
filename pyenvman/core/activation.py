"""
激活脚本生成模块。

为已安装的环境生成 activate.sh 和 deactivate.sh。
脚本只修改当前 shell 的环境变量，需要用户 source 执行；注册表不做任何修改。
"""

import os
from dataclasses import dataclass
from pathlib import Path

from pyenvman.core import python_probe
from pyenvman.core.errors import ExecutableNotFound, NotFound
from pyenvman.core.registry import InstalledEnvironment
from pyenvman.utils.logger import get_logger

logger = get_logger()

SCRIPT_MODE = 0o755
ACTIVATE_SCRIPT_NAME = "activate.sh"
DEACTIVATE_SCRIPT_NAME = "deactivate.sh"

ACTIVATE_TEMPLATE = """#!/bin/bash
# Python {version} 激活脚本
# 用法: source "{path}/activate.sh"

export PATH="{bin_dir}:$PATH"
export PYTHONHOME="{path}"
export LD_LIBRARY_PATH="{lib_dir}${{LD_LIBRARY_PATH:+:$LD_LIBRARY_PATH}}"

echo "Python {version} 环境已激活"
echo "Python 路径: {bin_dir}/python3"
"""

DEACTIVATE_TEMPLATE = """#!/bin/bash
# Python {version} 取消激活脚本
# 用法: source "{path}/deactivate.sh"

_pyenvman_strip() {{
    local list=":$1:"
    while [[ "$list" == *":$2:"* ]]; do
        list=${{list//":$2:"/:}}
    done
    list=${{list#:}}
    printf '%s' "${{list%:}}"
}}

export PATH="$(_pyenvman_strip "$PATH" "{bin_dir}")"
unset PYTHONHOME
LD_LIBRARY_PATH="$(_pyenvman_strip "${{LD_LIBRARY_PATH:-}}" "{lib_dir}")"
if [ -z "$LD_LIBRARY_PATH" ]; then
    unset LD_LIBRARY_PATH
else
    export LD_LIBRARY_PATH
fi
unset -f _pyenvman_strip

echo "Python {version} 环境已取消激活"
"""


def _shell_escape(value: str) -> str:
    """转义双引号字符串中的特殊字符。"""
    for char in ("\\", '"', "$", "`"):
        value = value.replace(char, "\\" + char)
    return value


@dataclass(frozen=True)
class ActivationArtifacts:
    """生成的激活脚本路径。"""

    activate: Path
    deactivate: Path


class ActivationArtifactGenerator:
    """
    激活脚本生成器类。

    每次调用都覆盖已有的脚本，生成结果只取决于环境记录。
    """

    @staticmethod
    def render_scripts(entry: InstalledEnvironment) -> tuple[str, str]:
        """
        渲染激活和取消激活脚本内容。

        返回:
            (activate 内容, deactivate 内容)
        """
        path = entry.path.rstrip("/") or "/"
        values = {
            "version": entry.version,
            "path": _shell_escape(path),
            "bin_dir": _shell_escape(os.path.join(path, "bin")),
            "lib_dir": _shell_escape(os.path.join(path, "lib")),
        }
        return ACTIVATE_TEMPLATE.format(**values), DEACTIVATE_TEMPLATE.format(**values)

    def generate(self, entry: InstalledEnvironment) -> ActivationArtifacts:
        """
        为环境生成激活脚本。

        参数:
            entry: 环境记录

        返回:
            ActivationArtifacts 脚本路径

        抛出:
            NotFound: 环境目录不存在
            ExecutableNotFound: 目录中没有可用的 Python 可执行文件
        """
        root = Path(entry.path)
        if not root.is_dir():
            raise NotFound(f"环境目录不存在: {entry.path}")
        if python_probe.find_python_executable(root) is None:
            raise ExecutableNotFound(entry.path)

        activate_text, deactivate_text = self.render_scripts(entry)
        artifacts = ActivationArtifacts(
            activate=root / ACTIVATE_SCRIPT_NAME,
            deactivate=root / DEACTIVATE_SCRIPT_NAME,
        )
        for script, text in ((artifacts.activate, activate_text), (artifacts.deactivate, deactivate_text)):
            script.write_text(text, encoding="utf-8")
            os.chmod(script, SCRIPT_MODE)
            logger.debug(f"已生成脚本: {script}")

        logger.info(f"已为 Python {entry.version} 生成激活脚本: {artifacts.activate}")
        return artifacts
