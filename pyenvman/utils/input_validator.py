"""
输入验证模块。

提供命令行输入的验证和 sanitization 功能。
"""

import json
import os
import re
from typing import Any, Iterable, Tuple

from pyenvman.core.errors import InvalidVersionFormat, PyEnvManError
from pyenvman.utils.logger import get_logger

logger = get_logger()


class InputValidationError(PyEnvManError):
    """输入验证错误异常。"""
    pass


class InputValidator:
    """
    输入验证器类。

    提供命令行参数的验证和 sanitization 功能。
    """

    VERSION_SPEC_PATTERN = re.compile(r'^\d+\.\d+(\.\d+)?$')
    SETTING_KEY_PATTERN = re.compile(r'^[a-z_]+$')
    MAX_PATH_LENGTH = 1024
    MAX_VERSION_LENGTH = 32

    @classmethod
    def sanitize_version_string(cls, version: str) -> str:
        """去除版本号首尾空白。"""
        if not version:
            return ""
        return version.strip()

    @classmethod
    def validate_version_string(cls, version: str) -> bool:
        """
        验证版本号字符串是否为 x.y 或 x.y.z。

        参数:
            version: 版本号字符串

        返回:
            验证通过返回 True

        抛出:
            InputValidationError: 版本号为空或过长
            InvalidVersionFormat: 格式不是 x.y 或 x.y.z
        """
        version = cls.sanitize_version_string(version)
        if not version:
            raise InputValidationError("版本号不能为空")
        if len(version) > cls.MAX_VERSION_LENGTH:
            raise InputValidationError(f"版本号不能超过 {cls.MAX_VERSION_LENGTH} 个字符")
        if not cls.VERSION_SPEC_PATTERN.match(version):
            raise InvalidVersionFormat(version)
        return True

    @classmethod
    def validate_path(cls, path: str) -> bool:
        """
        验证安装路径的有效性。

        参数:
            path: 路径字符串，None 表示使用默认路径

        返回:
            验证通过返回 True，否则抛出 InputValidationError
        """
        if path is None:
            return True
        if not path.strip():
            raise InputValidationError("路径不能为空")
        if len(path) > cls.MAX_PATH_LENGTH:
            raise InputValidationError(f"路径不能超过 {cls.MAX_PATH_LENGTH} 个字符")
        if "\0" in path:
            raise InputValidationError("路径不能包含空字符")
        if os.path.abspath(os.path.expanduser(path)) == os.sep:
            raise InputValidationError("不能安装到根目录")
        return True

    @classmethod
    def parse_index(cls, value: str) -> int:
        """
        解析环境序号，范围检查由注册表负责。

        参数:
            value: 命令行输入

        返回:
            序号

        抛出:
            InputValidationError: 不是整数时抛出
        """
        try:
            index = int(str(value).strip())
        except ValueError:
            raise InputValidationError(f"序号必须是整数: {value}")
        return index

    @classmethod
    def parse_setting_assignment(cls, assignment: str, string_keys: Iterable[str] = ()) -> Tuple[str, Any]:
        """
        解析 key=value 形式的设置项，value 优先按 JSON 解析。

        参数:
            assignment: 形如 build_jobs=8 或 configure_options=["--enable-shared"]
            string_keys: 值始终按原样字符串处理的键

        返回:
            (键, 值)
        """
        key, sep, raw_value = assignment.partition("=")
        key = key.strip()
        if not sep or not cls.SETTING_KEY_PATTERN.match(key):
            raise InputValidationError(f"设置项格式无效: {assignment}（需要 key=value）")
        raw_value = raw_value.strip()
        if key in string_keys:
            value: Any = raw_value
        else:
            try:
                value = json.loads(raw_value)
            except json.JSONDecodeError:
                value = raw_value
        logger.debug(f"解析设置项 {key}={value!r}")
        return key, value
