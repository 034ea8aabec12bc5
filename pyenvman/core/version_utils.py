"""
版本工具模块。

提供版本号解析、比较、排序等工具函数。所有比较按数字逐段进行，
因此 3.11.9 < 3.11.10 < 3.12.0。
"""

import re
from typing import Iterable, List, Optional, Tuple

SERIES_PATTERN = re.compile(r'^(\d+)\.(\d+)$')
FULL_VERSION_PATTERN = re.compile(r'^(\d+)\.(\d+)\.(\d+)$')
SPEC_PATTERN = re.compile(r'^\d+\.\d+(\.\d+)?$')


def parse_version(version_str: str) -> Tuple[int, ...]:
    """
    解析版本字符串为可比较的元组。

    参数:
        version_str: 版本字符串

    返回:
        版本元组 (major, minor, patch, ...)
    """
    parts = re.findall(r'\d+', version_str)
    return tuple(int(p) for p in parts) if parts else (0,)


def compare_versions(left: str, right: str) -> int:
    """
    比较两个版本号。

    参数:
        left: 左侧版本号
        right: 右侧版本号

    返回:
        left 较小返回 -1，相等返回 0，较大返回 1
    """
    a, b = parse_version(left), parse_version(right)
    length = max(len(a), len(b))
    a += (0,) * (length - len(a))
    b += (0,) * (length - len(b))
    return (a > b) - (a < b)


def is_series(spec: str) -> bool:
    """判断是否为 x.y 格式。"""
    return bool(SERIES_PATTERN.match(spec))


def is_full_version(spec: str) -> bool:
    """判断是否为 x.y.z 格式。"""
    return bool(FULL_VERSION_PATTERN.match(spec))


def is_version_spec(spec: str) -> bool:
    """判断是否为 x.y 或 x.y.z 格式。"""
    return bool(SPEC_PATTERN.match(spec))


def series_of(version: str) -> str:
    """
    获取版本号所属的 major.minor 系列。

    参数:
        version: 版本号（x.y 或 x.y.z）

    返回:
        系列字符串，如 "3.11"
    """
    parts = version.split(".")
    return ".".join(parts[:2])


def sort_versions_desc(versions: Iterable[str]) -> List[str]:
    """
    按版本号降序排列并去重。

    参数:
        versions: 版本号列表

    返回:
        去重后降序排列的版本号列表
    """
    return sorted(set(versions), key=parse_version, reverse=True)


def sort_versions_asc(versions: Iterable[str]) -> List[str]:
    """按版本号升序排列并去重。"""
    return sorted(set(versions), key=parse_version)


def max_version(versions: Iterable[str]) -> Optional[str]:
    """
    获取版本列表中的最大版本。

    参数:
        versions: 版本号列表

    返回:
        最大版本号，列表为空返回 None
    """
    ordered = sort_versions_desc(versions)
    return ordered[0] if ordered else None
