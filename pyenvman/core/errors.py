"""
错误类型模块。

定义版本解析、注册表、安装事务和校验各环节使用的异常。
除 ValidationMismatch 外，所有异常都会中止当前命令并返回非零退出码。
"""

from typing import Sequence


class PyEnvManError(Exception):
    """pyenvman 所有错误的基类。"""
    pass


class ConfigError(PyEnvManError):
    """配置加载、验证或保存错误异常。"""
    pass


class InvalidVersionFormat(PyEnvManError):
    """版本号格式错误异常（需要 x.y 或 x.y.z）。"""

    def __init__(self, spec: str):
        self.spec = spec
        super().__init__(f"无效的版本格式: {spec}（需要 x.y 或 x.y.z，例如 3.11 或 3.11.10）")


class VersionNotInCatalog(PyEnvManError):
    """版本系列不在版本目录中异常。"""

    def __init__(self, spec: str, available: Sequence[str] = ()):
        self.spec = spec
        self.available = list(available)
        message = f"版本目录中未找到 {spec}"
        if self.available:
            message += f"，可用系列: {', '.join(self.available)}"
        super().__init__(message)


class UnsupportedVersion(PyEnvManError):
    """版本超出支持范围异常。"""
    pass


class CatalogError(PyEnvManError):
    """版本目录文件读取或更新错误异常。"""
    pass


class RegistryCorrupted(PyEnvManError):
    """注册表文件无法解析异常。"""
    pass


class PathNotEmpty(PyEnvManError):
    """安装路径非空且未注册异常。"""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"安装路径非空: {path}，请选择空目录或不存在的路径")


class PathAlreadyRegistered(PyEnvManError):
    """安装路径已存在于注册表异常。"""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"路径已存在于注册表中: {path}")


class IndexOutOfRange(PyEnvManError):
    """环境序号越界异常。"""

    def __init__(self, index: int, count: int):
        self.index = index
        self.count = count
        if count:
            message = f"无效的环境序号: {index}（有效范围: 1-{count}）"
        else:
            message = f"无效的环境序号: {index}（当前没有已安装的环境）"
        super().__init__(message)


class NotFound(PyEnvManError):
    """注册表中未找到匹配环境异常。"""
    pass


class ExecutableNotFound(PyEnvManError):
    """安装目录中未找到可用的 Python 可执行文件异常。"""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"未找到 Python 可执行文件: {path}")


class RemovalError(PyEnvManError):
    """删除环境目录失败异常。"""
    pass


class BuildFailure(PyEnvManError):
    """源码下载、解压或编译失败异常。"""
    pass


class UnsupportedInstallMethod(PyEnvManError):
    """不支持的安装方式异常。"""
    pass


class ValidationMismatch(UserWarning):
    """记录版本与实际版本不一致的警告，不会中止操作。"""

    def __init__(self, recorded: str, actual: str):
        self.recorded = recorded
        self.actual = actual
        super().__init__(f"版本不匹配: 配置为 {recorded}，实际为 {actual}")
