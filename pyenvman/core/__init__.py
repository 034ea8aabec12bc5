"""
PyEnvMan 核心模块。

提供版本解析、环境注册表、安装事务、激活脚本生成和环境校验功能。
"""

from .errors import (
    PyEnvManError, ConfigError, InvalidVersionFormat, VersionNotInCatalog, UnsupportedVersion,
    CatalogError, RegistryCorrupted, PathNotEmpty, PathAlreadyRegistered, IndexOutOfRange,
    NotFound, ExecutableNotFound, RemovalError, BuildFailure, UnsupportedInstallMethod, ValidationMismatch,
)
from .interfaces import IBuilder, ICatalogFetcher
from .config_manager import ConfigManager
from .version_catalog import VersionCatalog, CatalogEntry
from .version_resolver import VersionResolver, ResolvedVersion
from .registry import Registry, InstalledEnvironment, InstallMethod
from .builder import SourceBuilder
from .installer import Installer, InstallTransaction, TransactionState
from .activation import ActivationArtifactGenerator, ActivationArtifacts
from .validation import ValidationSweep, ValidationResult, ValidationReport, EnvironmentDetails
from .catalog_fetcher import CatalogFetcher
from . import version_utils, python_probe

__all__ = [
    "PyEnvManError", "ConfigError", "InvalidVersionFormat", "VersionNotInCatalog", "UnsupportedVersion",
    "CatalogError", "RegistryCorrupted", "PathNotEmpty", "PathAlreadyRegistered", "IndexOutOfRange",
    "NotFound", "ExecutableNotFound", "RemovalError", "BuildFailure", "UnsupportedInstallMethod", "ValidationMismatch",
    "IBuilder", "ICatalogFetcher",
    "ConfigManager",
    "VersionCatalog", "CatalogEntry",
    "VersionResolver", "ResolvedVersion",
    "Registry", "InstalledEnvironment", "InstallMethod",
    "SourceBuilder",
    "Installer", "InstallTransaction", "TransactionState",
    "ActivationArtifactGenerator", "ActivationArtifacts",
    "ValidationSweep", "ValidationResult", "ValidationReport", "EnvironmentDetails",
    "CatalogFetcher",
    "version_utils", "python_probe",
]
