"""
PyEnvMan 命令行接口模块。
"""

import argparse
import json
import logging
import signal
from pathlib import Path
from typing import Tuple

from pyenvman import __version__
from pyenvman.core.activation import ActivationArtifactGenerator
from pyenvman.core.builder import SourceBuilder
from pyenvman.core.catalog_fetcher import CatalogFetcher
from pyenvman.core.config_manager import ConfigManager
from pyenvman.core.errors import ConfigError, PyEnvManError
from pyenvman.core.installer import Installer
from pyenvman.core.registry import InstallMethod, Registry
from pyenvman.core.validation import ValidationResult, ValidationSweep, remove_environment_files
from pyenvman.core.version_catalog import VersionCatalog
from pyenvman.utils.input_validator import InputValidator
from pyenvman.utils.logger import get_logger, set_log_level, setup_logger

logger = get_logger()

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def create_parser() -> argparse.ArgumentParser:
    """
    创建并配置命令行参数解析器。

    返回:
        配置好的 ArgumentParser 实例
    """
    parser = argparse.ArgumentParser(
        prog="pyenvman",
        description="PyEnvMan - Python 多版本环境管理器",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
示例:
  pyenvman install 3.11                 安装 3.11 系列的最新版本
  pyenvman install 3.11.9 --path ~/py   安装 3.11.9 到指定目录
  pyenvman list                         列出已安装的环境
  pyenvman activate --num 1             生成 1 号环境的激活脚本
  pyenvman validate                     校验所有环境
  pyenvman cleanup                      清理无效环境
  pyenvman update-catalog               从 python.org 更新版本目录
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="启用详细输出",
    )

    parser.add_argument(
        "--home",
        type=str,
        default=None,
        help="数据根目录（默认为 PYENVMAN_HOME 或 ~/.pyenvman）",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="命令",
        description="可用的 CLI 命令",
    )

    install_parser = subparsers.add_parser(
        "install",
        help="安装指定版本的 Python",
    )
    install_parser.add_argument(
        "version",
        help="版本号（x.y 表示该系列最新版本，或 x.y.z）",
    )
    install_parser.add_argument(
        "--path",
        "-p",
        type=str,
        default=None,
        help="安装目录（默认自动生成）",
    )
    install_parser.add_argument(
        "--method",
        "-m",
        choices=[m.value for m in InstallMethod],
        default=InstallMethod.SOURCE.value,
        help="安装方式",
    )
    install_parser.add_argument(
        "--jobs",
        "-j",
        type=int,
        default=None,
        help="并行编译任务数（默认使用配置或 CPU 核心数）",
    )

    list_parser = subparsers.add_parser(
        "list",
        help="列出已安装的 Python 环境",
    )
    list_parser.add_argument(
        "--format",
        "-f",
        choices=["table", "json"],
        default="table",
        help="输出格式",
    )

    activate_parser = subparsers.add_parser(
        "activate",
        help="生成环境的激活脚本",
    )
    activate_target = activate_parser.add_mutually_exclusive_group(required=True)
    activate_target.add_argument(
        "--num",
        "-n",
        type=str,
        help="环境序号",
    )
    activate_target.add_argument(
        "--version",
        dest="target_version",
        type=str,
        help="版本号（x.y.z 精确匹配，或 x.y 匹配该系列第一个环境）",
    )

    delete_parser = subparsers.add_parser(
        "delete",
        help="删除环境及其安装目录",
    )
    delete_parser.add_argument(
        "--num",
        "-n",
        type=str,
        required=True,
        help="环境序号",
    )
    delete_parser.add_argument(
        "--yes",
        "-y",
        action="store_true",
        help="不询问确认",
    )

    details_parser = subparsers.add_parser(
        "details",
        help="显示环境详细信息",
    )
    details_parser.add_argument(
        "--num",
        "-n",
        type=str,
        required=True,
        help="环境序号",
    )

    subparsers.add_parser(
        "validate",
        help="校验所有环境",
    )

    subparsers.add_parser(
        "cleanup",
        help="删除所有无效环境",
    )

    subparsers.add_parser(
        "list-versions",
        help="列出版本目录中的可用版本",
    )

    subparsers.add_parser(
        "update-catalog",
        help="从 python.org 更新版本目录",
    )

    subparsers.add_parser(
        "mirrors",
        help="显示 pip 镜像源",
    )

    config_parser = subparsers.add_parser(
        "config",
        help="显示或修改设置",
    )
    config_parser.add_argument(
        "--set",
        "-s",
        type=str,
        help="设置配置值（格式：key=value）",
    )

    return parser


def _get_managers(args: argparse.Namespace) -> Tuple[ConfigManager, Registry]:
    """
    获取管理器实例。

    返回:
        包含 ConfigManager、Registry 的元组
    """
    config_manager = ConfigManager(home=Path(args.home) if args.home else None)
    registry = Registry(config_manager.registry_file)
    return config_manager, registry


def _setup_logging(args: argparse.Namespace) -> None:
    home = Path(args.home).expanduser().absolute() if args.home else None
    log_dir = home / "logs" if home else None
    setup_logger(level=logging.INFO, log_dir=log_dir, force=True)
    if args.verbose:
        set_log_level(logging.DEBUG)


def _handle_sigterm(signum, frame):
    raise SystemExit(128 + signum)


def run_cli(args: argparse.Namespace) -> int:
    """
    运行命令行接口。

    参数:
        args: 解析后的命令行参数

    返回:
        退出码（0 表示成功）
    """
    _setup_logging(args)

    if args.command is None:
        print("未指定命令。使用 --help 查看帮助信息。")
        return EXIT_ERROR

    command_handlers = {
        "install": handle_install,
        "list": handle_list,
        "activate": handle_activate,
        "delete": handle_delete,
        "details": handle_details,
        "validate": handle_validate,
        "cleanup": handle_cleanup,
        "list-versions": handle_list_versions,
        "update-catalog": handle_update_catalog,
        "mirrors": handle_mirrors,
        "config": handle_config,
    }

    handler = command_handlers.get(args.command)
    if handler is None:
        print(f"未知命令: {args.command}")
        return EXIT_ERROR

    previous_handler = signal.signal(signal.SIGTERM, _handle_sigterm)
    try:
        return handler(args)
    except PyEnvManError as e:
        logger.debug(f"命令 {args.command} 失败: {e!r}")
        print(f"错误: {e}")
        return EXIT_ERROR
    except KeyboardInterrupt:
        print("\n操作已取消")
        return EXIT_INTERRUPTED
    finally:
        signal.signal(signal.SIGTERM, previous_handler)


def handle_install(args: argparse.Namespace) -> int:
    """
    处理 install 命令：解析版本并执行安装事务。

    参数:
        args: 解析后的命令行参数

    返回:
        退出码
    """
    InputValidator.validate_version_string(args.version)
    InputValidator.validate_path(args.path)
    if args.jobs is not None and args.jobs < 1:
        print("并行编译任务数必须大于 0")
        return EXIT_ERROR

    config_manager, registry = _get_managers(args)
    config_manager.ensure_dirs()
    registry.initialize()

    builder = SourceBuilder(config_manager, jobs=args.jobs)
    installer = Installer(config_manager, registry, builder)

    print(f"正在安装 Python {InputValidator.sanitize_version_string(args.version)}...")
    entry = installer.install(args.version, path=args.path, method=args.method)
    index = registry.find_index(entry.path)

    print(f"成功安装 Python {entry.version}")
    print(f"安装路径: {entry.path}")
    print(f"使用 'pyenvman activate --num {index}' 生成激活脚本")
    return EXIT_OK


def handle_list(args: argparse.Namespace) -> int:
    """
    处理 list 命令：列出已安装的环境。

    参数:
        args: 解析后的命令行参数

    返回:
        退出码
    """
    _, registry = _get_managers(args)
    environments = registry.list_all()

    if args.format == "json":
        result = [dict(index=i, **env.to_dict()) for i, env in enumerate(environments, start=1)]
        print(json.dumps(result, indent=2, ensure_ascii=False))
        return EXIT_OK

    if not environments:
        print("未找到已安装的 Python 环境")
        return EXIT_OK

    print(f"{'序号':<6}{'版本':<12}{'安装方式':<10}{'安装时间':<22}路径")
    for i, env in enumerate(environments, start=1):
        print(f"{i:<6}{env.version:<12}{env.install_method.value:<10}{env.install_time:<22}{env.path}")
    print(f"\n共 {len(environments)} 个环境")
    return EXIT_OK


def handle_activate(args: argparse.Namespace) -> int:
    """
    处理 activate 命令：校验环境并生成激活脚本。

    参数:
        args: 解析后的命令行参数

    返回:
        退出码
    """
    _, registry = _get_managers(args)
    if args.num is not None:
        entry = registry.get_by_index(InputValidator.parse_index(args.num))
    else:
        entry = registry.get_by_version_pattern(args.target_version)

    result = ValidationSweep(registry).validate(entry)
    if not result.valid:
        print(f"警告: 环境校验失败（{result.reason}），仍尝试生成激活脚本")
    elif result.mismatch is not None:
        print(f"警告: {result.mismatch}")

    artifacts = ActivationArtifactGenerator().generate(entry)
    print(f"已为 Python {entry.version} 生成激活脚本")
    print(f"激活:     source {artifacts.activate}")
    print(f"取消激活: source {artifacts.deactivate}")
    return EXIT_OK


def _confirm(prompt: str) -> bool:
    answer = input(f"{prompt} [y/N]: ").strip().lower()
    return answer in ("y", "yes")


def handle_delete(args: argparse.Namespace) -> int:
    """
    处理 delete 命令：删除环境目录和注册表记录。

    参数:
        args: 解析后的命令行参数

    返回:
        退出码
    """
    _, registry = _get_managers(args)
    index = InputValidator.parse_index(args.num)
    entry = registry.get_by_index(index)

    print(f"即将删除 [{index}] Python {entry.version}: {entry.path}")
    if not args.yes and not _confirm("确认删除?"):
        print("已取消删除")
        return EXIT_OK

    root = Path(entry.path)
    if remove_environment_files(root):
        logger.info(f"已删除环境目录: {root}")
    else:
        logger.warning(f"环境目录不存在，只移除注册表记录: {root}")
    registry.remove_by_path(entry.path)
    print(f"已删除 Python {entry.version}")
    return EXIT_OK


def _print_result(result: ValidationResult) -> None:
    entry = result.entry
    status = "有效" if result.valid else f"无效（{result.reason}）"
    print(f"[{result.index}] Python {entry.version} - {status}")
    print(f"    路径: {entry.path}")
    if result.mismatch is not None:
        print(f"    警告: {result.mismatch}")


def handle_details(args: argparse.Namespace) -> int:
    """
    处理 details 命令：显示环境记录和实时校验信息。

    参数:
        args: 解析后的命令行参数

    返回:
        退出码
    """
    _, registry = _get_managers(args)
    details = ValidationSweep(registry).details(InputValidator.parse_index(args.num))
    result = details.result
    entry = result.entry

    print(f"序号:       {result.index}")
    print(f"版本:       {entry.version}")
    print(f"路径:       {entry.path}")
    print(f"安装方式:   {entry.install_method.value}")
    print(f"安装时间:   {entry.install_time}")
    print(f"记录状态:   {entry.status}")
    print(f"校验结果:   {'有效' if result.valid else '无效（' + result.reason + '）'}")
    print(f"可执行文件: {result.executable or '未找到'}")
    print(f"实际版本:   {result.actual_version or '未知'}")
    print(f"pip:        {'可用' if details.pip_available else '不可用'}")
    if result.mismatch is not None:
        print(f"警告: {result.mismatch}")
    return EXIT_OK


def handle_validate(args: argparse.Namespace) -> int:
    """
    处理 validate 命令：校验所有环境，不修改注册表。

    参数:
        args: 解析后的命令行参数

    返回:
        退出码
    """
    _, registry = _get_managers(args)
    report = ValidationSweep(registry).validate_all()
    if not report.total:
        print("未找到已安装的 Python 环境")
        return EXIT_OK

    for result in report.results:
        _print_result(result)
    print(f"\n共 {report.total} 个环境: 有效 {len(report.valid)}，无效 {len(report.invalid)}")
    if report.invalid:
        print("使用 'pyenvman cleanup' 清理无效环境")
    return EXIT_OK


def handle_cleanup(args: argparse.Namespace) -> int:
    """
    处理 cleanup 命令：删除所有无效环境。

    参数:
        args: 解析后的命令行参数

    返回:
        退出码
    """
    _, registry = _get_managers(args)
    removed = ValidationSweep(registry).cleanup_invalid()
    if not removed:
        print("所有环境均有效，无需清理")
        return EXIT_OK

    for entry in removed:
        print(f"已清理: Python {entry.version} ({entry.path})")
    print(f"\n共清理 {len(removed)} 个无效环境，剩余 {registry.count()} 个")
    return EXIT_OK


def _print_catalog(catalog: VersionCatalog) -> None:
    print("可用 Python 版本:")
    for entry in catalog.entries():
        print(f"  {entry.major_minor}: 最新 {entry.latest_patch}")
        print(f"      全部: {', '.join(entry.versions)}")


def handle_list_versions(args: argparse.Namespace) -> int:
    """
    处理 list-versions 命令：显示版本目录内容。

    参数:
        args: 解析后的命令行参数

    返回:
        退出码
    """
    config_manager, _ = _get_managers(args)
    catalog = VersionCatalog.load(config_manager.catalog_file)
    if not len(catalog):
        print(f"版本目录为空: {config_manager.catalog_file}")
        return EXIT_OK
    _print_catalog(catalog)
    return EXIT_OK


def handle_update_catalog(args: argparse.Namespace) -> int:
    """
    处理 update-catalog 命令：从远程更新版本目录并显示结果。

    参数:
        args: 解析后的命令行参数

    返回:
        退出码
    """
    config_manager, _ = _get_managers(args)
    config_manager.ensure_dirs()
    print("正在从 python.org 获取版本列表...")
    CatalogFetcher(config_manager).update_catalog(config_manager.catalog_file)
    print(f"版本目录已更新: {config_manager.catalog_file}")
    _print_catalog(VersionCatalog.load(config_manager.catalog_file))
    return EXIT_OK


def handle_mirrors(args: argparse.Namespace) -> int:
    """
    处理 mirrors 命令：显示 pip 镜像源及使用方法。

    参数:
        args: 解析后的命令行参数

    返回:
        退出码
    """
    config_manager, _ = _get_managers(args)
    mirrors = config_manager.get_pip_mirrors()
    if not mirrors:
        print("未配置 pip 镜像源")
        return EXIT_OK

    print("pip 镜像源:")
    for mirror in mirrors:
        print(f"  {mirror.get('name', ''):<14}{mirror.get('url', '')}")
    print("\n使用方法: pip install -i <镜像地址> <包名>")
    return EXIT_OK


def handle_config(args: argparse.Namespace) -> int:
    """
    处理 config 命令：显示或修改设置。

    参数:
        args: 解析后的命令行参数

    返回:
        退出码
    """
    config_manager, _ = _get_managers(args)
    settings = dict(config_manager.settings)

    if args.set:
        string_keys = [k for k, t in config_manager.SETTINGS_FIELDS.items() if t is str]
        key, value = InputValidator.parse_setting_assignment(args.set, string_keys)
        if key not in config_manager.SETTINGS_FIELDS:
            raise ConfigError(f"未知的设置项: {key}")
        settings[key] = value
        config_manager.save_settings(settings)
        print(f"已设置 {key} = {json.dumps(value, ensure_ascii=False)}")
    else:
        print(json.dumps(settings, indent=2, ensure_ascii=False))

    return EXIT_OK
