"""
PyEnvMan - Python 多版本环境管理工具。

在同一台主机上安装、激活、校验和清理多个 Python 运行环境。
"""

__version__ = "1.0.0"
