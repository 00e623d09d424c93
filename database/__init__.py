"""
数据库模块初始化文件
"""

from .registrar import DatabaseRegistrar, build_connection_url

__all__ = [
    "DatabaseRegistrar",
    "build_connection_url",
]
