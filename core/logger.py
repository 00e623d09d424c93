"""
日志系统初始化
"""

import os
import sys
import enum
import logging
import threading

from core.config import LOG_CONFIG

logger = logging.getLogger(__name__)

_init_lock = threading.Lock()
_initialized = False
_destination = None


class LogDestination(enum.Enum):
    """实际生效的日志输出位置"""

    CONSOLE = 0
    FILE = 1


def is_initialized() -> bool:
    return _initialized


def ensure_logger(level: int, log_path: str, prefer_file: bool = True) -> LogDestination:
    """
    已初始化时返回当前输出位置, 否则调用 init_logger 初始化

    宿主程序和 Engine 都通过它获得日志系统, 保证只初始化一次。
    """
    with _init_lock:
        if _initialized:
            return _destination
    return init_logger(level, log_path, prefer_file=prefer_file)


def init_logger(
    level: int,
    log_path: str,
    prefer_file: bool = True,
    force: bool = False,
) -> LogDestination:
    """
    配置进程级日志系统, 必须在其他组件记录日志前调用且只调用一次

    调试级别会先删除上一次的调试日志; 普通级别以追加方式写入。
    日志文件无法打开时回退到标准输出, 不影响启动。

    Args:
        level: logging.DEBUG 或 logging.INFO
        log_path: 日志文件路径
        prefer_file: 是否优先写入文件
        force: 允许重复初始化 (替换已有处理器)

    Returns:
        实际生效的输出位置

    Raises:
        RuntimeError: 已初始化且未指定 force
    """
    global _initialized, _destination

    with _init_lock:
        if _initialized and not force:
            raise RuntimeError("logger already initialized")

        handler = None
        destination = LogDestination.CONSOLE
        file_error = None
        cleanup_error = None

        if prefer_file:
            if level == logging.DEBUG:
                try:
                    os.remove(log_path)
                except FileNotFoundError:
                    pass
                except OSError as e:
                    cleanup_error = e
            try:
                handler = logging.FileHandler(
                    log_path, mode="a", encoding=LOG_CONFIG["encoding"]
                )
                destination = LogDestination.FILE
            except OSError as e:
                file_error = e

        if handler is None:
            handler = logging.StreamHandler(sys.stdout)

        logging.basicConfig(
            level=level,
            format=LOG_CONFIG["log_format"],
            handlers=[handler],
            force=True,
        )
        _initialized = True
        _destination = destination

    if cleanup_error is not None:
        logger.warning(f"Cannot remove previous debug log {log_path}: {cleanup_error}")
    if file_error is not None:
        logger.warning(f"Log file {log_path} unavailable, using console: {file_error}")

    if level != logging.INFO:
        logger.info(f"LoggingLevel={logging.getLevelName(level)}")

    return destination
