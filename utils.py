"""
工具函数模块
"""

import logging
import time
import sys
from functools import wraps
from typing import Callable, Dict, Iterable

import xxhash
import zstandard as zstd

# 配置日志
logger = logging.getLogger(__name__)

SECRET_MARKERS = ("password", "secret", "token")


def timing_decorator(func: Callable) -> Callable:
    """
    计时装饰器，用于测量函数执行时间

    Args:
        func: 要计时的函数

    Returns:
        包装后的函数
    """

    @wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.time()
        result = func(*args, **kwargs)
        elapsed = time.time() - start_time
        logger.debug(f"{func.__name__} completed in {elapsed:.3f} seconds")
        return result

    return wrapper


class DataCompressor:
    """数据压缩工具类"""

    def __init__(self, level: int = 9):
        """
        初始化压缩器

        Args:
            level: 压缩级别，1-22，默认9
        """
        self.compressor = zstd.ZstdCompressor(level=level)
        self.decompressor = zstd.ZstdDecompressor()

    def compress(self, data: bytes) -> bytes:
        return self.compressor.compress(data)

    def decompress(self, compressed_data: bytes) -> bytes:
        return self.decompressor.decompress(compressed_data)

    def compress_string(self, text: str) -> bytes:
        return self.compress(text.encode("utf-8"))

    def decompress_to_string(self, compressed_data: bytes) -> str:
        return self.decompress(compressed_data).decode("utf-8")


def hash_data(data: bytes) -> str:
    """
    计算数据的哈希值

    Args:
        data: 要哈希的数据

    Returns:
        哈希值的十六进制字符串
    """
    return xxhash.xxh64(data).hexdigest()


def is_secret_key(key: str) -> bool:
    """判断配置键是否为敏感项"""
    lowered = key.lower()
    return any(marker in lowered for marker in SECRET_MARKERS)


def mask_config(config: Dict[str, str]) -> Dict[str, str]:
    """
    返回适合写入日志的配置副本, 敏感值替换为其哈希指纹

    Args:
        config: 配置映射
    """
    masked = {}
    for key, value in sorted(config.items()):
        if is_secret_key(key):
            masked[key] = f"***{hash_data(value.encode('utf-8'))[:8]}"
        else:
            masked[key] = value
    return masked


def config_fingerprint(config: Dict[str, str], keys: Iterable[str] = None) -> str:
    """计算配置内容的指纹, 用于在日志中比较两次加载是否一致"""
    hasher = xxhash.xxh64()
    for key in sorted(keys if keys is not None else config.keys()):
        hasher.update(key.encode("utf-8"))
        hasher.update(b"\0")
        hasher.update(config.get(key, "").encode("utf-8"))
        hasher.update(b"\0")
    return hasher.hexdigest()


# 设置系统异常钩子，确保未捕获的异常被记录
def exception_handler(exc_type, exc_value, exc_traceback):
    """处理未捕获的异常"""
    if issubclass(exc_type, KeyboardInterrupt):
        # 正常处理Ctrl+C
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return

    logger.critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback))
