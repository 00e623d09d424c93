"""
加密模块初始化文件
"""

from .aes import AESManager
from .config_store import ConfigStore
from .key_source import (
    EnvironmentKeySource,
    KeyFileSource,
    KeySource,
    PassphraseKeySource,
    generate_key_file,
    resolve_key_source,
)

__all__ = [
    "AESManager",
    "ConfigStore",
    "KeySource",
    "PassphraseKeySource",
    "EnvironmentKeySource",
    "KeyFileSource",
    "generate_key_file",
    "resolve_key_source",
]
