"""
加密配置存储模块 - 以加密文件保存数据库凭据等运行参数

文件格式: [魔数(4字节)][版本(1字节)][nonce(12字节)][tag(16字节)][密文]
文件头作为GCM附加数据参与认证, 明文为zstd压缩后的JSON对象。
"""

import os
import sys
import json
import logging
from typing import Dict, Iterable, Optional, TextIO

import zstandard as zstd

from core.config import ENCRYPTION_CONFIG, REQUIRED_KEYS
from core.errors import ConfigFormatError, ConfigNotFoundError, ConfigTamperedError
from crypto.aes import AESManager, AuthenticationError
from crypto.key_source import KeySource
from utils import DataCompressor, is_secret_key

logger = logging.getLogger(__name__)

MAGIC = ENCRYPTION_CONFIG["magic"]
VERSION = ENCRYPTION_CONFIG["version"]
HEADER = MAGIC + bytes([VERSION])
MIN_SIZE = len(HEADER) + ENCRYPTION_CONFIG["nonce_size"] + ENCRYPTION_CONFIG["tag_size"]


class ConfigStore:
    """加密配置存储, 负责配置的加载、保存和交互式设置"""

    def __init__(self, path: str, key_source: KeySource):
        """
        初始化配置存储

        Args:
            path: 加密配置文件路径
            key_source: 提供AES密钥的密钥来源
        """
        self.path = path
        self.key_source = key_source
        self.compressor = DataCompressor(level=ENCRYPTION_CONFIG["compression_level"])

    def exists(self) -> bool:
        return os.path.isfile(self.path)

    def _aes(self) -> AESManager:
        return AESManager(key=self.key_source.get_key())

    def load(self) -> Dict[str, str]:
        """
        加载并解密配置

        Returns:
            配置映射

        Raises:
            ConfigNotFoundError: 配置文件不存在
            ConfigFormatError: 文件格式错误或内容无法反序列化
            ConfigTamperedError: 认证失败 (篡改或密钥错误)
        """
        try:
            with open(self.path, "rb") as f:
                blob = f.read()
        except FileNotFoundError:
            raise ConfigNotFoundError(self.path)

        if len(blob) < MIN_SIZE:
            raise ConfigFormatError(self.path, f"truncated file ({len(blob)} bytes)")
        if blob[: len(MAGIC)] != MAGIC:
            raise ConfigFormatError(self.path, "bad magic")
        if blob[len(MAGIC)] != VERSION:
            raise ConfigFormatError(self.path, f"unsupported version {blob[len(MAGIC)]}")

        try:
            compressed = self._aes().decrypt(blob[len(HEADER) :], associated_data=HEADER)
        except AuthenticationError:
            raise ConfigTamperedError(self.path, "authentication failed")

        try:
            config = json.loads(self.compressor.decompress_to_string(compressed))
        except (zstd.ZstdError, UnicodeDecodeError, ValueError) as e:
            raise ConfigFormatError(self.path, f"malformed payload: {e}")

        if not isinstance(config, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in config.items()
        ):
            raise ConfigFormatError(self.path, "payload is not a string map")

        logger.debug(f"Loaded {len(config)} configuration entries from {self.path}")
        return config

    def save(self, config: Dict[str, str]) -> None:
        """
        加密并保存配置 (直接覆盖, 以最后一次写入为准)

        Args:
            config: 配置映射
        """
        for key, value in config.items():
            if not isinstance(key, str) or not isinstance(value, str):
                raise TypeError(f"configuration entries must be strings: {key!r}")

        payload = json.dumps(config, sort_keys=True, ensure_ascii=False)
        encrypted = self._aes().encrypt(
            self.compressor.compress_string(payload), associated_data=HEADER
        )

        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "wb") as f:
            f.write(HEADER + encrypted)

        logger.info(f"Saved encrypted configuration to {self.path}")

    def provision_interactive(
        self,
        existing: Optional[Dict[str, str]],
        extra_keys: Iterable[str] = (),
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
    ) -> Dict[str, str]:
        """
        逐项提示输入配置; 空行保留原值, 非空行覆盖原值

        Args:
            existing: 已有配置, 作为默认值显示
            extra_keys: 必需键之后追加提示的附加键
            stdin: 输入流, 默认 sys.stdin
            stdout: 输出流, 默认 sys.stdout

        Returns:
            新的配置映射 (不修改 existing)
        """
        stdin = stdin or sys.stdin
        stdout = stdout or sys.stdout
        config = dict(existing or {})

        keys = list(REQUIRED_KEYS)
        for key in extra_keys:
            if key not in keys:
                keys.append(key)

        for key in keys:
            self._read_input(key, config, stdin, stdout)

        return config

    @staticmethod
    def _read_input(
        key: str, config: Dict[str, str], stdin: TextIO, stdout: TextIO
    ) -> None:
        current = config.get(key, "")
        if current:
            shown = "*" * 8 if is_secret_key(key) else current
            stdout.write(f"{key:<16} = ({shown}) ")
        else:
            stdout.write(f"{key:<16} = ")
        stdout.flush()

        try:
            line = stdin.readline()
        except (OSError, ValueError) as e:
            # 输入流已关闭, 视为不修改
            logger.warning(f"Cannot read value for {key}: {e}")
            stdout.write("\n")
            return

        new_value = line.strip()
        if new_value:
            config[key] = new_value
