"""
密钥来源模块 - 为配置存储提供AES密钥

密钥不再编译进程序, 而是通过可注入的 KeySource 获得:
口令派生、环境变量 (外部密钥管理注入) 或密钥文件。
"""

import os
import getpass
import logging
import binascii
import threading
from typing import Callable, Optional

from Crypto.Protocol.KDF import PBKDF2
from Crypto.Hash import SHA256
from Crypto.Random import get_random_bytes

from core.config import ENCRYPTION_CONFIG, KEY_MANAGEMENT
from core.errors import KeySourceError

logger = logging.getLogger(__name__)

KEY_SIZE = ENCRYPTION_CONFIG["key_size"]


class KeySource:
    """密钥来源基类, 派生结果在实例内只计算一次"""

    def __init__(self):
        self._key: Optional[bytes] = None
        self._lock = threading.Lock()

    def get_key(self) -> bytes:
        """
        获取密钥 (首次调用时派生, 之后只读)

        Returns:
            32字节AES密钥
        """
        with self._lock:
            if self._key is None:
                key = self._derive()
                if len(key) != KEY_SIZE:
                    raise KeySourceError(
                        f"{type(self).__name__} produced a {len(key)}-byte key"
                    )
                self._key = key
                logger.debug(f"Secret key derived by {type(self).__name__}")
            return self._key

    def _derive(self) -> bytes:
        raise NotImplementedError


class PassphraseKeySource(KeySource):
    """通过PBKDF2-HMAC-SHA256从口令派生密钥"""

    def __init__(
        self,
        passphrase: str,
        salt: bytes = KEY_MANAGEMENT["kdf_salt"],
        iterations: int = KEY_MANAGEMENT["pbkdf2_iterations"],
    ):
        super().__init__()
        if not passphrase:
            raise KeySourceError("empty passphrase")
        self._passphrase = passphrase
        self._salt = salt
        self._iterations = iterations

    def _derive(self) -> bytes:
        return PBKDF2(
            self._passphrase,
            self._salt,
            dkLen=KEY_SIZE,
            count=self._iterations,
            hmac_hash_module=SHA256,
        )


class EnvironmentKeySource(PassphraseKeySource):
    """从环境变量读取口令 (由外部密钥管理系统注入)"""

    def __init__(self, var_name: str = KEY_MANAGEMENT["passphrase_env"], **kwargs):
        passphrase = os.environ.get(var_name, "")
        if not passphrase:
            raise KeySourceError(f"environment variable {var_name} is not set")
        super().__init__(passphrase, **kwargs)
        self.var_name = var_name


class KeyFileSource(KeySource):
    """从密钥文件读取: 32字节原始密钥或64字符十六进制"""

    def __init__(self, path: str):
        super().__init__()
        self.path = path

    def _derive(self) -> bytes:
        try:
            with open(self.path, "rb") as f:
                data = f.read()
        except OSError as e:
            raise KeySourceError(f"cannot read key file {self.path}: {e}") from e

        if len(data) == KEY_SIZE:
            return data

        text = data.strip()
        if len(text) == KEY_SIZE * 2:
            try:
                return binascii.unhexlify(text)
            except binascii.Error as e:
                raise KeySourceError(f"malformed hex key in {self.path}") from e

        raise KeySourceError(f"key file {self.path} has unexpected length {len(data)}")


def generate_key_file(path: str) -> str:
    """
    生成随机密钥文件 (十六进制), 权限为0600

    Args:
        path: 密钥文件路径

    Returns:
        密钥文件路径
    """
    if os.path.exists(path):
        raise FileExistsError(path)

    key = get_random_bytes(KEY_SIZE)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, "wb") as f:
        f.write(binascii.hexlify(key) + b"\n")

    logger.info(f"Generated key file: {path}")
    return path


def resolve_key_source(
    key_file: Optional[str] = None,
    prompt: Callable[[str], str] = getpass.getpass,
    confirm: bool = False,
) -> KeySource:
    """
    按 环境变量 -> 密钥文件 -> 交互式口令 的顺序选择密钥来源

    Args:
        key_file: 密钥文件路径, 默认取自配置
        prompt: 读取口令的函数
        confirm: 交互式口令是否需要再次输入确认 (创建或覆盖配置时)

    Raises:
        KeySourceError: 两次输入的口令不一致
    """
    if os.environ.get(KEY_MANAGEMENT["passphrase_env"]):
        logger.debug("Using passphrase from environment")
        return EnvironmentKeySource()

    key_file = key_file or KEY_MANAGEMENT["key_file"]
    if key_file and os.path.exists(key_file):
        logger.debug(f"Using key file {key_file}")
        return KeyFileSource(key_file)

    passphrase = prompt("Configuration passphrase: ")
    if confirm and prompt("Confirm passphrase: ") != passphrase:
        raise KeySourceError("passphrases do not match")
    logger.debug("Using interactive passphrase")
    return PassphraseKeySource(passphrase)
