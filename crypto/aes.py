"""
AES加密模块
"""

import logging
from Crypto.Cipher import AES
from Crypto.Random import get_random_bytes
from typing import Union, Optional

logger = logging.getLogger(__name__)

NONCE_SIZE = 12  # GCM模式使用12字节IV
TAG_SIZE = 16


class AuthenticationError(ValueError):
    """GCM认证标签校验失败"""


class AESManager:
    """AES加密管理器, 处理AES-GCM加密操作"""

    def __init__(self, key: Optional[bytes] = None, key_size: int = 32):
        """
        初始化AES加密管理器

        Args:
            key: 可选的AES密钥, 如果未提供则生成新密钥
            key_size: 密钥大小 (字节) , 默认为32 (256位)
        """
        if key is not None and len(key) not in (16, 24, 32):
            raise ValueError(f"Invalid AES key length: {len(key)}")
        self.key = key if key is not None else get_random_bytes(key_size)
        logger.debug(f"AES manager initialized with {'provided' if key else 'new'} key")

    def encrypt(
        self, data: Union[str, bytes], associated_data: Optional[bytes] = None
    ) -> bytes:
        """
        加密数据, 每次调用使用新的随机nonce

        Args:
            data: 要加密的数据, 可以是字符串或字节
            associated_data: 需要认证但不加密的附加数据 (如文件头)

        Returns:
            加密后的字节数据 (包含IV和认证标签)
        """
        if isinstance(data, str):
            data_bytes = data.encode("utf-8")
        else:
            data_bytes = data

        iv = get_random_bytes(NONCE_SIZE)
        cipher = AES.new(self.key, AES.MODE_GCM, nonce=iv)
        if associated_data:
            cipher.update(associated_data)

        ciphertext, tag = cipher.encrypt_and_digest(data_bytes)

        # 格式: IV (12字节) + 标签 (16字节) + 密文
        return iv + tag + ciphertext

    def decrypt(
        self, encrypted_data: bytes, associated_data: Optional[bytes] = None
    ) -> bytes:
        """
        解密数据

        Args:
            encrypted_data: 加密后的字节数据 (包含IV和认证标签)
            associated_data: 加密时使用的附加数据

        Returns:
            解密后的字节数据

        Raises:
            ValueError: 数据长度不足
            AuthenticationError: 认证失败 (数据被篡改或密钥错误)
        """
        if len(encrypted_data) < NONCE_SIZE + TAG_SIZE:
            raise ValueError(
                f"Encrypted data too short: {len(encrypted_data)} bytes"
            )

        iv = encrypted_data[:NONCE_SIZE]
        tag = encrypted_data[NONCE_SIZE : NONCE_SIZE + TAG_SIZE]
        ciphertext = encrypted_data[NONCE_SIZE + TAG_SIZE :]

        cipher = AES.new(self.key, AES.MODE_GCM, nonce=iv)
        if associated_data:
            cipher.update(associated_data)

        try:
            return cipher.decrypt_and_verify(ciphertext, tag)
        except ValueError as e:
            logger.error(f"Error decrypting data: {e}")
            raise AuthenticationError(str(e)) from e
