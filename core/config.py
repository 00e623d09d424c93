"""
项目配置文件 - 数据导入守护进程引导层
"""

import os
import sys
from dataclasses import dataclass, field
from typing import List, Optional

# 产品信息
PRODUCT_NAME = "SNIPER APTX-T Data Inputor"
PRODUCT_KEYWORD = "inputor"
PRODUCT_VERSION = "2.0"

# 必需的配置键 (按提示顺序)
REQUIRED_KEYS = [
    "db.hostname",
    "db.port",
    "db.username",
    "db.password",
    "db.database",
]

# 数据库配置
DB_CONFIG = {
    "driver": os.environ.get("INPUTOR_DB_DRIVER", "postgresql+psycopg2"),
    "timezone": os.environ.get("INPUTOR_DB_TIMEZONE", "Asia/Seoul"),
    "charset": "utf8",
    "pool_size": 3,  # 空闲连接数
    "max_overflow": 0,  # pool_size + max_overflow = 最大连接数 3
    "connect_timeout": int(os.environ.get("INPUTOR_DB_CONNECT_TIMEOUT", "10")),
    "alias": "default",
}

# 加密配置
ENCRYPTION_CONFIG = {
    "key_size": 32,  # AES-256
    "nonce_size": 12,
    "tag_size": 16,
    "magic": b"IPCF",
    "version": 1,
    "compression_level": 9,
}

# 密钥来源配置
KEY_MANAGEMENT = {
    "passphrase_env": "INPUTOR_CONFIG_PASSPHRASE",
    "key_file_env": "INPUTOR_KEY_FILE",
    "key_file": os.environ.get("INPUTOR_KEY_FILE", ""),
    "kdf_salt": os.environ.get("INPUTOR_KDF_SALT", "inputor.config.v1").encode(
        "utf-8"
    ),
    "pbkdf2_iterations": int(os.environ.get("INPUTOR_PBKDF2_ITERATIONS", "200000")),
}

# 日志配置
LOG_CONFIG = {
    "log_format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    "encoding": "utf-8",
}

# 命令行默认值
CLI_DEFAULTS = {
    "cpu": 1,
    "interval_ms": 10000,
    "watch_dir": os.environ.get("INPUTOR_WATCH_DIR", "/home/sniper_bps/relation/"),
    "worker": os.environ.get("INPUTOR_WORKER", ""),
}

# 错误上报队列
DRAIN_CONFIG = {
    "maxsize": int(os.environ.get("INPUTOR_DRAIN_SIZE", "1024")),
}


def executable_identity(argv0: Optional[str] = None):
    """
    根据可执行文件路径得到 (所在目录, 去掉扩展名的进程名)

    Args:
        argv0: 可执行文件路径, 默认为 sys.argv[0]
    """
    argv0 = argv0 or sys.argv[0] or PRODUCT_KEYWORD
    path = os.path.abspath(argv0)
    name = os.path.splitext(os.path.basename(path))[0] or PRODUCT_KEYWORD
    return os.path.dirname(path), name


@dataclass
class BootstrapConfig:
    """引导参数, 由宿主程序解析命令行后传入 Engine"""

    app_dir: str
    process_name: str
    debug: bool = False
    cpu_count: int = CLI_DEFAULTS["cpu"]
    interval_ms: int = CLI_DEFAULTS["interval_ms"]
    watch_dir: str = CLI_DEFAULTS["watch_dir"]
    extra_keys: List[str] = field(default_factory=list)
    log_to_file: bool = True

    @classmethod
    def from_executable(cls, argv0: Optional[str] = None, **kwargs) -> "BootstrapConfig":
        app_dir, process_name = executable_identity(argv0)
        return cls(app_dir=app_dir, process_name=process_name, **kwargs)

    @property
    def config_path(self) -> str:
        """加密配置文件路径: <dir>/<name>.enc"""
        return os.path.join(self.app_dir, f"{self.process_name}.enc")

    @property
    def key_path(self) -> str:
        """默认密钥文件路径: <dir>/<name>.key"""
        return os.path.join(self.app_dir, f"{self.process_name}.key")

    @property
    def log_path(self) -> str:
        """日志文件路径: <dir>/<name>[-debug].log"""
        suffix = "-debug" if self.debug else ""
        return os.path.join(self.app_dir, f"{self.process_name}{suffix}.log")


def parse_extra_keys(extra: str) -> List[str]:
    """解析逗号分隔的附加配置键, 忽略空项"""
    if not extra:
        return []
    return [k.strip() for k in extra.split(",") if k.strip()]
