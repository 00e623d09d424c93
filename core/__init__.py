"""
Data Inputor 引导层

负责在数据导入守护进程启动时:
- 从加密配置文件加载数据库凭据等运行参数
- 初始化日志系统
- 注册数据库连接池
- 设置并发参数并等待关闭信号

主要模块:
- engine: 启动状态机 (Engine, EnginePhase)
- logger: 日志初始化
- signals: 关闭信号等待
- error_drain: 异步错误上报
"""

from .config import BootstrapConfig, PRODUCT_NAME, PRODUCT_VERSION
from .errors import (
    BootstrapError,
    ConfigDecryptError,
    ConfigFormatError,
    ConfigInvalidError,
    ConfigNotFoundError,
    ConfigTamperedError,
    DatabaseConnectionError,
    KeySourceError,
    PhaseError,
)

# 版本信息
__version__ = PRODUCT_VERSION

__all__ = [
    "BootstrapConfig",
    "PRODUCT_NAME",
    "PRODUCT_VERSION",
    "BootstrapError",
    "ConfigDecryptError",
    "ConfigFormatError",
    "ConfigInvalidError",
    "ConfigNotFoundError",
    "ConfigTamperedError",
    "DatabaseConnectionError",
    "KeySourceError",
    "PhaseError",
]
