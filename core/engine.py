"""
引擎核心模块 - 按顺序完成 配置加载 -> 校验 -> 日志 -> 数据库 -> 并发参数
"""

import os
import sys
import enum
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, Optional, TextIO

from core.config import REQUIRED_KEYS, BootstrapConfig
from core.errors import (
    ConfigDecryptError,
    ConfigInvalidError,
    ConfigNotFoundError,
    PhaseError,
)
from core.logger import LogDestination, ensure_logger
from crypto.config_store import ConfigStore
from database.registrar import DatabaseRegistrar
from utils import config_fingerprint, mask_config

logger = logging.getLogger(__name__)


class EnginePhase(enum.IntEnum):
    """引擎生命周期阶段, 只能按顺序前进"""

    CREATED = 0
    CONFIG_LOADED = 1
    VALIDATED = 2
    LOGGER_READY = 3
    DATABASE_READY = 4
    RUNNING = 5
    TERMINATING = 6
    FAILED = -1


class Engine:
    """引导引擎, 由宿主程序创建并调用 start()"""

    def __init__(
        self,
        bootstrap: BootstrapConfig,
        store: ConfigStore,
        registrar: Optional[DatabaseRegistrar] = None,
        init_logging: bool = True,
    ):
        """
        初始化引擎

        Args:
            bootstrap: 已解析的命令行参数
            store: 加密配置存储
            registrar: 数据库注册器, 默认新建
            init_logging: 是否在构造时初始化日志系统
        """
        self.bootstrap = bootstrap
        self.store = store
        self.registrar = registrar or DatabaseRegistrar()
        self.config: Dict[str, str] = {}
        self.phase = EnginePhase.CREATED
        self.log_destination: Optional[LogDestination] = None
        self.effective_cpu: Optional[int] = None
        self.executor: Optional[ThreadPoolExecutor] = None

        if init_logging:
            self._init_logger()

    @property
    def interval_ms(self) -> int:
        return self.bootstrap.interval_ms

    def _init_logger(self) -> None:
        level = logging.DEBUG if self.bootstrap.debug else logging.INFO
        self.log_destination = ensure_logger(
            level, self.bootstrap.log_path, prefer_file=self.bootstrap.log_to_file
        )

    def _advance(self, phase: EnginePhase) -> None:
        if phase != self.phase + 1:
            raise PhaseError(f"illegal transition {self.phase.name} -> {phase.name}")
        self.phase = phase

    def start(self) -> None:
        """
        执行引导序列, 任一步失败即中止并抛出异常

        Raises:
            ConfigNotFoundError: 配置文件不存在
            ConfigDecryptError: 配置无法解密
            ConfigInvalidError: 缺少必需配置项
            DatabaseConnectionError: 无法连接数据库
            PhaseError: 重复调用
        """
        if self.phase != EnginePhase.CREATED:
            raise PhaseError(f"start() called in phase {self.phase.name}")

        try:
            self.config = self.store.load()
            self._advance(EnginePhase.CONFIG_LOADED)

            self.validate(self.config)
            self._advance(EnginePhase.VALIDATED)

            if self.log_destination is None:
                self._init_logger()
            self._advance(EnginePhase.LOGGER_READY)
            logger.debug(
                f"Configuration {config_fingerprint(self.config)}: {mask_config(self.config)}"
            )

            self.registrar.register(self.config)
            self._advance(EnginePhase.DATABASE_READY)

            self._apply_concurrency()
            self._advance(EnginePhase.RUNNING)
        except Exception:
            self.phase = EnginePhase.FAILED
            self.registrar.dispose_all()
            raise

    @staticmethod
    def validate(config: Dict[str, str]) -> None:
        """检查所有必需配置项存在且非空"""
        missing = [key for key in REQUIRED_KEYS if not config.get(key)]
        if missing:
            raise ConfigInvalidError(missing)

    def _apply_concurrency(self) -> None:
        available = os.cpu_count() or 1
        requested = self.bootstrap.cpu_count
        effective = max(1, min(requested, available))
        if effective != requested:
            logger.warning(f"CPU count {requested} adjusted to {effective}")

        self.executor = ThreadPoolExecutor(
            max_workers=effective, thread_name_prefix=self.bootstrap.process_name
        )
        self.effective_cpu = effective
        logger.debug(f"Worker concurrency set to {effective}")

    def shutdown(self) -> None:
        """收到关闭信号后调用: 释放线程池和数据库连接池"""
        if self.phase != EnginePhase.RUNNING:
            raise PhaseError(f"shutdown() called in phase {self.phase.name}")
        self._advance(EnginePhase.TERMINATING)

        if self.executor is not None:
            self.executor.shutdown(wait=True)
        self.registrar.dispose_all()
        logger.info("Engine terminated")

    def provision(
        self,
        extra_keys: Optional[Iterable[str]] = None,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
    ) -> Dict[str, str]:
        """
        交互式设置配置并保存, 已有配置作为默认值

        Args:
            extra_keys: 附加配置键, 默认取自引导参数
            stdin: 输入流
            stdout: 输出流

        Returns:
            保存后的配置映射

        Raises:
            ConfigDecryptError: 已有配置无法解密且操作员拒绝覆盖
        """
        inp = stdin or sys.stdin
        out = stdout or sys.stdout

        try:
            existing = self.store.load()
        except ConfigNotFoundError:
            existing = {}
        except ConfigDecryptError as e:
            # 口令输错时不能悄悄用新密钥覆盖原配置
            logger.warning(f"Existing configuration cannot be decrypted: {e}")
            out.write(f"WARNING: existing configuration cannot be decrypted ({e.reason})\n")
            out.write("Overwrite it with a new configuration? [y/N] ")
            out.flush()
            try:
                answer = inp.readline().strip().lower()
            except (OSError, ValueError):
                answer = ""
            if answer not in ("y", "yes"):
                out.write("Aborted\n")
                raise
            logger.warning(f"Overwriting undecryptable configuration {self.store.path}")
            existing = {}

        if extra_keys is None:
            extra_keys = self.bootstrap.extra_keys

        out.write("Setting configuration\n")
        config = self.store.provision_interactive(existing, extra_keys, inp, out)

        try:
            self.store.save(config)
        except OSError as e:
            out.write(f"{e}\n")
            raise
        out.write("Done\n")

        self.config = config
        return config
