"""
数据库注册模块 - 根据配置建立连接池
"""

import logging
from typing import Callable, Dict, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Engine
from sqlalchemy.exc import SQLAlchemyError

from core.config import DB_CONFIG
from core.errors import DatabaseConnectionError, DatabaseDriverError
from utils import timing_decorator

logger = logging.getLogger(__name__)


def build_connection_url(config: Dict[str, str], driver: str = DB_CONFIG["driver"]) -> URL:
    """
    根据五个必需配置项构建连接描述, 每次注册时重新生成

    Args:
        config: 配置映射
        driver: SQLAlchemy 方言+驱动名

    Returns:
        SQLAlchemy URL
    """
    try:
        port = int(config["db.port"])
    except (KeyError, ValueError) as e:
        raise DatabaseConnectionError(f"invalid db.port: {config.get('db.port')!r}") from e

    return URL.create(
        drivername=driver,
        username=config["db.username"],
        password=config["db.password"],
        host=config["db.hostname"],
        port=port,
        database=config["db.database"],
    )


def connect_args_for(driver: str = DB_CONFIG["driver"]) -> Dict[str, object]:
    """固定的时区与字符集策略"""
    if driver.startswith("postgresql"):
        return {
            "options": f"-c timezone={DB_CONFIG['timezone']}",
            "client_encoding": DB_CONFIG["charset"],
            "connect_timeout": DB_CONFIG["connect_timeout"],
        }
    if driver.startswith("mysql"):
        return {
            "charset": DB_CONFIG["charset"],
            "init_command": f"SET time_zone = '{DB_CONFIG['timezone']}'",
            "connect_timeout": DB_CONFIG["connect_timeout"],
        }
    return {}


class DatabaseRegistrar:
    """数据库注册器, 管理按别名注册的连接池"""

    def __init__(
        self,
        driver: str = DB_CONFIG["driver"],
        engine_factory: Optional[Callable[..., Engine]] = None,
    ):
        """
        初始化数据库注册器

        Args:
            driver: SQLAlchemy 方言+驱动名
            engine_factory: 创建引擎的函数, 默认为 sqlalchemy.create_engine
        """
        self.driver = driver
        self.engine_factory = engine_factory or create_engine
        self.engines: Dict[str, Engine] = {}

    @timing_decorator
    def register(self, config: Dict[str, str], alias: str = DB_CONFIG["alias"]) -> Engine:
        """
        注册并打开连接池; 失败即为致命错误, 此层不重试

        Args:
            config: 已验证的配置映射
            alias: 连接池别名

        Returns:
            SQLAlchemy 引擎

        Raises:
            DatabaseConnectionError: 无法建立连接
            DatabaseDriverError: 数据库驱动未安装
        """
        url = build_connection_url(config, self.driver)
        logger.debug(f"Database connection string: {url.render_as_string(hide_password=True)}")

        engine = None
        try:
            engine = self.engine_factory(
                url,
                pool_size=DB_CONFIG["pool_size"],
                max_overflow=DB_CONFIG["max_overflow"],
                pool_pre_ping=True,
                connect_args=connect_args_for(self.driver),
            )
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except ImportError as e:
            if engine is not None:
                engine.dispose()
            logger.error(f"Database driver for {self.driver} is not installed: {e}")
            raise DatabaseDriverError(
                f"database driver for {self.driver} is not installed: {e}"
            ) from e
        except (SQLAlchemyError, OSError) as e:
            if engine is not None:
                engine.dispose()
            logger.error(f"Error registering database '{alias}': {e}")
            raise DatabaseConnectionError(
                f"cannot connect to {url.render_as_string(hide_password=True)}: {e}"
            ) from e

        previous = self.engines.pop(alias, None)
        if previous is not None:
            previous.dispose()
        self.engines[alias] = engine

        logger.info(f"Database '{alias}' registered: {url.host}:{url.port}/{url.database}")
        return engine

    def get(self, alias: str = DB_CONFIG["alias"]) -> Engine:
        return self.engines[alias]

    def dispose_all(self) -> None:
        """释放所有连接池"""
        for alias, engine in list(self.engines.items()):
            engine.dispose()
            logger.debug(f"Database '{alias}' disposed")
        self.engines.clear()
