"""
主程序 - 数据导入守护进程启动入口
"""

import logging
import argparse
import importlib
import sys
from typing import List, Optional

from core.config import (
    CLI_DEFAULTS,
    KEY_MANAGEMENT,
    PRODUCT_KEYWORD,
    PRODUCT_NAME,
    PRODUCT_VERSION,
    BootstrapConfig,
    parse_extra_keys,
)
from core.engine import Engine
from core.error_drain import ErrorDrain
from core.errors import BootstrapError
from core.logger import ensure_logger
from core.signals import wait_for_shutdown_signal
from crypto.config_store import ConfigStore
from crypto.key_source import generate_key_file, resolve_key_source
from utils import exception_handler

# 全局日志对象
logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None):
    """解析命令行参数"""
    parser = argparse.ArgumentParser(
        prog=PRODUCT_KEYWORD, description=PRODUCT_NAME, allow_abbrev=False
    )
    parser.add_argument("-v", action="store_true", dest="version", help="Version")
    parser.add_argument("-debug", action="store_true", help="Debug")
    parser.add_argument("-cpu", type=int, default=CLI_DEFAULTS["cpu"], help="CPU Count")
    parser.add_argument("-config", action="store_true", help="Set configuration")
    parser.add_argument(
        "-i",
        type=int,
        dest="interval",
        default=CLI_DEFAULTS["interval_ms"],
        help="Interval(ms)",
    )
    parser.add_argument(
        "-dir",
        dest="watch_dir",
        default=CLI_DEFAULTS["watch_dir"],
        help="Directory to watch",
    )
    parser.add_argument(
        "-extra", default="", help="Extra configuration keys, comma separated (-config)"
    )
    parser.add_argument(
        "-worker",
        default=CLI_DEFAULTS["worker"],
        help="Ingestion worker factory, 'module:callable'",
    )
    parser.add_argument(
        "-keyfile", default=KEY_MANAGEMENT["key_file"], help="Configuration key file"
    )
    parser.add_argument(
        "-genkey", action="store_true", help="Generate a random key file and exit"
    )
    return parser.parse_args(argv)


def load_worker_factory(spec: str):
    """
    按 'module:callable' 加载导入工作进程的工厂函数

    Args:
        spec: 模块路径与属性名
    """
    module_name, _, attr = spec.partition(":")
    if not module_name or not attr:
        raise ValueError(f"invalid worker spec: {spec!r} (expected 'module:callable')")
    module = importlib.import_module(module_name)
    return getattr(module, attr)


def run(args, engine: Engine) -> int:
    """启动引擎、工作进程, 等待关闭信号"""
    try:
        engine.start()
    except BootstrapError as e:
        logger.error(str(e))
        print(f"错误: {e}")
        return 1

    drain = ErrorDrain().start()
    worker = None
    try:
        if args.worker:
            try:
                factory = load_worker_factory(args.worker)
                worker = factory(
                    interval_ms=engine.interval_ms,
                    watch_dir=engine.bootstrap.watch_dir,
                    executor=engine.executor,
                )
                worker.start(drain)
            except Exception as e:
                logger.exception(f"Failed to start worker {args.worker}")
                print(f"错误: 无法启动工作进程 {args.worker}: {e}")
                return 1
        else:
            logger.warning("No ingestion worker configured (use '-worker')")
        logger.info("Started")

        wait_for_shutdown_signal()
        return 0
    finally:
        try:
            if worker is not None and hasattr(worker, "stop"):
                worker.stop()
        finally:
            try:
                engine.shutdown()
            finally:
                drain.stop()


def main(argv: Optional[List[str]] = None):
    """主函数"""
    args = parse_args(argv)

    # 版本
    if args.version:
        print(f"{PRODUCT_NAME} {PRODUCT_VERSION}")
        return 0

    bootstrap = BootstrapConfig.from_executable(
        debug=args.debug,
        cpu_count=args.cpu,
        interval_ms=args.interval,
        watch_dir=args.watch_dir,
        extra_keys=parse_extra_keys(args.extra),
    )

    # 日志必须先于任何组件初始化
    ensure_logger(
        logging.DEBUG if args.debug else logging.INFO,
        bootstrap.log_path,
        prefer_file=bootstrap.log_to_file,
    )

    if args.genkey:
        path = args.keyfile or bootstrap.key_path
        try:
            generate_key_file(path)
        except OSError as e:
            print(f"生成密钥文件失败: {e}")
            return 1
        print(f"密钥文件已生成: {path}")
        return 0

    try:
        key_source = resolve_key_source(
            args.keyfile or bootstrap.key_path, confirm=args.config
        )
        store = ConfigStore(bootstrap.config_path, key_source)
        engine = Engine(bootstrap, store)
        sys.excepthook = exception_handler

        # 配置
        if args.config:
            try:
                engine.provision()
            except OSError:
                logger.exception("保存配置时发生错误")
                return 1
            return 0

        return run(args, engine)

    except BootstrapError as e:
        print(f"错误: {e}")
        return 1
    except (EOFError, KeyboardInterrupt):
        print()
        return 1


if __name__ == "__main__":
    sys.exit(main())
