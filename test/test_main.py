"""
命令行入口测试
"""

import io
import os
import sys
import signal
import threading

import pytest

from test_config import TEST_DB_CONFIG, TEST_KEY_CONFIG, TEST_PROCESS_NAME

import main
from core.config import KEY_MANAGEMENT, PRODUCT_NAME, PRODUCT_VERSION
from core.error_drain import ErrorDrain
from crypto.config_store import ConfigStore
from crypto.key_source import EnvironmentKeySource
from database.registrar import DatabaseRegistrar

pytestmark = pytest.mark.usefixtures("reset_logging")

# 由 -worker test_main:make_worker 加载的假工作进程记录的事件
EVENTS = []


class FakeWorker:
    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.sink = None
        EVENTS.append("factory")

    def start(self, sink):
        self.sink = sink
        EVENTS.append("start")

    def stop(self):
        EVENTS.append("stop")


def make_worker(interval_ms, watch_dir, executor):
    worker = FakeWorker(interval_ms=interval_ms, watch_dir=watch_dir, executor=executor)
    make_worker.created.append(worker)
    return worker


make_worker.created = []


@pytest.fixture
def executable(monkeypatch, tmp_path):
    """把可执行文件放到临时目录, 使配置与日志文件落在其中"""
    monkeypatch.setattr(sys, "argv", [str(tmp_path / f"{TEST_PROCESS_NAME}.py")])
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    monkeypatch.setenv(KEY_MANAGEMENT["passphrase_env"], TEST_KEY_CONFIG["passphrase"])
    return tmp_path


def test_parse_args_defaults():
    args = main.parse_args([])
    assert args.version is False
    assert args.debug is False
    assert args.cpu == 1
    assert args.config is False
    assert args.interval == 10000
    assert args.watch_dir == "/home/sniper_bps/relation/"


def test_parse_args_single_dash_flags():
    args = main.parse_args(["-debug", "-cpu", "4", "-i", "500", "-dir", "/in", "-extra", "a,b"])
    assert args.debug and args.cpu == 4 and args.interval == 500
    assert args.watch_dir == "/in"
    assert args.extra == "a,b"


def test_version_skips_bootstrap(capsys, executable):
    assert main.main(["-v"]) == 0
    assert capsys.readouterr().out.strip() == f"{PRODUCT_NAME} {PRODUCT_VERSION}"
    assert os.listdir(executable) == []


def test_load_worker_factory():
    assert main.load_worker_factory("os.path:join") is os.path.join
    with pytest.raises(ValueError):
        main.load_worker_factory("os.path")


def test_config_then_start_fails_without_database(monkeypatch, capsys, executable):
    answers = "127.0.0.1\n1\nuser\npw\nsiem\nvalue\n"
    monkeypatch.setattr(sys, "stdin", io.StringIO(answers))

    assert main.main(["-config", "-extra", "inputor.extra"]) == 0
    assert "Done" in capsys.readouterr().out
    assert (executable / f"{TEST_PROCESS_NAME}.enc").exists()
    assert (executable / f"{TEST_PROCESS_NAME}.log").exists()

    # 没有可用的数据库, 启动失败并返回1
    assert main.main([]) == 1
    assert "错误" in capsys.readouterr().out


def test_start_without_config_fails(capsys, executable):
    assert main.main([]) == 1
    assert "-config" in capsys.readouterr().out


def test_genkey(capsys, executable):
    assert main.main(["-genkey"]) == 0
    assert (executable / f"{TEST_PROCESS_NAME}.key").exists()
    assert main.main(["-genkey"]) == 1


@pytest.fixture
def stub_database(monkeypatch):
    """数据库注册总是成功, 并记录注册与释放"""
    EVENTS.clear()
    make_worker.created.clear()

    def register(self, config, alias="default"):
        EVENTS.append("register")
        return object()

    def dispose_all(self):
        EVENTS.append("dispose")

    monkeypatch.setattr(DatabaseRegistrar, "register", register)
    monkeypatch.setattr(DatabaseRegistrar, "dispose_all", dispose_all)
    return EVENTS


def save_test_config(executable):
    path = str(executable / f"{TEST_PROCESS_NAME}.enc")
    ConfigStore(path, EnvironmentKeySource()).save(TEST_DB_CONFIG)


def test_key_source_is_logged_under_debug(executable):
    assert main.main(["-debug"]) == 1

    with open(executable / f"{TEST_PROCESS_NAME}-debug.log", encoding="utf-8") as f:
        content = f.read()
    assert "Using passphrase from environment" in content


def test_worker_load_failure_releases_resources(monkeypatch, capsys, executable, stub_database):
    save_test_config(executable)
    monkeypatch.setattr(
        main, "wait_for_shutdown_signal", lambda *a, **kw: pytest.fail("should not wait")
    )

    assert main.main(["-worker", "no_such_module:factory"]) == 1

    assert "错误" in capsys.readouterr().out
    assert stub_database == ["register", "dispose"]


def test_worker_start_failure_releases_resources(monkeypatch, executable, stub_database):
    save_test_config(executable)
    monkeypatch.setattr(FakeWorker, "start", lambda self, sink: 1 / 0)
    monkeypatch.setattr(
        main, "wait_for_shutdown_signal", lambda *a, **kw: pytest.fail("should not wait")
    )

    assert main.main(["-worker", "test_main:make_worker"]) == 1
    assert stub_database == ["register", "factory", "stop", "dispose"]


@pytest.mark.skipif(os.name != "posix", reason="需要 SIGTERM")
def test_run_until_sigterm(monkeypatch, executable, stub_database):
    save_test_config(executable)
    real_wait = main.wait_for_shutdown_signal

    def wait_then_terminate(*args, **kwargs):
        EVENTS.append("wait")
        timer = threading.Timer(0.3, os.kill, (os.getpid(), signal.SIGTERM))
        timer.start()
        try:
            return real_wait(timeout=10)
        finally:
            timer.cancel()

    monkeypatch.setattr(main, "wait_for_shutdown_signal", wait_then_terminate)

    code = main.main(["-worker", "test_main:make_worker", "-i", "500", "-dir", "/in"])

    assert code == 0
    assert stub_database == ["register", "factory", "start", "wait", "stop", "dispose"]

    (worker,) = make_worker.created
    assert worker.kwargs["interval_ms"] == 500
    assert worker.kwargs["watch_dir"] == "/in"
    assert worker.kwargs["executor"] is not None
    assert isinstance(worker.sink, ErrorDrain)
    assert worker.sink._thread is None
