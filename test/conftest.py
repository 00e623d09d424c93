"""
pytest 公共夹具
"""

import logging

import pytest

from test_config import TEST_KEY_CONFIG, TEST_PROCESS_NAME

import core.logger
from core.config import BootstrapConfig
from crypto.config_store import ConfigStore
from crypto.key_source import PassphraseKeySource


@pytest.fixture
def key_source():
    return PassphraseKeySource(
        TEST_KEY_CONFIG["passphrase"], iterations=TEST_KEY_CONFIG["iterations"]
    )


@pytest.fixture
def bootstrap(tmp_path):
    return BootstrapConfig(app_dir=str(tmp_path), process_name=TEST_PROCESS_NAME)


@pytest.fixture
def store(bootstrap, key_source):
    return ConfigStore(bootstrap.config_path, key_source)


@pytest.fixture
def reset_logging():
    """测试结束后关闭日志处理器并清除初始化标记"""
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        if type(handler).__module__.startswith("_pytest"):
            continue
        root.removeHandler(handler)
        handler.close()
    core.logger._initialized = False
    core.logger._destination = None
