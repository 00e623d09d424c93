"""
数据库注册测试 (使用SQLite代替真实数据库)
"""

import pytest
from sqlalchemy import create_engine, text

from test_config import TEST_DB_CONFIG

from core.errors import DatabaseConnectionError, DatabaseDriverError
from database.registrar import DatabaseRegistrar, build_connection_url, connect_args_for


def sqlite_factory(path, captured):
    def factory(url, **kwargs):
        captured["url"] = url
        captured.update(kwargs)
        return create_engine(f"sqlite:///{path}")

    return factory


def test_connection_url_is_built_from_config():
    url = build_connection_url(TEST_DB_CONFIG, "postgresql+psycopg2")

    assert url.drivername == "postgresql+psycopg2"
    assert url.host == "db.example.internal"
    assert url.port == 5432
    assert url.username == "inputor"
    assert url.password == "p@ss:w/rd"
    assert url.database == "siem"
    assert "p@ss" not in url.render_as_string(hide_password=True)
    assert build_connection_url(TEST_DB_CONFIG, "postgresql+psycopg2") == url


def test_invalid_port():
    with pytest.raises(DatabaseConnectionError):
        build_connection_url(dict(TEST_DB_CONFIG, **{"db.port": "abc"}))


def test_timezone_and_charset_policy():
    pg = connect_args_for("postgresql+psycopg2")
    assert pg["options"] == "-c timezone=Asia/Seoul"
    assert pg["client_encoding"] == "utf8"

    mysql = connect_args_for("mysql+pymysql")
    assert mysql["charset"] == "utf8"
    assert "Asia/Seoul" in mysql["init_command"]


def test_register_uses_small_fixed_pool(tmp_path):
    captured = {}
    registrar = DatabaseRegistrar(engine_factory=sqlite_factory(tmp_path / "ok.db", captured))

    engine = registrar.register(TEST_DB_CONFIG)

    assert registrar.get() is engine
    assert captured["pool_size"] == 3
    assert captured["max_overflow"] == 0
    assert captured["url"].host == "db.example.internal"
    with engine.connect() as conn:
        assert conn.execute(text("SELECT 1")).scalar() == 1

    registrar.dispose_all()
    assert registrar.engines == {}


def test_register_failure_is_wrapped(tmp_path):
    bad_path = tmp_path / "no" / "such" / "dir" / "x.db"
    registrar = DatabaseRegistrar(engine_factory=sqlite_factory(bad_path, {}))

    with pytest.raises(DatabaseConnectionError) as exc_info:
        registrar.register(TEST_DB_CONFIG)

    assert "p@ss:w/rd" not in str(exc_info.value)
    assert registrar.engines == {}


def test_reregister_replaces_alias(tmp_path):
    registrar = DatabaseRegistrar(engine_factory=sqlite_factory(tmp_path / "a.db", {}))
    first = registrar.register(TEST_DB_CONFIG)
    second = registrar.register(TEST_DB_CONFIG)

    assert registrar.get() is second
    assert first is not second
    registrar.dispose_all()


def test_missing_driver_is_not_a_connection_error():
    def factory(url, **kwargs):
        raise ModuleNotFoundError("No module named 'pymysql'")

    registrar = DatabaseRegistrar(driver="mysql+pymysql", engine_factory=factory)

    with pytest.raises(DatabaseDriverError) as exc_info:
        registrar.register(TEST_DB_CONFIG)

    assert not isinstance(exc_info.value, DatabaseConnectionError)
    assert "mysql+pymysql" in str(exc_info.value)
    assert "pymysql" in str(exc_info.value)
    assert registrar.engines == {}
