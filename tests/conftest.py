"""
测试公共 fixture

每个测试使用 tmp_path 下的独立 SQLite 数据库。
"""

import pytest
from fastapi.testclient import TestClient

from fleet_monitor.api.app import create_app
from fleet_monitor.api.dependencies import get_database
from fleet_monitor.config import AppConfig, reset_config
from fleet_monitor.database import Database


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch):
    """避免测试读取到本机的配置文件或环境变量"""
    monkeypatch.setenv("FLEET_MONITOR_CONFIG_PATH", "/nonexistent/config.yaml")
    reset_config()
    yield
    reset_config()


@pytest.fixture
def db(tmp_path):
    """创建临时测试数据库"""
    db = Database(str(tmp_path / "test_monitor.db"), timeout=5)
    db.init_schema()
    return db


@pytest.fixture
def client(db: Database):
    """创建测试客户端（使用临时数据库）"""
    app = create_app(config=AppConfig(), db=db)

    def _override_db():
        return db

    app.dependency_overrides[get_database] = _override_db
    return TestClient(app)


@pytest.fixture
def backdate(db: Database):
    """
    把某台服务器的数据时间往前移，模拟过去写入的数据

    用法：backdate("current_metrics", server_id, "-26 hours")
    """
    def _backdate(table: str, server_id: int, modifier: str, row_id: int = None):
        assert table in {"health_metrics", "current_metrics", "storage_health", "current_storage_health"}
        sql = f"UPDATE {table} SET timestamp = strftime('%Y-%m-%dT%H:%M:%fZ', 'now', ?) WHERE server_id = ?"
        params = [modifier, server_id]
        if row_id is not None:
            sql += " AND id = ?"
            params.append(row_id)
        with db.get_conn(immediate=True) as conn:
            conn.execute(sql, params)

    return _backdate


@pytest.fixture
def row_count(db: Database):
    """统计某张表的行数"""
    def _count(table: str) -> int:
        with db.get_conn() as conn:
            return conn.execute(f"SELECT COUNT(*) AS n FROM {table}").fetchone()["n"]

    return _count
