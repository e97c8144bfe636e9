"""
测试 REST API

覆盖各端点的状态码、响应结构和错误映射。
"""

from fastapi.testclient import TestClient

from fleet_monitor.api.app import create_app
from fleet_monitor.config import AppConfig
from fleet_monitor.database import Database
from fleet_monitor.errors import InternalError


def post_sample(client, **overrides):
    payload = {
        "server_ip": "192.168.1.10",
        "cpu_usage": 42.0,
        "memory_usage": 55.5,
        "disk_usage": 70.0,
        "load_average": 0.8,
        "uptime": 90000,
    }
    payload.update(overrides)
    return client.post("/api/metrics", json=payload)


class TestMetricsAPI:
    """指标上报 API 测试"""

    def test_post_created(self, client):
        """测试：上报成功返回 201 和写入结果"""
        response = post_sample(client)
        assert response.status_code == 201

        data = response.json()
        assert set(data) == {"id", "timestamp", "server_id"}
        assert data["timestamp"].endswith("Z")

    def test_post_invalid(self, client):
        """测试：校验失败返回 400 和全部违规字段"""
        response = client.post("/api/metrics", json={"server_ip": "", "cpu_usage": 150})
        assert response.status_code == 400

        data = response.json()
        assert data["error"] == "Invalid payload"
        fields = {detail.split(":")[0] for detail in data["details"]}
        assert fields == {"server_ip", "cpu_usage", "memory_usage", "disk_usage"}

    def test_post_non_object(self, client):
        """测试：载荷不是 JSON 对象"""
        response = client.post("/api/metrics", json=[1, 2, 3])
        assert response.status_code == 400

    def test_list_samples(self, client):
        """测试：原始样本新到旧，带原始载荷"""
        first = post_sample(client, cpu_usage=10.0).json()
        second = post_sample(client, cpu_usage=20.0).json()

        response = client.get(f"/api/metrics/{first['server_id']}?limit=10")
        assert response.status_code == 200

        rows = response.json()
        assert [r["id"] for r in rows] == [second["id"], first["id"]]
        assert rows[0]["raw_data"]["cpu_usage"] == 20.0

    def test_list_samples_pagination(self, client):
        """测试：分页"""
        ids = [post_sample(client, cpu_usage=float(i)).json()["id"] for i in range(5)]
        server_id = post_sample(client).json()["server_id"]

        page = client.get(f"/api/metrics/{server_id}?limit=2&offset=1").json()
        assert len(page) == 2
        assert page[0]["id"] == ids[-1]

    def test_list_samples_unknown_server(self, client):
        """测试：服务器不存在返回 404"""
        response = client.get("/api/metrics/9999")
        assert response.status_code == 404

    def test_internal_error_is_opaque(self, client, db, monkeypatch):
        """测试：存储失败返回 500 且不暴露内部细节"""
        def _fail(*args, **kwargs):
            raise InternalError("database operation failed: disk I/O error at /secret/path")

        monkeypatch.setattr(db, "insert_health_sample", _fail)

        response = post_sample(client)
        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "Internal server error"
        assert "/secret/path" not in response.text


class TestStorageAPI:
    """存储报告 API 测试"""

    def test_post_created(self, client):
        """测试：上报成功返回 201"""
        response = client.post("/api/storage", json={
            "server_ip": "10.1.0.1",
            "total_alerts": 2,
            "critical_alerts": 1,
            "critical_disk_mount": "/var",
            "critical_disk_usage": 97.0,
        })
        assert response.status_code == 201
        assert set(response.json()) == {"id", "timestamp", "server_id"}

    def test_post_missing_address(self, client):
        """测试：缺少地址返回 400"""
        response = client.post("/api/storage", json={"total_alerts": 1})
        assert response.status_code == 400
        assert response.json()["details"][0].startswith("server_ip:")

    def test_history(self, client):
        """测试：存储报告历史新到旧，受 limit 限制"""
        server_id = None
        for critical in (3, 2, 1):
            server_id = client.post("/api/storage", json={
                "server_ip": "10.1.0.2", "critical_alerts": critical,
            }).json()["server_id"]

        rows = client.get(f"/api/storage/{server_id}?limit=2").json()
        assert [r["critical_alerts"] for r in rows] == [1, 2]
        assert rows[0]["raid_status"] is True


class TestDashboardAPI:
    """仪表盘 API 测试"""

    def test_empty_dashboard(self, client):
        """测试：空库返回空数据而不是错误"""
        response = client.get("/api/dashboard")
        assert response.status_code == 200

        data = response.json()
        assert data["servers"] == []
        assert data["recent_errors"] == []
        assert data["storage_alerts"] == []
        assert data["stats"]["total_servers"] == 0
        assert data["stats"]["servers_online"] == 0
        assert data["stats"]["errors_last_hour"] == 0

    def test_dashboard_after_error_sample(self, client):
        """测试：错误样本出现在仪表盘中"""
        post_sample(client, cpu_usage=97, memory_usage=50, disk_usage=40)
        client.post("/api/storage", json={"server_ip": "192.168.1.10", "critical_alerts": 1})

        data = client.get("/api/dashboard").json()
        assert data["servers"][0]["is_online"] is True
        assert data["servers"][0]["uptime_formatted"] == "1d 1h 0m"
        assert data["recent_errors"][0]["error_message"] == "CPU crítica: 97.0%"
        assert data["storage_alerts"][0]["critical_alerts"] == 1
        assert data["stats"]["servers_online"] == 1

    def test_servers_list(self, client):
        """测试：服务器列表带统计"""
        post_sample(client)
        post_sample(client, cpu_usage=99.0)

        rows = client.get("/api/dashboard/servers").json()
        assert len(rows) == 1
        assert rows[0]["total_metrics"] == 2
        assert rows[0]["total_errors"] == 1

    def test_history_default_window(self, client, backdate):
        """测试：默认回看 24 小时，旧到新"""
        old = post_sample(client, cpu_usage=10.0).json()
        backdate("health_metrics", old["server_id"], "-30 hours", row_id=old["id"])
        new = post_sample(client, cpu_usage=20.0).json()

        rows = client.get(f"/api/dashboard/history/{new['server_id']}").json()
        assert [r["id"] for r in rows] == [new["id"]]

        rows = client.get(f"/api/dashboard/history/{new['server_id']}?hours=48").json()
        assert [r["id"] for r in rows] == [old["id"], new["id"]]

    def test_history_invalid_hours(self, client):
        """测试：回看窗口超出范围返回 400"""
        server_id = post_sample(client).json()["server_id"]

        assert client.get(f"/api/dashboard/history/{server_id}?hours=0").status_code == 400
        assert client.get(f"/api/dashboard/history/{server_id}?hours=100000").status_code == 400

    def test_history_unknown_server(self, client):
        """测试：服务器不存在返回 404"""
        assert client.get("/api/dashboard/history/4242").status_code == 404

    def test_history_export(self, client):
        """测试：CSV 导出"""
        server_id = post_sample(client).json()["server_id"]

        response = client.get(f"/api/dashboard/history/{server_id}/export")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "attachment" in response.headers["content-disposition"]

        lines = response.text.strip().splitlines()
        assert lines[0].startswith("id,server_id,timestamp,cpu_usage")
        assert len(lines) == 2


class TestHealthAPI:
    """健康检查测试"""

    def test_ok(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestAppLifecycle:
    """应用启动测试"""

    def test_startup_initializes_injected_database(self, tmp_path):
        """测试：注入未建表的数据库，startup 事件建表后即可写入"""
        db = Database(str(tmp_path / "fresh.db"))
        app = create_app(config=AppConfig(), db=db)

        with TestClient(app) as client:
            response = post_sample(client, uptime=12345.67)
            assert response.status_code == 201

            data = client.get("/api/dashboard").json()
            assert data["servers"][0]["uptime_formatted"] == "3h 25m"
