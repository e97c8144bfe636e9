"""
测试配置加载
"""

from pathlib import Path

from fleet_monitor.config import get_config, load_config, reset_config


def write_config(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadConfig:
    """配置加载测试"""

    def test_defaults_when_missing(self, tmp_path):
        """测试：配置文件不存在时使用默认值"""
        config = load_config(str(tmp_path / "missing.yaml"))
        assert config.api.port == 3000
        assert config.dashboard.history_default_hours == 24
        assert config.dashboard.recent_errors_limit == 50

    def test_yaml_values(self, tmp_path):
        """测试：读取 YAML 中的值"""
        path = write_config(tmp_path, """
api:
  port: 8088
dashboard:
  warning_threshold: 85
""")
        config = load_config(str(path))
        assert config.api.port == 8088
        assert config.dashboard.warning_threshold == 85.0

    def test_relative_paths_resolved(self, tmp_path):
        """测试：相对路径以配置文件目录为基准"""
        path = write_config(tmp_path, """
database:
  path: data/monitor.db
logging:
  file: logs/fleet.log
""")
        config = load_config(str(path))
        assert Path(config.database.path) == (tmp_path / "data" / "monitor.db").resolve()
        assert Path(config.logging.file) == (tmp_path / "logs" / "fleet.log").resolve()

    def test_env_overrides_yaml(self, tmp_path, monkeypatch):
        """测试：环境变量覆盖 YAML"""
        path = write_config(tmp_path, """
database:
  path: data/monitor.db
  timeout: 3
""")
        monkeypatch.setenv("FLEET_MONITOR_DATABASE__TIMEOUT", "15")
        config = load_config(str(path))
        assert config.database.timeout == 15.0
        assert config.database.path.endswith("monitor.db")

    def test_config_path_from_env(self, tmp_path, monkeypatch):
        """测试：FLEET_MONITOR_CONFIG_PATH 指定配置文件"""
        path = write_config(tmp_path, "api:\n  port: 9001\n")
        monkeypatch.setenv("FLEET_MONITOR_CONFIG_PATH", str(path))
        reset_config()
        assert get_config().api.port == 9001
