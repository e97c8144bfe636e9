"""
配置加载模块

从 config.yaml 加载配置，支持 Pydantic 验证和环境变量覆盖。

环境变量前缀为 FLEET_MONITOR_，嵌套字段用双下划线分隔，例如：
    FLEET_MONITOR_DATABASE__PATH=/var/lib/fleet-monitor/monitor.db
    FLEET_MONITOR_LOGGING__LEVEL=DEBUG
"""

import os
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseConfig(BaseModel):
    """数据库配置"""
    path: str = "data/monitor.db"
    timeout: float = 10.0  # 单次连接等待锁的上限（秒）


class APIConfig(BaseModel):
    """API 服务配置"""
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]


class DashboardConfig(BaseModel):
    """仪表盘查询配置"""
    history_default_hours: int = Field(default=24, ge=1)
    history_max_hours: int = Field(default=720, ge=1)
    recent_errors_limit: int = Field(default=50, ge=1)
    warning_threshold: float = Field(default=80.0, ge=0, le=100)


class LoggingConfig(BaseModel):
    """日志配置"""
    level: str = "INFO"
    file: Optional[str] = None


class AppConfig(BaseSettings):
    """应用配置（完整配置）"""

    model_config = SettingsConfigDict(
        env_prefix="FLEET_MONITOR_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    dashboard: DashboardConfig = Field(default_factory=DashboardConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # 环境变量优先于 YAML 文件中的值
        return env_settings, init_settings, file_secret_settings


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """
    加载配置文件

    优先级：
    1. 参数指定的路径
    2. 环境变量 FLEET_MONITOR_CONFIG_PATH
    3. 默认路径 config.yaml

    配置文件中的相对路径以配置文件所在目录为基准。
    """
    if config_path is None:
        config_path = os.environ.get("FLEET_MONITOR_CONFIG_PATH", "config.yaml")

    config_file = Path(config_path)

    if config_file.exists():
        with open(config_file, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
        if raw_config:
            base_dir = config_file.resolve().parent

            def _resolve_path(value: Optional[str]) -> Optional[str]:
                if not value:
                    return value
                path = Path(value)
                if path.is_absolute():
                    return str(path)
                return str((base_dir / path).resolve())

            raw_config.setdefault("database", {})
            if raw_config["database"].get("path"):
                raw_config["database"]["path"] = _resolve_path(raw_config["database"]["path"])

            raw_config.setdefault("logging", {})
            raw_config["logging"]["file"] = _resolve_path(raw_config["logging"].get("file"))

            return AppConfig(**raw_config)

    # 配置文件不存在时使用默认配置（仍然读取环境变量）
    return AppConfig()


# 全局配置实例（延迟加载）
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """获取全局配置实例（单例模式）"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config():
    """重置配置（主要用于测试）"""
    global _config
    _config = None
