"""
依赖注入模块

提供 FastAPI 依赖项。数据库实例在应用创建时注入 app.state，
路由通过 get_database 获取，测试中可用 dependency_overrides 替换。
"""

from fastapi import Request

from ..config import AppConfig, get_config
from ..database import Database


def get_database(request: Request) -> Database:
    """获取数据库实例"""
    return request.app.state.db


def get_app_config(request: Request) -> AppConfig:
    """获取应用配置"""
    return getattr(request.app.state, "config", None) or get_config()
