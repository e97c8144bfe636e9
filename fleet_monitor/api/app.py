"""
FastAPI 应用配置

配置 CORS、异常处理、路由注册和数据库生命周期。
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import AppConfig, get_config
from ..database import Database
from ..errors import InternalError, NotFoundError, ValidationError
from .routers import dashboard, health, metrics, storage

logger = logging.getLogger(__name__)


def create_app(config: Optional[AppConfig] = None, db: Optional[Database] = None) -> FastAPI:
    """
    创建 FastAPI 应用实例

    Args:
        config: 应用配置，不指定则从全局配置加载
        db: 数据库实例，不指定则按配置创建（启动时建表并做健康检查）
    """
    config = config or get_config()
    if db is None:
        db = Database(config.database.path, timeout=config.database.timeout)

    app = FastAPI(
        title="Fleet Monitor",
        description="服务器集群健康数据采集与仪表盘 API",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )
    app.state.config = config
    app.state.db = db

    # CORS 中间件
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid payload", "details": exc.errors},
        )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": str(exc)},
        )

    @app.exception_handler(InternalError)
    async def internal_error_handler(request: Request, exc: InternalError):
        # 详细信息已在存储层记录，这里不向调用方暴露
        logger.error(f"Internal error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error", "message": "The request could not be completed"},
        )

    # 注册路由
    app.include_router(metrics.router)
    app.include_router(storage.router)
    app.include_router(dashboard.router)
    app.include_router(health.router)

    @app.on_event("startup")
    async def startup_event():
        logger.info("Fleet Monitor starting up...")
        app.state.db.init_schema()
        logger.info(f"Database reachable, store time {app.state.db.ping()}")

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("Fleet Monitor shutting down...")

    return app
