"""
服务健康检查
"""

from fastapi import APIRouter, Depends

from ...database import Database
from ..dependencies import get_database

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
def health_check(db: Database = Depends(get_database)):
    """数据库可用时返回 ok，否则由 InternalError 处理器返回 500"""
    return {"status": "ok", "store_time": db.ping()}
