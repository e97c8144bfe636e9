"""
存储健康 API

接收存储健康检查报告，并提供报告历史查询。
"""

from typing import Any, List

from fastapi import APIRouter, Body, Depends, Query, status

from ...aggregator import list_storage_reports
from ...database import Database
from ...ingest import record_storage_report
from ...models import IngestResult, StorageReport
from ..dependencies import get_database

router = APIRouter(prefix="/api/storage", tags=["storage"])


@router.post("", response_model=IngestResult, status_code=status.HTTP_201_CREATED)
def post_storage(payload: Any = Body(...), db: Database = Depends(get_database)):
    """上报一份存储健康报告"""
    return record_storage_report(db, payload)


@router.get("/{server_id}", response_model=List[StorageReport])
def get_storage(
    server_id: int,
    limit: int = Query(10, ge=1, le=100, description="返回数量限制"),
    db: Database = Depends(get_database),
):
    """获取单台服务器的存储报告历史（新到旧）"""
    return list_storage_reports(db, server_id, limit=limit)
