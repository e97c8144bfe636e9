"""
健康指标 API

接收 Agent 上报的指标样本，并提供原始样本查询。
"""

from typing import Any, List

from fastapi import APIRouter, Body, Depends, Query, status

from ...aggregator import list_health_samples
from ...database import Database
from ...ingest import record_health_sample
from ...models import HealthSample, IngestResult
from ..dependencies import get_database

router = APIRouter(prefix="/api/metrics", tags=["metrics"])


@router.post("", response_model=IngestResult, status_code=status.HTTP_201_CREATED)
def post_metrics(payload: Any = Body(...), db: Database = Depends(get_database)):
    """
    上报一条健康指标样本

    首次出现的地址会自动注册为新服务器。
    CPU/内存/磁盘任一 >= 95% 或负载 >= 8 时自动标记为错误样本。
    """
    return record_health_sample(db, payload)


@router.get("/{server_id}", response_model=List[HealthSample])
def get_metrics(
    server_id: int,
    limit: int = Query(50, ge=1, le=1000, description="返回数量限制"),
    offset: int = Query(0, ge=0, description="偏移量"),
    db: Database = Depends(get_database),
):
    """获取单台服务器的原始样本（新到旧）"""
    return list_health_samples(db, server_id, limit=limit, offset=offset)
