"""
仪表盘 API

提供集群总览、服务器列表、单机历史查询和导出功能。
"""

import csv
import io
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from ...aggregator import get_fleet_snapshot, get_server_history, list_servers
from ...config import AppConfig
from ...database import Database
from ...models import FleetSnapshot, HealthSample, ServerSummary
from ..dependencies import get_app_config, get_database

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])

EXPORT_FIELDS = [
    "id", "server_id", "timestamp",
    "cpu_usage", "memory_usage", "disk_usage",
    "load_average", "network_rx", "network_tx",
    "is_error", "error_message",
]


@router.get("", response_model=FleetSnapshot)
def get_dashboard(
    db: Database = Depends(get_database),
    config: AppConfig = Depends(get_app_config),
):
    """
    仪表盘完整数据

    包含服务器列表（含在线状态）、25 小时内的错误样本、存储告警和集群统计。
    """
    return get_fleet_snapshot(
        db,
        recent_errors_limit=config.dashboard.recent_errors_limit,
        warning_threshold=config.dashboard.warning_threshold,
    )


@router.get("/servers", response_model=List[ServerSummary])
def get_servers(db: Database = Depends(get_database)):
    """服务器列表及样本统计"""
    return list_servers(db)


@router.get("/history/{server_id}", response_model=List[HealthSample])
def get_history(
    server_id: int,
    hours: Optional[int] = Query(None, description="回看小时数，默认 24"),
    db: Database = Depends(get_database),
    config: AppConfig = Depends(get_app_config),
):
    """单台服务器历史样本（旧到新，可直接用于图表）"""
    if hours is None:
        hours = config.dashboard.history_default_hours
    return get_server_history(db, server_id, hours, max_hours=config.dashboard.history_max_hours)


@router.get("/history/{server_id}/export")
def export_history(
    server_id: int,
    hours: Optional[int] = Query(None, description="回看小时数，默认 24"),
    db: Database = Depends(get_database),
    config: AppConfig = Depends(get_app_config),
):
    """导出单台服务器历史样本为 CSV"""
    if hours is None:
        hours = config.dashboard.history_default_hours
    samples = get_server_history(db, server_id, hours, max_hours=config.dashboard.history_max_hours)

    # 生成 CSV
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=EXPORT_FIELDS, extrasaction="ignore")
    writer.writeheader()
    writer.writerows(sample.model_dump() for sample in samples)

    output.seek(0)
    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=server_{server_id}_history.csv"},
    )
