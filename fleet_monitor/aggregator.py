"""
仪表盘聚合

把注册表、当前快照、近期错误和存储快照组合成仪表盘读模型。
所有操作只读；在线状态在读取时根据数据库当前时间计算，不落库。
"""

import logging
from typing import Any, Dict, List, Optional

from .database import Database
from .errors import NotFoundError, ValidationError
from .models import (
    FleetServer, FleetSnapshot, FleetStats, HealthSample,
    RecentError, ServerSummary, StorageAlert, StorageReport,
)
from .staleness import counts_as_online, is_online

logger = logging.getLogger(__name__)

NO_RECENT_DATA = "Sem dados recentes"


def format_uptime(seconds: Optional[float]) -> Optional[str]:
    """
    格式化运行时间，省略为 0 的高位单位

    273600 -> "3d 4h 0m"；15120 -> "4h 12m"；720 -> "12m"
    """
    if seconds is None:
        return None
    seconds = int(seconds)
    days = seconds // 86400
    hours = (seconds % 86400) // 3600
    minutes = (seconds % 3600) // 60

    if days > 0:
        return f"{days}d {hours}h {minutes}m"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def _has_warning(row: Dict[str, Any], online: bool, threshold: float) -> bool:
    if not online:
        return False
    return any(
        (row.get(key) or 0) > threshold
        for key in ("cpu_usage", "memory_usage", "disk_usage")
    )


def _build_fleet_server(row: Dict[str, Any], now: str, warning_threshold: float) -> FleetServer:
    online = is_online(row.get("last_update"), now)
    no_data = row.get("last_update") is None
    return FleetServer(
        id=row["id"],
        ip_address=row["ip_address"],
        hostname=row.get("hostname"),
        status=row.get("status") or "active",
        description=row.get("description"),
        last_update=row.get("last_update"),
        cpu_usage=row.get("cpu_usage"),
        memory_usage=row.get("memory_usage"),
        disk_usage=row.get("disk_usage"),
        load_average=row.get("load_average"),
        uptime=row.get("uptime"),
        uptime_formatted=format_uptime(row.get("uptime")),
        is_online=online,
        has_warning=_has_warning(row, online, warning_threshold),
        is_error=no_data,
        error_message=NO_RECENT_DATA if no_data else None,
    )


def _build_stats(rows: List[Dict[str, Any]], now: str, error_count: int) -> FleetStats:
    """
    集群统计

    在线数：指标快照或存储快照任一新鲜即计入。
    平均性能：只统计指标快照新鲜的服务器，只有存储报告的服务器算在线但不贡献性能数据。
    """
    online_count = sum(
        1 for row in rows
        if counts_as_online(row.get("last_update"), row.get("storage_update"), now)
    )

    fresh = [row for row in rows if is_online(row.get("last_update"), now)]
    stats = FleetStats(
        total_servers=len(rows),
        servers_online=online_count,
        errors_last_hour=error_count,
    )
    if fresh:
        stats.avg_cpu = round(sum(r["cpu_usage"] or 0 for r in fresh) / len(fresh), 2)
        stats.avg_memory = round(sum(r["memory_usage"] or 0 for r in fresh) / len(fresh), 2)
        stats.avg_disk = round(sum(r["disk_usage"] or 0 for r in fresh) / len(fresh), 2)
        stats.avg_performance = round(
            ((100 - stats.avg_cpu) + (100 - stats.avg_memory) + (100 - stats.avg_disk)) / 3, 2
        )
    return stats


def get_fleet_snapshot(
    db: Database,
    recent_errors_limit: int = 50,
    warning_threshold: float = 80.0,
) -> FleetSnapshot:
    """
    仪表盘完整数据

    服务器列表、近期错误、存储告警和统计都基于同一个读事务和同一个"当前时间"。
    空库返回空列表和全 0 统计；任一查询失败则整体抛出 InternalError。
    """
    data = db.read_fleet(recent_errors_limit=recent_errors_limit)
    now = data["now"]
    rows = data["servers"]

    snapshot = FleetSnapshot(
        generated_at=now,
        servers=[_build_fleet_server(row, now, warning_threshold) for row in rows],
        recent_errors=[RecentError(**row) for row in data["recent_errors"]],
        storage_alerts=[StorageAlert(**row) for row in data["storage_alerts"]],
        stats=_build_stats(rows, now, data["error_count"]),
    )
    logger.debug(
        f"Fleet snapshot at {now}: {snapshot.stats.total_servers} servers, "
        f"{snapshot.stats.servers_online} online, {len(snapshot.recent_errors)} recent errors"
    )
    return snapshot


def _require_server(db: Database, server_id: int):
    if db.get_server_by_id(server_id) is None:
        raise NotFoundError("Server", server_id)


def validate_hours(hours: Any, max_hours: int = 720) -> int:
    """回看窗口必须是 1..max_hours 的整数"""
    if isinstance(hours, bool) or not isinstance(hours, int):
        raise ValidationError([f"hours: must be an integer between 1 and {max_hours}"])
    if not 1 <= hours <= max_hours:
        raise ValidationError([f"hours: must be an integer between 1 and {max_hours}"])
    return hours


def get_server_history(
    db: Database,
    server_id: int,
    hours: int = 24,
    max_hours: int = 720,
) -> List[HealthSample]:
    """单台服务器最近 N 小时的样本，旧到新"""
    hours = validate_hours(hours, max_hours)
    _require_server(db, server_id)
    return [HealthSample(**row) for row in db.query_history(server_id, hours)]


def list_servers(db: Database) -> List[ServerSummary]:
    """所有服务器及样本总数、错误数、最后样本时间"""
    return [ServerSummary(**row) for row in db.list_servers_with_counts()]


def list_health_samples(
    db: Database,
    server_id: int,
    limit: int = 50,
    offset: int = 0,
) -> List[HealthSample]:
    """原始样本分页（新到旧，含原始载荷）"""
    _require_server(db, server_id)
    return [HealthSample(**row) for row in db.list_health_samples(server_id, limit, offset)]


def list_storage_reports(db: Database, server_id: int, limit: int = 10) -> List[StorageReport]:
    """存储报告历史（新到旧）"""
    _require_server(db, server_id)
    return [StorageReport(**row) for row in db.list_storage_reports(server_id, limit)]
