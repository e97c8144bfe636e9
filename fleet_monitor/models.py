"""
数据模型定义

包括：
- 上报载荷模型（Agent -> 服务端，带校验）
- Pydantic 响应模型（服务端 -> 仪表盘）
"""

import math
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# 上报载荷模型
# =============================================================================

def _require_address(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError("server address is required")
    return value.strip()


class HealthSamplePayload(BaseModel):
    """健康指标上报（POST /api/metrics）"""
    model_config = ConfigDict(extra="allow")

    server_ip: str
    cpu_usage: float
    memory_usage: float
    disk_usage: float
    memory_total: Optional[float] = None
    memory_used: Optional[float] = None
    disk_total: Optional[float] = None
    disk_used: Optional[float] = None
    load_average: Optional[float] = None
    uptime: Optional[float] = None
    network_rx: Optional[float] = None
    network_tx: Optional[float] = None
    processes_total: Optional[float] = None
    processes_running: Optional[float] = None
    error_message: Optional[str] = None

    @field_validator("server_ip", mode="before")
    @classmethod
    def check_address(cls, value: Any) -> str:
        return _require_address(value)

    @field_validator("cpu_usage", "memory_usage", "disk_usage", mode="before")
    @classmethod
    def check_percentage(cls, value: Any) -> float:
        # 只接受真正的数字，"50" 这样的字符串和 True/False 都拒绝
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("must be a number between 0 and 100")
        if math.isnan(value) or not 0 <= value <= 100:
            raise ValueError("must be a number between 0 and 100")
        return float(value)


class StorageReportPayload(BaseModel):
    """存储健康报告上报（POST /api/storage）"""
    model_config = ConfigDict(extra="allow")

    server_ip: str
    total_alerts: int = 0
    critical_alerts: int = 0
    warning_alerts: int = 0
    critical_disk_mount: Optional[str] = None
    critical_disk_usage: Optional[float] = None
    # 磁盘条目按 Agent 上报的原样保存
    disks_over_threshold: Optional[List[Dict[str, Any]]] = None
    top_folders: Optional[List[Dict[str, Any]]] = None
    raid_status: Optional[bool] = None
    smart_status: Optional[bool] = None
    filesystem_status: Optional[bool] = None
    network_status: Optional[bool] = None
    iowait_percent: Optional[float] = None
    summary: Optional[str] = None
    full_report: Optional[Any] = None

    @field_validator("server_ip", mode="before")
    @classmethod
    def check_address(cls, value: Any) -> str:
        return _require_address(value)

    @field_validator("total_alerts", "critical_alerts", "warning_alerts", mode="before")
    @classmethod
    def default_count(cls, value: Any) -> Any:
        # 显式传 null 与不传一样，按 0 处理
        return 0 if value is None else value


# =============================================================================
# 写入结果
# =============================================================================

class IngestResult(BaseModel):
    """一次成功写入的结果"""
    id: int
    timestamp: str
    server_id: int


# =============================================================================
# 读取模型
# =============================================================================

class Server(BaseModel):
    """服务器身份记录"""
    id: int
    ip_address: str
    hostname: Optional[str] = None
    description: Optional[str] = None
    status: str = "active"
    created_at: Optional[str] = None


class ServerSummary(Server):
    """服务器列表项（带统计）"""
    total_metrics: int = 0
    total_errors: int = 0
    last_metric: Optional[str] = None


class HealthSample(BaseModel):
    """一条健康指标样本"""
    id: int
    server_id: int
    timestamp: str
    cpu_usage: float
    memory_usage: float
    disk_usage: float
    memory_total: Optional[float] = None
    memory_used: Optional[float] = None
    disk_total: Optional[float] = None
    disk_used: Optional[float] = None
    load_average: Optional[float] = None
    uptime: Optional[float] = None
    network_rx: Optional[float] = None
    network_tx: Optional[float] = None
    processes_total: Optional[float] = None
    processes_running: Optional[float] = None
    is_error: bool = False
    error_message: Optional[str] = None
    raw_data: Optional[Dict[str, Any]] = None


class StorageReport(BaseModel):
    """一份存储健康报告"""
    id: int
    server_id: int
    timestamp: str
    total_alerts: int = 0
    critical_alerts: int = 0
    warning_alerts: int = 0
    critical_disk_mount: Optional[str] = None
    critical_disk_usage: Optional[float] = None
    disks_over_threshold: Optional[List[Dict[str, Any]]] = None
    top_folders: Optional[List[Dict[str, Any]]] = None
    raid_status: bool = True
    smart_status: bool = True
    filesystem_status: bool = True
    network_status: bool = True
    iowait_percent: Optional[float] = None
    summary: Optional[str] = None
    full_report: Optional[Any] = None


class FleetServer(BaseModel):
    """仪表盘服务器卡片"""
    id: int
    ip_address: str
    hostname: Optional[str] = None
    status: str = "active"
    description: Optional[str] = None
    last_update: Optional[str] = None
    cpu_usage: Optional[float] = None
    memory_usage: Optional[float] = None
    disk_usage: Optional[float] = None
    load_average: Optional[float] = None
    uptime: Optional[float] = None
    uptime_formatted: Optional[str] = None
    is_online: bool = False
    has_warning: bool = False
    is_error: bool = False
    error_message: Optional[str] = None


class RecentError(BaseModel):
    """近期错误样本"""
    id: int
    server_id: int
    timestamp: str
    error_message: Optional[str] = None
    cpu_usage: float
    memory_usage: float
    disk_usage: float
    ip_address: str
    hostname: Optional[str] = None


class StorageAlert(BaseModel):
    """存储告警汇总（每台服务器最新一份报告）"""
    id: int
    ip_address: str
    hostname: Optional[str] = None
    timestamp: str
    total_alerts: int = 0
    critical_alerts: int = 0
    warning_alerts: int = 0
    critical_disk_mount: Optional[str] = None
    critical_disk_usage: Optional[float] = None
    disks_over_threshold: Optional[List[Dict[str, Any]]] = None
    top_folders: Optional[List[Dict[str, Any]]] = None
    raid_status: bool = True
    smart_status: bool = True
    filesystem_status: bool = True
    network_status: bool = True
    iowait_percent: Optional[float] = None
    summary: Optional[str] = None


class FleetStats(BaseModel):
    """集群统计"""
    total_servers: int = 0
    servers_online: int = 0
    # 字段名沿用旧版前端，实际统计窗口为 25 小时
    errors_last_hour: int = 0
    avg_cpu: Optional[float] = None
    avg_memory: Optional[float] = None
    avg_disk: Optional[float] = None
    avg_performance: Optional[float] = None


class FleetSnapshot(BaseModel):
    """GET /api/dashboard 响应"""
    generated_at: str
    servers: List[FleetServer] = Field(default_factory=list)
    recent_errors: List[RecentError] = Field(default_factory=list)
    storage_alerts: List[StorageAlert] = Field(default_factory=list)
    stats: FleetStats = Field(default_factory=FleetStats)
