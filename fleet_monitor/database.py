"""
数据库操作抽象层

封装所有 SQLite 操作。每个请求使用独立的短连接：
- 写操作在 BEGIN IMMEDIATE 事务内完成（样本追加 + 快照覆盖为一个原子单元）
- 读操作在同一个读事务内完成，保证一次聚合看到一致的数据
- 所有时间戳由数据库时钟生成（UTC，毫秒精度），避免与 Agent 的时钟偏差
- sqlite3 异常统一记录日志后转换为 InternalError
"""

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from .errors import InternalError
from .staleness import window_start

logger = logging.getLogger(__name__)

NOW_SQL = "strftime('%Y-%m-%dT%H:%M:%fZ', 'now')"

SCHEMA = f"""
CREATE TABLE IF NOT EXISTS servers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    ip_address TEXT NOT NULL UNIQUE,
    hostname TEXT,
    description TEXT,
    status TEXT NOT NULL DEFAULT 'active',
    created_at TEXT NOT NULL DEFAULT ({NOW_SQL})
);

CREATE TABLE IF NOT EXISTS health_metrics (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    server_id INTEGER NOT NULL,
    timestamp TEXT NOT NULL,
    cpu_usage REAL NOT NULL,
    memory_usage REAL NOT NULL,
    memory_total REAL,
    memory_used REAL,
    disk_usage REAL NOT NULL,
    disk_total REAL,
    disk_used REAL,
    load_average REAL,
    uptime REAL,
    network_rx REAL,
    network_tx REAL,
    processes_total REAL,
    processes_running REAL,
    is_error INTEGER NOT NULL DEFAULT 0,
    error_message TEXT,
    raw_data TEXT,
    FOREIGN KEY (server_id) REFERENCES servers(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_health_metrics_server_ts ON health_metrics(server_id, timestamp);
CREATE INDEX IF NOT EXISTS idx_health_metrics_error_ts ON health_metrics(is_error, timestamp);

CREATE TABLE IF NOT EXISTS current_metrics (
    server_id INTEGER PRIMARY KEY,
    metric_id INTEGER NOT NULL,
    timestamp TEXT NOT NULL,
    cpu_usage REAL NOT NULL,
    memory_usage REAL NOT NULL,
    memory_total REAL,
    memory_used REAL,
    disk_usage REAL NOT NULL,
    disk_total REAL,
    disk_used REAL,
    load_average REAL,
    uptime REAL,
    network_rx REAL,
    network_tx REAL,
    processes_total REAL,
    processes_running REAL,
    is_error INTEGER NOT NULL DEFAULT 0,
    error_message TEXT,
    FOREIGN KEY (server_id) REFERENCES servers(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS storage_health (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    server_id INTEGER NOT NULL,
    timestamp TEXT NOT NULL,
    total_alerts INTEGER NOT NULL DEFAULT 0,
    critical_alerts INTEGER NOT NULL DEFAULT 0,
    warning_alerts INTEGER NOT NULL DEFAULT 0,
    critical_disk_mount TEXT,
    critical_disk_usage REAL,
    disks_over_threshold TEXT,
    top_folders TEXT,
    raid_status INTEGER NOT NULL DEFAULT 1,
    smart_status INTEGER NOT NULL DEFAULT 1,
    filesystem_status INTEGER NOT NULL DEFAULT 1,
    network_status INTEGER NOT NULL DEFAULT 1,
    iowait_percent REAL,
    summary TEXT,
    full_report TEXT,
    FOREIGN KEY (server_id) REFERENCES servers(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_storage_health_server_ts ON storage_health(server_id, timestamp);

CREATE TABLE IF NOT EXISTS current_storage_health (
    server_id INTEGER PRIMARY KEY,
    report_id INTEGER NOT NULL,
    timestamp TEXT NOT NULL,
    total_alerts INTEGER NOT NULL DEFAULT 0,
    critical_alerts INTEGER NOT NULL DEFAULT 0,
    warning_alerts INTEGER NOT NULL DEFAULT 0,
    critical_disk_mount TEXT,
    critical_disk_usage REAL,
    disks_over_threshold TEXT,
    top_folders TEXT,
    raid_status INTEGER NOT NULL DEFAULT 1,
    smart_status INTEGER NOT NULL DEFAULT 1,
    filesystem_status INTEGER NOT NULL DEFAULT 1,
    network_status INTEGER NOT NULL DEFAULT 1,
    iowait_percent REAL,
    summary TEXT,
    full_report TEXT,
    FOREIGN KEY (server_id) REFERENCES servers(id) ON DELETE CASCADE
);
"""

# 样本与快照共用的指标列
METRIC_COLUMNS = (
    "cpu_usage", "memory_usage", "memory_total", "memory_used",
    "disk_usage", "disk_total", "disk_used",
    "load_average", "uptime", "network_rx", "network_tx",
    "processes_total", "processes_running",
    "is_error", "error_message",
)

STORAGE_COLUMNS = (
    "total_alerts", "critical_alerts", "warning_alerts",
    "critical_disk_mount", "critical_disk_usage",
    "disks_over_threshold", "top_folders",
    "raid_status", "smart_status", "filesystem_status", "network_status",
    "iowait_percent", "summary", "full_report",
)

STORAGE_JSON_COLUMNS = ("disks_over_threshold", "top_folders", "full_report")
STORAGE_BOOL_COLUMNS = ("raid_status", "smart_status", "filesystem_status", "network_status")

METRIC_SELECT = ", ".join(METRIC_COLUMNS)
STORAGE_SELECT = ", ".join(STORAGE_COLUMNS)
STORAGE_ALERT_SELECT = ", ".join("csh." + c for c in STORAGE_COLUMNS if c != "full_report")


def default_hostname(address: str) -> str:
    """新服务器的默认名称：取地址最后一段，如 10.0.0.42 -> server-42"""
    return f"server-{address.split('.')[-1]}"


def _encode_json(value: Any) -> Optional[str]:
    return json.dumps(value) if value is not None else None


def _decode_json(value: Optional[str]) -> Any:
    if value is None:
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        logger.warning(f"Stored JSON column could not be decoded: {value[:80]!r}")
        return None


def _decode_metric_row(row: sqlite3.Row) -> Dict[str, Any]:
    data = dict(row)
    if "is_error" in data:
        data["is_error"] = bool(data["is_error"])
    if "raw_data" in data:
        data["raw_data"] = _decode_json(data["raw_data"])
    return data


def _decode_storage_row(row: sqlite3.Row) -> Dict[str, Any]:
    data = dict(row)
    for column in STORAGE_JSON_COLUMNS:
        if column in data:
            data[column] = _decode_json(data[column])
    for column in STORAGE_BOOL_COLUMNS:
        if column in data and data[column] is not None:
            data[column] = bool(data[column])
    return data


class Database:
    """数据库操作类"""

    def __init__(self, db_path: str, timeout: float = 10.0):
        """
        Args:
            db_path: 数据库文件路径
            timeout: 等待写锁的上限（秒），超时抛出 InternalError
        """
        self.db_path = Path(db_path)
        self.timeout = timeout

        # 确保目录存在
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def get_conn(self, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        """
        获取数据库连接并开启事务（上下文管理器）

        使用方式：
            with db.get_conn(immediate=True) as conn:
                conn.execute("INSERT ...")

        Args:
            immediate: 写事务使用 BEGIN IMMEDIATE，读事务使用普通 BEGIN
        """
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=self.timeout, isolation_level=None)
        except sqlite3.Error as e:
            logger.error(f"Database connection failed ({self.db_path}): {e}", exc_info=True)
            raise InternalError("database unavailable") from e

        conn.row_factory = sqlite3.Row
        try:
            # 启用外键约束
            conn.execute("PRAGMA foreign_keys = ON")
            conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
            yield conn
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            if conn.in_transaction:
                conn.rollback()
            logger.error(f"Database error: {e}", exc_info=True)
            raise InternalError("database operation failed") from e
        except Exception:
            if conn.in_transaction:
                conn.rollback()
            raise
        finally:
            conn.close()

    # =========================================================================
    # 生命周期
    # =========================================================================

    def init_schema(self):
        """创建表结构（幂等）"""
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=self.timeout, isolation_level=None)
            try:
                conn.execute("PRAGMA journal_mode = WAL")
                conn.executescript(SCHEMA)
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.error(f"Schema initialization failed: {e}", exc_info=True)
            raise InternalError("database unavailable") from e
        logger.info(f"Database schema ready: {self.db_path}")

    def ping(self) -> str:
        """健康检查，返回数据库当前时间"""
        with self.get_conn() as conn:
            return self.store_now(conn)

    @staticmethod
    def store_now(conn: sqlite3.Connection) -> str:
        """数据库时钟的当前时间（所有时间窗口都以它为准）"""
        return conn.execute(f"SELECT {NOW_SQL} AS now").fetchone()["now"]

    # =========================================================================
    # 服务器注册表
    # =========================================================================

    @staticmethod
    def resolve_server_id(conn: sqlite3.Connection, address: str) -> int:
        """
        按地址查找服务器，不存在则创建

        依赖 ip_address 的唯一约束 + ON CONFLICT DO NOTHING，
        多个进程同时首次写入同一地址也只会产生一行。
        """
        conn.execute(
            """
            INSERT INTO servers (ip_address, hostname) VALUES (?, ?)
            ON CONFLICT(ip_address) DO NOTHING
            """,
            (address, default_hostname(address)),
        )
        row = conn.execute(
            "SELECT id FROM servers WHERE ip_address = ?", (address,)
        ).fetchone()
        return row["id"]

    def get_server_by_id(self, server_id: int) -> Optional[Dict[str, Any]]:
        """根据 ID 获取服务器"""
        with self.get_conn() as conn:
            row = conn.execute(
                """
                SELECT id, ip_address, hostname, description, status, created_at
                FROM servers
                WHERE id = ?
                """,
                (server_id,),
            ).fetchone()
            return dict(row) if row else None

    def list_servers_with_counts(self) -> List[Dict[str, Any]]:
        """所有服务器及样本统计"""
        with self.get_conn() as conn:
            cursor = conn.execute("""
                SELECT
                    s.id, s.ip_address, s.hostname, s.description, s.status, s.created_at,
                    COUNT(hm.id) AS total_metrics,
                    COALESCE(SUM(CASE WHEN hm.is_error = 1 THEN 1 ELSE 0 END), 0) AS total_errors,
                    MAX(hm.timestamp) AS last_metric
                FROM servers s
                LEFT JOIN health_metrics hm ON hm.server_id = s.id
                GROUP BY s.id
                ORDER BY s.ip_address
            """)
            return [dict(row) for row in cursor.fetchall()]

    # =========================================================================
    # 健康指标写入
    # =========================================================================

    def insert_health_sample(
        self,
        address: str,
        metrics: Dict[str, Any],
        raw_data: Any,
    ) -> Dict[str, Any]:
        """
        追加一条健康样本并覆盖该服务器的当前快照（同一事务）

        Args:
            address: 服务器地址
            metrics: METRIC_COLUMNS 中各列的值
            raw_data: 原始载荷，原样序列化保存

        Returns:
            {id, timestamp, server_id}
        """
        values = [metrics.get(column) for column in METRIC_COLUMNS]
        values[METRIC_COLUMNS.index("is_error")] = 1 if metrics.get("is_error") else 0
        columns = ", ".join(METRIC_COLUMNS)
        placeholders = ", ".join("?" for _ in METRIC_COLUMNS)
        updates = ", ".join(f"{c} = excluded.{c}" for c in ("metric_id", "timestamp") + METRIC_COLUMNS)

        with self.get_conn(immediate=True) as conn:
            server_id = self.resolve_server_id(conn, address)
            ts = self.store_now(conn)

            cursor = conn.execute(
                f"""
                INSERT INTO health_metrics (server_id, timestamp, {columns}, raw_data)
                VALUES (?, ?, {placeholders}, ?)
                """,
                [server_id, ts] + values + [_encode_json(raw_data)],
            )
            sample_id = cursor.lastrowid

            conn.execute(
                f"""
                INSERT INTO current_metrics (server_id, metric_id, timestamp, {columns})
                VALUES (?, ?, ?, {placeholders})
                ON CONFLICT(server_id) DO UPDATE SET {updates}
                WHERE excluded.timestamp >= current_metrics.timestamp
                """,
                [server_id, sample_id, ts] + values,
            )

        return {"id": sample_id, "timestamp": ts, "server_id": server_id}

    # =========================================================================
    # 存储健康写入
    # =========================================================================

    def insert_storage_report(self, address: str, report: Dict[str, Any]) -> Dict[str, Any]:
        """
        追加一份存储健康报告并覆盖该服务器的当前存储快照（同一事务）

        Returns:
            {id, timestamp, server_id}
        """
        values = []
        for column in STORAGE_COLUMNS:
            value = report.get(column)
            if column in STORAGE_JSON_COLUMNS:
                value = _encode_json(value)
            elif column in STORAGE_BOOL_COLUMNS:
                value = 1 if value else 0
            values.append(value)
        columns = ", ".join(STORAGE_COLUMNS)
        placeholders = ", ".join("?" for _ in STORAGE_COLUMNS)
        updates = ", ".join(f"{c} = excluded.{c}" for c in ("report_id", "timestamp") + STORAGE_COLUMNS)

        with self.get_conn(immediate=True) as conn:
            server_id = self.resolve_server_id(conn, address)
            ts = self.store_now(conn)

            cursor = conn.execute(
                f"""
                INSERT INTO storage_health (server_id, timestamp, {columns})
                VALUES (?, ?, {placeholders})
                """,
                [server_id, ts] + values,
            )
            report_id = cursor.lastrowid

            conn.execute(
                f"""
                INSERT INTO current_storage_health (server_id, report_id, timestamp, {columns})
                VALUES (?, ?, ?, {placeholders})
                ON CONFLICT(server_id) DO UPDATE SET {updates}
                WHERE excluded.timestamp >= current_storage_health.timestamp
                """,
                [server_id, report_id, ts] + values,
            )

        return {"id": report_id, "timestamp": ts, "server_id": server_id}

    # =========================================================================
    # 查询
    # =========================================================================

    def read_fleet(self, recent_errors_limit: int = 50) -> Dict[str, Any]:
        """
        在一个读事务内读取仪表盘所需的全部原始数据

        Returns:
            {
                "now": 数据库当前时间,
                "servers": 服务器 + 当前指标快照 + 存储快照时间（外连接）,
                "recent_errors": 25 小时内的错误样本（新到旧）,
                "error_count": 25 小时内错误样本总数,
                "storage_alerts": 有存储快照的服务器（最严重的在前）,
            }
        """
        with self.get_conn() as conn:
            now = self.store_now(conn)
            since = window_start(now)

            servers = conn.execute("""
                SELECT
                    s.id, s.ip_address, s.hostname, s.status, s.description,
                    cm.timestamp AS last_update,
                    cm.cpu_usage, cm.memory_usage, cm.disk_usage,
                    cm.load_average, cm.uptime,
                    csh.timestamp AS storage_update
                FROM servers s
                LEFT JOIN current_metrics cm ON cm.server_id = s.id
                LEFT JOIN current_storage_health csh ON csh.server_id = s.id
                ORDER BY s.ip_address
            """).fetchall()

            recent_errors = conn.execute("""
                SELECT
                    hm.id, hm.server_id, hm.timestamp, hm.error_message,
                    hm.cpu_usage, hm.memory_usage, hm.disk_usage,
                    s.ip_address, s.hostname
                FROM health_metrics hm
                JOIN servers s ON s.id = hm.server_id
                WHERE hm.is_error = 1 AND hm.timestamp > ?
                ORDER BY hm.timestamp DESC, hm.id DESC
                LIMIT ?
            """, (since, recent_errors_limit)).fetchall()

            error_count = conn.execute("""
                SELECT COUNT(*) AS n FROM health_metrics
                WHERE is_error = 1 AND timestamp > ?
            """, (since,)).fetchone()["n"]

            storage_alerts = conn.execute(f"""
                SELECT
                    s.id, s.ip_address, s.hostname, csh.timestamp,
                    {STORAGE_ALERT_SELECT}
                FROM servers s
                JOIN current_storage_health csh ON csh.server_id = s.id
                ORDER BY csh.critical_alerts DESC, csh.total_alerts DESC, s.ip_address ASC
            """).fetchall()

        return {
            "now": now,
            "servers": [dict(row) for row in servers],
            "recent_errors": [dict(row) for row in recent_errors],
            "error_count": error_count,
            "storage_alerts": [_decode_storage_row(row) for row in storage_alerts],
        }

    def query_history(self, server_id: int, hours: int) -> List[Dict[str, Any]]:
        """
        查询单台服务器最近 N 小时的样本（旧到新，适合直接画图）

        hours 由调用方校验为有界整数，以日期修饰符参数绑定，不拼接进 SQL。
        """
        with self.get_conn() as conn:
            cursor = conn.execute(f"""
                SELECT id, server_id, timestamp, {METRIC_SELECT}
                FROM health_metrics
                WHERE server_id = ?
                  AND timestamp > strftime('%Y-%m-%dT%H:%M:%fZ', 'now', ?)
                ORDER BY timestamp ASC, id ASC
            """, (server_id, f"-{int(hours)} hours"))
            return [_decode_metric_row(row) for row in cursor.fetchall()]

    def list_health_samples(self, server_id: int, limit: int = 50, offset: int = 0) -> List[Dict[str, Any]]:
        """分页查询原始样本（新到旧）"""
        with self.get_conn() as conn:
            cursor = conn.execute(f"""
                SELECT id, server_id, timestamp, {METRIC_SELECT}, raw_data
                FROM health_metrics
                WHERE server_id = ?
                ORDER BY timestamp DESC, id DESC
                LIMIT ? OFFSET ?
            """, (server_id, limit, offset))
            return [_decode_metric_row(row) for row in cursor.fetchall()]

    def list_storage_reports(self, server_id: int, limit: int = 10) -> List[Dict[str, Any]]:
        """查询存储报告历史（新到旧）"""
        with self.get_conn() as conn:
            cursor = conn.execute(f"""
                SELECT id, server_id, timestamp, {STORAGE_SELECT}
                FROM storage_health
                WHERE server_id = ?
                ORDER BY timestamp DESC, id DESC
                LIMIT ?
            """, (server_id, limit))
            return [_decode_storage_row(row) for row in cursor.fetchall()]
