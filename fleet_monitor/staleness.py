"""
数据新鲜度判定

服务器在线状态不落库，也没有心跳协议，完全由"当前时间 - 最新快照时间"推导。
采集节奏是每晚一次，所以窗口是 25 小时：窗口取 1 小时会让两次采集之间的
所有服务器都显示为离线。
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Union

STALENESS_WINDOW = timedelta(hours=25)

# 与数据库中 strftime('%Y-%m-%dT%H:%M:%fZ', 'now') 的格式一致（毫秒精度）
TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

Timestamp = Union[str, datetime]


def parse_ts(value: Timestamp) -> datetime:
    """解析 ISO 8601 UTC 时间戳，返回带时区的 datetime"""
    if isinstance(value, datetime):
        dt = value
    else:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text.replace(" ", "T"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_ts(value: datetime) -> str:
    """格式化为数据库使用的时间戳字符串"""
    value = parse_ts(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def window_start(now: Timestamp, window: timedelta = STALENESS_WINDOW) -> str:
    """窗口起点（不含），用于 SQL 中 timestamp > ? 的绑定参数"""
    return format_ts(parse_ts(now) - window)


def is_fresh(
    ts: Optional[Timestamp],
    now: Timestamp,
    window: timedelta = STALENESS_WINDOW,
) -> bool:
    """时间戳存在且 now - ts < window"""
    if ts is None:
        return False
    return parse_ts(now) - parse_ts(ts) < window


def is_online(metrics_ts: Optional[Timestamp], now: Timestamp) -> bool:
    """单台服务器是否在线：只看指标快照"""
    return is_fresh(metrics_ts, now)


def counts_as_online(
    metrics_ts: Optional[Timestamp],
    storage_ts: Optional[Timestamp],
    now: Timestamp,
) -> bool:
    """集群在线统计：指标快照或存储快照任一新鲜即计入"""
    return is_fresh(metrics_ts, now) or is_fresh(storage_ts, now)
