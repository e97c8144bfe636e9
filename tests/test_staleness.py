"""
单元测试：数据新鲜度判定
"""

from datetime import datetime, timedelta, timezone

from fleet_monitor.staleness import (
    STALENESS_WINDOW, counts_as_online, format_ts, is_fresh, is_online, parse_ts, window_start,
)

NOW = datetime(2026, 3, 10, 4, 30, 0, tzinfo=timezone.utc)


def ts_before(delta: timedelta) -> str:
    return format_ts(NOW - delta)


class TestStaleness:
    """在线判定测试"""

    def test_window_is_25_hours(self):
        """测试：窗口固定为 25 小时"""
        assert STALENESS_WINDOW == timedelta(hours=25)

    def test_just_outside_window_is_offline(self):
        """测试：25 小时 1 秒前的快照为离线"""
        assert is_online(ts_before(timedelta(hours=25, seconds=1)), NOW) is False

    def test_just_inside_window_is_online(self):
        """测试：24 小时 59 分前的快照为在线"""
        assert is_online(ts_before(timedelta(hours=24, minutes=59)), NOW) is True

    def test_exactly_25_hours_is_offline(self):
        """测试：恰好 25 小时不算新鲜（严格小于）"""
        assert is_fresh(ts_before(timedelta(hours=25)), NOW) is False

    def test_no_snapshot_is_offline(self):
        """测试：没有快照即离线"""
        assert is_online(None, NOW) is False

    def test_fleet_online_uses_either_snapshot(self):
        """测试：集群在线统计中，指标或存储快照任一新鲜即可"""
        stale = ts_before(timedelta(hours=30))
        fresh = ts_before(timedelta(hours=2))
        assert counts_as_online(stale, fresh, NOW) is True
        assert counts_as_online(fresh, None, NOW) is True
        assert counts_as_online(None, fresh, NOW) is True
        assert counts_as_online(stale, stale, NOW) is False
        assert counts_as_online(None, None, NOW) is False


class TestTimestamps:
    """时间戳解析与格式化测试"""

    def test_roundtrip_store_format(self):
        """测试：数据库格式可以正确解析"""
        parsed = parse_ts("2026-03-10T04:30:00.123Z")
        assert parsed == datetime(2026, 3, 10, 4, 30, 0, 123000, tzinfo=timezone.utc)
        assert format_ts(parsed) == "2026-03-10T04:30:00.123Z"

    def test_naive_datetime_treated_as_utc(self):
        """测试：无时区的时间按 UTC 处理"""
        assert parse_ts(datetime(2026, 3, 10, 4, 30)) == NOW

    def test_window_start(self):
        """测试：窗口起点为 now - 25h"""
        assert window_start(NOW) == "2026-03-09T03:30:00.000Z"

    def test_window_start_sorts_lexically(self):
        """测试：格式化后的时间按字典序即时间序"""
        older = format_ts(NOW - timedelta(hours=26))
        newer = format_ts(NOW - timedelta(hours=24))
        assert older < window_start(NOW) < newer
