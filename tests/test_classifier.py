"""
单元测试：阈值分类器

测试覆盖：
- 阈值边界（>= 95 为临界）
- 多个故障同时出现时的顺序和拼接
- 负载只在提供时检查
- 显式错误信息优先
"""

from fleet_monitor.classifier import classify, resolve_error_message


class TestClassify:
    """阈值判定测试"""

    def test_below_thresholds(self):
        """测试：全部正常时无故障"""
        assert classify(50.0, 60.0, 70.0, 1.5) == []

    def test_cpu_boundary(self):
        """测试：CPU 94.9 不触发，95.0 触发"""
        assert classify(94.9, 10.0, 10.0) == []
        assert classify(95.0, 10.0, 10.0) == ["CPU crítica: 95.0%"]

    def test_memory_and_disk(self):
        """测试：内存和磁盘文案"""
        assert classify(10.0, 99.5, 10.0) == ["Memória crítica: 99.5%"]
        assert classify(10.0, 10.0, 95.0) == ["Disco crítico: 95.0%"]

    def test_load_average(self):
        """测试：负载阈值 8，保留两位小数"""
        assert classify(10.0, 10.0, 10.0, 7.99) == []
        assert classify(10.0, 10.0, 10.0, 8.0) == ["Load alto: 8.00"]

    def test_load_not_supplied(self):
        """测试：未提供负载时不检查"""
        assert classify(10.0, 10.0, 10.0, None) == []

    def test_order_cpu_memory_disk_load(self):
        """测试：多个故障按 CPU、内存、磁盘、负载排序"""
        faults = classify(100.0, 96.0, 97.3, 12.5)
        assert faults == [
            "CPU crítica: 100.0%",
            "Memória crítica: 96.0%",
            "Disco crítico: 97.3%",
            "Load alto: 12.50",
        ]

    def test_pure_function(self):
        """测试：同一输入两次调用结果一致"""
        assert classify(97.0, 50.0, 96.0, 9.0) == classify(97.0, 50.0, 96.0, 9.0)


class TestResolveErrorMessage:
    """最终错误信息测试"""

    def test_explicit_message_wins(self):
        """测试：调用方提供的信息优先于自动判定"""
        assert resolve_error_message("disk offline", ["CPU crítica: 99.0%"]) == "disk offline"

    def test_joined_faults(self):
        """测试：多个故障用 | 拼接"""
        message = resolve_error_message(None, ["CPU crítica: 99.0%", "Load alto: 9.00"])
        assert message == "CPU crítica: 99.0% | Load alto: 9.00"

    def test_empty_explicit_message_ignored(self):
        """测试：空字符串视为未提供"""
        assert resolve_error_message("", ["Disco crítico: 98.0%"]) == "Disco crítico: 98.0%"

    def test_nothing(self):
        """测试：无信息无故障时为 None"""
        assert resolve_error_message(None, []) is None
