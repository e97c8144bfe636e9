"""
阈值分类器

根据固定的临界阈值，从一条样本推导出自动错误描述。纯函数，无状态、无 I/O。
"""

from typing import List, Optional

CPU_CRITICAL_PCT = 95.0
MEMORY_CRITICAL_PCT = 95.0
DISK_CRITICAL_PCT = 95.0
LOAD_CRITICAL = 8.0

FAULT_SEPARATOR = " | "


def classify(
    cpu_usage: float,
    memory_usage: float,
    disk_usage: float,
    load_average: Optional[float] = None,
) -> List[str]:
    """
    返回触发的故障描述列表

    顺序固定为 CPU、内存、磁盘、负载；负载仅在提供时检查。
    所有阈值均为闭区间（>=）。
    """
    faults = []
    if cpu_usage >= CPU_CRITICAL_PCT:
        faults.append(f"CPU crítica: {cpu_usage:.1f}%")
    if memory_usage >= MEMORY_CRITICAL_PCT:
        faults.append(f"Memória crítica: {memory_usage:.1f}%")
    if disk_usage >= DISK_CRITICAL_PCT:
        faults.append(f"Disco crítico: {disk_usage:.1f}%")
    if load_average is not None and load_average >= LOAD_CRITICAL:
        faults.append(f"Load alto: {load_average:.2f}")
    return faults


def resolve_error_message(
    explicit_message: Optional[str],
    faults: List[str],
) -> Optional[str]:
    """调用方提供的错误信息优先，否则拼接自动检测结果，都没有则为 None"""
    if explicit_message:
        return explicit_message
    if faults:
        return FAULT_SEPARATOR.join(faults)
    return None
