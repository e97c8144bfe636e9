"""
异常定义

- ValidationError: 输入数据不合法（调用方可修正，不重试）
- InternalError: 存储层故障（对外不透明，内部记录完整日志）
- NotFoundError: 查询的服务器不存在
"""

from typing import List, Optional


class FleetMonitorError(Exception):
    """所有业务异常的基类"""


class ValidationError(FleetMonitorError):
    """
    输入校验失败

    errors 包含全部违规字段，每项形如 "cpu_usage: must be a number between 0 and 100"。
    """

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "invalid payload")


class InternalError(FleetMonitorError):
    """存储不可用、事务失败或超时"""

    def __init__(self, message: str = "storage operation failed"):
        super().__init__(message)


class NotFoundError(FleetMonitorError):
    """资源不存在"""

    def __init__(self, resource: str, key: Optional[object] = None):
        self.resource = resource
        self.key = key
        message = f"{resource} {key} not found" if key is not None else f"{resource} not found"
        super().__init__(message)
