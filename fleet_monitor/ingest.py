"""
数据接收

- record_health_sample: 校验 -> 阈值判定 -> 追加样本并覆盖当前快照
- record_storage_report: 校验 -> 追加存储报告并覆盖当前存储快照

校验失败抛出 ValidationError（不产生任何写入），存储失败抛出 InternalError
（事务回滚，不会出现"样本已写入但快照未更新"的中间状态）。
"""

import logging
from typing import Any, Dict, List, Type, TypeVar

import pydantic

from .classifier import classify, resolve_error_message
from .database import Database
from .errors import ValidationError
from .models import HealthSamplePayload, IngestResult, StorageReportPayload

logger = logging.getLogger(__name__)

PayloadT = TypeVar("PayloadT", bound=pydantic.BaseModel)


def _format_errors(exc: pydantic.ValidationError) -> List[str]:
    """把 pydantic 的错误列表转换为 "字段: 原因" 形式，保留全部违规项"""
    messages = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ())) or "payload"
        msg = err.get("msg", "invalid value")
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        messages.append(f"{field}: {msg}")
    return messages


def parse_payload(model: Type[PayloadT], payload: Any) -> PayloadT:
    """按模型校验载荷，失败时抛出包含所有违规字段的 ValidationError"""
    try:
        return model.model_validate(payload)
    except pydantic.ValidationError as e:
        raise ValidationError(_format_errors(e)) from e


def record_health_sample(db: Database, payload: Dict[str, Any]) -> IngestResult:
    """
    记录一条健康指标样本

    Args:
        db: 数据库实例
        payload: Agent 上报的原始 JSON 对象

    Returns:
        IngestResult(id, timestamp, server_id)

    Raises:
        ValidationError: 地址为空或 CPU/内存/磁盘不是 0-100 的数字
        InternalError: 存储失败
    """
    try:
        sample = parse_payload(HealthSamplePayload, payload)
    except ValidationError as e:
        logger.info(f"Rejected health sample: {e.errors}")
        raise

    faults = classify(
        sample.cpu_usage,
        sample.memory_usage,
        sample.disk_usage,
        sample.load_average,
    )
    error_message = resolve_error_message(sample.error_message, faults)

    metrics = sample.model_dump(exclude={"server_ip"})
    metrics["error_message"] = error_message
    metrics["is_error"] = bool(error_message)

    stored = db.insert_health_sample(sample.server_ip, metrics, raw_data=payload)
    result = IngestResult(**stored)

    if error_message:
        logger.warning(
            f"Error sample {result.id} from {sample.server_ip} (server {result.server_id}): {error_message}"
        )
    else:
        logger.info(f"Stored health sample {result.id} from {sample.server_ip} (server {result.server_id})")
    return result


def record_storage_report(db: Database, payload: Dict[str, Any]) -> IngestResult:
    """
    记录一份存储健康报告

    未提供的计数默认为 0，健康标志只有显式传 false 时才记为异常。
    严重程度完全由告警计数体现，这里不合成错误信息。

    Raises:
        ValidationError: 地址为空或字段类型不合法
        InternalError: 存储失败
    """
    try:
        report = parse_payload(StorageReportPayload, payload)
    except ValidationError as e:
        logger.info(f"Rejected storage report: {e.errors}")
        raise

    fields = report.model_dump(exclude={"server_ip"})
    for flag in ("raid_status", "smart_status", "filesystem_status", "network_status"):
        fields[flag] = fields[flag] is not False

    stored = db.insert_storage_report(report.server_ip, fields)
    result = IngestResult(**stored)

    logger.info(
        f"Stored storage report {result.id} from {report.server_ip} (server {result.server_id}): "
        f"{report.critical_alerts} critical / {report.total_alerts} total alerts"
    )
    return result
