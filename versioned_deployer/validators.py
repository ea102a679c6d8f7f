# 版本化部署编排系统 - 参数校验
"""发布前的纯函数校验，不产生任何外部调用"""

import re
from dataclasses import dataclass
from typing import Optional, Union

from .exceptions import InvalidName, InvalidParameter, ValidationError

UNIT_NAME_PATTERN = re.compile(r'[A-Za-z0-9_-]+')
VERSION_TOKEN_PATTERN = re.compile(r'[0-9]+')
MAX_UNIT_NAME_LENGTH = 64

Number = Union[int, float]


@dataclass
class ValidationResult:
    """验证结果"""
    is_valid: bool
    message: str = ""
    details: Optional[dict] = None


def validate_unit_name(name: str) -> ValidationResult:
    """
    验证函数名

    Args:
        name: 函数名

    Returns:
        验证结果
    """
    if not name or not isinstance(name, str):
        return ValidationResult(
            False,
            "Function name must contain only alphanumeric characters, hyphens, and underscores"
        )

    if len(name) > MAX_UNIT_NAME_LENGTH:
        return ValidationResult(False, "Function name must be 64 characters or less")

    if not UNIT_NAME_PATTERN.fullmatch(name):
        return ValidationResult(
            False,
            "Function name must contain only alphanumeric characters, hyphens, and underscores"
        )

    return ValidationResult(True)


def validate_version_token(token: str) -> ValidationResult:
    """验证版本号，必须为纯数字字符串"""
    if not token or not isinstance(token, str) or not VERSION_TOKEN_PATTERN.fullmatch(token):
        return ValidationResult(False, "Invalid target version: must be a positive integer")
    return ValidationResult(True)


def _in_range(value: Number, low: Number, high: Optional[Number] = None) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    if value != value:  # NaN
        return False
    if value < low:
        return False
    return high is None or value <= high


def validate_canary_params(
    traffic_percent: Number,
    duration_minutes: Number,
    error_rate_threshold: Number,
    latency_threshold: Number,
) -> ValidationResult:
    """
    验证金丝雀发布参数

    Args:
        traffic_percent: 金丝雀流量百分比 [1, 100]
        duration_minutes: 自动晋升前的观察时长（分钟）[1, 1440]
        error_rate_threshold: 错误率阈值 [0, 1]
        latency_threshold: 延迟阈值，不能为负

    Returns:
        验证结果
    """
    if not _in_range(duration_minutes, 1, 1440):
        return ValidationResult(
            False,
            "Duration must be between 1 and 1440 minutes (24 hours)",
            {"field": "duration_minutes", "value": duration_minutes}
        )
    if not _in_range(traffic_percent, 1, 100):
        return ValidationResult(
            False,
            "Traffic percentage must be between 1 and 100",
            {"field": "traffic_percent", "value": traffic_percent}
        )
    if not _in_range(error_rate_threshold, 0, 1):
        return ValidationResult(
            False,
            "Error rate must be between 0 and 1",
            {"field": "error_rate_threshold", "value": error_rate_threshold}
        )
    if not _in_range(latency_threshold, 0):
        return ValidationResult(
            False,
            "Latency must be positive",
            {"field": "latency_threshold", "value": latency_threshold}
        )
    return ValidationResult(True)


def ensure_valid(result: ValidationResult, error_cls: type = ValidationError) -> None:
    """校验失败时抛出对应异常"""
    if not result.is_valid:
        raise error_cls(message=result.message, detail=result.details)


def check_unit_name(name: str) -> None:
    ensure_valid(validate_unit_name(name), InvalidName)


def check_version_token(token: str) -> None:
    ensure_valid(validate_version_token(token), InvalidParameter)


def check_canary_params(
    traffic_percent: Number,
    duration_minutes: Number,
    error_rate_threshold: Number,
    latency_threshold: Number,
) -> None:
    ensure_valid(
        validate_canary_params(
            traffic_percent, duration_minutes, error_rate_threshold, latency_threshold
        ),
        InvalidParameter,
    )
