# 版本化部署编排系统 - 自定义异常类
"""部署异常定义"""

from typing import Any, Dict, List, Optional


class DeploymentError(Exception):
    """
    部署异常基类

    Attributes:
        code: 错误码
        message: 错误消息
        detail: 详细信息
    """
    code: str = "deployment_error"
    message: str = "部署失败"

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[str] = None,
        detail: Optional[Any] = None,
        errors: Optional[List[Dict]] = None
    ):
        self.message = message or self.message
        self.code = code or self.code
        self.detail = detail
        self.errors = errors
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        result = {
            "code": self.code,
            "message": self.message,
            "data": self.detail
        }
        if self.errors:
            result["errors"] = self.errors
        return result


class ValidationError(DeploymentError):
    """参数校验异常"""
    code = "validation_error"
    message = "参数校验失败"


class InvalidName(ValidationError):
    """函数名不合法"""
    code = "invalid_name"
    message = "Function name must contain only alphanumeric characters, hyphens, and underscores"


class InvalidParameter(ValidationError):
    """参数越界"""
    code = "invalid_parameter"
    message = "Invalid parameter"


class ArtifactTooLarge(DeploymentError):
    """代码包超过大小限制"""
    code = "artifact_too_large"
    message = "Function code size exceeds 50MB limit"

    def __init__(self, size: int = 0, limit: int = 50 * 1024 * 1024, **kwargs):
        self.size = size
        self.limit = limit
        super().__init__(
            message=f"Function code size exceeds {limit // (1024 * 1024)}MB limit",
            detail={"size": size, "limit": limit},
            **kwargs
        )


class EmptyArtifact(DeploymentError):
    """代码包为空"""
    code = "empty_artifact"
    message = "Function code cannot be empty"


class PublishError(DeploymentError):
    """发布版本失败"""
    code = "publish_error"
    message = "发布版本失败"


class AliasError(DeploymentError):
    """别名操作失败"""
    code = "alias_error"
    message = "别名操作失败"


class AliasNotFound(AliasError):
    """别名不存在"""
    code = "alias_not_found"

    def __init__(self, unit: str = "", alias: str = "", **kwargs):
        self.unit = unit
        self.alias = alias
        super().__init__(message=f"Alias {alias} not found for function {unit}", **kwargs)


class AliasConflict(AliasError):
    """别名已存在"""
    code = "alias_conflict"

    def __init__(self, unit: str = "", alias: str = "", **kwargs):
        self.unit = unit
        self.alias = alias
        super().__init__(message=f"Alias {alias} already exists for function {unit}", **kwargs)


class TrafficShiftError(DeploymentError):
    """流量权重写入失败"""
    code = "traffic_shift_error"
    message = "流量权重写入失败"


class SchedulingError(DeploymentError):
    """自动晋升调度失败"""
    code = "scheduling_error"
    message = "自动晋升调度失败"


class PromotionFailed(DeploymentError):
    """金丝雀晋升失败"""
    code = "promotion_failed"

    def __init__(self, attempts: int = 3, **kwargs):
        self.attempts = attempts
        super().__init__(
            message=f"Canary promotion failed after {attempts} attempts",
            detail={"attempts": attempts},
            **kwargs
        )


class HistoryLookupError(DeploymentError):
    """部署历史查询失败"""
    code = "history_lookup_error"
    message = "Failed to get deployment history"


class AccountResolutionError(DeploymentError):
    """账号ID解析失败"""
    code = "account_resolution_error"
    message = "Unable to determine AWS account ID"
