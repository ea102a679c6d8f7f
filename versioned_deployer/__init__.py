# 版本化部署编排系统
"""函数版本发布、别名管理、蓝绿与金丝雀发布、回滚"""

from .aliases import AliasAction, AliasManager
from .config import Settings, get_settings
from .exceptions import (
    DeploymentError,
    ValidationError,
    InvalidName,
    InvalidParameter,
    ArtifactTooLarge,
    EmptyArtifact,
    PublishError,
    AliasError,
    AliasNotFound,
    AliasConflict,
    TrafficShiftError,
    SchedulingError,
    PromotionFailed,
    HistoryLookupError,
    AccountResolutionError,
)
from .models import (
    CanaryConfig,
    ConfigUpdate,
    DeployableUnit,
    DeploymentConfig,
    DeploymentHistory,
    DeploymentMetrics,
    DeploymentResult,
    DeploymentState,
    EvaluationCriteria,
    Outcome,
    PromotionResult,
    PromotionTask,
    TrafficWeights,
)
from .orchestrator import DeploymentOrchestrator
from .promotion import PromotionScheduler
from .publisher import VersionPublisher
from .rollback import RollbackManager
from .traffic import TrafficSplitter
from .validators import (
    ValidationResult,
    validate_unit_name,
    validate_version_token,
    validate_canary_params,
)

__version__ = "1.0.0"

__all__ = [
    # 编排
    "DeploymentOrchestrator",
    "VersionPublisher",
    "AliasManager",
    "AliasAction",
    "TrafficSplitter",
    "PromotionScheduler",
    "RollbackManager",
    # 配置
    "Settings",
    "get_settings",
    # 模型
    "CanaryConfig",
    "ConfigUpdate",
    "DeployableUnit",
    "DeploymentConfig",
    "DeploymentHistory",
    "DeploymentMetrics",
    "DeploymentResult",
    "DeploymentState",
    "EvaluationCriteria",
    "Outcome",
    "PromotionResult",
    "PromotionTask",
    "TrafficWeights",
    # 校验
    "ValidationResult",
    "validate_unit_name",
    "validate_version_token",
    "validate_canary_params",
    # 异常
    "DeploymentError",
    "ValidationError",
    "InvalidName",
    "InvalidParameter",
    "ArtifactTooLarge",
    "EmptyArtifact",
    "PublishError",
    "AliasError",
    "AliasNotFound",
    "AliasConflict",
    "TrafficShiftError",
    "SchedulingError",
    "PromotionFailed",
    "HistoryLookupError",
    "AccountResolutionError",
]
