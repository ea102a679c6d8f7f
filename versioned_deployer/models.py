# 版本化部署编排系统 - 数据模型
"""部署配置、结果与状态"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class DeploymentState(str, Enum):
    """部署状态"""
    VALIDATING = "validating"
    PUBLISHING = "publishing"
    VERSIONED = "versioned"
    ALIASING = "aliasing"
    LIVE = "live"                          # 蓝绿发布完成
    CANARY_ACTIVE = "canary_active"        # 金丝雀生效，等待晋升
    SCHEDULED_PROMOTION = "scheduled_promotion"
    PROMOTED = "promoted"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"


@dataclass
class ConfigUpdate:
    """可变运行配置增量"""
    timeout: Optional[int] = None
    memory_size: Optional[int] = None
    environment: Optional[Dict[str, str]] = None

    def is_empty(self) -> bool:
        return self.timeout is None and self.memory_size is None and self.environment is None


@dataclass
class DeployableUnit:
    """可部署函数的元数据"""
    name: str
    code_size: int = 0
    timeout: int = 3
    memory_size: int = 128
    environment: Dict[str, str] = field(default_factory=dict)


@dataclass
class DeploymentConfig:
    """版本发布配置"""
    function_name: str
    code: bytes
    description: Optional[str] = None
    environment: Optional[Dict[str, str]] = None
    timeout: Optional[int] = None
    memory_size: Optional[int] = None

    def config_update(self) -> Optional[ConfigUpdate]:
        """仅当至少提供了一个配置字段时返回增量"""
        update = ConfigUpdate(
            timeout=self.timeout,
            memory_size=self.memory_size,
            environment=self.environment,
        )
        return None if update.is_empty() else update


@dataclass
class EvaluationCriteria:
    """金丝雀评估标准"""
    error_rate: float = 0.01
    latency: float = 1000


@dataclass
class CanaryConfig:
    """金丝雀发布配置"""
    function_name: str
    traffic_percent: float
    duration: int  # 分钟
    evaluation_criteria: EvaluationCriteria = field(default_factory=EvaluationCriteria)


@dataclass
class DeploymentMetrics:
    """部署指标"""
    deployment_time_ms: int = 0
    artifact_size_bytes: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "deploymentTimeMs": self.deployment_time_ms,
            "artifactSizeBytes": self.artifact_size_bytes,
        }


@dataclass
class DeploymentResult:
    """部署结果，返回给调用方，不持久化"""
    success: bool
    version: Optional[str] = None
    alias: Optional[str] = None
    error: Optional[str] = None
    metrics: Optional[DeploymentMetrics] = None
    states: List[DeploymentState] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def state(self) -> Optional[DeploymentState]:
        return self.states[-1] if self.states else None

    def transition(self, state: DeploymentState) -> "DeploymentResult":
        self.states.append(state)
        return self

    def fail(self, error: str) -> "DeploymentResult":
        self.success = False
        self.error = error
        return self.transition(DeploymentState.FAILED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "version": self.version,
            "alias": self.alias,
            "error": self.error,
            "metrics": self.metrics.to_dict() if self.metrics else None,
            "state": self.state.value if self.state else None,
            "warnings": list(self.warnings),
        }


@dataclass
class Outcome:
    """尽力而为操作的结果，失败时携带告警而不是抛出"""
    ok: bool
    warning: Optional[str] = None

    @classmethod
    def success(cls) -> "Outcome":
        return cls(True)

    @classmethod
    def failure(cls, warning: str) -> "Outcome":
        return cls(False, warning)


@dataclass
class TrafficWeights:
    """金丝雀与线上别名之间的流量权重"""
    canary: float
    live: float
    canary_alias: str = "canary"
    live_alias: str = "live"

    @classmethod
    def from_percent(
        cls,
        canary_percent: float,
        canary_alias: str = "canary",
        live_alias: str = "live"
    ) -> "TrafficWeights":
        # live 由 1 - canary 得出，两者相加恰好为 1.0
        canary = canary_percent / 100
        return cls(
            canary=canary,
            live=1 - canary,
            canary_alias=canary_alias,
            live_alias=live_alias,
        )

    def as_mapping(self) -> Dict[str, float]:
        return {self.canary_alias: self.canary, self.live_alias: self.live}

    @property
    def total(self) -> float:
        return self.canary + self.live


@dataclass
class PromotionTask:
    """晋升任务描述

    调度器可能重复投递，消费方按 idempotency_key 去重并在晋升成功后注销 rule_name。
    """
    unit: str
    version: str
    fire_time: datetime
    idempotency_key: str
    rule_name: str = ""
    expression: str = ""

    def payload(self, timestamp: Optional[datetime] = None) -> Dict[str, str]:
        return {
            "action": "promoteCanary",
            "functionName": self.unit,
            "version": self.version,
            "timestamp": (timestamp or datetime.now(timezone.utc)).isoformat(),
            "idempotencyKey": self.idempotency_key,
            "ruleName": self.rule_name,
        }


@dataclass
class PromotionResult:
    """晋升结果"""
    success: bool
    version: str
    attempts: int
    error: Optional[str] = None

    @property
    def state(self) -> DeploymentState:
        return DeploymentState.PROMOTED if self.success else DeploymentState.FAILED


@dataclass
class DeploymentHistory:
    """部署历史"""
    versions: List[str]
    current_version: str
    live_version: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "versions": list(self.versions),
            "currentVersion": self.current_version,
            "liveVersion": self.live_version,
        }
