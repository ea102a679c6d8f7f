# 版本化部署编排系统 - 版本发布
"""上传代码、更新配置并发布不可变版本"""

import time
from datetime import datetime, timezone
from typing import Optional

import structlog

from .collaborators import MetricsSink, UnitRegistry
from .exceptions import ArtifactTooLarge, DeploymentError, EmptyArtifact, PublishError
from .models import ConfigUpdate, DeploymentMetrics, DeploymentResult, DeploymentState

logger = structlog.get_logger()

DEFAULT_MAX_ARTIFACT_BYTES = 50 * 1024 * 1024


def default_description(now: Optional[datetime] = None) -> str:
    """默认版本描述：ISO-8601 时间戳"""
    return f"Deployment at {(now or datetime.now(timezone.utc)).isoformat()}"


class VersionPublisher:
    """版本发布器

    每一步都是一次外部调用，本层不做重试。
    """

    def __init__(
        self,
        registry: UnitRegistry,
        metrics: Optional[MetricsSink] = None,
        max_artifact_bytes: int = DEFAULT_MAX_ARTIFACT_BYTES,
        metrics_namespace: str = "AWS/Lambda/Deployment",
    ):
        self.registry = registry
        self.metrics = metrics
        self.max_artifact_bytes = max_artifact_bytes
        self.metrics_namespace = metrics_namespace

    def check_artifact(self, artifact: bytes) -> None:
        """本地校验代码包，不产生任何外部调用"""
        if not isinstance(artifact, (bytes, bytearray, memoryview)):
            raise TypeError(f"artifact must be bytes, got {type(artifact).__name__}")
        if len(artifact) == 0:
            raise EmptyArtifact()
        if len(artifact) > self.max_artifact_bytes:
            raise ArtifactTooLarge(size=len(artifact), limit=self.max_artifact_bytes)

    async def publish(
        self,
        unit: str,
        artifact: bytes,
        config_update: Optional[ConfigUpdate] = None,
        description: Optional[str] = None,
        result: Optional[DeploymentResult] = None,
    ) -> DeploymentResult:
        """
        发布新版本

        Args:
            unit: 函数名
            artifact: 代码包
            config_update: 配置增量，仅在至少包含一个字段时写入
            description: 版本描述，默认使用时间戳
            result: 需要继续推进状态的部署结果

        Returns:
            部署结果，失败时 success 为 False，不抛出异常
        """
        result = result or DeploymentResult(success=False)
        start = time.monotonic()
        size = len(artifact) if isinstance(artifact, (bytes, bytearray, memoryview)) else 0

        def elapsed_metrics() -> DeploymentMetrics:
            return DeploymentMetrics(
                deployment_time_ms=int((time.monotonic() - start) * 1000),
                artifact_size_bytes=size,
            )

        try:
            self.check_artifact(artifact)
        except DeploymentError as e:
            logger.warning("代码包校验失败", unit=unit, size=size, error=e.message)
            result.metrics = elapsed_metrics()
            return result.fail(e.message)

        result.transition(DeploymentState.PUBLISHING)
        log = logger.bind(unit=unit, size=size)

        try:
            await self.registry.update_code(unit, bytes(artifact))

            if config_update is not None and not config_update.is_empty():
                await self.registry.update_config(unit, config_update)

            version = await self.registry.publish_version(
                unit, description or default_description()
            )
        except Exception as e:
            error = PublishError(message=str(e) or e.__class__.__name__)
            log.error("发布版本失败", error=error.message)
            result.metrics = elapsed_metrics()
            return result.fail(error.message)

        result.metrics = elapsed_metrics()
        result.success = True
        result.version = str(version)
        result.transition(DeploymentState.VERSIONED)

        log.info(
            "发布版本成功",
            version=result.version,
            deployment_time_ms=result.metrics.deployment_time_ms
        )

        await self.track_metrics(unit, result.metrics)
        return result

    async def track_metrics(self, unit: str, metrics: DeploymentMetrics) -> None:
        """上报部署指标，失败忽略"""
        if self.metrics is None:
            return

        dimensions = {"FunctionName": unit}
        try:
            await self.metrics.emit(
                self.metrics_namespace, "DeploymentTime",
                metrics.deployment_time_ms, "Milliseconds", dimensions
            )
            await self.metrics.emit(
                self.metrics_namespace, "FunctionSize",
                metrics.artifact_size_bytes, "Bytes", dimensions
            )
        except Exception as e:
            logger.warning("部署指标上报失败", unit=unit, error=str(e))
