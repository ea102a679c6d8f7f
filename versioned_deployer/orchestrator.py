# 版本化部署编排系统 - 编排门面
"""版本发布、蓝绿发布、金丝雀发布、回滚与历史查询"""

import asyncio
import contextlib
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Optional

import structlog

from .aliases import AliasManager
from .collaborators import (
    AccountResolver,
    AliasDirectory,
    EventScheduler,
    MetricsSink,
    UnitRegistry,
)
from .config import Settings, get_settings
from .exceptions import DeploymentError, ValidationError
from .models import (
    CanaryConfig,
    DeploymentConfig,
    DeploymentHistory,
    DeploymentResult,
    DeploymentState,
    PromotionResult,
)
from .promotion import PROMOTE_ACTION, PromotionScheduler, Sleep
from .publisher import VersionPublisher
from .rollback import RollbackManager
from .traffic import TrafficSplitter
from .validators import check_canary_params, check_unit_name, check_version_token

logger = structlog.get_logger()

# 进程内记住的已消费晋升事件数
CONSUMED_KEYS_LIMIT = 1024


class DeploymentOrchestrator:
    """部署编排器

    每个公开工作流返回带成功标志的结果，不向调用方抛出部署异常。
    同一函数的并发调用默认后写者胜；开启 SERIALIZE_PER_UNIT 后按函数名串行执行。
    """

    def __init__(
        self,
        registry: UnitRegistry,
        aliases: AliasDirectory,
        scheduler: EventScheduler,
        metrics: Optional[MetricsSink] = None,
        settings: Optional[Settings] = None,
        account_id: Optional[str] = None,
        sleep: Optional[Sleep] = None,
    ):
        self.settings = settings or get_settings()
        self.account_id = account_id or self.settings.ACCOUNT_ID
        self.live_alias = self.settings.LIVE_ALIAS
        self.canary_alias = self.settings.CANARY_ALIAS

        self.registry = registry
        self.alias_manager = AliasManager(aliases)
        self.publisher = VersionPublisher(
            registry,
            metrics,
            max_artifact_bytes=self.settings.MAX_ARTIFACT_BYTES,
            metrics_namespace=self.settings.METRICS_NAMESPACE,
        )
        self.traffic = TrafficSplitter(
            registry,
            live_alias=self.live_alias,
            canary_alias=self.canary_alias,
        )
        self.promotion = PromotionScheduler(
            scheduler,
            self.alias_manager,
            live_alias=self.live_alias,
            max_attempts=self.settings.PROMOTION_MAX_ATTEMPTS,
            backoff_ms=self.settings.PROMOTION_BACKOFF_MS,
            target_for=self.promotion_target,
            sleep=sleep or asyncio.sleep,
        )
        self.rollback_manager = RollbackManager(
            registry,
            self.alias_manager,
            live_alias=self.live_alias,
        )

        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}
        self._consumed_keys: "OrderedDict[str, None]" = OrderedDict()

    @classmethod
    async def create(
        cls,
        registry: UnitRegistry,
        aliases: AliasDirectory,
        scheduler: EventScheduler,
        metrics: Optional[MetricsSink] = None,
        settings: Optional[Settings] = None,
        account_resolver: Optional[AccountResolver] = None,
        sleep: Optional[Sleep] = None,
    ) -> "DeploymentOrchestrator":
        """构造编排器，账号ID未配置时由解析器解析一次"""
        settings = settings or get_settings()
        account_id = settings.ACCOUNT_ID
        if not account_id and account_resolver is not None:
            account_id = await account_resolver.resolve()
            logger.info("已解析账号ID", region=settings.REGION)

        return cls(
            registry,
            aliases,
            scheduler,
            metrics=metrics,
            settings=settings,
            account_id=account_id,
            sleep=sleep,
        )

    def promotion_target(self, unit: str) -> str:
        """晋升事件的投递目标：函数自身"""
        if self.account_id:
            return f"arn:aws:lambda:{self.settings.REGION}:{self.account_id}:function:{unit}"
        return unit

    @contextlib.asynccontextmanager
    async def _unit_guard(self, unit: str) -> AsyncIterator[None]:
        if not self.settings.SERIALIZE_PER_UNIT:
            yield
            return

        # 最后一个持有或等待者退出时移除该函数的锁
        lock = self._locks.setdefault(unit, asyncio.Lock())
        self._lock_users[unit] = self._lock_users.get(unit, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[unit] -= 1
            if not self._lock_users[unit]:
                del self._lock_users[unit]
                del self._locks[unit]

    @staticmethod
    def _start() -> DeploymentResult:
        return DeploymentResult(success=False).transition(DeploymentState.VALIDATING)

    async def deploy_with_versioning(self, config: DeploymentConfig) -> DeploymentResult:
        """发布新版本"""
        result = self._start()
        try:
            check_unit_name(config.function_name)
        except ValidationError as e:
            return result.fail(e.message)

        async with self._unit_guard(config.function_name):
            return await self._publish(config, result)

    async def _publish(self, config: DeploymentConfig, result: DeploymentResult) -> DeploymentResult:
        return await self.publisher.publish(
            config.function_name,
            config.code,
            config_update=config.config_update(),
            description=config.description,
            result=result,
        )

    async def blue_green_deploy(self, config: DeploymentConfig) -> DeploymentResult:
        """
        蓝绿发布

        发布新版本后将线上别名切换过去。别名切换失败时新版本保持已发布但无人引用，
        不会自动回滚。
        """
        result = self._start()
        try:
            check_unit_name(config.function_name)
        except ValidationError as e:
            return result.fail(e.message)

        unit = config.function_name
        async with self._unit_guard(unit):
            result = await self._publish(config, result)
            if not result.success or not result.version:
                return result

            result.transition(DeploymentState.ALIASING)
            try:
                await self.alias_manager.upsert_alias(unit, self.live_alias, result.version)
            except DeploymentError as e:
                logger.error("蓝绿切换失败", unit=unit, version=result.version, error=e.message)
                return result.fail(e.message)

            result.alias = self.live_alias
            result.transition(DeploymentState.LIVE)
            logger.info("蓝绿发布完成", unit=unit, version=result.version)
            return result

    async def canary_deploy(self, config: CanaryConfig, code: bytes) -> DeploymentResult:
        """
        金丝雀发布

        顺序固定：发布版本、金丝雀别名、流量权重、调度晋升。
        流量权重与晋升调度失败只记为告警，不影响结果的成功标志。
        """
        result = self._start()
        try:
            check_unit_name(config.function_name)
            check_canary_params(
                config.traffic_percent,
                config.duration,
                config.evaluation_criteria.error_rate,
                config.evaluation_criteria.latency,
            )
        except ValidationError as e:
            return result.fail(e.message)

        unit = config.function_name
        log = logger.bind(unit=unit, traffic_percent=config.traffic_percent)

        async with self._unit_guard(unit):
            result = await self._publish(
                DeploymentConfig(
                    function_name=unit,
                    code=code,
                    description=f"Canary deployment - {datetime.now(timezone.utc).isoformat()}",
                ),
                result,
            )
            if not result.success or not result.version:
                return result

            version = result.version
            result.transition(DeploymentState.ALIASING)
            try:
                await self.alias_manager.upsert_alias(unit, self.canary_alias, version)
            except DeploymentError as e:
                log.error("金丝雀别名写入失败", version=version, error=e.message)
                return result.fail(e.message)
            result.alias = self.canary_alias

            shifted = await self.traffic.set_weights(unit, config.traffic_percent)
            if not shifted.ok:
                result.warnings.append(shifted.warning)

            result.transition(DeploymentState.CANARY_ACTIVE)

            scheduled = await self.promotion.schedule(unit, version, config.duration)
            if scheduled.ok:
                result.transition(DeploymentState.SCHEDULED_PROMOTION)
            else:
                result.warnings.append(scheduled.warning)

            log.info("金丝雀发布生效", version=version, warnings=len(result.warnings))
            return result

    async def promote_canary(self, unit: str, version: str) -> PromotionResult:
        """直接触发晋升，供调度器回调或人工调用"""
        try:
            check_unit_name(unit)
            check_version_token(version)
        except ValidationError as e:
            return PromotionResult(success=False, version=version, attempts=0, error=e.message)

        async with self._unit_guard(unit):
            return await self.promotion.promote(unit, version)

    async def handle_event(self, event: Dict[str, Any]) -> Optional[PromotionResult]:
        """
        处理调度器投递的晋升事件

        非晋升事件和已消费的 idempotencyKey 返回 None。
        晋升成功后注销定时器；失败时保留定时器，下一次触发即重试。
        """
        if event.get("action") != PROMOTE_ACTION:
            logger.debug("忽略非晋升事件", action=event.get("action"))
            return None

        key = event.get("idempotencyKey")
        if key and key in self._consumed_keys:
            logger.info("忽略重复的晋升事件", idempotency_key=key)
            return None

        result = await self.promote_canary(
            str(event.get("functionName") or ""),
            str(event.get("version") or ""),
        )
        if not result.success:
            return result

        if key:
            self._consumed_keys[key] = None
            while len(self._consumed_keys) > CONSUMED_KEYS_LIMIT:
                self._consumed_keys.popitem(last=False)

        rule_name = event.get("ruleName")
        if rule_name:
            await self.promotion.cancel(str(rule_name))
        return result

    async def rollback_to_version(self, unit: str, target_version: str) -> DeploymentResult:
        """回滚线上别名到指定版本"""
        result = self._start()
        try:
            check_unit_name(unit)
            check_version_token(target_version)
        except ValidationError as e:
            return result.fail(e.message)

        async with self._unit_guard(unit):
            result.transition(DeploymentState.ALIASING)
            try:
                await self.rollback_manager.rollback(unit, target_version)
            except DeploymentError as e:
                logger.error("回滚失败", unit=unit, version=target_version, error=e.message)
                return result.fail(e.message)

        result.success = True
        result.version = target_version
        result.alias = self.live_alias
        return result.transition(DeploymentState.ROLLED_BACK)

    async def get_deployment_history(self, unit: str) -> DeploymentHistory:
        """
        查询部署历史

        Raises:
            InvalidName: 函数名不合法
            HistoryLookupError: 查询失败
        """
        check_unit_name(unit)
        return await self.rollback_manager.history(unit)
