# 版本化部署编排系统 - 金丝雀晋升
"""定时自动晋升与带退避的晋升重试"""

import asyncio
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, List, Optional

import structlog

from .aliases import AliasManager
from .collaborators import EventScheduler
from .exceptions import PromotionFailed, SchedulingError
from .models import Outcome, PromotionResult, PromotionTask

logger = structlog.get_logger()

PROMOTE_ACTION = "promoteCanary"
MAX_RULE_NAME_LENGTH = 64

Sleep = Callable[[float], Awaitable[Any]]


def rate_expression(minutes: int) -> str:
    """生成调度表达式"""
    unit = "minute" if minutes == 1 else "minutes"
    return f"rate({minutes} {unit})"


def rule_name_for(unit: str, now_ms: Optional[int] = None) -> str:
    """生成调度规则名，长度不超过64"""
    suffix = f"-canary-promotion-{now_ms if now_ms is not None else int(time.time() * 1000)}"
    return unit[:MAX_RULE_NAME_LENGTH - len(suffix)] + suffix


class PromotionScheduler:
    """金丝雀晋升调度器

    调度本身是尽力而为的：注册失败不影响已生效的金丝雀别名和流量权重，
    调用方需要自行轮询或手动触发晋升。
    """

    def __init__(
        self,
        scheduler: EventScheduler,
        aliases: AliasManager,
        live_alias: str = "live",
        max_attempts: int = 3,
        backoff_ms: int = 2000,
        target_for: Optional[Callable[[str], str]] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.scheduler = scheduler
        self.aliases = aliases
        self.live_alias = live_alias
        self.max_attempts = max_attempts
        self.backoff_ms = backoff_ms
        self.target_for = target_for or (lambda unit: unit)
        self._sleep = sleep

    def build_task(self, unit: str, version: str, delay_minutes: int) -> PromotionTask:
        """构造晋升任务描述"""
        now = datetime.now(timezone.utc)
        return PromotionTask(
            unit=unit,
            version=version,
            fire_time=now + timedelta(minutes=delay_minutes),
            idempotency_key=f"{unit}:{version}",
            rule_name=rule_name_for(unit, int(now.timestamp() * 1000)),
            expression=rate_expression(delay_minutes),
        )

    async def schedule(self, unit: str, version: str, delay_minutes: int) -> Outcome:
        """
        注册自动晋升定时器

        Args:
            unit: 函数名
            version: 待晋升版本
            delay_minutes: 延迟分钟数

        Returns:
            注册结果，失败时携带告警
        """
        task = self.build_task(unit, version, delay_minutes)

        try:
            await self.scheduler.register_timer(
                name=task.rule_name,
                expression=task.expression,
                payload=task.payload(),
                target=self.target_for(unit),
                description=f"Auto-promote canary version {version} for function {unit}",
            )
        except Exception as e:
            error = SchedulingError(message=f"Canary promotion scheduling failed: {e}")
            logger.warning("晋升调度失败", unit=unit, version=version, error=str(e))
            return Outcome.failure(error.message)

        logger.info(
            "已调度金丝雀晋升",
            unit=unit,
            version=version,
            rule=task.rule_name,
            fire_time=task.fire_time.isoformat()
        )
        return Outcome.success()

    async def cancel(self, rule_name: str) -> Outcome:
        """注销晋升定时器，失败时返回告警"""
        try:
            await self.scheduler.cancel_timer(rule_name)
        except Exception as e:
            error = SchedulingError(message=f"Canary promotion timer removal failed: {e}")
            logger.warning("晋升定时器注销失败", rule=rule_name, error=str(e))
            return Outcome.failure(error.message)

        logger.info("已注销晋升定时器", rule=rule_name)
        return Outcome.success()

    def backoff_delays(self) -> List[float]:
        """两次尝试之间的等待秒数：attempt * backoff"""
        return [
            attempt * self.backoff_ms / 1000
            for attempt in range(1, self.max_attempts)
        ]

    async def promote(self, unit: str, version: str) -> PromotionResult:
        """
        将线上别名指向金丝雀版本

        每次尝试都重新执行同一个别名更新，重试耗尽后返回失败结果，不抛出异常。
        金丝雀别名保持指向同一版本，不做清理。
        """
        attempt = 0
        last_error = ""

        while attempt < self.max_attempts:
            attempt += 1
            try:
                await self.aliases.upsert_alias(unit, self.live_alias, version)
                logger.info("金丝雀晋升成功", unit=unit, version=version, attempt=attempt)
                return PromotionResult(success=True, version=version, attempts=attempt)
            except Exception as e:
                last_error = str(e)
                logger.warning(
                    "金丝雀晋升失败",
                    unit=unit,
                    version=version,
                    attempt=attempt,
                    error=last_error
                )

            if attempt < self.max_attempts:
                await self._sleep(attempt * self.backoff_ms / 1000)

        failure = PromotionFailed(attempts=attempt)
        logger.error("金丝雀晋升重试耗尽", unit=unit, version=version, last_error=last_error)
        return PromotionResult(
            success=False,
            version=version,
            attempts=attempt,
            error=failure.message,
        )
