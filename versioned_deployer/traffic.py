# 版本化部署编排系统 - 流量管理
"""金丝雀与线上别名之间的权重分流"""

import json
from typing import Optional

import structlog

from .collaborators import UnitRegistry
from .exceptions import TrafficShiftError
from .models import ConfigUpdate, Outcome, TrafficWeights

logger = structlog.get_logger()

TRAFFIC_WEIGHTS_KEY = "TRAFFIC_WEIGHTS"
CANARY_PERCENT_KEY = "CANARY_PERCENT"
LIVE_PERCENT_KEY = "LIVE_PERCENT"


def _format_percent(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


class TrafficSplitter:
    """流量分流器

    权重作为函数的环境配置保存，两个值总是在同一次配置更新中写入。
    """

    def __init__(
        self,
        registry: UnitRegistry,
        live_alias: str = "live",
        canary_alias: str = "canary"
    ):
        self.registry = registry
        self.live_alias = live_alias
        self.canary_alias = canary_alias

    def compute(self, canary_percent: float) -> TrafficWeights:
        """计算权重"""
        return TrafficWeights.from_percent(
            canary_percent,
            canary_alias=self.canary_alias,
            live_alias=self.live_alias,
        )

    async def set_weights(self, unit: str, canary_percent: float) -> Outcome:
        """
        写入流量权重

        失败不会中断发布流程，只通过返回值中的告警反映。

        Args:
            unit: 函数名
            canary_percent: 金丝雀流量百分比，已在上游校验

        Returns:
            写入结果
        """
        weights = self.compute(canary_percent)

        try:
            # 保留现有环境变量，只覆盖分流相关的键
            current = await self.registry.get_unit(unit)
            environment = dict(current.environment)
            environment.update({
                TRAFFIC_WEIGHTS_KEY: json.dumps(weights.as_mapping()),
                CANARY_PERCENT_KEY: _format_percent(canary_percent),
                LIVE_PERCENT_KEY: _format_percent(100 - canary_percent),
            })
            await self.registry.update_config(unit, ConfigUpdate(environment=environment))
        except Exception as e:
            error = TrafficShiftError(message=f"Traffic shifting failed: {e}")
            logger.warning("流量权重写入失败", unit=unit, canary_percent=canary_percent, error=str(e))
            return Outcome.failure(error.message)

        logger.info(
            "流量权重已更新",
            unit=unit,
            canary=weights.canary,
            live=weights.live
        )
        return Outcome.success()

    async def get_weights(self, unit: str) -> Optional[TrafficWeights]:
        """读取当前保存的权重，未设置时返回 None"""
        current = await self.registry.get_unit(unit)
        raw = current.environment.get(TRAFFIC_WEIGHTS_KEY)
        if not raw:
            return None

        mapping = json.loads(raw)
        return TrafficWeights(
            canary=float(mapping.get(self.canary_alias, 0.0)),
            live=float(mapping.get(self.live_alias, 0.0)),
            canary_alias=self.canary_alias,
            live_alias=self.live_alias,
        )
