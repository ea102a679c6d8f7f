# 版本化部署编排系统 - 回滚管理
"""线上别名回滚与部署历史查询"""

import structlog

from .aliases import AliasManager
from .collaborators import UnitRegistry
from .exceptions import AliasNotFound, HistoryLookupError
from .models import DeploymentHistory

logger = structlog.get_logger()


class RollbackManager:
    """回滚管理器

    回滚只移动线上别名，不触碰金丝雀别名和流量权重。
    """

    def __init__(
        self,
        registry: UnitRegistry,
        aliases: AliasManager,
        live_alias: str = "live"
    ):
        self.registry = registry
        self.aliases = aliases
        self.live_alias = live_alias

    async def rollback(self, unit: str, target_version: str) -> None:
        """将线上别名指向目标版本，失败抛出 AliasError"""
        logger.info("开始回滚", unit=unit, to_version=target_version)
        await self.aliases.upsert_alias(unit, self.live_alias, target_version)
        logger.info("回滚成功", unit=unit, version=target_version)

    async def history(self, unit: str) -> DeploymentHistory:
        """
        查询部署历史

        版本列表假定按创建时间升序返回，最后一个即最新版本。
        线上别名不存在时以最新版本作为线上版本。

        Raises:
            HistoryLookupError: 注册表或别名目录读取失败
        """
        try:
            versions = [str(v) for v in await self.registry.list_versions(unit) if v]
        except Exception as e:
            raise HistoryLookupError(
                message=f"Failed to get deployment history: {e}"
            ) from e

        latest = versions[-1] if versions else ""

        try:
            live_version = await self.aliases.resolve(unit, self.live_alias)
        except AliasNotFound:
            live_version = latest
        except Exception as e:
            raise HistoryLookupError(
                message=f"Failed to get deployment history: {e}"
            ) from e

        return DeploymentHistory(
            versions=versions,
            current_version=latest,
            live_version=live_version or "",
        )
