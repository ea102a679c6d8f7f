# 版本化部署编排系统 - 别名管理测试
"""aliases模块测试"""

from unittest.mock import AsyncMock

import pytest

from versioned_deployer.aliases import AliasAction, AliasManager
from versioned_deployer.backends.memory import InMemoryAliasDirectory
from versioned_deployer.exceptions import AliasConflict, AliasError

pytestmark = pytest.mark.asyncio


class TestUpsertAlias:
    """创建或更新别名测试"""

    async def test_creates_missing_alias(self):
        """测试别名不存在时创建"""
        directory = InMemoryAliasDirectory()
        manager = AliasManager(directory)

        action = await manager.upsert_alias("orders", "live", "3")

        assert action == AliasAction.CREATED
        assert directory.aliases_for("orders") == {"live": "3"}

    async def test_updates_existing_alias(self):
        """测试别名存在时更新"""
        directory = InMemoryAliasDirectory()
        await directory.create_alias("orders", "live", "1")
        manager = AliasManager(directory)

        action = await manager.upsert_alias("orders", "live", "2")

        assert action == AliasAction.UPDATED
        assert directory.aliases_for("orders") == {"live": "2"}
        assert [c[0] for c in directory.calls][-2:] == ["get_alias", "update_alias"]

    async def test_idempotent(self):
        """测试重复调用结果一致"""
        directory = InMemoryAliasDirectory()
        manager = AliasManager(directory)

        await manager.upsert_alias("orders", "live", "4")
        await manager.upsert_alias("orders", "live", "4")

        assert directory.aliases_for("orders") == {"live": "4"}

    async def test_concurrent_create_falls_back_to_update(self):
        """测试读到不存在后被并发创建，创建冲突转为更新"""
        directory = InMemoryAliasDirectory()
        original_create = directory.create_alias

        async def racing_create(unit, name, version):
            await original_create(unit, name, "99")
            raise AliasConflict(unit=unit, alias=name)

        directory.create_alias = racing_create
        manager = AliasManager(directory)

        action = await manager.upsert_alias("orders", "canary", "5")

        assert action == AliasAction.UPDATED
        assert directory.aliases_for("orders") == {"canary": "5"}

    async def test_read_failure_is_not_treated_as_absent(self):
        """测试读取的其他失败不会被当作不存在"""
        directory = InMemoryAliasDirectory()
        directory.get_alias = AsyncMock(side_effect=ConnectionError("timeout"))
        directory.create_alias = AsyncMock()
        manager = AliasManager(directory)

        with pytest.raises(AliasError) as exc_info:
            await manager.upsert_alias("orders", "live", "1")

        assert "timeout" in exc_info.value.message
        directory.create_alias.assert_not_called()

    async def test_update_failure_raises_alias_error(self):
        directory = InMemoryAliasDirectory()
        await directory.create_alias("orders", "live", "1")
        directory.update_alias = AsyncMock(side_effect=RuntimeError("denied"))
        manager = AliasManager(directory)

        with pytest.raises(AliasError):
            await manager.upsert_alias("orders", "live", "2")

    async def test_aliases_are_scoped_per_unit(self):
        directory = InMemoryAliasDirectory()
        manager = AliasManager(directory)

        await manager.upsert_alias("orders", "live", "1")
        await manager.upsert_alias("billing", "live", "7")

        assert directory.aliases_for("orders") == {"live": "1"}
        assert directory.aliases_for("billing") == {"live": "7"}


class TestAliasExists:
    """别名探测测试"""

    async def test_exists(self):
        directory = InMemoryAliasDirectory()
        await directory.create_alias("orders", "live", "1")
        manager = AliasManager(directory)

        assert await manager.alias_exists("orders", "live") is True
        assert await manager.alias_exists("orders", "canary") is False

    async def test_read_failure_is_not_absence(self):
        """测试读取失败抛出 AliasError，不当作别名不存在"""
        directory = InMemoryAliasDirectory()
        directory.get_alias = AsyncMock(side_effect=ConnectionError("throttled"))
        manager = AliasManager(directory)

        with pytest.raises(AliasError) as exc_info:
            await manager.alias_exists("orders", "live")

        assert "throttled" in exc_info.value.message
