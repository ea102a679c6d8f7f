# 版本化部署编排系统 - 别名管理
"""幂等地创建或更新别名"""

from enum import Enum

import structlog

from .collaborators import AliasDirectory
from .exceptions import AliasConflict, AliasError, AliasNotFound

logger = structlog.get_logger()


class AliasAction(str, Enum):
    """别名操作类型"""
    CREATED = "created"
    UPDATED = "updated"


class AliasManager:
    """别名管理器

    先读后写不是原子操作：读到不存在之后别名可能被并发创建，
    此时创建会返回冲突，转为更新即可。
    """

    def __init__(self, directory: AliasDirectory):
        self.directory = directory

    async def alias_exists(self, unit: str, name: str) -> bool:
        """
        探测别名是否存在

        Raises:
            AliasError: 读取失败，无法判断是否存在
        """
        try:
            await self.directory.get_alias(unit, name)
            return True
        except AliasNotFound:
            return False
        except AliasError:
            raise
        except Exception as e:
            raise AliasError(message=f"Failed to read alias {name}: {e}") from e

    async def resolve(self, unit: str, name: str) -> str:
        """读取别名指向的版本，不存在时抛出 AliasNotFound"""
        return await self.directory.get_alias(unit, name)

    async def upsert_alias(self, unit: str, name: str, version: str) -> AliasAction:
        """
        创建或更新别名

        Args:
            unit: 函数名
            name: 别名
            version: 目标版本

        Returns:
            实际执行的操作

        Raises:
            AliasError: 读取、创建或更新失败
        """
        log = logger.bind(unit=unit, alias=name, version=version)

        try:
            current = await self.directory.get_alias(unit, name)
        except AliasNotFound:
            current = None
        except AliasError:
            raise
        except Exception as e:
            raise AliasError(message=f"Failed to read alias {name}: {e}") from e

        if current is None:
            try:
                await self.directory.create_alias(unit, name, version)
                log.info("创建别名")
                return AliasAction.CREATED
            except AliasConflict:
                log.info("别名已被并发创建，转为更新")
            except AliasError:
                raise
            except Exception as e:
                raise AliasError(message=f"Failed to create alias {name}: {e}") from e

        try:
            await self.directory.update_alias(unit, name, version)
        except AliasError:
            raise
        except Exception as e:
            raise AliasError(message=f"Failed to update alias {name}: {e}") from e

        log.info("更新别名", previous=current)
        return AliasAction.UPDATED
