# 版本化部署编排系统 - 外部协作方接口
"""函数注册表、别名目录、事件调度器、指标接收端、账号解析器"""

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from .models import ConfigUpdate, DeployableUnit


@runtime_checkable
class UnitRegistry(Protocol):
    """可部署函数注册表"""

    async def update_code(self, unit: str, artifact: bytes) -> None: ...

    async def update_config(self, unit: str, update: ConfigUpdate) -> None: ...

    async def publish_version(self, unit: str, description: str) -> str: ...

    async def list_versions(self, unit: str) -> List[str]:
        """按创建时间升序返回版本号"""
        ...

    async def get_unit(self, unit: str) -> DeployableUnit: ...


@runtime_checkable
class AliasDirectory(Protocol):
    """别名目录

    get_alias 在别名不存在时必须抛出 AliasNotFound，
    create_alias 在别名已存在时必须抛出 AliasConflict。
    """

    async def get_alias(self, unit: str, name: str) -> str: ...

    async def create_alias(self, unit: str, name: str, version: str) -> None: ...

    async def update_alias(self, unit: str, name: str, version: str) -> None: ...


@runtime_checkable
class EventScheduler(Protocol):
    """事件调度器

    定时器注册后会周期触发，直到被 cancel_timer 移除；
    cancel_timer 对不存在的定时器不报错。
    """

    async def register_timer(
        self,
        name: str,
        expression: str,
        payload: Dict[str, Any],
        target: str,
        description: Optional[str] = None,
    ) -> None: ...

    async def cancel_timer(self, name: str) -> None: ...


@runtime_checkable
class MetricsSink(Protocol):
    """指标接收端，失败由调用方忽略"""

    async def emit(
        self,
        namespace: str,
        metric_name: str,
        value: float,
        unit: str,
        dimensions: Dict[str, str],
    ) -> None: ...


@runtime_checkable
class AccountResolver(Protocol):
    """账号ID解析器"""

    async def resolve(self) -> str: ...
