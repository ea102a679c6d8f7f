# 版本化部署编排系统 - 内存后端
"""协作方的内存实现，用于测试和本地演练"""

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from ..exceptions import AliasConflict, AliasNotFound, DeploymentError
from ..models import ConfigUpdate, DeployableUnit


class UnitNotFound(DeploymentError):
    """函数不存在"""
    code = "unit_not_found"

    def __init__(self, unit: str = "", **kwargs):
        super().__init__(message=f"Function not found: {unit}", **kwargs)


@dataclass
class PublishedVersion:
    """已发布版本"""
    version: str
    code: bytes
    description: str
    published_at: datetime
    config: DeployableUnit


@dataclass
class _UnitState:
    unit: DeployableUnit
    code: bytes = b""
    versions: List[PublishedVersion] = field(default_factory=list)


class InMemoryRegistry:
    """内存函数注册表，版本号从1开始递增"""

    def __init__(self, auto_create: bool = True):
        self.auto_create = auto_create
        self._units: Dict[str, _UnitState] = {}
        self.calls: List[Tuple[str, str]] = []

    def register(self, name: str, **attrs: Any) -> DeployableUnit:
        """注册函数"""
        unit = DeployableUnit(name=name, **attrs)
        self._units[name] = _UnitState(unit=unit)
        return unit

    def _state(self, unit: str) -> _UnitState:
        if unit not in self._units:
            if not self.auto_create:
                raise UnitNotFound(unit)
            self.register(unit)
        return self._units[unit]

    async def update_code(self, unit: str, artifact: bytes) -> None:
        self.calls.append(("update_code", unit))
        state = self._state(unit)
        state.code = bytes(artifact)
        state.unit.code_size = len(artifact)

    async def update_config(self, unit: str, update: ConfigUpdate) -> None:
        self.calls.append(("update_config", unit))
        current = self._state(unit).unit
        if update.timeout is not None:
            current.timeout = update.timeout
        if update.memory_size is not None:
            current.memory_size = update.memory_size
        if update.environment is not None:
            current.environment = dict(update.environment)

    async def publish_version(self, unit: str, description: str) -> str:
        self.calls.append(("publish_version", unit))
        state = self._state(unit)
        version = str(len(state.versions) + 1)
        state.versions.append(PublishedVersion(
            version=version,
            code=state.code,
            description=description,
            published_at=datetime.now(timezone.utc),
            config=copy.deepcopy(state.unit),
        ))
        return version

    async def list_versions(self, unit: str) -> List[str]:
        self.calls.append(("list_versions", unit))
        return [v.version for v in self._state(unit).versions]

    async def get_unit(self, unit: str) -> DeployableUnit:
        self.calls.append(("get_unit", unit))
        return copy.deepcopy(self._state(unit).unit)

    def published(self, unit: str) -> List[PublishedVersion]:
        return list(self._state(unit).versions)


class InMemoryAliasDirectory:
    """内存别名目录"""

    def __init__(self):
        self._aliases: Dict[Tuple[str, str], str] = {}
        self.calls: List[Tuple[str, str, str]] = []

    async def get_alias(self, unit: str, name: str) -> str:
        self.calls.append(("get_alias", unit, name))
        try:
            return self._aliases[(unit, name)]
        except KeyError:
            raise AliasNotFound(unit=unit, alias=name) from None

    async def create_alias(self, unit: str, name: str, version: str) -> None:
        self.calls.append(("create_alias", unit, name))
        if (unit, name) in self._aliases:
            raise AliasConflict(unit=unit, alias=name)
        self._aliases[(unit, name)] = version

    async def update_alias(self, unit: str, name: str, version: str) -> None:
        self.calls.append(("update_alias", unit, name))
        if (unit, name) not in self._aliases:
            raise AliasNotFound(unit=unit, alias=name)
        self._aliases[(unit, name)] = version

    def aliases_for(self, unit: str) -> Dict[str, str]:
        return {name: version for (u, name), version in self._aliases.items() if u == unit}


@dataclass
class RegisteredTimer:
    """已注册的定时器"""
    name: str
    expression: str
    payload: Dict[str, Any]
    target: str
    description: Optional[str] = None


class InMemoryScheduler:
    """内存事件调度器，只记录注册的定时器，由调用方手动触发"""

    def __init__(self):
        self.timers: Dict[str, RegisteredTimer] = {}
        self.cancelled: List[str] = []

    async def register_timer(
        self,
        name: str,
        expression: str,
        payload: Dict[str, Any],
        target: str,
        description: Optional[str] = None,
    ) -> None:
        self.timers[name] = RegisteredTimer(
            name=name,
            expression=expression,
            payload=dict(payload),
            target=target,
            description=description,
        )

    async def cancel_timer(self, name: str) -> None:
        if self.timers.pop(name, None) is not None:
            self.cancelled.append(name)


@dataclass
class MetricDatum:
    namespace: str
    metric_name: str
    value: float
    unit: str
    dimensions: Dict[str, str]


class InMemoryMetricsSink:
    """内存指标接收端"""

    def __init__(self):
        self.data: List[MetricDatum] = []

    async def emit(
        self,
        namespace: str,
        metric_name: str,
        value: float,
        unit: str,
        dimensions: Dict[str, str],
    ) -> None:
        self.data.append(MetricDatum(namespace, metric_name, value, unit, dict(dimensions)))

    def values(self, metric_name: str) -> List[float]:
        return [d.value for d in self.data if d.metric_name == metric_name]


class StaticAccountResolver:
    """固定账号ID"""

    def __init__(self, account_id: str):
        self.account_id = account_id

    async def resolve(self) -> str:
        return self.account_id
