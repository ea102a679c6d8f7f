# 版本化部署编排系统 - 后端模块
"""外部协作方实现：内存实现与 AWS 实现（versioned_deployer.backends.aws）"""

from .memory import (
    InMemoryRegistry,
    InMemoryAliasDirectory,
    InMemoryScheduler,
    InMemoryMetricsSink,
    StaticAccountResolver,
    UnitNotFound,
)

__all__ = [
    "InMemoryRegistry",
    "InMemoryAliasDirectory",
    "InMemoryScheduler",
    "InMemoryMetricsSink",
    "StaticAccountResolver",
    "UnitNotFound",
]
