# 版本化部署编排系统 - 测试配置
"""公共测试夹具"""

from typing import List

import pytest

from versioned_deployer.backends.memory import (
    InMemoryAliasDirectory,
    InMemoryMetricsSink,
    InMemoryRegistry,
    InMemoryScheduler,
)
from versioned_deployer.config import Settings
from versioned_deployer.orchestrator import DeploymentOrchestrator


class SleepRecorder:
    """记录等待时长，不真正休眠"""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FlakyAliasDirectory(InMemoryAliasDirectory):
    """前若干次更新失败的别名目录"""

    def __init__(self, failures: int = 0):
        super().__init__()
        self.failures = failures
        self.update_attempts = 0

    async def update_alias(self, unit: str, name: str, version: str) -> None:
        self.update_attempts += 1
        if self.update_attempts <= self.failures:
            self.calls.append(("update_alias", unit, name))
            raise ConnectionError("alias service unavailable")
        await super().update_alias(unit, name, version)


class FailingScheduler(InMemoryScheduler):
    """注册总是失败的调度器"""

    async def register_timer(self, *args, **kwargs) -> None:
        raise RuntimeError("scheduler unavailable")


@pytest.fixture
def settings() -> Settings:
    return Settings(ACCOUNT_ID="123456789012", REGION="us-east-1")


@pytest.fixture
def registry() -> InMemoryRegistry:
    return InMemoryRegistry()


@pytest.fixture
def directory() -> InMemoryAliasDirectory:
    return InMemoryAliasDirectory()


@pytest.fixture
def scheduler() -> InMemoryScheduler:
    return InMemoryScheduler()


@pytest.fixture
def metrics() -> InMemoryMetricsSink:
    return InMemoryMetricsSink()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def orchestrator(registry, directory, scheduler, metrics, settings, sleeper) -> DeploymentOrchestrator:
    return DeploymentOrchestrator(
        registry,
        directory,
        scheduler,
        metrics=metrics,
        settings=settings,
        sleep=sleeper,
    )


class CountingAccountResolver:
    """记录解析次数的账号解析器"""

    def __init__(self, account_id: str):
        self.account_id = account_id
        self.calls = 0

    async def resolve(self) -> str:
        self.calls += 1
        return self.account_id
