# 版本化部署编排系统 - AWS 后端
"""基于 boto3 的 Lambda / EventBridge / CloudWatch / STS 适配器"""

import asyncio
import functools
import json
from typing import Any, Callable, Dict, List, Optional

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from ..config import Settings, get_settings
from ..exceptions import AccountResolutionError, AliasConflict, AliasNotFound
from ..logging import setup_logging_from_settings
from ..models import ConfigUpdate, DeployableUnit

logger = structlog.get_logger()

LATEST = "$LATEST"
TIMER_TARGET_ID = "1"


def error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


class _BotoAdapter:
    """在线程池中执行阻塞的 boto3 调用"""

    def __init__(self, client: Any):
        self.client = client

    async def _call(self, fn: Callable[..., Any], **kwargs: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(fn, **kwargs))


class LambdaRegistry(_BotoAdapter):
    """Lambda 函数注册表"""

    def __init__(self, client: Any, wait_for_update: bool = True):
        super().__init__(client)
        self.wait_for_update = wait_for_update

    async def _wait_updated(self, unit: str) -> None:
        # 代码或配置更新进行中时，紧接着的更新会返回 ResourceConflictException
        if not self.wait_for_update:
            return
        waiter = self.client.get_waiter("function_updated")
        await self._call(waiter.wait, FunctionName=unit)

    async def update_code(self, unit: str, artifact: bytes) -> None:
        await self._call(self.client.update_function_code, FunctionName=unit, ZipFile=artifact)
        await self._wait_updated(unit)

    async def update_config(self, unit: str, update: ConfigUpdate) -> None:
        params: Dict[str, Any] = {"FunctionName": unit}
        if update.environment is not None:
            params["Environment"] = {"Variables": dict(update.environment)}
        if update.timeout is not None:
            params["Timeout"] = update.timeout
        if update.memory_size is not None:
            params["MemorySize"] = update.memory_size

        await self._call(self.client.update_function_configuration, **params)
        await self._wait_updated(unit)

    async def publish_version(self, unit: str, description: str) -> str:
        response = await self._call(
            self.client.publish_version, FunctionName=unit, Description=description
        )
        return response["Version"]

    async def list_versions(self, unit: str) -> List[str]:
        paginator = self.client.get_paginator("list_versions_by_function")

        def collect() -> List[str]:
            versions = []
            for page in paginator.paginate(FunctionName=unit):
                for item in page.get("Versions", []):
                    version = item.get("Version")
                    if version and version != LATEST:
                        versions.append(version)
            return versions

        loop = asyncio.get_running_loop()
        versions = await loop.run_in_executor(None, collect)
        # 接口按版本号返回，这里显式按数字升序保证最后一个是最新版本
        return sorted(versions, key=int)

    async def get_unit(self, unit: str) -> DeployableUnit:
        response = await self._call(self.client.get_function_configuration, FunctionName=unit)
        return DeployableUnit(
            name=response.get("FunctionName", unit),
            code_size=response.get("CodeSize", 0),
            timeout=response.get("Timeout", 3),
            memory_size=response.get("MemorySize", 128),
            environment=dict(response.get("Environment", {}).get("Variables", {})),
        )


class LambdaAliasDirectory(_BotoAdapter):
    """Lambda 别名目录"""

    async def get_alias(self, unit: str, name: str) -> str:
        try:
            response = await self._call(self.client.get_alias, FunctionName=unit, Name=name)
        except ClientError as e:
            if error_code(e) == "ResourceNotFoundException":
                raise AliasNotFound(unit=unit, alias=name) from e
            raise
        return response["FunctionVersion"]

    async def create_alias(self, unit: str, name: str, version: str) -> None:
        try:
            await self._call(
                self.client.create_alias,
                FunctionName=unit,
                Name=name,
                FunctionVersion=version,
                Description=f"Alias pointing to version {version}",
            )
        except ClientError as e:
            if error_code(e) == "ResourceConflictException":
                raise AliasConflict(unit=unit, alias=name) from e
            raise

    async def update_alias(self, unit: str, name: str, version: str) -> None:
        try:
            await self._call(
                self.client.update_alias,
                FunctionName=unit,
                Name=name,
                FunctionVersion=version,
                Description=f"Alias updated to version {version}",
            )
        except ClientError as e:
            if error_code(e) == "ResourceNotFoundException":
                raise AliasNotFound(unit=unit, alias=name) from e
            raise


class EventBridgeScheduler(_BotoAdapter):
    """EventBridge 定时规则"""

    async def register_timer(
        self,
        name: str,
        expression: str,
        payload: Dict[str, Any],
        target: str,
        description: Optional[str] = None,
    ) -> None:
        rule: Dict[str, Any] = {
            "Name": name,
            "ScheduleExpression": expression,
            "State": "ENABLED",
        }
        if description:
            rule["Description"] = description

        await self._call(self.client.put_rule, **rule)
        response = await self._call(
            self.client.put_targets,
            Rule=name,
            Targets=[{"Id": TIMER_TARGET_ID, "Arn": target, "Input": json.dumps(payload)}],
        )
        if response and response.get("FailedEntryCount"):
            raise RuntimeError(f"Failed to attach target to rule {name}: {response.get('FailedEntries')}")

    async def cancel_timer(self, name: str) -> None:
        """移除目标后删除规则，规则已不存在时视为成功"""
        try:
            await self._call(self.client.remove_targets, Rule=name, Ids=[TIMER_TARGET_ID])
            await self._call(self.client.delete_rule, Name=name)
        except ClientError as e:
            if error_code(e) != "ResourceNotFoundException":
                raise
            logger.debug("调度规则不存在", rule=name)


class CloudWatchMetricsSink(_BotoAdapter):
    """CloudWatch 指标"""

    async def emit(
        self,
        namespace: str,
        metric_name: str,
        value: float,
        unit: str,
        dimensions: Dict[str, str],
    ) -> None:
        await self._call(
            self.client.put_metric_data,
            Namespace=namespace,
            MetricData=[{
                "MetricName": metric_name,
                "Value": value,
                "Unit": unit,
                "Dimensions": [{"Name": k, "Value": v} for k, v in dimensions.items()],
            }],
        )


class StsAccountResolver(_BotoAdapter):
    """通过 STS 获取当前账号ID"""

    async def resolve(self) -> str:
        try:
            response = await self._call(self.client.get_caller_identity)
        except (BotoCoreError, ClientError) as e:
            raise AccountResolutionError(message=f"Failed to get AWS account ID: {e}") from e

        account_id = response.get("Account", "")
        if not account_id:
            raise AccountResolutionError()
        return account_id


async def build_aws_orchestrator(
    settings: Optional[Settings] = None,
    session: Optional[boto3.session.Session] = None,
    account_resolver: Optional[Any] = None,
    configure_logging: bool = True,
):
    """
    构造基于 AWS 的编排器

    账号ID只在构造时解析一次并显式传入编排器。

    Args:
        settings: 配置，默认读取环境变量
        session: boto3 会话
        account_resolver: 账号ID解析器，默认使用 STS
        configure_logging: 是否按配置初始化日志

    Returns:
        DeploymentOrchestrator
    """
    from ..orchestrator import DeploymentOrchestrator

    settings = settings or get_settings()
    if configure_logging:
        setup_logging_from_settings(settings)

    session = session or boto3.session.Session(region_name=settings.REGION)
    if account_resolver is None and not settings.ACCOUNT_ID:
        account_resolver = StsAccountResolver(session.client("sts"))

    lambda_client = session.client("lambda")
    return await DeploymentOrchestrator.create(
        registry=LambdaRegistry(lambda_client),
        aliases=LambdaAliasDirectory(lambda_client),
        scheduler=EventBridgeScheduler(session.client("events")),
        metrics=CloudWatchMetricsSink(session.client("cloudwatch")),
        settings=settings,
        account_resolver=account_resolver,
    )
