# 版本化部署编排系统 - AWS 后端测试
"""backends.aws模块测试"""

import json
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from versioned_deployer.backends.aws import (
    CloudWatchMetricsSink,
    EventBridgeScheduler,
    LambdaAliasDirectory,
    LambdaRegistry,
    StsAccountResolver,
    build_aws_orchestrator,
)
from versioned_deployer.config import Settings
from versioned_deployer.exceptions import AccountResolutionError, AliasConflict, AliasNotFound
from versioned_deployer.models import ConfigUpdate

pytestmark = pytest.mark.asyncio


def client_error(code: str, operation: str = "Operation") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class TestLambdaRegistry:
    """Lambda 注册表测试"""

    async def test_update_code_waits_for_update(self):
        client = MagicMock()
        registry = LambdaRegistry(client)

        await registry.update_code("orders", b"zip")

        client.update_function_code.assert_called_once_with(FunctionName="orders", ZipFile=b"zip")
        client.get_waiter.assert_called_once_with("function_updated")
        client.get_waiter.return_value.wait.assert_called_once_with(FunctionName="orders")

    async def test_update_config_only_supplied_fields(self):
        client = MagicMock()
        registry = LambdaRegistry(client, wait_for_update=False)

        await registry.update_config("orders", ConfigUpdate(memory_size=512))

        client.update_function_configuration.assert_called_once_with(
            FunctionName="orders", MemorySize=512
        )
        client.get_waiter.assert_not_called()

    async def test_update_config_environment(self):
        client = MagicMock()
        registry = LambdaRegistry(client, wait_for_update=False)

        await registry.update_config("orders", ConfigUpdate(timeout=10, environment={"A": "1"}))

        client.update_function_configuration.assert_called_once_with(
            FunctionName="orders", Timeout=10, Environment={"Variables": {"A": "1"}}
        )

    async def test_publish_version(self):
        client = MagicMock()
        client.publish_version.return_value = {"Version": "12"}
        registry = LambdaRegistry(client)

        version = await registry.publish_version("orders", "release")

        assert version == "12"
        client.publish_version.assert_called_once_with(FunctionName="orders", Description="release")

    async def test_list_versions_skips_latest_and_sorts(self):
        """测试过滤 $LATEST 并按数字升序"""
        client = MagicMock()
        client.get_paginator.return_value.paginate.return_value = [
            {"Versions": [{"Version": "$LATEST"}, {"Version": "1"}, {"Version": "10"}]},
            {"Versions": [{"Version": "2"}]},
        ]
        registry = LambdaRegistry(client)

        versions = await registry.list_versions("orders")

        assert versions == ["1", "2", "10"]
        client.get_paginator.assert_called_once_with("list_versions_by_function")

    async def test_get_unit(self):
        client = MagicMock()
        client.get_function_configuration.return_value = {
            "FunctionName": "orders",
            "CodeSize": 2048,
            "Timeout": 15,
            "MemorySize": 256,
            "Environment": {"Variables": {"STAGE": "prod"}},
        }
        registry = LambdaRegistry(client)

        unit = await registry.get_unit("orders")

        assert unit.code_size == 2048
        assert unit.timeout == 15
        assert unit.memory_size == 256
        assert unit.environment == {"STAGE": "prod"}


class TestLambdaAliasDirectory:
    """Lambda 别名目录测试"""

    async def test_get_alias(self):
        client = MagicMock()
        client.get_alias.return_value = {"FunctionVersion": "3"}
        directory = LambdaAliasDirectory(client)

        assert await directory.get_alias("orders", "live") == "3"

    async def test_get_alias_not_found(self):
        client = MagicMock()
        client.get_alias.side_effect = client_error("ResourceNotFoundException", "GetAlias")
        directory = LambdaAliasDirectory(client)

        with pytest.raises(AliasNotFound):
            await directory.get_alias("orders", "live")

    async def test_get_alias_other_error_propagates(self):
        client = MagicMock()
        client.get_alias.side_effect = client_error("TooManyRequestsException", "GetAlias")
        directory = LambdaAliasDirectory(client)

        with pytest.raises(ClientError):
            await directory.get_alias("orders", "live")

    async def test_create_alias_conflict(self):
        client = MagicMock()
        client.create_alias.side_effect = client_error("ResourceConflictException", "CreateAlias")
        directory = LambdaAliasDirectory(client)

        with pytest.raises(AliasConflict):
            await directory.create_alias("orders", "live", "3")

    async def test_update_alias(self):
        client = MagicMock()
        directory = LambdaAliasDirectory(client)

        await directory.update_alias("orders", "live", "4")

        kwargs = client.update_alias.call_args.kwargs
        assert kwargs["FunctionName"] == "orders"
        assert kwargs["Name"] == "live"
        assert kwargs["FunctionVersion"] == "4"


class TestEventBridgeScheduler:
    """EventBridge 调度测试"""

    async def test_register_timer(self):
        client = MagicMock()
        client.put_targets.return_value = {"FailedEntryCount": 0, "FailedEntries": []}
        scheduler = EventBridgeScheduler(client)
        payload = {"action": "promoteCanary", "functionName": "orders", "version": "2"}

        await scheduler.register_timer(
            name="orders-canary-promotion-1",
            expression="rate(30 minutes)",
            payload=payload,
            target="arn:aws:lambda:us-east-1:123:function:orders",
            description="promote",
        )

        client.put_rule.assert_called_once_with(
            Name="orders-canary-promotion-1",
            ScheduleExpression="rate(30 minutes)",
            State="ENABLED",
            Description="promote",
        )
        targets = client.put_targets.call_args.kwargs["Targets"]
        assert targets[0]["Arn"] == "arn:aws:lambda:us-east-1:123:function:orders"
        assert json.loads(targets[0]["Input"]) == payload

    async def test_failed_target_raises(self):
        client = MagicMock()
        client.put_targets.return_value = {"FailedEntryCount": 1, "FailedEntries": [{"TargetId": "1"}]}
        scheduler = EventBridgeScheduler(client)

        with pytest.raises(RuntimeError):
            await scheduler.register_timer("rule", "rate(5 minutes)", {}, "arn")

    async def test_cancel_timer_removes_targets_then_rule(self):
        """测试注销时先移除目标再删除规则"""
        client = MagicMock()
        scheduler = EventBridgeScheduler(client)

        await scheduler.cancel_timer("orders-canary-promotion-1")

        client.remove_targets.assert_called_once_with(Rule="orders-canary-promotion-1", Ids=["1"])
        client.delete_rule.assert_called_once_with(Name="orders-canary-promotion-1")
        assert [c[0] for c in client.method_calls] == ["remove_targets", "delete_rule"]

    async def test_cancel_missing_rule_is_ignored(self):
        client = MagicMock()
        client.remove_targets.side_effect = client_error("ResourceNotFoundException", "RemoveTargets")
        scheduler = EventBridgeScheduler(client)

        await scheduler.cancel_timer("gone")

        client.delete_rule.assert_not_called()

    async def test_cancel_other_error_propagates(self):
        client = MagicMock()
        client.delete_rule.side_effect = client_error("AccessDeniedException", "DeleteRule")
        scheduler = EventBridgeScheduler(client)

        with pytest.raises(ClientError):
            await scheduler.cancel_timer("orders-canary-promotion-1")


class TestCloudWatchMetricsSink:
    async def test_emit(self):
        client = MagicMock()
        sink = CloudWatchMetricsSink(client)

        await sink.emit("AWS/Lambda/Deployment", "FunctionSize", 100, "Bytes", {"FunctionName": "orders"})

        client.put_metric_data.assert_called_once_with(
            Namespace="AWS/Lambda/Deployment",
            MetricData=[{
                "MetricName": "FunctionSize",
                "Value": 100,
                "Unit": "Bytes",
                "Dimensions": [{"Name": "FunctionName", "Value": "orders"}],
            }],
        )


class TestStsAccountResolver:
    async def test_resolve(self):
        client = MagicMock()
        client.get_caller_identity.return_value = {"Account": "123456789012"}

        assert await StsAccountResolver(client).resolve() == "123456789012"

    async def test_resolve_failure(self):
        client = MagicMock()
        client.get_caller_identity.side_effect = client_error("ExpiredToken", "GetCallerIdentity")

        with pytest.raises(AccountResolutionError):
            await StsAccountResolver(client).resolve()

    async def test_resolve_empty(self):
        client = MagicMock()
        client.get_caller_identity.return_value = {}

        with pytest.raises(AccountResolutionError):
            await StsAccountResolver(client).resolve()


class TestBuildAwsOrchestrator:
    """AWS 编排器构造测试"""

    async def test_resolves_account_via_sts(self):
        session = MagicMock()
        sts = MagicMock()
        sts.get_caller_identity.return_value = {"Account": "111122223333"}
        session.client.side_effect = lambda name: sts if name == "sts" else MagicMock(name=name)

        orchestrator = await build_aws_orchestrator(
            settings=Settings(REGION="eu-west-1"), session=session, configure_logging=False
        )

        assert orchestrator.account_id == "111122223333"
        assert orchestrator.promotion_target("orders") == "arn:aws:lambda:eu-west-1:111122223333:function:orders"
        sts.get_caller_identity.assert_called_once()

    async def test_configured_account_skips_sts(self):
        session = MagicMock()

        orchestrator = await build_aws_orchestrator(
            settings=Settings(ACCOUNT_ID="444455556666"), session=session, configure_logging=False
        )

        assert orchestrator.account_id == "444455556666"
        requested = [c.args[0] for c in session.client.call_args_list]
        assert "sts" not in requested
        assert {"lambda", "events", "cloudwatch"} <= set(requested)

    async def test_configures_logging_from_settings(self, monkeypatch):
        """测试构造时按配置初始化日志"""
        from versioned_deployer.backends import aws

        configured = []
        monkeypatch.setattr(aws, "setup_logging_from_settings", configured.append)
        settings = Settings(ACCOUNT_ID="444455556666", LOG_LEVEL="DEBUG")

        await build_aws_orchestrator(settings=settings, session=MagicMock())

        assert configured == [settings]
