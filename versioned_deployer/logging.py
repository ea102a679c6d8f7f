# 版本化部署编排系统 - 日志配置
"""结构化日志配置"""

import logging
import sys
from typing import Any, Dict, List

import structlog

# 第三方库日志降级
NOISY_LOGGERS = ("boto3", "botocore", "urllib3", "s3transfer")

HANDLER_NAME = "versioned_deployer"


def _static_fields(fields: Dict[str, Any]):
    """为每条日志补充固定字段，调用处显式传入的同名字段优先"""
    def processor(logger, method_name, event_dict):
        for key, value in fields.items():
            event_dict.setdefault(key, value)
        return event_dict
    return processor


def _renderers(json_format: bool) -> List[Any]:
    if json_format:
        return [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ]
    return [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]


def setup_logging(level: str = "INFO", json_format: bool = False, **fields: Any) -> None:
    """
    配置结构化日志

    可重复调用：只替换本模块安装的处理器，函数热启动时不会重复输出。

    Args:
        level: 日志级别
        json_format: 是否输出JSON格式
        **fields: 附加到每条日志的固定字段，如 region
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            _static_fields(fields),
            structlog.processors.StackInfoRenderer(),
        ] + _renderers(json_format),
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    root_logger = logging.getLogger()
    for existing in [h for h in root_logger.handlers if h.get_name() == HANDLER_NAME]:
        root_logger.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper()))

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def setup_logging_from_settings(settings) -> None:
    """根据配置初始化日志，附带区域字段"""
    setup_logging(
        level=settings.LOG_LEVEL,
        json_format=settings.LOG_FORMAT == "json",
        region=settings.REGION,
    )
