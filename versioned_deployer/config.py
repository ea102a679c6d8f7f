"""
版本化部署编排系统 - 配置模块
"""
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """编排器配置"""

    # AWS 配置
    REGION: str = "us-east-1"
    # 为空时由 AccountResolver 在构造编排器时解析一次
    ACCOUNT_ID: Optional[str] = None

    # 别名配置
    LIVE_ALIAS: str = "live"
    CANARY_ALIAS: str = "canary"

    # 代码包限制
    MAX_ARTIFACT_BYTES: int = 50 * 1024 * 1024  # 50MB

    # 指标配置
    METRICS_NAMESPACE: str = "AWS/Lambda/Deployment"

    # 晋升重试配置
    PROMOTION_MAX_ATTEMPTS: int = Field(default=3, ge=1)
    PROMOTION_BACKOFF_MS: int = Field(default=2000, ge=0)

    # 同一函数的并发工作流默认后写者胜，开启后按函数名串行化
    SERIALIZE_PER_UNIT: bool = False

    # 日志配置
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    model_config = SettingsConfigDict(
        env_prefix="DEPLOYER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """获取配置单例"""
    return Settings()
