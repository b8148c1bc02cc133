"""OpenClawConfig -- 外部运行时与额度服务配置加载

从环境变量加载配置，不硬编码地址。
"""

import os
from typing import Literal

import structlog
from pydantic import BaseModel, Field, SecretStr

log = structlog.get_logger()


class OpenClawConfig(BaseModel):
    """OpenClaw 包配置 -- 从环境变量加载

    环境变量:
        MC_OPENCLAW_URL: Gateway 地址（默认 http://127.0.0.1:18789）
        MC_OPENCLAW_TOKEN: Gateway 访问令牌
        MC_OPENCLAW_MODE: 运行模式（gateway/echo）
        MC_OPENCLAW_TIMEOUT_S: 调用超时（秒，默认 30）
        MC_LIMITS_URL: 额度服务地址（默认 http://localhost:5280/api/agents）
        MC_LIMITS_TIMEOUT_S: 额度服务超时（秒，默认 10）
    """

    gateway_url: str = Field(
        default="http://127.0.0.1:18789",
        description="OpenClaw Gateway 基础 URL",
    )
    gateway_token: SecretStr = Field(
        default=SecretStr(""),
        description="Gateway bearer token",
    )
    mode: Literal["gateway", "echo"] = Field(
        default="gateway",
        description="运行模式：gateway 调用真实运行时；echo 使用进程内回声实现",
    )
    timeout_s: int = Field(default=30, ge=1, description="Gateway 调用超时（秒）")
    limits_url: str = Field(
        default="http://localhost:5280/api/agents",
        description="额度服务 URL",
    )
    limits_timeout_s: int = Field(default=10, ge=1, description="额度服务超时（秒）")


def _int_env(name: str, default: int) -> int | None:
    val = os.environ.get(name)
    if not val:
        return None
    try:
        return int(val)
    except ValueError:
        log.warning("invalid_timeout_config", env_var=name, value=val, fallback=default)
        return None


def load_openclaw_config() -> OpenClawConfig:
    """从环境变量加载 OpenClaw 配置

    非法的超时配置记录告警并回退默认值，不阻塞启动。
    """
    kwargs: dict = {}

    if val := os.environ.get("MC_OPENCLAW_URL"):
        kwargs["gateway_url"] = val

    if val := os.environ.get("MC_OPENCLAW_TOKEN"):
        kwargs["gateway_token"] = SecretStr(val)

    if val := os.environ.get("MC_OPENCLAW_MODE"):
        kwargs["mode"] = val

    if (timeout := _int_env("MC_OPENCLAW_TIMEOUT_S", 30)) is not None:
        kwargs["timeout_s"] = timeout

    if val := os.environ.get("MC_LIMITS_URL"):
        kwargs["limits_url"] = val

    if (timeout := _int_env("MC_LIMITS_TIMEOUT_S", 10)) is not None:
        kwargs["limits_timeout_s"] = timeout

    return OpenClawConfig(**kwargs)
