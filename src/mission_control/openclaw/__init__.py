"""Mission Control OpenClaw -- 外部 Agent 运行时与额度服务客户端

公开接口导出。
"""

from .client import OpenClawGatewayClient
from .config import OpenClawConfig, load_openclaw_config
from .echo_client import EchoGatewayClient
from .exceptions import (
    GatewayProtocolError,
    GatewayUnreachableError,
    LimitsUnavailableError,
    OpenClawError,
)
from .limits import LimitsClient
from .models import AgentLimitReport, TranscriptMessage

__all__ = [
    "OpenClawGatewayClient",
    "EchoGatewayClient",
    "LimitsClient",
    "OpenClawConfig",
    "load_openclaw_config",
    "AgentLimitReport",
    "TranscriptMessage",
    "OpenClawError",
    "GatewayUnreachableError",
    "GatewayProtocolError",
    "LimitsUnavailableError",
]
