"""OpenClaw 客户端异常 -> 领域异常映射"""

from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from mission_control.core.errors import UpstreamProtocolError, UpstreamUnavailableError
from mission_control.openclaw import GatewayProtocolError, GatewayUnreachableError

log = structlog.get_logger()


@contextmanager
def gateway_errors(operation: str, **context) -> Iterator[None]:
    """不可达 -> 503（可重试）；对端拒绝/帧错误 -> 502"""
    try:
        yield
    except GatewayUnreachableError as e:
        log.warning("openclaw_operation_unreachable", operation=operation, **context)
        raise UpstreamUnavailableError(
            "Failed to connect to OpenClaw Gateway",
            code="OPENCLAW_UNAVAILABLE",
        ) from e
    except GatewayProtocolError as e:
        log.warning("openclaw_operation_rejected", operation=operation, error=str(e), **context)
        raise UpstreamProtocolError(
            f"OpenClaw rejected {operation}: {e}",
            code="OPENCLAW_REJECTED",
        ) from e
