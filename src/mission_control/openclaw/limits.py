"""LimitsClient -- 外部额度服务客户端

GET {limits_url}，返回 AgentLimitReport 列表。
任何非 2xx、超时、连接失败或数据格式错误统一抛 LimitsUnavailableError，
调用方据此跳过本轮轮询，不修改任何 Agent。
"""

import httpx
import structlog
from pydantic import ValidationError

from .exceptions import LimitsUnavailableError
from .models import AgentLimitReport

log = structlog.get_logger()


class LimitsClient:
    def __init__(
        self,
        limits_url: str = "http://localhost:5280/api/agents",
        timeout_s: int = 10,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._limits_url = limits_url
        self._timeout_s = timeout_s
        self._transport = transport

    @property
    def limits_url(self) -> str:
        return self._limits_url

    async def fetch_limits(self) -> list[AgentLimitReport]:
        """拉取全部 Agent 的额度数据

        Raises:
            LimitsUnavailableError: 服务不可用或数据无法解析
        """
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self._timeout_s,
            ) as http_client:
                resp = await http_client.get(self._limits_url)
        except httpx.HTTPError as e:
            raise LimitsUnavailableError(self._limits_url, f"{type(e).__name__}: {e}") from e

        if not resp.is_success:
            log.error(
                "limits_service_error",
                status_code=resp.status_code,
                body=resp.text[:200],
            )
            raise LimitsUnavailableError(
                self._limits_url,
                f"HTTP {resp.status_code}",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise LimitsUnavailableError(self._limits_url, "response is not valid JSON") from e

        if not isinstance(data, list):
            raise LimitsUnavailableError(self._limits_url, "expected a list of agents")

        try:
            return [AgentLimitReport.model_validate(item) for item in data]
        except ValidationError as e:
            raise LimitsUnavailableError(self._limits_url, "malformed agent entry") from e
