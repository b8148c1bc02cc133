"""OpenClawGatewayClient -- 外部 Agent 运行时 RPC 封装

每次调用 POST {gateway_url}/rpc，请求帧 {id, method, params}，
响应帧 {ok: true, payload} 或 {ok: false, error: {code, message}}。
连接失败/超时抛 GatewayUnreachableError；对端拒绝或帧格式错误抛 GatewayProtocolError。
"""

from typing import Any

import httpx
import structlog
from ulid import ULID

from .exceptions import GatewayProtocolError, GatewayUnreachableError
from .models import TranscriptMessage

log = structlog.get_logger()

# 健康检查超时（硬编码，应快速响应）
HEALTH_CHECK_TIMEOUT_S = 5

# 连接类异常类型集合
_CONNECTION_ERROR_TYPES = (
    ConnectionError,
    OSError,
    TimeoutError,
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.TimeoutException,
    httpx.NetworkError,
)


class OpenClawGatewayClient:
    """OpenClaw Gateway 客户端

    call() 是通用原语；send_chat / chat_history / list_sessions 是其上的便捷封装。
    """

    def __init__(
        self,
        gateway_url: str = "http://127.0.0.1:18789",
        token: str = "",
        timeout_s: int = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            gateway_url: Gateway 基础 URL
            token: bearer token，空串表示不带认证头
            timeout_s: 请求超时（秒）
            transport: 自定义 httpx transport（测试中注入 MockTransport）
        """
        self._gateway_url = gateway_url.rstrip("/")
        self._token = token
        self._timeout_s = timeout_s
        self._transport = transport

    @property
    def gateway_url(self) -> str:
        return self._gateway_url

    def _headers(self) -> dict[str, str]:
        if self._token:
            return {"Authorization": f"Bearer {self._token}"}
        return {}

    async def call(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """发送一次 RPC 请求并返回 payload

        Raises:
            GatewayUnreachableError: 连接失败或超时
            GatewayProtocolError: 对端返回 ok=false、非 2xx 或无法解析的帧
        """
        frame = {"id": str(ULID()), "method": method, "params": params or {}}
        log.debug("openclaw_call_start", method=method, request_id=frame["id"])

        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self._timeout_s,
            ) as http_client:
                resp = await http_client.post(
                    f"{self._gateway_url}/rpc",
                    json=frame,
                    headers=self._headers(),
                )
        except _CONNECTION_ERROR_TYPES as e:
            log.warning(
                "openclaw_unreachable",
                method=method,
                gateway_url=self._gateway_url,
                error_type=type(e).__name__,
            )
            raise GatewayUnreachableError(self._gateway_url, e) from e

        if not resp.is_success:
            raise GatewayProtocolError(method, f"HTTP {resp.status_code}", code=str(resp.status_code))

        try:
            body = resp.json()
        except ValueError as e:
            raise GatewayProtocolError(method, "response is not valid JSON") from e

        if not isinstance(body, dict) or "ok" not in body:
            raise GatewayProtocolError(method, "malformed response frame")

        if not body["ok"]:
            error = body.get("error") or {}
            raise GatewayProtocolError(
                method,
                str(error.get("message", "request rejected")),
                code=error.get("code"),
            )

        payload = body.get("payload")
        return payload if isinstance(payload, dict) else {}

    async def send_chat(
        self,
        session_key: str,
        message: str,
        idempotency_key: str,
    ) -> dict[str, Any]:
        """chat.send -- 向会话投递一条消息"""
        return await self.call(
            "chat.send",
            {
                "sessionKey": session_key,
                "message": message,
                "idempotencyKey": idempotency_key,
            },
        )

    async def chat_history(self, session_key: str, limit: int = 50) -> list[TranscriptMessage]:
        """chat.history -- 读取会话记录，按时间正序"""
        payload = await self.call("chat.history", {"sessionKey": session_key, "limit": limit})
        raw_messages = payload.get("messages") or []
        return [
            TranscriptMessage.from_payload(raw) for raw in raw_messages if isinstance(raw, dict)
        ]

    async def list_sessions(self) -> list[dict[str, Any]]:
        """sessions.list -- 列出运行时中的会话"""
        payload = await self.call("sessions.list", {})
        sessions = payload.get("sessions") or []
        return [s for s in sessions if isinstance(s, dict)]

    async def health_check(self) -> bool:
        """检查 Gateway 可达性

        发送 GET {gateway_url}/health 请求。此方法不抛出异常。
        """
        url = f"{self._gateway_url}/health"
        try:
            async with httpx.AsyncClient(transport=self._transport) as http_client:
                resp = await http_client.get(url, timeout=HEALTH_CHECK_TIMEOUT_S)
                return resp.status_code == 200
        except Exception as e:
            log.debug("health_check_failed", url=url, error=str(e))
            return False
