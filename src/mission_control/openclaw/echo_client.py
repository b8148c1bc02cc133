"""EchoGatewayClient -- 进程内的 OpenClaw Gateway 替身

MC_OPENCLAW_MODE=echo 时使用，不依赖外部运行时即可跑通派发与 Planning 流程。
行为:
    - chat.send 把消息记入会话记录；若为该会话预置了回复则追加为 assistant 消息，
      否则在 auto_echo 开启时追加 "Echo: ..." 回声
    - chat.history 返回会话记录末尾 limit 条
    - sessions.list 返回所有出现过的会话
"""

from collections import defaultdict, deque
from typing import Any

from .client import OpenClawGatewayClient
from .exceptions import GatewayProtocolError


class EchoGatewayClient(OpenClawGatewayClient):
    """OpenClawGatewayClient 的回声实现"""

    def __init__(self, auto_echo: bool = False) -> None:
        super().__init__(gateway_url="echo://local")
        self._auto_echo = auto_echo
        self._transcripts: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self._scripted: dict[str, deque[str]] = defaultdict(deque)
        self.sent: list[dict[str, Any]] = []

    def script_reply(self, session_key: str, text: str) -> None:
        """为会话预置下一条 assistant 回复（按 chat.send 次序逐条消费）"""
        self._scripted[session_key].append(text)

    def transcript(self, session_key: str) -> list[dict[str, Any]]:
        return list(self._transcripts.get(session_key, []))

    async def call(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        params = params or {}
        if method == "chat.send":
            return self._chat_send(params)
        if method == "chat.history":
            key = params.get("sessionKey", "")
            limit = int(params.get("limit", 50))
            return {"messages": self._transcripts.get(key, [])[-limit:]}
        if method in ("sessions.list", "sessions.send"):
            return {"sessions": [{"key": key} for key in self._transcripts]}
        raise GatewayProtocolError(method, "unknown method", code="METHOD_NOT_FOUND")

    def _chat_send(self, params: dict[str, Any]) -> dict[str, Any]:
        key = params.get("sessionKey")
        message = params.get("message")
        if not key or message is None:
            raise GatewayProtocolError("chat.send", "sessionKey and message are required")

        self.sent.append(dict(params))
        transcript = self._transcripts[key]
        transcript.append({"role": "user", "content": message})

        if self._scripted[key]:
            transcript.append({"role": "assistant", "content": self._scripted[key].popleft()})
        elif self._auto_echo:
            transcript.append({"role": "assistant", "content": f"Echo: {message}"})

        return {"runId": params.get("idempotencyKey"), "status": "accepted"}

    async def health_check(self) -> bool:
        return True
