"""OpenClawGatewayClient 单元测试

通过 httpx.MockTransport 模拟 Gateway：
1. ok=true 返回 payload
2. ok=false / 非 2xx / 非 JSON -> GatewayProtocolError
3. 连接失败 -> GatewayUnreachableError
4. chat.history content 列表归一
"""

import json

import httpx
import pytest
from mission_control.openclaw import (
    GatewayProtocolError,
    GatewayUnreachableError,
    OpenClawGatewayClient,
    TranscriptMessage,
)


def _client(handler) -> OpenClawGatewayClient:
    return OpenClawGatewayClient(
        gateway_url="http://gw.test/",
        token="secret",
        transport=httpx.MockTransport(handler),
    )


class TestCall:
    async def test_ok_returns_payload(self):
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            seen["frame"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True, "payload": {"runId": "r1"}})

        client = _client(handler)
        result = await client.send_chat("agent:a:mission-control-b", "hi", "dispatch-1-2")

        assert result == {"runId": "r1"}
        assert seen["url"] == "http://gw.test/rpc"
        assert seen["auth"] == "Bearer secret"
        assert seen["frame"]["method"] == "chat.send"
        assert seen["frame"]["params"] == {
            "sessionKey": "agent:a:mission-control-b",
            "message": "hi",
            "idempotencyKey": "dispatch-1-2",
        }
        assert seen["frame"]["id"]

    async def test_rejected_frame_raises_protocol_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, json={"ok": False, "error": {"code": "BAD", "message": "nope"}}
            )

        with pytest.raises(GatewayProtocolError) as exc_info:
            await _client(handler).call("chat.send", {})
        assert exc_info.value.code == "BAD"
        assert exc_info.value.recoverable is False

    async def test_non_2xx_raises_protocol_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="boom")

        with pytest.raises(GatewayProtocolError):
            await _client(handler).call("sessions.list")

    async def test_invalid_json_raises_protocol_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="not json")

        with pytest.raises(GatewayProtocolError):
            await _client(handler).call("sessions.list")

    async def test_connect_error_raises_unreachable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(GatewayUnreachableError) as exc_info:
            await _client(handler).call("chat.send", {})
        assert exc_info.value.recoverable is True
        assert exc_info.value.gateway_url == "http://gw.test"

    async def test_no_token_no_auth_header(self):
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"ok": True, "payload": {}})

        client = OpenClawGatewayClient(
            gateway_url="http://gw.test", transport=httpx.MockTransport(handler)
        )
        await client.call("sessions.list")
        assert seen["auth"] is None


class TestHistory:
    async def test_list_content_normalized(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={
                    "ok": True,
                    "payload": {
                        "messages": [
                            {"role": "user", "content": "问题"},
                            {
                                "role": "assistant",
                                "content": [
                                    {"type": "image", "url": "x"},
                                    {"type": "text", "text": "回答"},
                                ],
                            },
                            "garbage",
                        ]
                    },
                },
            )

        messages = await _client(handler).chat_history("k")
        assert [(m.role, m.text) for m in messages] == [("user", "问题"), ("assistant", "回答")]

    def test_unknown_content_becomes_empty(self):
        assert TranscriptMessage.from_payload({"role": "assistant", "content": 42}).text == ""


class TestHealthCheck:
    async def test_health_ok(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/health"
            return httpx.Response(200)

        assert await _client(handler).health_check() is True

    async def test_health_never_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        assert await _client(handler).health_check() is False
