"""EchoGatewayClient 与配置加载测试"""

import pytest
from mission_control.openclaw import (
    EchoGatewayClient,
    GatewayProtocolError,
    load_openclaw_config,
)


class TestEchoGatewayClient:
    async def test_scripted_reply_consumed_in_order(self):
        client = EchoGatewayClient()
        client.script_reply("s", "第一条")
        client.script_reply("s", "第二条")

        await client.send_chat("s", "a", "k1")
        await client.send_chat("s", "b", "k2")
        await client.send_chat("s", "c", "k3")

        history = await client.chat_history("s")
        assert [(m.role, m.text) for m in history] == [
            ("user", "a"),
            ("assistant", "第一条"),
            ("user", "b"),
            ("assistant", "第二条"),
            ("user", "c"),
        ]
        assert [s["idempotencyKey"] for s in client.sent] == ["k1", "k2", "k3"]

    async def test_auto_echo(self):
        client = EchoGatewayClient(auto_echo=True)
        await client.send_chat("s", "ping", "k")
        history = await client.chat_history("s", limit=1)
        assert history[0].text == "Echo: ping"

    async def test_unknown_method(self):
        with pytest.raises(GatewayProtocolError):
            await EchoGatewayClient().call("nope.method")

    async def test_list_sessions(self):
        client = EchoGatewayClient()
        await client.send_chat("s1", "x", "k")
        assert await client.list_sessions() == [{"key": "s1"}]


class TestConfig:
    def test_defaults(self, monkeypatch):
        for name in (
            "MC_OPENCLAW_URL",
            "MC_OPENCLAW_TOKEN",
            "MC_OPENCLAW_MODE",
            "MC_OPENCLAW_TIMEOUT_S",
            "MC_LIMITS_URL",
            "MC_LIMITS_TIMEOUT_S",
        ):
            monkeypatch.delenv(name, raising=False)

        config = load_openclaw_config()
        assert config.gateway_url == "http://127.0.0.1:18789"
        assert config.mode == "gateway"
        assert config.timeout_s == 30
        assert config.limits_url == "http://localhost:5280/api/agents"
        assert config.gateway_token.get_secret_value() == ""

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("MC_OPENCLAW_URL", "http://gw:1")
        monkeypatch.setenv("MC_OPENCLAW_TOKEN", "tok")
        monkeypatch.setenv("MC_OPENCLAW_MODE", "echo")
        monkeypatch.setenv("MC_OPENCLAW_TIMEOUT_S", "5")

        config = load_openclaw_config()
        assert config.gateway_url == "http://gw:1"
        assert config.gateway_token.get_secret_value() == "tok"
        assert config.mode == "echo"
        assert config.timeout_s == 5

    def test_invalid_timeout_falls_back(self, monkeypatch):
        monkeypatch.setenv("MC_OPENCLAW_TIMEOUT_S", "abc")
        assert load_openclaw_config().timeout_s == 30
