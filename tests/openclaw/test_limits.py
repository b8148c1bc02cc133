"""LimitsClient 单元测试 -- 任何失败都统一为 LimitsUnavailableError"""

import httpx
import pytest
from mission_control.openclaw import LimitsClient, LimitsUnavailableError


def _client(handler) -> LimitsClient:
    return LimitsClient(limits_url="http://limits.test/api/agents", transport=httpx.MockTransport(handler))


class TestLimitsClient:
    async def test_parses_reports(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json=[
                    {
                        "id": "builder",
                        "name": "Builder",
                        "status": "low",
                        "limit_5h": 12.5,
                        "limit_week": 40,
                        "unexpected": True,
                    }
                ],
            )

        reports = await _client(handler).fetch_limits()
        assert len(reports) == 1
        assert reports[0].id == "builder"
        assert reports[0].limit_5h == 12.5
        assert reports[0].limit_week == 40

    async def test_non_2xx(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="down")

        with pytest.raises(LimitsUnavailableError) as exc_info:
            await _client(handler).fetch_limits()
        assert exc_info.value.status_code == 503

    async def test_connect_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(LimitsUnavailableError):
            await _client(handler).fetch_limits()

    async def test_non_list_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"agents": []})

        with pytest.raises(LimitsUnavailableError):
            await _client(handler).fetch_limits()

    async def test_entry_without_id(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[{"name": "no id"}])

        with pytest.raises(LimitsUnavailableError):
            await _client(handler).fetch_limits()
