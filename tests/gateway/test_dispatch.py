"""派发测试

测试内容：
1. 前置条件不满足时 400/404，任务不变
2. 成功派发：路由键、幂等键、简报内容、状态推进
3. 运行时不可达：503，任务与 Agent 不变
4. PATCH 进入 assigned 触发后台派发
"""

import httpx
from mission_control.openclaw import OpenClawGatewayClient


class TestDispatchPreconditions:
    async def test_unassigned_task(self, client, create_task, gateway):
        task = await create_task()
        resp = await client.post(f"/api/tasks/{task['task_id']}/dispatch")
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "TASK_NOT_ASSIGNED"
        assert gateway.sent == []

        current = (await client.get(f"/api/tasks/{task['task_id']}")).json()
        assert current["status"] == "inbox"
        assert current["version"] == 1

    async def test_agent_without_openclaw_id(self, client, create_agent, create_task):
        agent = await create_agent(openclaw_agent_id=None)
        task = await create_task(assigned_agent_id=agent["agent_id"])
        resp = await client.post(f"/api/tasks/{task['task_id']}/dispatch")
        assert resp.status_code == 400

    async def test_missing_task(self, client):
        resp = await client.post("/api/tasks/nope/dispatch")
        assert resp.status_code == 404


class TestDispatchSuccess:
    async def test_dispatch_moves_to_in_progress(self, client, create_agent, create_task, gateway):
        agent = await create_agent(name="Builder", openclaw_agent_id="builder")
        task = await create_task(
            assigned_agent_id=agent["agent_id"],
            status="assigned",
            priority="urgent",
            description="Hero section and pricing",
        )

        resp = await client.post(f"/api/tasks/{task['task_id']}/dispatch")
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["success"] is True
        assert body["session_id"] == "mission-control-builder"

        assert len(gateway.sent) == 1
        sent = gateway.sent[0]
        assert sent["sessionKey"] == "agent:builder:mission-control-builder"
        assert sent["idempotencyKey"].startswith(f"dispatch-{task['task_id']}-")
        assert sent["message"].startswith("🔴 **NEW TASK ASSIGNED**")
        assert "**Description:** Hero section and pricing" in sent["message"]
        assert f"POST http://mc.test/api/tasks/{task['task_id']}/activities" in sent["message"]
        assert "TASK_COMPLETE:" in sent["message"]

        current = (await client.get(f"/api/tasks/{task['task_id']}")).json()
        assert current["status"] == "in_progress"
        refreshed = (await client.get(f"/api/agents/{agent['agent_id']}")).json()
        assert refreshed["status"] == "working"

        events = (await client.get("/api/events", params={"type": "task_dispatched"})).json()
        assert len(events) == 1

    async def test_session_reused(self, client, create_agent, create_task, gateway):
        agent = await create_agent()
        first = await create_task(title="one", assigned_agent_id=agent["agent_id"])
        second = await create_task(title="two", assigned_agent_id=agent["agent_id"])

        await client.post(f"/api/tasks/{first['task_id']}/dispatch")
        await client.post(f"/api/tasks/{second['task_id']}/dispatch")

        link = (await client.get(f"/api/agents/{agent['agent_id']}/openclaw")).json()
        assert link["linked"] is True
        assert {s["sessionKey"] for s in gateway.sent} == {"agent:builder:mission-control-builder"}

    async def test_app_context_in_briefing(self, client, create_agent, create_task, gateway, tmp_path):
        app_resp = await client.post(
            "/api/apps", json={"name": "Site", "path": str(tmp_path), "port": 4000}
        )
        agent = await create_agent()
        task = await create_task(assigned_agent_id=agent["agent_id"], app_id=app_resp.json()["app_id"])

        await client.post(f"/api/tasks/{task['task_id']}/dispatch")
        message = gateway.sent[0]["message"]
        assert "## APP CONTEXT" in message
        assert "- **Port**: 4000 (access at http://localhost:4000)" in message


class TestDispatchUnreachable:
    async def test_unreachable_returns_503(self, app, client, create_agent, create_task, wire_services):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        wire_services(
            app,
            OpenClawGatewayClient(
                gateway_url="http://gw.test", transport=httpx.MockTransport(refuse)
            ),
        )
        agent = await create_agent()
        task = await create_task(assigned_agent_id=agent["agent_id"], status="assigned")

        resp = await client.post(f"/api/tasks/{task['task_id']}/dispatch")
        assert resp.status_code == 503
        error = resp.json()["error"]
        assert error["code"] == "OPENCLAW_UNAVAILABLE"
        assert error["retryable"] is True

        current = (await client.get(f"/api/tasks/{task['task_id']}")).json()
        assert current["status"] == "assigned"
        refreshed = (await client.get(f"/api/agents/{agent['agent_id']}")).json()
        assert refreshed["status"] == "standby"

    async def test_rejected_returns_502(self, app, client, create_agent, create_task, wire_services):
        def reject(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"ok": False, "error": {"message": "no such agent"}})

        wire_services(
            app,
            OpenClawGatewayClient(
                gateway_url="http://gw.test", transport=httpx.MockTransport(reject)
            ),
        )
        agent = await create_agent()
        task = await create_task(assigned_agent_id=agent["agent_id"])

        resp = await client.post(f"/api/tasks/{task['task_id']}/dispatch")
        assert resp.status_code == 502
        assert resp.json()["error"]["code"] == "OPENCLAW_REJECTED"


class TestAutoDispatch:
    async def test_patch_to_assigned_dispatches(self, app, client, create_agent, create_task, gateway):
        agent = await create_agent()
        task = await create_task()

        resp = await client.patch(
            f"/api/tasks/{task['task_id']}",
            json={"assigned_agent_id": agent["agent_id"], "status": "assigned"},
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "assigned"

        await app.state.runner.join()

        assert len(gateway.sent) == 1
        current = (await client.get(f"/api/tasks/{task['task_id']}")).json()
        assert current["status"] == "in_progress"

        events = (await client.get("/api/events", params={"task_id": task["task_id"]})).json()
        types = {e["type"] for e in events}
        assert {"task_assigned", "task_status_changed", "task_dispatched"} <= types

    async def test_background_failure_leaves_task(self, app, client, create_agent, create_task, wire_services):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        wire_services(
            app,
            OpenClawGatewayClient(
                gateway_url="http://gw.test", transport=httpx.MockTransport(refuse)
            ),
        )
        agent = await create_agent()
        task = await create_task()

        resp = await client.patch(
            f"/api/tasks/{task['task_id']}",
            json={"assigned_agent_id": agent["agent_id"], "status": "assigned"},
        )
        assert resp.status_code == 200
        await app.state.runner.join()

        current = (await client.get(f"/api/tasks/{task['task_id']}")).json()
        assert current["status"] == "assigned"
