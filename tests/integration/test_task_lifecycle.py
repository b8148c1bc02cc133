"""端到端：Planning -> 自动派发 -> 完成回调 -> master 审批

对应看板上一项任务的完整生命周期，验证状态机、Agent 状态推导与审计事件链。
"""

import json

from mission_control.gateway.services.planning import planning_session_key

QUESTION = {
    "question": "What stack should we use?",
    "options": [{"id": "A", "label": "Next.js"}, {"id": "other", "label": "Other"}],
}

COMPLETE = {
    "status": "complete",
    "spec": {"title": "Docs site", "summary": "Static documentation site"},
    "agents": [
        {
            "name": "Writer Bot",
            "role": "Technical Writer",
            "instructions": "Write the getting started guide",
            "openclaw_agent_id": "writer",
        }
    ],
    "execution_plan": {"steps": ["outline", "draft"]},
}


class TestTaskLifecycle:
    async def test_planning_to_done(self, integration_app, client):
        gateway = integration_app.state.gateway
        runner = integration_app.state.runner

        master = (
            await client.post(
                "/api/agents", json={"name": "Charlie", "role": "Lead", "is_master": True}
            )
        ).json()
        task = (await client.post("/api/tasks", json={"title": "Docs site"})).json()
        task_id = task["task_id"]

        # 1. Planning 两轮对话
        key = planning_session_key(task_id)
        gateway.script_reply(key, json.dumps(QUESTION))
        gateway.script_reply(key, json.dumps(COMPLETE))

        started = (await client.post(f"/api/tasks/{task_id}/planning")).json()
        assert started["currentQuestion"] == QUESTION

        done = (
            await client.post(f"/api/tasks/{task_id}/planning/answer", json={"answer": "A"})
        ).json()
        assert done["complete"] is True
        await runner.join()

        # 2. 自动派发给 Planning 创建的 Agent
        current = (await client.get(f"/api/tasks/{task_id}")).json()
        assert current["status"] == "in_progress"
        assert current["assigned_agent_name"] == "Writer Bot"
        writer_id = current["assigned_agent_id"]
        writer = (await client.get(f"/api/agents/{writer_id}")).json()
        assert writer["status"] == "working"
        briefing = gateway.transcript("agent:writer:mission-control-writer-bot")[0]["content"]
        assert f"PATCH http://mc.test/api/tasks/{task_id}" in briefing

        # 3. Agent 通过完成标记回调
        resp = await client.post(
            "/api/webhooks/agent-completion",
            json={
                "session_id": "mission-control-writer-bot",
                "message": "TASK_COMPLETE: Guide drafted",
            },
        )
        assert resp.json()["new_status"] == "testing"
        writer = (await client.get(f"/api/agents/{writer_id}")).json()
        assert writer["status"] == "standby"

        # 4. review -> done 需要 master
        await client.patch(f"/api/tasks/{task_id}", json={"status": "review"})
        denied = await client.patch(
            f"/api/tasks/{task_id}",
            json={"status": "done", "updated_by_agent_id": writer_id},
        )
        assert denied.status_code == 403
        approved = await client.patch(
            f"/api/tasks/{task_id}",
            json={"status": "done", "updated_by_agent_id": master["agent_id"]},
        )
        assert approved.status_code == 200

        events = (await client.get("/api/events", params={"task_id": task_id})).json()
        types = [e["type"] for e in reversed(events)]
        assert types[0] == "task_created"
        for expected in ("task_assigned", "task_dispatched", "task_completed"):
            assert expected in types
        assert types[-1] == "task_completed"

    async def test_ready_with_lifespan(self, client):
        resp = await client.get("/ready", params={"profile": "full"})
        assert resp.status_code == 200
        assert resp.json()["checks"]["openclaw_gateway"] == "ok"
