"""任务 API 测试

测试内容：
1. 创建默认值与必填校验
2. PATCH 语义：空更新、显式置空、版本冲突
3. review -> done 的 master 审批规则
4. 删除级联
5. 错误响应格式
"""


class TestCreateTask:
    async def test_defaults(self, client, create_task):
        """新任务 inbox / normal / 未分配"""
        task = await create_task()
        assert task["status"] == "inbox"
        assert task["priority"] == "normal"
        assert task["assigned_agent_id"] is None
        assert task["workspace_id"] == "default"
        assert task["version"] == 1

        events = (await client.get("/api/events", params={"task_id": task["task_id"]})).json()
        assert [e["type"] for e in events] == ["task_created"]
        assert events[0]["message"] == "New task: Build landing page"

    async def test_missing_title(self, client):
        resp = await client.post("/api/tasks", json={"description": "x"})
        assert resp.status_code == 400
        body = resp.json()
        assert body["error"]["code"] == "TITLE_REQUIRED"
        assert body["error"]["retryable"] is False

    async def test_unknown_assignee(self, client):
        resp = await client.post("/api/tasks", json={"title": "t", "assigned_agent_id": "nope"})
        assert resp.status_code == 404

    async def test_creator_named_in_event(self, client, create_agent, create_task):
        agent = await create_agent(name="Ada")
        task = await create_task(created_by_agent_id=agent["agent_id"])
        events = (await client.get("/api/events", params={"task_id": task["task_id"]})).json()
        assert events[0]["message"] == "Ada created task: Build landing page"


class TestListTasks:
    async def test_status_filter(self, client, create_task):
        await create_task(title="a")
        await create_task(title="b", status="review")

        resp = await client.get("/api/tasks", params={"status": "review"})
        assert [t["title"] for t in resp.json()] == ["b"]

        resp = await client.get("/api/tasks", params={"status": "inbox,review"})
        assert len(resp.json()) == 2

    async def test_invalid_status_filter(self, client):
        resp = await client.get("/api/tasks", params={"status": "bogus"})
        assert resp.status_code == 400

    async def test_get_missing(self, client):
        resp = await client.get("/api/tasks/01ARZ3NDEKTSV4RRFFQ69G5FAV")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "TASK_NOT_FOUND"


class TestUpdateTask:
    async def test_no_updates(self, client, create_task):
        task = await create_task()
        resp = await client.patch(f"/api/tasks/{task['task_id']}", json={})
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "No updates provided"

    async def test_status_change_logs_event(self, client, create_task):
        task = await create_task()
        resp = await client.patch(f"/api/tasks/{task['task_id']}", json={"status": "testing"})
        assert resp.status_code == 200
        assert resp.json()["status"] == "testing"
        assert resp.json()["version"] == 2

        events = (await client.get("/api/events", params={"task_id": task["task_id"]})).json()
        assert events[0]["type"] == "task_status_changed"
        assert events[0]["metadata"] == {"from_status": "inbox", "to_status": "testing"}

    async def test_explicit_null_unassigns(self, client, create_agent, create_task):
        agent = await create_agent()
        task = await create_task(assigned_agent_id=agent["agent_id"])
        resp = await client.patch(
            f"/api/tasks/{task['task_id']}", json={"assigned_agent_id": None}
        )
        assert resp.status_code == 200
        assert resp.json()["assigned_agent_id"] is None

    async def test_null_title_rejected(self, client, create_task):
        task = await create_task()
        resp = await client.patch(f"/api/tasks/{task['task_id']}", json={"title": None})
        assert resp.status_code == 400

    async def test_stale_version_conflicts(self, client, create_task):
        task = await create_task()
        ok = await client.patch(
            f"/api/tasks/{task['task_id']}", json={"title": "A", "version": 1}
        )
        assert ok.status_code == 200

        stale = await client.patch(
            f"/api/tasks/{task['task_id']}", json={"title": "B", "version": 1}
        )
        assert stale.status_code == 409
        assert stale.json()["error"]["retryable"] is True

        current = (await client.get(f"/api/tasks/{task['task_id']}")).json()
        assert current["title"] == "A"


class TestMasterApproval:
    async def _review_task(self, create_task):
        return await create_task(status="review")

    async def test_non_master_forbidden(self, client, create_agent, create_task):
        worker = await create_agent(name="Worker")
        task = await self._review_task(create_task)
        resp = await client.patch(
            f"/api/tasks/{task['task_id']}",
            json={"status": "done", "updated_by_agent_id": worker["agent_id"]},
        )
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "MASTER_APPROVAL_REQUIRED"

        current = (await client.get(f"/api/tasks/{task['task_id']}")).json()
        assert current["status"] == "review"

    async def test_master_allowed(self, client, create_agent, create_task):
        master = await create_agent(name="Boss", is_master=True)
        task = await self._review_task(create_task)
        resp = await client.patch(
            f"/api/tasks/{task['task_id']}",
            json={"status": "done", "updated_by_agent_id": master["agent_id"]},
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "done"

        events = (await client.get("/api/events", params={"task_id": task["task_id"]})).json()
        assert events[0]["type"] == "task_completed"

    async def test_master_of_other_workspace_forbidden(self, client, create_agent, create_task):
        master = await create_agent(name="Other Boss", is_master=True, workspace_id="ws-2")
        task = await self._review_task(create_task)
        resp = await client.patch(
            f"/api/tasks/{task['task_id']}",
            json={"status": "done", "updated_by_agent_id": master["agent_id"]},
        )
        assert resp.status_code == 403

    async def test_human_allowed(self, client, create_task):
        task = await self._review_task(create_task)
        resp = await client.patch(f"/api/tasks/{task['task_id']}", json={"status": "done"})
        assert resp.status_code == 200


class TestDeleteTask:
    async def test_cascade(self, client, create_agent, create_task):
        agent = await create_agent()
        task = await create_task(assigned_agent_id=agent["agent_id"])
        task_id = task["task_id"]
        await client.post(
            f"/api/tasks/{task_id}/activities",
            json={"activity_type": "updated", "message": "working"},
        )
        await client.post(
            f"/api/tasks/{task_id}/subagent",
            json={"openclaw_session_id": "sub-1", "agent_name": "Helper"},
        )

        resp = await client.delete(f"/api/tasks/{task_id}")
        assert resp.status_code == 200
        assert resp.json() == {"success": True}

        assert (await client.get(f"/api/tasks/{task_id}")).status_code == 404
        assert (await client.get("/api/events", params={"task_id": task_id})).json() == []
        # Agent 不随任务删除
        assert (await client.get(f"/api/agents/{agent['agent_id']}")).status_code == 200

    async def test_delete_missing(self, client):
        resp = await client.delete("/api/tasks/nope")
        assert resp.status_code == 404
