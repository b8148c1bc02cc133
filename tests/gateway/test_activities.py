"""活动、交付物、事件与子 Agent 测试"""


class TestActivities:
    async def test_log_and_list(self, client, create_agent, create_task):
        agent = await create_agent()
        task = await create_task()
        resp = await client.post(
            f"/api/tasks/{task['task_id']}/activities",
            json={
                "activity_type": "completed",
                "message": "Built hero",
                "agent_id": agent["agent_id"],
                "metadata": {"model": 4, "tokens_in": "120", "extra": "kept"},
            },
        )
        assert resp.status_code == 201
        assert resp.json()["metadata"] == {"model": "4", "tokens_in": 120, "extra": "kept"}

        activities = (await client.get(f"/api/tasks/{task['task_id']}/activities")).json()
        assert [a["message"] for a in activities] == ["Built hero"]

    async def test_missing_fields(self, client, create_task):
        task = await create_task()
        resp = await client.post(
            f"/api/tasks/{task['task_id']}/activities", json={"activity_type": "x"}
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "ACTIVITY_FIELDS_REQUIRED"

    async def test_bad_token_count(self, client, create_task):
        task = await create_task()
        resp = await client.post(
            f"/api/tasks/{task['task_id']}/activities",
            json={"activity_type": "x", "message": "y", "metadata": {"tokens_out": "many"}},
        )
        assert resp.status_code == 400

    async def test_unknown_task(self, client):
        resp = await client.post(
            "/api/tasks/nope/activities", json={"activity_type": "x", "message": "y"}
        )
        assert resp.status_code == 404


class TestDeliverables:
    async def test_existing_file(self, client, create_task, tmp_path):
        task = await create_task()
        artifact = tmp_path / "index.html"
        artifact.write_text("<h1>hi</h1>")

        resp = await client.post(
            f"/api/tasks/{task['task_id']}/deliverables",
            json={"deliverable_type": "file", "title": "index.html", "path": str(artifact)},
        )
        assert resp.status_code == 201
        assert "warning" not in resp.json()

    async def test_missing_file_still_recorded(self, client, create_task, tmp_path):
        task = await create_task()
        missing = tmp_path / "ghost.txt"

        resp = await client.post(
            f"/api/tasks/{task['task_id']}/deliverables",
            json={"deliverable_type": "file", "title": "ghost", "path": str(missing)},
        )
        assert resp.status_code == 201
        assert resp.json()["warning"] == f"File does not exist: {missing}"

        listed = (await client.get(f"/api/tasks/{task['task_id']}/deliverables")).json()
        assert [d["title"] for d in listed] == ["ghost"]

    async def test_missing_fields(self, client, create_task):
        task = await create_task()
        resp = await client.post(
            f"/api/tasks/{task['task_id']}/deliverables", json={"deliverable_type": "url"}
        )
        assert resp.status_code == 400


class TestEvents:
    async def test_post_and_filter(self, client, create_task):
        task = await create_task()
        resp = await client.post(
            "/api/events",
            json={"type": "system", "message": "Nightly sync", "task_id": task["task_id"]},
        )
        assert resp.status_code == 201

        events = (await client.get("/api/events", params={"type": "system"})).json()
        assert [e["message"] for e in events] == ["Nightly sync"]

        limited = (await client.get("/api/events", params={"limit": 1})).json()
        assert len(limited) == 1

    async def test_message_required(self, client):
        resp = await client.post("/api/events", json={"type": "system"})
        assert resp.status_code == 400

    async def test_limit_bounds(self, client):
        assert (await client.get("/api/events", params={"limit": 0})).status_code == 422
        assert (await client.get("/api/events", params={"limit": 501})).status_code == 422


class TestSubagents:
    async def test_register_creates_agent_once(self, client, create_task):
        task = await create_task()
        url = f"/api/tasks/{task['task_id']}/subagent"

        first = await client.post(url, json={"openclaw_session_id": "sub-1", "agent_name": "Scout"})
        assert first.status_code == 201
        assert first.json()["agent"]["role"] == "Sub-Agent"

        second = await client.post(url, json={"openclaw_session_id": "sub-2", "agent_name": "Scout"})
        assert second.json()["agent"]["agent_id"] == first.json()["agent"]["agent_id"]

        sessions = (await client.get(url)).json()
        assert {s["openclaw_session_id"] for s in sessions} == {"sub-1", "sub-2"}
        assert all(s["session_type"] == "subagent" for s in sessions)

    async def test_fields_required(self, client, create_task):
        task = await create_task()
        resp = await client.post(
            f"/api/tasks/{task['task_id']}/subagent", json={"agent_name": "Scout"}
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "SUBAGENT_FIELDS_REQUIRED"
