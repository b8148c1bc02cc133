"""App 登记与 PRD 进度测试"""

from mission_control.gateway.services.app_service import count_checklist

PRD = """# PRD

- [x] Hero section
- [X] Pricing table
- [ ] Testimonials
  - [ ] Nested item
Some text - [ ] not at line start
"""


class TestChecklist:
    def test_counts(self):
        assert count_checklist(PRD) == (2, 4)

    def test_empty(self):
        assert count_checklist("") == (0, 0)


class TestAppProgress:
    async def test_refresh_from_prd(self, client, tmp_path):
        (tmp_path / ".ralphy").mkdir()
        (tmp_path / ".ralphy" / "PRD.md").write_text(PRD, encoding="utf-8")
        app = (await client.post("/api/apps", json={"name": "Site", "path": str(tmp_path)})).json()

        resp = await client.post(f"/api/apps/{app['app_id']}/progress")
        assert resp.status_code == 200
        body = resp.json()
        assert body["source"] == "prd"
        assert (body["completed"], body["total"]) == (2, 4)

        stored = (await client.get(f"/api/apps/{app['app_id']}")).json()
        assert stored["progress_completed"] == 2
        assert stored["progress_total"] == 4

    async def test_no_prd(self, client, tmp_path):
        app = (await client.post("/api/apps", json={"name": "Empty", "path": str(tmp_path)})).json()
        resp = await client.post(f"/api/apps/{app['app_id']}/progress")
        assert resp.json()["source"] == "no_prd"

    async def test_review_triggers_refresh(self, app, client, create_task, tmp_path):
        (tmp_path / "PRD.md").write_text("- [x] one\n- [ ] two\n", encoding="utf-8")
        registered = (
            await client.post("/api/apps", json={"name": "Site", "path": str(tmp_path)})
        ).json()
        task = await create_task(app_id=registered["app_id"], status="testing")

        await client.patch(f"/api/tasks/{task['task_id']}", json={"status": "review"})
        await app.state.runner.join()

        stored = (await client.get(f"/api/apps/{registered['app_id']}")).json()
        assert (stored["progress_completed"], stored["progress_total"]) == (1, 2)

    async def test_create_requires_name_and_path(self, client):
        resp = await client.post("/api/apps", json={"name": "x"})
        assert resp.status_code == 400

    async def test_unknown_app(self, client):
        resp = await client.get("/api/apps/nope")
        assert resp.status_code == 404
