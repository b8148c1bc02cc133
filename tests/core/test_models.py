"""领域模型单元测试

测试内容：
1. Task / Agent 默认值
2. 状态集合与优先级标识
3. TaskUpdate 区分 "未提供" 与 "显式置空"
"""

from mission_control.core.models import (
    ACTIVE_WORK_STATES,
    DEPLETION_DEMOTED_STATES,
    DEPLETION_PROTECTED_STATES,
    PRIORITY_INDICATORS,
    AgentStatus,
    PlanningCategory,
    Priority,
    TaskStatus,
)
from mission_control.core.models.payloads import TaskUpdate


class TestTaskModel:
    def test_task_defaults(self, make_task):
        """新任务默认 inbox / normal / default 工作区 / version 1"""
        task = make_task()
        assert task.status == TaskStatus.INBOX
        assert task.priority == Priority.NORMAL
        assert task.workspace_id == "default"
        assert task.assigned_agent_id is None
        assert task.planning_session_key is None
        assert task.planning_messages == []
        assert task.planning_complete is False
        assert task.version == 1

    def test_agent_defaults(self, make_agent):
        agent = make_agent()
        assert agent.status == AgentStatus.STANDBY
        assert agent.avatar_emoji == "🤖"
        assert agent.is_master is False
        assert agent.limit_5h == 100
        assert agent.limit_week == 100


class TestStateSets:
    def test_depletion_sets_disjoint(self):
        """耗尽清扫：review/done 不动，in_progress/testing 降级"""
        assert DEPLETION_PROTECTED_STATES == {TaskStatus.REVIEW, TaskStatus.DONE}
        assert DEPLETION_DEMOTED_STATES == {TaskStatus.IN_PROGRESS, TaskStatus.TESTING}
        assert not DEPLETION_PROTECTED_STATES & DEPLETION_DEMOTED_STATES
        assert TaskStatus.ASSIGNED not in DEPLETION_DEMOTED_STATES

    def test_working_means_in_progress(self):
        assert ACTIVE_WORK_STATES == {TaskStatus.IN_PROGRESS}

    def test_priority_indicators(self):
        assert PRIORITY_INDICATORS[Priority.LOW] == "🔵"
        assert PRIORITY_INDICATORS[Priority.NORMAL] == "⚪"
        assert PRIORITY_INDICATORS[Priority.HIGH] == "🟡"
        assert PRIORITY_INDICATORS[Priority.URGENT] == "🔴"

    def test_planning_category_order(self):
        assert [c.value for c in PlanningCategory] == [
            "goal",
            "audience",
            "scope",
            "design",
            "content",
            "technical",
            "timeline",
            "constraints",
        ]


class TestTaskUpdatePayload:
    def test_explicit_null_is_tracked(self):
        """assigned_agent_id=null 表示取消分配，与未提供不同"""
        unassign = TaskUpdate.model_validate({"assigned_agent_id": None})
        assert "assigned_agent_id" in unassign.model_fields_set

        untouched = TaskUpdate.model_validate({"title": "x"})
        assert "assigned_agent_id" not in untouched.model_fields_set

    def test_empty_payload_has_no_fields(self):
        assert TaskUpdate.model_validate({}).model_fields_set == set()
