"""OpenClaw 数据模型 -- 会话记录消息与额度上报"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TranscriptMessage(BaseModel):
    """chat.history 返回的一条消息，content 已归一为纯文本"""

    role: str
    text: str = ""

    @classmethod
    def from_payload(cls, raw: dict[str, Any]) -> "TranscriptMessage":
        """content 可能是字符串，也可能是 [{type: "text", text: ...}] 列表"""
        content = raw.get("content", "")
        if isinstance(content, str):
            text = content
        elif isinstance(content, list):
            text = next(
                (
                    part.get("text", "")
                    for part in content
                    if isinstance(part, dict) and part.get("type") == "text"
                ),
                "",
            )
        else:
            text = ""
        return cls(role=str(raw.get("role", "")), text=text)


class AgentLimitReport(BaseModel):
    """额度服务上报的单个 Agent 数据"""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(description="外部运行时中的 Agent ID（openclaw_agent_id）")
    name: str = ""
    model: str = ""
    provider_type: str = ""
    status: str = Field(default="unknown", description="ok / low / critical / unknown")
    limit_5h: float | None = Field(default=None, description="5 小时窗口剩余百分比")
    limit_week: float | None = Field(default=None, description="周窗口剩余百分比")
    reset_at: str | None = None
    reset_week_at: str | None = None
    fallbacks: list[str] = Field(default_factory=list)
