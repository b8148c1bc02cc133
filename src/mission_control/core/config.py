"""配置常量模块 -- 可通过环境变量覆盖

包含数据库路径、编排基础 URL、Planning 轮询节奏、额度阈值等可配置常量。
路径类配置以函数形式按调用时读取，便于测试中通过环境变量切换。
"""

import os
from pathlib import Path


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("MC_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "MC_DB_PATH",
        str(_get_base_dir() / "sqlite" / "mission_control.db"),
    )


def get_base_url() -> str:
    """Mission Control 对外 URL（写入派发简报，供 Agent 回调）"""
    return os.environ.get("MC_BASE_URL", "http://localhost:3000").rstrip("/")


def get_planning_poll_attempts() -> int:
    """Planning 等待回复的最大轮询次数"""
    return int(os.environ.get("MC_PLANNING_POLL_ATTEMPTS", "30"))


def get_planning_poll_interval_s() -> float:
    """Planning 轮询间隔（秒），环境变量以毫秒给出"""
    return int(os.environ.get("MC_PLANNING_POLL_INTERVAL_MS", "500")) / 1000


# SSE 心跳间隔（秒）
SSE_HEARTBEAT_INTERVAL: int = int(os.environ.get("MC_SSE_HEARTBEAT_INTERVAL", "15"))

# 额度耗尽阈值：5h 剩余百分比低于此值视为耗尽
DEPLETION_THRESHOLD: int = 10

# 5h 额度变化超过此百分点才记录容量事件
CAPACITY_EVENT_DELTA: int = 5

# 额度服务未上报且本地无记录时的默认值
DEFAULT_LIMIT_PERCENT: int = 100

# 默认工作区
DEFAULT_WORKSPACE_ID = "default"

# Webhook 最近完成记录条数
RECENT_COMPLETIONS_LIMIT = 10
