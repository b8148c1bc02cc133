"""SQLite 数据库初始化

PRAGMA 配置 + 表 DDL + 索引创建。
使用 aiosqlite 异步操作。
"""

import aiosqlite

_AGENTS_DDL = """
CREATE TABLE IF NOT EXISTS agents (
    agent_id            TEXT PRIMARY KEY,
    name                TEXT NOT NULL,
    role                TEXT NOT NULL,
    description         TEXT,
    avatar_emoji        TEXT NOT NULL DEFAULT '🤖',
    status              TEXT NOT NULL DEFAULT 'standby',
    is_master           INTEGER NOT NULL DEFAULT 0,
    workspace_id        TEXT NOT NULL DEFAULT 'default',
    soul_md             TEXT,
    openclaw_agent_id   TEXT,
    model               TEXT NOT NULL DEFAULT 'unknown',
    provider_account_id TEXT,
    limit_5h            INTEGER DEFAULT 100,
    limit_week          INTEGER DEFAULT 100,
    last_poll_at        TEXT,
    created_at          TEXT NOT NULL,
    updated_at          TEXT NOT NULL
);
"""

_AGENTS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_agents_workspace ON agents(workspace_id);",
    "CREATE INDEX IF NOT EXISTS idx_agents_openclaw_id ON agents(openclaw_agent_id);",
]

_APPS_DDL = """
CREATE TABLE IF NOT EXISTS apps (
    app_id              TEXT PRIMARY KEY,
    name                TEXT NOT NULL,
    description         TEXT,
    path                TEXT NOT NULL,
    port                INTEGER,
    build_status        TEXT NOT NULL DEFAULT 'unknown',
    progress_completed  INTEGER NOT NULL DEFAULT 0,
    progress_total      INTEGER NOT NULL DEFAULT 0,
    workspace_id        TEXT NOT NULL DEFAULT 'default',
    created_at          TEXT NOT NULL,
    updated_at          TEXT NOT NULL
);
"""

_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS tasks (
    task_id               TEXT PRIMARY KEY,
    title                 TEXT NOT NULL,
    description           TEXT,
    status                TEXT NOT NULL DEFAULT 'inbox',
    priority              TEXT NOT NULL DEFAULT 'normal',
    assigned_agent_id     TEXT,
    created_by_agent_id   TEXT,
    workspace_id          TEXT NOT NULL DEFAULT 'default',
    app_id                TEXT,
    due_date              TEXT,
    planning_session_key  TEXT,
    planning_messages     TEXT NOT NULL DEFAULT '[]',
    planning_complete     INTEGER NOT NULL DEFAULT 0,
    planning_spec         TEXT,
    planning_agents       TEXT,
    version               INTEGER NOT NULL DEFAULT 1,
    created_at            TEXT NOT NULL,
    updated_at            TEXT NOT NULL,

    FOREIGN KEY (assigned_agent_id) REFERENCES agents(agent_id),
    FOREIGN KEY (created_by_agent_id) REFERENCES agents(agent_id),
    FOREIGN KEY (app_id) REFERENCES apps(app_id)
);
"""

_TASKS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_assigned ON tasks(assigned_agent_id, status);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_workspace ON tasks(workspace_id);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_created_at ON tasks(created_at DESC);",
]

_SESSIONS_DDL = """
CREATE TABLE IF NOT EXISTS openclaw_sessions (
    session_id           TEXT PRIMARY KEY,
    agent_id             TEXT NOT NULL,
    task_id              TEXT,
    openclaw_session_id  TEXT NOT NULL,
    channel              TEXT NOT NULL DEFAULT 'mission-control',
    status               TEXT NOT NULL DEFAULT 'active',
    session_type         TEXT NOT NULL DEFAULT 'persistent',
    created_at           TEXT NOT NULL,
    ended_at             TEXT,

    FOREIGN KEY (agent_id) REFERENCES agents(agent_id),
    FOREIGN KEY (task_id) REFERENCES tasks(task_id)
);
"""

_SESSIONS_INDEXES = [
    # 同一 Agent 至多一条 active 的 persistent 记录
    (
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_sessions_active_persistent "
        "ON openclaw_sessions(agent_id) "
        "WHERE status = 'active' AND session_type = 'persistent';"
    ),
    "CREATE INDEX IF NOT EXISTS idx_sessions_openclaw_id ON openclaw_sessions(openclaw_session_id);",
    "CREATE INDEX IF NOT EXISTS idx_sessions_task ON openclaw_sessions(task_id);",
]

_EVENTS_DDL = """
CREATE TABLE IF NOT EXISTS events (
    event_id    TEXT PRIMARY KEY,
    type        TEXT NOT NULL,
    agent_id    TEXT,
    task_id     TEXT,
    message     TEXT NOT NULL,
    metadata    TEXT NOT NULL DEFAULT '{}',
    created_at  TEXT NOT NULL,

    FOREIGN KEY (agent_id) REFERENCES agents(agent_id),
    FOREIGN KEY (task_id) REFERENCES tasks(task_id)
);
"""

_EVENTS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_events_created_at ON events(created_at DESC);",
    "CREATE INDEX IF NOT EXISTS idx_events_task ON events(task_id);",
    "CREATE INDEX IF NOT EXISTS idx_events_type ON events(type);",
]

_ACTIVITIES_DDL = """
CREATE TABLE IF NOT EXISTS task_activities (
    activity_id    TEXT PRIMARY KEY,
    task_id        TEXT NOT NULL,
    agent_id       TEXT,
    activity_type  TEXT NOT NULL,
    message        TEXT NOT NULL,
    metadata       TEXT NOT NULL DEFAULT '{}',
    created_at     TEXT NOT NULL,

    FOREIGN KEY (task_id) REFERENCES tasks(task_id),
    FOREIGN KEY (agent_id) REFERENCES agents(agent_id)
);
"""

_DELIVERABLES_DDL = """
CREATE TABLE IF NOT EXISTS task_deliverables (
    deliverable_id    TEXT PRIMARY KEY,
    task_id           TEXT NOT NULL,
    deliverable_type  TEXT NOT NULL,
    title             TEXT NOT NULL,
    path              TEXT,
    description       TEXT,
    created_at        TEXT NOT NULL,

    FOREIGN KEY (task_id) REFERENCES tasks(task_id)
);
"""

_PLANNING_QUESTIONS_DDL = """
CREATE TABLE IF NOT EXISTS planning_questions (
    question_id    TEXT PRIMARY KEY,
    task_id        TEXT NOT NULL,
    category       TEXT NOT NULL,
    question       TEXT NOT NULL,
    question_type  TEXT NOT NULL DEFAULT 'text',
    options        TEXT NOT NULL DEFAULT '[]',
    answer         TEXT,
    answered_at    TEXT,
    sort_order     INTEGER NOT NULL DEFAULT 0,

    FOREIGN KEY (task_id) REFERENCES tasks(task_id)
);
"""

_PLANNING_SPECS_DDL = """
CREATE TABLE IF NOT EXISTS planning_specs (
    spec_id        TEXT PRIMARY KEY,
    task_id        TEXT NOT NULL UNIQUE,
    spec_markdown  TEXT NOT NULL,
    locked_at      TEXT NOT NULL,
    locked_by      TEXT,

    FOREIGN KEY (task_id) REFERENCES tasks(task_id)
);
"""

_AGENT_SNAPSHOTS_DDL = """
CREATE TABLE IF NOT EXISTS agent_snapshots (
    snapshot_id    TEXT PRIMARY KEY,
    snapshot_time  TEXT NOT NULL,
    agent_id       TEXT NOT NULL,
    agent_name     TEXT NOT NULL,
    status         TEXT NOT NULL,
    avatar_emoji   TEXT,
    model          TEXT NOT NULL DEFAULT 'unknown',
    limit_5h       INTEGER NOT NULL DEFAULT 100,
    limit_week     INTEGER NOT NULL DEFAULT 100,
    task_id        TEXT,
    task_title     TEXT
);
"""

_CHILD_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_activities_task ON task_activities(task_id, created_at);",
    "CREATE INDEX IF NOT EXISTS idx_deliverables_task ON task_deliverables(task_id);",
    "CREATE INDEX IF NOT EXISTS idx_questions_task ON planning_questions(task_id, sort_order);",
    "CREATE INDEX IF NOT EXISTS idx_snapshots_time ON agent_snapshots(snapshot_time);",
    "CREATE INDEX IF NOT EXISTS idx_snapshots_agent ON agent_snapshots(agent_id, snapshot_time);",
]


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    # 被引用表先建
    for ddl in (
        _AGENTS_DDL,
        _APPS_DDL,
        _TASKS_DDL,
        _SESSIONS_DDL,
        _EVENTS_DDL,
        _ACTIVITIES_DDL,
        _DELIVERABLES_DDL,
        _PLANNING_QUESTIONS_DDL,
        _PLANNING_SPECS_DDL,
        _AGENT_SNAPSHOTS_DDL,
    ):
        await conn.execute(ddl)

    for idx_sql in (
        _AGENTS_INDEXES + _TASKS_INDEXES + _SESSIONS_INDEXES + _EVENTS_INDEXES + _CHILD_INDEXES
    ):
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效"""
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
