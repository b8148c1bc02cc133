"""Mission Control -- 多 Agent 任务编排网关

子包：
- core: 领域模型 + SQLite Store + 配置常量
- openclaw: 外部 Agent 运行时（OpenClaw Gateway）与额度服务客户端
- gateway: FastAPI 应用、编排服务与 REST 路由
"""
