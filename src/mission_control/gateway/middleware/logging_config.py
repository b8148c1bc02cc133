"""structlog 配置

MC_LOG_FORMAT=json 输出结构化 JSON，默认 dev 可读输出；
标准库 logger（uvicorn / httpx / aiosqlite）经 ProcessorFormatter 走同一渲染器。
LOGFIRE_SEND_TO_LOGFIRE=true 时额外接入 Logfire。
"""

import logging
import os

import structlog
from fastapi import FastAPI

# 这些库在 DEBUG/INFO 下逐条记录 SQL 与 HTTP 请求
_NOISY_LOGGERS = ("aiosqlite", "httpx", "httpcore")


def _add_service(_, __, event_dict: dict) -> dict:
    event_dict.setdefault("service", "mission-control")
    return event_dict


def setup_logging() -> None:
    log_format = os.environ.get("MC_LOG_FORMAT", "dev")
    level = getattr(logging, os.environ.get("MC_LOG_LEVEL", "INFO").upper(), logging.INFO)

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        _add_service,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if log_format == "json":
        final: list[structlog.types.Processor] = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ]
    else:
        final = [structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *final],
            foreign_pre_chain=pre_chain,
        )
    )
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def setup_logfire(app: FastAPI) -> None:
    """Logfire APM（需 LOGFIRE_TOKEN）；初始化失败只记录告警"""
    if os.environ.get("LOGFIRE_SEND_TO_LOGFIRE", "false").lower() != "true":
        return
    try:
        import logfire

        logfire.configure(service_name="mission-control")
        logfire.instrument_fastapi(app)
        logfire.instrument_httpx()
    except Exception as e:
        structlog.get_logger().warning("logfire_init_failed", error=str(e))
