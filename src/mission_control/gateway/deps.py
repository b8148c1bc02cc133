"""依赖注入模块 -- 通过 FastAPI Depends 注入共享实例

实例挂在 app.state 上，在 lifespan 中初始化/清理。
"""

from fastapi import Request
from mission_control.core.store import StoreGroup

from .services.background import BackgroundRunner
from .services.container import Services
from .services.notifier import Notifier


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_runner(request: Request) -> BackgroundRunner:
    return request.app.state.runner


def get_services(request: Request) -> Services:
    """从 app.state 获取服务集合"""
    return request.app.state.services
