"""CLI 入口模块 -- python -m mission_control.gateway

以 uvicorn 启动网关，监听地址由 MC_HOST / MC_PORT 指定。
"""

import os

import uvicorn


def main() -> None:
    """启动 HTTP 服务"""
    uvicorn.run(
        "mission_control.gateway.main:app",
        host=os.environ.get("MC_HOST", "127.0.0.1"),
        port=int(os.environ.get("MC_PORT", "3000")),
        log_config=None,
    )


if __name__ == "__main__":
    main()
