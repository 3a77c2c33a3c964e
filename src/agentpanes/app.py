"""FastAPI 应用初始化与命令行入口"""

import argparse
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from . import config
from .config import TmuxConfig
from .receiver import SessionEventReceiver
from .session import PaneSessionManager
from .telemetry import configure_logging, get_logger, metrics

logger = get_logger(__name__)


def create_app(manager: PaneSessionManager) -> FastAPI:
    """创建 Web 应用

    应用关闭时调用 manager.cleanup() 关闭所有已分配 pane。
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await manager.cleanup()

    app = FastAPI(title="agentpanes", lifespan=lifespan)
    receiver = SessionEventReceiver(manager)
    receiver.setup_routes(app)

    @app.get("/api/metrics")
    async def get_metrics():
        return metrics.get_all_counters()

    return app


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="agentpanes",
        description="Allocate tmux panes for agent child sessions",
    )
    parser.add_argument("--host", default=config.RECEIVER_HOST)
    parser.add_argument("--port", type=int, default=config.RECEIVER_PORT)
    parser.add_argument("--server-url", default=config.DEFAULT_SERVER_URL)
    parser.add_argument("--log-level", default=config.LOG_LEVEL)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None):
    """入口函数"""
    args = parse_args(argv)
    configure_logging(args.log_level)

    tmux_config = TmuxConfig.from_env()
    manager = PaneSessionManager(tmux_config, args.server_url)
    if not manager.is_enabled():
        logger.warning("[agentpanes] tmux integration disabled or not inside tmux, events will be ignored")

    app = create_app(manager)
    print(f"agentpanes receiver starting at http://{args.host}:{args.port}")

    try:
        uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level.lower())
    except KeyboardInterrupt:
        print("\nServer stopped")


if __name__ == "__main__":
    main()
