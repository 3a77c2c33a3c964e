"""HTTP 事件接收器 - 接收 agent runtime 的 session 事件"""

from typing import TYPE_CHECKING, Any

from fastapi import BackgroundTasks
from pydantic import BaseModel

from .telemetry import get_logger

if TYPE_CHECKING:
    from fastapi import FastAPI

    from .session.manager import PaneSessionManager

logger = get_logger(__name__)

HANDLED_EVENTS = frozenset({"session.created", "session.deleted"})


class SessionEventRequest(BaseModel):
    """Session 事件请求体"""

    type: str  # "session.created" / "session.deleted"
    properties: dict[str, Any] = {}


class SessionEventResponse(BaseModel):
    """Session 事件响应"""

    success: bool
    message: str


class SessionEventReceiver:
    """HTTP 事件接收器

    提供 `/api/session/event` 端点。事件在后台交给 PaneSessionManager 处理，
    请求立即返回。
    """

    def __init__(self, manager: "PaneSessionManager"):
        self.manager = manager

    async def _dispatch(self, event: dict) -> None:
        try:
            await self.manager.handle_event(event)
        except Exception as e:
            logger.error(f"[SessionReceiver] 处理事件失败: {event.get('type')}: {e}")

    def setup_routes(self, app: "FastAPI") -> None:
        """设置 API 路由"""

        @app.post("/api/session/event", response_model=SessionEventResponse)
        async def receive_event(request: SessionEventRequest, background_tasks: BackgroundTasks):
            """接收 session 事件"""
            logger.debug(f"[SessionReceiver] 收到事件: {request.type}")

            if request.type not in HANDLED_EVENTS:
                return SessionEventResponse(success=True, message=f"Ignored: {request.type}")

            background_tasks.add_task(self._dispatch, request.model_dump())
            return SessionEventResponse(success=True, message="Event accepted")

        @app.get("/api/session/status")
        async def session_status():
            """获取 pane 分配状态"""
            return self.manager.snapshot()
