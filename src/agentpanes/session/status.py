"""Session status 查询：通过 agent runtime 的 HTTP 接口读取 session 状态"""

import httpx

from .. import config
from ..telemetry import get_logger

logger = get_logger(__name__)

STATUS_PATH = "/session/status"


class SessionStatusClient:
    """Session status 客户端

    `GET {server_url}/session/status` 返回 {session_id: {"type": "busy" | "idle" | ...}}。
    请求失败时返回 None，与"没有任何 session"的空字典区分开。
    """

    def __init__(self, server_url: str, timeout: float = config.STATUS_REQUEST_TIMEOUT):
        self.server_url = server_url.rstrip("/")
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """获取或创建 HTTP 客户端"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(base_url=self.server_url, timeout=self._timeout)
        return self._client

    async def get_statuses(self) -> dict[str, dict] | None:
        """获取所有 session 的状态

        Returns:
            {session_id: status}；请求失败或响应无法解析时返回 None
        """
        try:
            client = await self._get_client()
            response = await client.get(STATUS_PATH)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"[SessionStatus] status request failed: {e}")
            return None

        # 兼容 {"data": {...}} 包装
        if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
            payload = payload["data"]
        if not isinstance(payload, dict):
            logger.debug(f"[SessionStatus] unexpected payload type: {type(payload).__name__}")
            return None
        return {
            str(session_id): status if isinstance(status, dict) else {"type": str(status)}
            for session_id, status in payload.items()
        }

    async def has_session(self, session_id: str) -> bool:
        """session 是否已有状态条目（就绪判断，请求失败视为未就绪）"""
        statuses = await self.get_statuses()
        return statuses is not None and session_id in statuses

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
