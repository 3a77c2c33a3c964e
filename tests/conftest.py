"""Pytest 配置"""

import pytest

from agentpanes.telemetry import metrics


@pytest.fixture
def anyio_backend():
    """指定 anyio 只使用 asyncio backend"""
    return "asyncio"


@pytest.fixture(autouse=True)
def reset_metrics():
    """每次测试前后重置指标"""
    metrics.reset()
    yield
    metrics.reset()


class FakeTmuxClient:
    """内存中的 tmux 窗口

    按 tmux 的方式切分几何：分屏时目标 pane 保留前半部分，
    新 pane 占据后半部分，中间扣除 1 格分隔线。
    """

    def __init__(self, window_width: int = 220, window_height: int = 44):
        self.window_width = window_width
        self.window_height = window_height
        self.panes: dict[str, dict] = {
            "%0": {
                "pane_id": "%0", "width": window_width, "height": window_height,
                "left": 0, "top": 0, "title": "main", "active": True,
            }
        }
        self.commands: list[tuple] = []
        self.list_fails = False
        self.split_fails = False
        self._next_id = 1

    def resize_window(self, width: int) -> None:
        """只有主 pane 时调整窗口宽度"""
        self.window_width = width
        self.panes["%0"]["width"] = width

    def commands_named(self, name: str) -> list[tuple]:
        return [c for c in self.commands if c[0] == name]

    async def list_window_panes(self, source_pane_id: str) -> list[dict] | None:
        if self.list_fails:
            return None
        return [
            {**pane, "window_width": self.window_width, "window_height": self.window_height}
            for pane in self.panes.values()
        ]

    async def split_window(self, target_pane_id: str, direction: str, command: str) -> str | None:
        self.commands.append(("split-window", target_pane_id, direction, command))
        target = self.panes.get(target_pane_id)
        if self.split_fails or target is None:
            return None

        pane_id = f"%{self._next_id}"
        self._next_id += 1
        new = {**target, "pane_id": pane_id, "title": "", "active": False}
        if direction == "-h":
            keep = (target["width"] - 1) // 2
            new["width"] = target["width"] - keep - 1
            new["left"] = target["left"] + keep + 1
            target["width"] = keep
        else:
            keep = (target["height"] - 1) // 2
            new["height"] = target["height"] - keep - 1
            new["top"] = target["top"] + keep + 1
            target["height"] = keep
        self.panes[pane_id] = new
        return pane_id

    async def respawn_pane(self, pane_id: str, command: str) -> bool:
        self.commands.append(("respawn-pane", pane_id, command))
        return pane_id in self.panes

    async def kill_pane(self, pane_id: str) -> bool:
        self.commands.append(("kill-pane", pane_id))
        return self.panes.pop(pane_id, None) is not None

    async def send_interrupt(self, pane_id: str) -> bool:
        self.commands.append(("send-keys", pane_id, "C-c"))
        return pane_id in self.panes

    async def resize_pane_width(self, pane_id: str, width: int) -> bool:
        self.commands.append(("resize-pane", pane_id, width))
        if pane_id not in self.panes:
            return False
        self.panes[pane_id]["width"] = width
        return True

    async def rename_pane(self, pane_id: str, name: str) -> bool:
        self.commands.append(("select-pane", pane_id, name))
        if pane_id not in self.panes:
            return False
        self.panes[pane_id]["title"] = name
        return True


@pytest.fixture
def fake_tmux():
    """220x44 窗口，只有主 pane %0"""
    return FakeTmuxClient()


class FakeStatusClient:
    """可控的 session status 来源"""

    def __init__(self):
        self.statuses: dict[str, dict] = {}
        self.requests = 0
        self.available = True
        self.closed = False

    async def get_statuses(self) -> dict[str, dict] | None:
        self.requests += 1
        if not self.available:
            return None
        return dict(self.statuses)

    async def has_session(self, session_id: str) -> bool:
        statuses = await self.get_statuses()
        return statuses is not None and session_id in statuses

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_status():
    return FakeStatusClient()
