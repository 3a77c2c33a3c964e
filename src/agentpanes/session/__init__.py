"""Session 生命周期：串行分配队列、延迟挂载、存活轮询"""

from .manager import PaneSessionManager
from .poller import SessionPoller
from .queue import DeferredQueue, SpawnQueue
from .status import SessionStatusClient

__all__ = [
    "DeferredQueue",
    "PaneSessionManager",
    "SessionPoller",
    "SessionStatusClient",
    "SpawnQueue",
]
