"""agentpanes - 为 agent 子 session 自动分配 tmux pane"""

__version__ = "0.1.0"
