"""决策引擎测试"""

from datetime import datetime, timedelta

import pytest

from agentpanes.layout.decision import (
    REASON_CLOSED_ONE,
    REASON_MAIN_TOO_SMALL,
    REASON_NO_MAIN_PANE,
    REASON_NO_TARGET,
    REASON_REPLACED_OLDEST,
    agent_area_width,
    decide_close_action,
    decide_spawn_actions,
)
from agentpanes.layout.types import (
    CapacityConfig,
    CloseAction,
    LayoutMode,
    PaneInfo,
    ReplaceAction,
    SessionMapping,
    SpawnAction,
    SplitDirection,
    WindowState,
)

BASE = datetime(2025, 1, 1, 12, 0, 0)


def _config(layout: LayoutMode = LayoutMode.GRID) -> CapacityConfig:
    return CapacityConfig(layout=layout, main_pane_min_width=120, agent_pane_min_width=40)


def _state(main_width: int, agent_panes: list[PaneInfo]) -> WindowState:
    return WindowState(
        window_width=220,
        window_height=44,
        main_pane=PaneInfo(pane_id="%0", width=main_width, height=44, left=0, top=0),
        agent_panes=agent_panes,
    )


def _mappings(panes: list[PaneInfo]) -> list[SessionMapping]:
    """pane 顺序即创建顺序"""
    return [
        SessionMapping(
            session_id=f"ses_{pane.pane_id[1:]}",
            pane_id=pane.pane_id,
            created_at=BASE + timedelta(minutes=i),
        )
        for i, pane in enumerate(panes)
    ]


def _column(pane_ids: list[str], left: int, width: int) -> list[PaneInfo]:
    """一列纵向堆叠的 pane"""
    height = (44 - (len(pane_ids) - 1)) // len(pane_ids)
    return [
        PaneInfo(pane_id=pane_id, width=width, height=height, left=left, top=i * (height + 1))
        for i, pane_id in enumerate(pane_ids)
    ]


class TestFirstSpawn:
    """无 agent pane 时的首次分屏"""

    def test_grid_splits_main_pane_horizontally(self):
        """220x44 窗口首个 pane 在主 pane 右侧"""
        decision = decide_spawn_actions(_state(220, []), "ses_new", "Explore", _config(), [])

        assert decision.can_spawn is True
        assert len(decision.actions) == 1
        action = decision.actions[0]
        assert isinstance(action, SpawnAction)
        assert action.target_pane_id == "%0"
        assert action.split_direction is SplitDirection.HORIZONTAL
        assert action.session_id == "ses_new"
        assert action.description == "Explore"

    def test_main_horizontal_splits_vertically(self):
        decision = decide_spawn_actions(
            _state(220, []), "ses_new", "Explore", _config(LayoutMode.MAIN_HORIZONTAL), []
        )
        assert decision.actions[0].split_direction is SplitDirection.VERTICAL

    def test_main_pane_too_small(self):
        state = WindowState(
            window_width=60,
            window_height=44,
            main_pane=PaneInfo(pane_id="%0", width=60, height=44, left=0, top=0),
        )

        decision = decide_spawn_actions(state, "ses_new", "Explore", _config(), [])

        assert decision.can_spawn is False
        assert decision.actions == []
        assert decision.reason == REASON_MAIN_TOO_SMALL

    def test_no_main_pane(self):
        state = WindowState(window_width=220, window_height=44, main_pane=None)

        decision = decide_spawn_actions(state, "ses_new", "Explore", _config(), [])

        assert decision.can_spawn is False
        assert decision.reason == REASON_NO_MAIN_PANE


class TestCapacity:
    """容量与驱逐"""

    def test_agent_area_uses_reported_main_width(self):
        assert agent_area_width(_state(132, [])) == 87
        assert agent_area_width(WindowState(220, 44, None)) == 0

    def test_window_too_small(self):
        panes = _column(["%1"], left=201, width=19)

        decision = decide_spawn_actions(_state(200, panes), "ses_new", "x", _config(), _mappings(panes))

        assert decision.can_spawn is False
        assert decision.reason.startswith("window too small")

    def test_split_when_capacity_available(self):
        panes = _column(["%1"], left=121, width=99)

        decision = decide_spawn_actions(_state(120, panes), "ses_new", "x", _config(), _mappings(panes))

        assert decision.can_spawn is True
        assert decision.actions == [
            SpawnAction(
                session_id="ses_new",
                description="x",
                target_pane_id="%1",
                split_direction=SplitDirection.HORIZONTAL,
            )
        ]

    def test_single_eviction_closes_then_spawns(self):
        """4 个 pane 挤在 99 列中，关闭 1 个即可恢复分屏"""
        panes = _column(["%1", "%2"], left=121, width=49) + _column(["%3", "%4"], left=171, width=49)
        mappings = _mappings(panes)

        decision = decide_spawn_actions(_state(120, panes), "ses_new", "x", _config(), mappings)

        assert decision.can_spawn is True
        assert decision.reason == REASON_CLOSED_ONE
        assert decision.actions == [
            CloseAction(pane_id="%1", session_id="ses_1"),
            SpawnAction(
                session_id="ses_new",
                description="x",
                target_pane_id="%0",
                split_direction=SplitDirection.HORIZONTAL,
            ),
        ]

    def test_multiple_evictions_replace_oldest(self):
        """主 pane 132 列时 5 个 pane 需要驱逐 2 个，改为原地替换最早的 pane"""
        panes = _column(["%1", "%2", "%3"], left=133, width=43) + _column(["%4", "%5"], left=177, width=43)
        mappings = [
            SessionMapping("ses_a", "%1", BASE + timedelta(minutes=4)),
            SessionMapping("ses_b", "%2", BASE + timedelta(minutes=2)),
            SessionMapping("ses_c", "%3", BASE + timedelta(minutes=5)),
            SessionMapping("ses_d", "%4", BASE + timedelta(minutes=1)),
            SessionMapping("ses_e", "%5", BASE + timedelta(minutes=3)),
        ]

        decision = decide_spawn_actions(_state(132, panes), "ses_new", "Review", _config(), mappings)

        assert decision.can_spawn is True
        assert decision.reason == REASON_REPLACED_OLDEST
        assert decision.actions == [
            ReplaceAction(
                pane_id="%4",
                new_session_id="ses_new",
                description="Review",
                old_session_id="ses_d",
            )
        ]

    def test_untracked_panes_are_not_evicted(self):
        panes = _column(["%1", "%2"], left=121, width=49) + _column(["%3", "%4"], left=171, width=49)

        decision = decide_spawn_actions(_state(120, panes), "ses_new", "x", _config(), [])

        assert decision.can_spawn is False
        assert decision.reason == REASON_NO_TARGET


class TestStrictLayouts:
    """固定轴布局从不驱逐"""

    @pytest.mark.parametrize("layout", [LayoutMode.MAIN_VERTICAL, LayoutMode.MAIN_HORIZONTAL])
    def test_full_layout_defers(self, layout):
        panes = _column(["%1", "%2", "%3"], left=121, width=49)

        decision = decide_spawn_actions(_state(120, panes), "ses_new", "x", _config(layout), _mappings(panes))

        assert decision.can_spawn is False
        assert decision.actions == []
        assert decision.reason == REASON_NO_TARGET

    def test_main_vertical_stacks_into_tall_pane(self):
        panes = _column(["%1"], left=121, width=99)

        decision = decide_spawn_actions(
            _state(120, panes), "ses_new", "x", _config(LayoutMode.MAIN_VERTICAL), _mappings(panes)
        )

        assert decision.actions[0].target_pane_id == "%1"
        assert decision.actions[0].split_direction is SplitDirection.VERTICAL


class TestDecideCloseAction:
    """关闭决策"""

    def test_close_tracked_pane(self):
        panes = _column(["%1"], left=121, width=99)

        action = decide_close_action(_state(120, panes), "ses_1", _mappings(panes))

        assert action == CloseAction(pane_id="%1", session_id="ses_1")

    def test_pane_already_gone(self):
        """映射仍在但 pane 已不存在时返回 None"""
        panes = _column(["%1"], left=121, width=99)

        assert decide_close_action(_state(220, []), "ses_1", _mappings(panes)) is None

    def test_unknown_session(self):
        panes = _column(["%1"], left=121, width=99)

        assert decide_close_action(_state(120, panes), "ses_x", _mappings(panes)) is None
