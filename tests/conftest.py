from __future__ import annotations

import pytest

from quizpilot.config import NavigationConfig, SolverConfig, SpeedConfig, TimingConfig


def make_fast_config(**navigation) -> SolverConfig:
    """Config with every wait shrunk so tests run in milliseconds."""
    nav = dict(enable_timeout=0.1, move_timeout=0.1, poll_interval=0.01)
    nav.update(navigation)
    return SolverConfig(
        timing=TimingConfig(
            ready_poll_interval=0.01,
            ready_timeout=0.2,
            settle=0,
            reveal_settle=0,
            open_settle=0,
            locate_attempts=2,
            locate_retry_delay=0,
            render_grace=0.05,
        ),
        speed=SpeedConfig(intervals_ms=[0, 0, 0, 0, 0]),
        navigation=NavigationConfig(**nav),
    )


@pytest.fixture
def fast_config() -> SolverConfig:
    return make_fast_config()
