from __future__ import annotations

import pytest

from frames import make_frame
from posturewatch.engine import EngineState, PostureEngine


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def upright():
    return make_frame()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(clock):
    return PostureEngine(EngineState.create(clock=clock))
