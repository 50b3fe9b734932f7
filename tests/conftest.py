import pytest
import pytest_asyncio

from focus_timer.clock import ManualClock
from focus_timer.engine import FocusTimerEngine
from focus_timer.points import Profile
from focus_timer.timer import FocusPolicy

from fakes import FakeSink


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def sink() -> FakeSink:
    return FakeSink(Profile(id="student-1", name="Sam", points=100))


@pytest_asyncio.fixture
async def engine(sink, clock):
    eng = FocusTimerEngine(sink, clock=clock)
    yield eng
    await eng.shutdown()


@pytest_asyncio.fixture
async def short_engine(sink, clock):
    """One-minute focus, one-minute short break, two-minute long break."""
    policy = FocusPolicy(focus_minutes=1, short_break_minutes=1, long_break_minutes=2)
    eng = FocusTimerEngine(sink, policy=policy, clock=clock)
    yield eng
    await eng.shutdown()
