import pytest

# 2024-01-01 00:00:00 UTC
START_MILLIS = 1704067200000


class FakeClock:
    """A clock that only moves when told to."""

    def __init__(self, now: int = START_MILLIS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, millis: int = 1):
        self.now += millis


class SteppingClock(FakeClock):
    """A clock that advances by one millisecond every `step` reads."""

    def __init__(self, now: int = START_MILLIS, step: int = 3):
        super().__init__(now)
        self.step = step
        self.reads = 0

    def __call__(self) -> int:
        self.reads += 1
        if self.reads % self.step == 0:
            self.now += 1
        return self.now


@pytest.fixture
def clock():
    return FakeClock()
