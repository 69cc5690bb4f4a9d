import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))


class FakeClock:
    """Manually advanced monotonic clock. Time is kept in whole milliseconds."""

    def __init__(self, start_ms: int = 0):
        self.ms = start_ms

    def __call__(self) -> float:
        return self.ms / 1000.0

    def advance(self, ms: int) -> None:
        self.ms += ms


@pytest.fixture
def clock():
    return FakeClock()
