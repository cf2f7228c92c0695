import os
import sys
from datetime import datetime, timedelta

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from studytrack.record_store import RecordStore  # noqa: E402


class FakeClock:
    """Wall clock and monotonic clock that only move when told to."""

    def __init__(self, start: datetime) -> None:
        self.current = start
        self.mono = 1000.0

    def now(self) -> datetime:
        return self.current

    def monotonic(self) -> float:
        return self.mono

    def advance(self, **kwargs: float) -> None:
        delta = timedelta(**kwargs)
        self.current += delta
        self.mono += delta.total_seconds()


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 10, 14, 30))


@pytest.fixture
def store(tmp_path, clock):
    (tmp_path / "data").mkdir()
    s = RecordStore(str(tmp_path / "data"), now=clock.now)
    s.set_active_user("alice")
    return s
