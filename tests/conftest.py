import time

import pytest


@pytest.fixture
def new_york_time(monkeypatch):
    """Run with the process-local zone set west of UTC."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    monkeypatch.setenv("TZ", "America/New_York")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()
