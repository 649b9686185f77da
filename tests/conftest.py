import random
from concurrent.futures import Future
from datetime import datetime, timedelta

import pytest
from PySide6.QtCore import QCoreApplication

from nudge.messages import MessagePicker
from nudge.models import MessageResult
from nudge.stats_store import StatsStore
from nudge.storage import Storage
from nudge.timer_engine import TimerEngine


class FakeClock:
    """Settable stand-in for datetime.now."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class StubMessageClient:
    """Resolves every request immediately with a canned result."""

    def __init__(self, result=None, error=None):
        self.result = result or MessageResult("Stub encouragement", "ai")
        self.error = error
        self.requests = []

    def fetch_message(self, task_label, timeout=None):
        self.requests.append(task_label)
        future = Future()
        if self.error is not None:
            future.set_exception(self.error)
        else:
            future.set_result(self.result)
        return future


@pytest.fixture(scope="session")
def qapp():
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    return app


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 11, 9, 30))


@pytest.fixture
def storage(tmp_path):
    return Storage(str(tmp_path / "nudge-test.db"))


@pytest.fixture
def stats(storage, clock):
    store = StatsStore(storage, clock=clock)
    store.init()
    return store


@pytest.fixture
def message_client():
    return StubMessageClient()


@pytest.fixture
def failing_message_client():
    return StubMessageClient(error=RuntimeError("boom"))


@pytest.fixture
def make_engine(qapp, storage, stats, message_client):
    engines = []

    def factory(**kwargs):
        kwargs.setdefault("message_client", message_client)
        kwargs.setdefault("picker", MessagePicker(random.Random(7)))
        kwargs.setdefault("transition_delay_ms", 0)
        engine = TimerEngine(storage, stats, **kwargs)
        engines.append(engine)
        return engine

    yield factory
    for engine in engines:
        engine.cleanup()


@pytest.fixture
def engine(make_engine):
    return make_engine()
