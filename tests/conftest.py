"""Shared test fixtures and fakes."""

from datetime import timedelta
from pathlib import Path

import pytest

from database import Database
from scheduler.delivery import DeliveryManager
from scheduler.manager import TimerScheduler
from scheduler.store import TimerStore


class FakeTransport:
    """Records sends; raises queued exceptions first, then `fail_with` forever if set."""

    def __init__(self):
        self.sent: list[tuple[str, str]] = []
        self.attempts = 0
        self.failures: list[Exception] = []
        self.fail_with: Exception | None = None

    async def __call__(self, subject: str, message: str) -> None:
        self.attempts += 1
        if self.failures:
            raise self.failures.pop(0)
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append((subject, message))


class RecordingSleep:
    """Stand-in for asyncio.sleep that returns immediately and records delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "timers.db")


@pytest.fixture
def db(db_path: str):
    database = Database(db_path)
    yield database
    database.close()


@pytest.fixture
def store(db: Database) -> TimerStore:
    return TimerStore(db)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def delivery(store: TimerStore, transport: FakeTransport, sleep: RecordingSleep) -> DeliveryManager:
    return DeliveryManager(
        store,
        transport,
        max_attempts=3,
        retry_backoff=timedelta(seconds=10),
        counter_ttl=timedelta(minutes=10),
        sleep=sleep,
    )


@pytest.fixture
def scheduler(store: TimerStore, delivery: DeliveryManager, transport: FakeTransport) -> TimerScheduler:
    return TimerScheduler(store, delivery, transport, late_threshold=timedelta(minutes=1))
