import os
import random
import tempfile
from pathlib import Path

# Point the app at a throwaway SQLite file before db.py is imported
_TMP_DIR = Path(tempfile.mkdtemp(prefix="castle-exercise-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR / 'test.db'}"

import pytest  # noqa: E402
from sqlalchemy import delete  # noqa: E402

from coordinator import ExerciseRuntime  # noqa: E402
from db import Base, SessionLocal, engine  # noqa: E402
from exercise_state import StateStore  # noqa: E402
from models import KeyValueEntry  # noqa: E402
from storage import KeyValueStorage  # noqa: E402

Base.metadata.create_all(engine)


class _ManualTask:
    def __init__(self, due: float, callback):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Fake clock: callbacks run only when advance() moves past their due time."""

    def __init__(self):
        self.now = 0.0
        self._tasks: list[_ManualTask] = []

    def call_later(self, delay, callback):
        task = _ManualTask(self.now + delay, callback)
        self._tasks.append(task)
        return task

    def advance(self, seconds: float) -> None:
        self.now += seconds
        due = sorted(
            (t for t in self._tasks if not t.cancelled and t.due <= self.now + 1e-9),
            key=lambda t: t.due,
        )
        self._tasks = [t for t in self._tasks if t not in due and not t.cancelled]
        for task in due:
            task.callback()

    @property
    def pending(self) -> int:
        return sum(1 for t in self._tasks if not t.cancelled)


@pytest.fixture(autouse=True)
def _clean_kv_store():
    yield
    with SessionLocal() as db:
        db.execute(delete(KeyValueEntry))
        db.commit()


@pytest.fixture
def storage():
    return KeyValueStorage()


@pytest.fixture
def store(storage):
    return StateStore(storage)


@pytest.fixture
def rng():
    return random.Random(20261019)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def runtime(store, scheduler, rng):
    return ExerciseRuntime(store, scheduler, rng)
