import os
import tempfile

# Point the app at a throwaway SQLite file before foodhub.settings is imported
_db_dir = tempfile.mkdtemp(prefix="foodhub-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_db_dir, 'foodhub.db')}"

from datetime import datetime, timezone
from typing import Iterable, Optional

import pytest
from sqlalchemy import insert

from foodhub.db import Base, engine
from foodhub.db_enterprises import Sells, add_enterprise_manager, create_enterprise
from foodhub.db_order_cycles import add_exchange, insert_order_cycle
from foodhub.db_schedules import replace_order_cycle_schedules
from foodhub.db_users import create_user
from foodhub.deps import get_current_active_user
from foodhub.main import app
from foodhub.models import Order


@pytest.fixture(autouse=True)
def db():
    """Fresh schema for every test."""
    Base.metadata.create_all(engine)
    yield engine
    app.dependency_overrides.clear()
    Base.metadata.drop_all(engine)


@pytest.fixture
def now():
    return datetime.now(timezone.utc)


@pytest.fixture
def make_user():
    counter = {"n": 0}

    def _make_user(manages: Iterable[int] = (), is_superuser: bool = False) -> dict:
        counter["n"] += 1
        user = create_user(
            username=f"user{counter['n']}",
            email=f"user{counter['n']}@example.com",
            hashed_password="not-a-real-hash",
            is_superuser=is_superuser,
        )
        for enterprise_id in manages:
            add_enterprise_manager(enterprise_id, user["id"])
        return user

    return _make_user


@pytest.fixture
def act_as():
    """Make API requests run as the given user."""

    def _act_as(user: dict) -> None:
        app.dependency_overrides[get_current_active_user] = lambda: user

    return _act_as


@pytest.fixture
def hub():
    def _hub(name: str = "Hub") -> dict:
        return create_enterprise(name, sells=Sells.ANY)

    return _hub


@pytest.fixture
def producer():
    def _producer(name: str = "Farm") -> dict:
        return create_enterprise(name, sells=Sells.NONE, is_primary_producer=True)

    return _producer


@pytest.fixture
def make_order_cycle():
    def _make_order_cycle(
        name: str,
        coordinator_id: int,
        opens: Optional[datetime] = None,
        closes: Optional[datetime] = None,
        schedule_ids: Iterable[int] = (),
        suppliers: Iterable[int] = (),
        distributors: Iterable[int] = (),
    ) -> int:
        with engine.begin() as conn:
            order_cycle_id = insert_order_cycle(conn, {
                "name": name,
                "coordinator_id": coordinator_id,
                "orders_open_at": opens,
                "orders_close_at": closes,
            })
            replace_order_cycle_schedules(conn, order_cycle_id, schedule_ids)
            for supplier_id in suppliers:
                add_exchange(conn, order_cycle_id, sender_id=supplier_id, receiver_id=coordinator_id, incoming=True)
            for distributor_id in distributors:
                add_exchange(conn, order_cycle_id, sender_id=coordinator_id, receiver_id=distributor_id, incoming=False)
        return order_cycle_id

    return _make_order_cycle


@pytest.fixture
def place_order():
    def _place_order(order_cycle_id: int, number: str = "R0001") -> None:
        with engine.begin() as conn:
            conn.execute(insert(Order.__table__).values(number=number, order_cycle_id=order_cycle_id))

    return _place_order


@pytest.fixture
def fake_delay(monkeypatch):
    """Capture `.delay` calls of a Celery task instead of sending them to the broker."""

    class DummyResult:
        def __init__(self, task_id: str) -> None:
            self.id = task_id

    def _fake_delay(task) -> list:
        calls = []

        def delay(*args, **kwargs):
            calls.append(args)
            return DummyResult(f"test-task-{len(calls)}")

        monkeypatch.setattr(task, "delay", delay)
        return calls

    return _fake_delay
