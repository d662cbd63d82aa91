"""Database helpers for schedules and their order cycle links."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Set

from sqlalchemy import insert, select
from sqlalchemy.engine import Connection

from foodhub.db import engine
from foodhub.models import OrderCycle, OrderCycleSchedule, Schedule

logger = logging.getLogger(__name__)

schedules = Schedule.__table__
order_cycle_schedules = OrderCycleSchedule.__table__
order_cycles = OrderCycle.__table__


def _row_to_schedule(row) -> dict:
    return {
        "id": row["id"],
        "name": row["name"],
    }


def create_schedule(name: str, order_cycle_ids: Optional[Iterable[int]] = None) -> dict:
    """Create a schedule, optionally linked to order cycles."""
    with engine.begin() as conn:
        row = conn.execute(
            insert(schedules).values(name=name).returning(*schedules.c)
        ).mappings().first()
        for order_cycle_id in set(order_cycle_ids or []):
            conn.execute(
                insert(order_cycle_schedules).values(order_cycle_id=order_cycle_id, schedule_id=row["id"])
            )
    logger.info(f"db_schedules: created schedule id={row['id']}, name={name}")
    return _row_to_schedule(row)


def get_schedules_by_ids(schedule_ids: Iterable[int]) -> List[dict]:
    ids = list(set(schedule_ids))
    if not ids:
        return []
    with engine.connect() as conn:
        rows = conn.execute(
            select(schedules).where(schedules.c.id.in_(ids)).order_by(schedules.c.id)
        ).mappings().all()
    return [_row_to_schedule(row) for row in rows]


def get_existing_schedule_ids(schedule_ids: Iterable[int]) -> Set[int]:
    """Subset of `schedule_ids` that exist."""
    ids = list(set(schedule_ids))
    if not ids:
        return set()
    with engine.connect() as conn:
        return set(
            conn.execute(select(schedules.c.id).where(schedules.c.id.in_(ids))).scalars().all()
        )


def get_schedule_ids_coordinated_by(coordinator_ids: Iterable[int], candidate_ids: Iterable[int]) -> Set[int]:
    """Schedules among `candidate_ids` used by an order cycle of one of `coordinator_ids`."""
    coordinators = list(set(coordinator_ids))
    candidates = list(set(candidate_ids))
    if not coordinators or not candidates:
        return set()
    sql = (
        select(order_cycle_schedules.c.schedule_id)
        .join(order_cycles, order_cycles.c.id == order_cycle_schedules.c.order_cycle_id)
        .where(
            order_cycles.c.coordinator_id.in_(coordinators),
            order_cycle_schedules.c.schedule_id.in_(candidates),
        )
        .distinct()
    )
    with engine.connect() as conn:
        return set(conn.execute(sql).scalars().all())


def get_schedule_ids_for_order_cycle(order_cycle_id: int, conn: Optional[Connection] = None) -> Set[int]:
    sql = select(order_cycle_schedules.c.schedule_id).where(
        order_cycle_schedules.c.order_cycle_id == order_cycle_id
    )
    if conn is not None:
        return set(conn.execute(sql).scalars().all())
    with engine.connect() as conn:
        return set(conn.execute(sql).scalars().all())


def get_schedules_for_order_cycles(order_cycle_ids: Iterable[int]) -> dict:
    """Map order cycle id -> list of schedules linked to it."""
    ids = list(set(order_cycle_ids))
    result = {oc_id: [] for oc_id in ids}
    if not ids:
        return result
    sql = (
        select(order_cycle_schedules.c.order_cycle_id, schedules.c.id, schedules.c.name)
        .join(schedules, schedules.c.id == order_cycle_schedules.c.schedule_id)
        .where(order_cycle_schedules.c.order_cycle_id.in_(ids))
        .order_by(schedules.c.id)
    )
    with engine.connect() as conn:
        for row in conn.execute(sql).mappings().all():
            result[row["order_cycle_id"]].append(_row_to_schedule(row))
    return result


def replace_order_cycle_schedules(conn: Connection, order_cycle_id: int, schedule_ids: Iterable[int]) -> None:
    """Make the link table for one order cycle match `schedule_ids` exactly."""
    target = set(schedule_ids)
    current = get_schedule_ids_for_order_cycle(order_cycle_id, conn=conn)

    to_remove = current - target
    if to_remove:
        conn.execute(
            order_cycle_schedules.delete().where(
                order_cycle_schedules.c.order_cycle_id == order_cycle_id,
                order_cycle_schedules.c.schedule_id.in_(list(to_remove)),
            )
        )
    for schedule_id in sorted(target - current):
        conn.execute(
            insert(order_cycle_schedules).values(order_cycle_id=order_cycle_id, schedule_id=schedule_id)
        )
