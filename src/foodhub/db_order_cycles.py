"""Database helpers for order cycles and their exchanges.

This module provides:
- Order cycle reads (single, by ids, scoped listings for the admin index)
- Order cycle writes that take an open Connection, so callers can combine
  them with link-table changes in one transaction
- Exchange reads and writes
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import and_, insert, or_, select, update
from sqlalchemy.engine import Connection

from foodhub.db import engine
from foodhub.models import Enterprise, Exchange, OrderCycle
from foodhub.utils.timestamps import as_utc, now_utc

logger = logging.getLogger(__name__)

order_cycles = OrderCycle.__table__
exchanges = Exchange.__table__
enterprises = Enterprise.__table__

# Columns a caller may write through insert/update
EDITABLE_FIELDS = ("name", "orders_open_at", "orders_close_at", "coordinator_id")


class OrderCycleScope:
    """Which order cycles the index lists for a user."""

    ACCESSIBLE = "accessible"
    DISTRIBUTOR = "distributor"
    PRODUCER = "producer"


def _row_to_order_cycle(row) -> dict:
    return {
        "id": row["id"],
        "name": row["name"],
        "orders_open_at": as_utc(row["orders_open_at"]),
        "orders_close_at": as_utc(row["orders_close_at"]),
        "coordinator_id": row["coordinator_id"],
        "coordinator_name": row["coordinator_name"],
        "created_at": as_utc(row["created_at"]),
        "updated_at": as_utc(row["updated_at"]),
    }


def _row_to_exchange(row) -> dict:
    return {
        "id": row["id"],
        "order_cycle_id": row["order_cycle_id"],
        "sender_id": row["sender_id"],
        "receiver_id": row["receiver_id"],
        "incoming": row["incoming"],
        "pickup_time": row["pickup_time"],
    }


def _select_order_cycles():
    return (
        select(order_cycles, enterprises.c.name.label("coordinator_name"))
        .join(enterprises, enterprises.c.id == order_cycles.c.coordinator_id)
    )


def _clean_fields(fields: dict) -> dict:
    values = {k: v for k, v in fields.items() if k in EDITABLE_FIELDS}
    for key in ("orders_open_at", "orders_close_at"):
        if key in values:
            values[key] = as_utc(values[key])
    return values


def get_order_cycle(order_cycle_id: int) -> Optional[dict]:
    """Get order cycle by ID."""
    with engine.connect() as conn:
        row = conn.execute(
            _select_order_cycles().where(order_cycles.c.id == order_cycle_id)
        ).mappings().first()
    return _row_to_order_cycle(row) if row else None


def get_order_cycles_by_ids(order_cycle_ids: Iterable[int]) -> List[dict]:
    ids = list(set(order_cycle_ids))
    if not ids:
        return []
    with engine.connect() as conn:
        rows = conn.execute(
            _select_order_cycles().where(order_cycles.c.id.in_(ids)).order_by(order_cycles.c.id)
        ).mappings().all()
    return [_row_to_order_cycle(row) for row in rows]


def list_order_cycles(
    managed_enterprise_ids: Iterable[int],
    scope: str = OrderCycleScope.ACCESSIBLE,
    name_contains: Optional[str] = None,
    closes_after: Optional[datetime] = None,
) -> List[dict]:
    """List order cycles visible to someone managing `managed_enterprise_ids`.

    Args:
        managed_enterprise_ids: Enterprises the viewer manages
        scope: accessible (coordinator or any exchange partner managed),
            distributor (outgoing exchange to a managed enterprise) or
            producer (incoming exchange from a managed enterprise)
        name_contains: Case-insensitive name filter
        closes_after: Keep order cycles closing after this moment plus undated ones

    Returns:
        List of order cycle dicts, most recently updated first
    """
    managed = list(set(managed_enterprise_ids))
    if not managed:
        return []

    if scope == OrderCycleScope.DISTRIBUTOR:
        involved = select(exchanges.c.order_cycle_id).where(
            exchanges.c.incoming.is_(False),
            exchanges.c.receiver_id.in_(managed),
        )
        condition = order_cycles.c.id.in_(involved)
    elif scope == OrderCycleScope.PRODUCER:
        involved = select(exchanges.c.order_cycle_id).where(
            exchanges.c.incoming.is_(True),
            exchanges.c.sender_id.in_(managed),
        )
        condition = order_cycles.c.id.in_(involved)
    else:
        involved = select(exchanges.c.order_cycle_id).where(
            or_(exchanges.c.sender_id.in_(managed), exchanges.c.receiver_id.in_(managed))
        )
        condition = or_(order_cycles.c.coordinator_id.in_(managed), order_cycles.c.id.in_(involved))

    sql = _select_order_cycles().where(condition)
    if name_contains:
        sql = sql.where(order_cycles.c.name.ilike(f"%{name_contains}%"))
    if closes_after is not None:
        sql = sql.where(
            or_(
                order_cycles.c.orders_close_at > as_utc(closes_after),
                order_cycles.c.orders_close_at.is_(None),
            )
        )
    sql = sql.order_by(order_cycles.c.updated_at.desc(), order_cycles.c.id.desc())

    with engine.connect() as conn:
        rows = conn.execute(sql).mappings().all()
    return [_row_to_order_cycle(row) for row in rows]


def insert_order_cycle(conn: Connection, fields: dict) -> int:
    """Insert an order cycle row and return its id."""
    now = now_utc()
    values = _clean_fields(fields)
    values.update({"created_at": now, "updated_at": now})
    row = conn.execute(
        insert(order_cycles).values(**values).returning(order_cycles.c.id)
    ).first()
    logger.info(f"db_order_cycles: created order cycle id={row[0]}, name={values.get('name')}")
    return row[0]


def update_order_cycle(conn: Connection, order_cycle_id: int, fields: dict) -> bool:
    """Apply `fields` to an order cycle; always bumps updated_at."""
    values = _clean_fields(fields)
    values["updated_at"] = now_utc()
    result = conn.execute(
        update(order_cycles).where(order_cycles.c.id == order_cycle_id).values(**values)
    )
    return result.rowcount > 0


def delete_order_cycle(conn: Connection, order_cycle_id: int) -> bool:
    """Delete an order cycle row.

    Raises sqlalchemy.exc.IntegrityError when orders still reference it.
    """
    result = conn.execute(order_cycles.delete().where(order_cycles.c.id == order_cycle_id))
    return result.rowcount > 0


def get_exchanges(order_cycle_ids: Iterable[int], conn: Optional[Connection] = None) -> Dict[int, List[dict]]:
    """Map order cycle id -> exchanges."""
    ids = list(set(order_cycle_ids))
    result: Dict[int, List[dict]] = {oc_id: [] for oc_id in ids}
    if not ids:
        return result
    sql = select(exchanges).where(exchanges.c.order_cycle_id.in_(ids)).order_by(exchanges.c.id)
    if conn is not None:
        rows = conn.execute(sql).mappings().all()
    else:
        with engine.connect() as conn:
            rows = conn.execute(sql).mappings().all()
    for row in rows:
        result[row["order_cycle_id"]].append(_row_to_exchange(row))
    return result


def add_exchange(
    conn: Connection,
    order_cycle_id: int,
    sender_id: int,
    receiver_id: int,
    incoming: bool,
    pickup_time: Optional[str] = None,
) -> None:
    conn.execute(
        insert(exchanges).values(
            order_cycle_id=order_cycle_id,
            sender_id=sender_id,
            receiver_id=receiver_id,
            incoming=incoming,
            pickup_time=pickup_time,
        )
    )


def remove_exchanges(conn: Connection, order_cycle_id: int, incoming: bool, enterprise_ids: Iterable[int]) -> int:
    """Remove incoming exchanges from, or outgoing exchanges to, the given enterprises."""
    ids = list(set(enterprise_ids))
    if not ids:
        return 0
    partner = exchanges.c.sender_id if incoming else exchanges.c.receiver_id
    result = conn.execute(
        exchanges.delete().where(
            and_(
                exchanges.c.order_cycle_id == order_cycle_id,
                exchanges.c.incoming.is_(incoming),
                partner.in_(ids),
            )
        )
    )
    return result.rowcount


def set_pickup_time(conn: Connection, order_cycle_id: int, receiver_id: int, pickup_time: Optional[str]) -> None:
    conn.execute(
        update(exchanges)
        .where(
            exchanges.c.order_cycle_id == order_cycle_id,
            exchanges.c.incoming.is_(False),
            exchanges.c.receiver_id == receiver_id,
        )
        .values(pickup_time=pickup_time)
    )


def order_cycle_involves(order_cycle_id: int, enterprise_ids: Iterable[int]) -> bool:
    """Whether any exchange of the order cycle is with one of `enterprise_ids`."""
    ids = list(set(enterprise_ids))
    if not ids:
        return False
    sql = select(exchanges.c.id).where(
        exchanges.c.order_cycle_id == order_cycle_id,
        or_(exchanges.c.sender_id.in_(ids), exchanges.c.receiver_id.in_(ids)),
    ).limit(1)
    with engine.connect() as conn:
        return conn.execute(sql).first() is not None
