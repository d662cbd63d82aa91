"""Database helpers for subscriptions and their proxy orders."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import insert, select
from sqlalchemy.engine import Connection

from foodhub.db import engine
from foodhub.models import OrderCycle, OrderCycleSchedule, ProxyOrder, Subscription
from foodhub.utils.timestamps import as_utc

subscriptions = Subscription.__table__
proxy_orders = ProxyOrder.__table__
order_cycles = OrderCycle.__table__
order_cycle_schedules = OrderCycleSchedule.__table__


def _row_to_subscription(row) -> dict:
    return {
        "id": row["id"],
        "schedule_id": row["schedule_id"],
        "shop_id": row["shop_id"],
        "customer_id": row["customer_id"],
        "begins_at": as_utc(row["begins_at"]),
        "ends_at": as_utc(row["ends_at"]),
        "canceled_at": as_utc(row["canceled_at"]),
    }


def _row_to_proxy_order(row) -> dict:
    return {
        "id": row["id"],
        "subscription_id": row["subscription_id"],
        "order_cycle_id": row["order_cycle_id"],
        "placed_at": as_utc(row["placed_at"]),
    }


def create_subscription(
    schedule_id: int,
    shop_id: int,
    begins_at: datetime,
    ends_at: Optional[datetime] = None,
    customer_id: Optional[int] = None,
) -> dict:
    with engine.begin() as conn:
        row = conn.execute(
            insert(subscriptions)
            .values(
                schedule_id=schedule_id,
                shop_id=shop_id,
                customer_id=customer_id,
                begins_at=as_utc(begins_at),
                ends_at=as_utc(ends_at),
            )
            .returning(*subscriptions.c)
        ).mappings().first()
    return _row_to_subscription(row)


def get_subscriptions_by_ids(subscription_ids: Iterable[int]) -> List[dict]:
    ids = list(set(subscription_ids))
    if not ids:
        return []
    with engine.connect() as conn:
        rows = conn.execute(
            select(subscriptions).where(subscriptions.c.id.in_(ids)).order_by(subscriptions.c.id)
        ).mappings().all()
    return [_row_to_subscription(row) for row in rows]


def get_subscriptions_by_schedule_ids(schedule_ids: Iterable[int]) -> List[dict]:
    ids = list(set(schedule_ids))
    if not ids:
        return []
    with engine.connect() as conn:
        rows = conn.execute(
            select(subscriptions)
            .where(subscriptions.c.schedule_id.in_(ids))
            .order_by(subscriptions.c.id)
        ).mappings().all()
    return [_row_to_subscription(row) for row in rows]


def get_order_cycles_for_schedule(conn: Connection, schedule_id: int) -> List[dict]:
    """Order cycles (id + dates) that currently use the schedule."""
    rows = conn.execute(
        select(order_cycles.c.id, order_cycles.c.orders_open_at, order_cycles.c.orders_close_at)
        .join(order_cycle_schedules, order_cycle_schedules.c.order_cycle_id == order_cycles.c.id)
        .where(order_cycle_schedules.c.schedule_id == schedule_id)
    ).mappings().all()
    return [
        {
            "id": row["id"],
            "orders_open_at": as_utc(row["orders_open_at"]),
            "orders_close_at": as_utc(row["orders_close_at"]),
        }
        for row in rows
    ]


def get_proxy_orders(conn: Connection, subscription_id: int) -> List[dict]:
    """Proxy orders of a subscription joined with their order cycle close date."""
    rows = conn.execute(
        select(
            proxy_orders.c.id,
            proxy_orders.c.subscription_id,
            proxy_orders.c.order_cycle_id,
            proxy_orders.c.placed_at,
            order_cycles.c.orders_close_at,
        )
        .join(order_cycles, order_cycles.c.id == proxy_orders.c.order_cycle_id)
        .where(proxy_orders.c.subscription_id == subscription_id)
        .order_by(proxy_orders.c.id)
    ).mappings().all()
    result = []
    for row in rows:
        proxy_order = _row_to_proxy_order(row)
        proxy_order["orders_close_at"] = as_utc(row["orders_close_at"])
        result.append(proxy_order)
    return result


def create_proxy_order(conn: Connection, subscription_id: int, order_cycle_id: int) -> None:
    conn.execute(
        insert(proxy_orders).values(subscription_id=subscription_id, order_cycle_id=order_cycle_id)
    )


def delete_proxy_orders(conn: Connection, proxy_order_ids: Iterable[int]) -> int:
    ids = list(set(proxy_order_ids))
    if not ids:
        return 0
    result = conn.execute(proxy_orders.delete().where(proxy_orders.c.id.in_(ids)))
    return result.rowcount
