"""Keep each subscription's proxy orders in line with its schedule.

A proxy order is the placeholder for the order a subscription will place in
one order cycle. After the order cycles on a schedule change, every
subscription on that schedule needs:

- a proxy order in each in-range order cycle it does not have one for yet
- its unplaced proxy orders removed from order cycles that are still
  running but no longer in range

Closed order cycles and placed proxy orders are history and never touched.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Iterable, Optional

from foodhub.db import engine
from foodhub.db_subscriptions import (
    create_proxy_order,
    delete_proxy_orders,
    get_order_cycles_for_schedule,
    get_proxy_orders,
    get_subscriptions_by_ids,
)
from foodhub.utils.timestamps import as_utc, now_utc

logger = logging.getLogger(__name__)


def in_range(subscription: dict, order_cycle: dict, now: datetime) -> bool:
    """Whether the subscription should place an order in this order cycle."""
    closes = order_cycle["orders_close_at"]
    if closes is None or closes <= now:
        return False
    if subscription["canceled_at"] is not None:
        return False
    if closes < subscription["begins_at"]:
        return False
    ends_at = subscription["ends_at"]
    return ends_at is None or closes <= ends_at


def sync_subscription(conn, subscription: dict, now: datetime) -> Dict[str, int]:
    order_cycles = get_order_cycles_for_schedule(conn, subscription["schedule_id"])
    wanted = {oc["id"] for oc in order_cycles if in_range(subscription, oc, now)}

    existing = get_proxy_orders(conn, subscription["id"])
    have = {po["order_cycle_id"] for po in existing}

    for order_cycle_id in sorted(wanted - have):
        create_proxy_order(conn, subscription["id"], order_cycle_id)

    stale = [
        po["id"]
        for po in existing
        if po["order_cycle_id"] not in wanted
        and po["placed_at"] is None
        and po["orders_close_at"] is not None
        and po["orders_close_at"] > now
    ]
    removed = delete_proxy_orders(conn, stale)
    return {"created": len(wanted - have), "removed": removed}


def sync_subscriptions(subscription_ids: Iterable[int], now: Optional[datetime] = None) -> Dict[str, int]:
    """Sync proxy orders for the given subscriptions in one transaction.

    Returns totals of proxy orders created and removed.
    """
    now = as_utc(now) if now is not None else now_utc()
    subscriptions = get_subscriptions_by_ids(subscription_ids)
    totals = {"subscriptions": len(subscriptions), "created": 0, "removed": 0}
    if not subscriptions:
        return totals

    with engine.begin() as conn:
        for subscription in subscriptions:
            counts = sync_subscription(conn, subscription, now)
            totals["created"] += counts["created"]
            totals["removed"] += counts["removed"]

    logger.info(
        f"sync_subscriptions: {totals['subscriptions']} subscription(s), "
        f"created={totals['created']} removed={totals['removed']}"
    )
    return totals
