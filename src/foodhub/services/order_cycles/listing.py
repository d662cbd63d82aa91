"""Status and display order of order cycles in the admin index."""

from __future__ import annotations

from datetime import datetime
from typing import List

from foodhub.utils.timestamps import as_utc


class OrderCycleStatus:
    UNDATED = "undated"
    UPCOMING = "upcoming"
    OPEN = "open"
    CLOSED = "closed"


def order_cycle_status(order_cycle: dict, now: datetime) -> str:
    opens = order_cycle.get("orders_open_at")
    closes = order_cycle.get("orders_close_at")
    if opens is None or closes is None:
        return OrderCycleStatus.UNDATED
    now = as_utc(now)
    if as_utc(closes) <= now:
        return OrderCycleStatus.CLOSED
    if as_utc(opens) <= now:
        return OrderCycleStatus.OPEN
    return OrderCycleStatus.UPCOMING


def sort_into_brackets(order_cycles: List[dict], now: datetime) -> List[dict]:
    """Order for display: undated, open (closing soonest first),
    upcoming (opening soonest first), then closed (most recent first).

    Undated cycles keep their incoming order; each cycle appears once.
    """
    buckets = {
        OrderCycleStatus.UNDATED: [],
        OrderCycleStatus.OPEN: [],
        OrderCycleStatus.UPCOMING: [],
        OrderCycleStatus.CLOSED: [],
    }
    seen = set()
    for oc in order_cycles:
        if oc["id"] in seen:
            continue
        seen.add(oc["id"])
        buckets[order_cycle_status(oc, now)].append(oc)

    buckets[OrderCycleStatus.OPEN].sort(key=lambda oc: (as_utc(oc["orders_close_at"]), oc["id"]))
    buckets[OrderCycleStatus.UPCOMING].sort(key=lambda oc: (as_utc(oc["orders_open_at"]), oc["id"]))
    buckets[OrderCycleStatus.CLOSED].sort(key=lambda oc: (as_utc(oc["orders_close_at"]), oc["id"]), reverse=True)

    return (
        buckets[OrderCycleStatus.UNDATED]
        + buckets[OrderCycleStatus.OPEN]
        + buckets[OrderCycleStatus.UPCOMING]
        + buckets[OrderCycleStatus.CLOSED]
    )
