"""Apply submitted incoming/outgoing exchange lists to an order cycle.

Incoming exchanges bring a producer's goods to the coordinator, outgoing
exchanges send them on to a distributor. The submitted lists are
reconciled the same way schedules are: a user managing the coordinator may
change any exchange, anyone else only those with enterprises they manage.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.engine import Connection

from foodhub.db_order_cycles import add_exchange, get_exchanges, remove_exchanges, set_pickup_time
from foodhub.permissions import Permissions
from foodhub.services.order_cycles.schedule_reconciler import diff, reconcile

logger = logging.getLogger(__name__)


def _permitted_partners(permissions: Permissions, coordinator_id: int, candidates: set) -> set:
    if permissions.manages(coordinator_id):
        return set(candidates)
    return candidates & permissions.managed_enterprise_ids()


def apply_exchanges(
    conn: Connection,
    order_cycle_id: int,
    coordinator_id: int,
    incoming: Optional[List[dict]],
    outgoing: Optional[List[dict]],
    permissions: Permissions,
) -> None:
    """Bring exchanges in line with the submitted lists.

    A list that is None is left untouched.
    """
    current = get_exchanges([order_cycle_id], conn=conn)[order_cycle_id]

    if incoming is not None:
        existing = {e["sender_id"] for e in current if e["incoming"]}
        requested = {e["enterprise_id"] for e in incoming}
        permitted = _permitted_partners(permissions, coordinator_id, requested | existing)
        added, removed = diff(existing, reconcile(requested, existing, permitted))
        for enterprise_id in sorted(added):
            add_exchange(conn, order_cycle_id, sender_id=enterprise_id, receiver_id=coordinator_id, incoming=True)
        remove_exchanges(conn, order_cycle_id, incoming=True, enterprise_ids=removed)
        if added or removed:
            logger.info(
                f"apply_exchanges: order cycle id={order_cycle_id} incoming added={sorted(added)} removed={sorted(removed)}"
            )

    if outgoing is not None:
        existing = {e["receiver_id"] for e in current if not e["incoming"]}
        requested = {e["enterprise_id"] for e in outgoing}
        permitted = _permitted_partners(permissions, coordinator_id, requested | existing)
        final = reconcile(requested, existing, permitted)
        added, removed = diff(existing, final)
        pickup_times = {e["enterprise_id"]: e.get("pickup_time") for e in outgoing}
        for enterprise_id in sorted(added):
            add_exchange(
                conn,
                order_cycle_id,
                sender_id=coordinator_id,
                receiver_id=enterprise_id,
                incoming=False,
                pickup_time=pickup_times.get(enterprise_id),
            )
        remove_exchanges(conn, order_cycle_id, incoming=False, enterprise_ids=removed)
        for enterprise_id in sorted((final & existing) & permitted):
            if enterprise_id in pickup_times:
                set_pickup_time(conn, order_cycle_id, enterprise_id, pickup_times[enterprise_id])
        if added or removed:
            logger.info(
                f"apply_exchanges: order cycle id={order_cycle_id} outgoing added={sorted(added)} removed={sorted(removed)}"
            )
