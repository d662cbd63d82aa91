"""Order cycle create/update/bulk update/clone.

Each write runs in one transaction. Schedule ids go through the
ScheduleReconciler before they are stored, and the affected subscriptions
are resynchronised after the transaction commits.
"""

from __future__ import annotations

import logging
import traceback
from typing import Dict, List, Optional

from foodhub.db import engine
from foodhub.db_order_cycles import (
    add_exchange,
    get_exchanges,
    get_order_cycle,
    get_order_cycles_by_ids,
    insert_order_cycle,
    update_order_cycle as update_order_cycle_row,
)
from foodhub.db_schedules import (
    get_schedule_ids_for_order_cycle,
    get_schedules_by_ids,
    replace_order_cycle_schedules,
)
from foodhub.db_subscriptions import get_subscriptions_by_schedule_ids
from foodhub.permissions import Permissions
from foodhub.services.order_cycles.exchanges import apply_exchanges
from foodhub.services.order_cycles.schedule_reconciler import ScheduleReconciler
from foodhub.utils.timestamps import as_utc

logger = logging.getLogger(__name__)

# Only a manager of the coordinator may change these
COORDINATOR_ONLY_FIELDS = ("name", "orders_open_at", "orders_close_at")

CLONED_NAME_PREFIX = "COPY OF "


class OrderCycleValidationError(Exception):
    """Order cycle attributes failed validation; `messages` are user-facing."""

    def __init__(self, messages: List[str]) -> None:
        super().__init__("; ".join(messages))
        self.messages = messages


class CoordinatorNotPermitted(Exception):
    """The user may not coordinate an order cycle for this enterprise."""


def enqueue_subscription_sync(subscription_ids: List[int]) -> None:
    """Queue proxy order resync for the given subscriptions; no-op when empty."""
    if not subscription_ids:
        return
    from foodhub.tasks.subscriptions import sync_subscriptions_task

    try:
        result = sync_subscriptions_task.delay(list(subscription_ids))
    except Exception as e:
        # The order cycle is already saved; a broker outage must not fail the request
        logger.error(
            f"Error queueing subscription sync (subscription_ids={list(subscription_ids)}): {e}\n{traceback.format_exc()}"
        )
        return
    logger.info(f"enqueue_subscription_sync: {len(subscription_ids)} subscription(s), task_id={result.id}")


def build_schedule_reconciler(permissions: Permissions) -> ScheduleReconciler:
    return ScheduleReconciler(
        permission_filter=permissions,
        schedule_lookup=get_schedules_by_ids,
        subscription_lookup=get_subscriptions_by_schedule_ids,
        notification_trigger=enqueue_subscription_sync,
    )


def validate_order_cycle(attrs: dict) -> List[str]:
    """Return validation messages for a full set of order cycle attributes."""
    messages = []
    if not (attrs.get("name") or "").strip():
        messages.append("Name can't be blank")
    if attrs.get("coordinator_id") is None:
        messages.append("Coordinator can't be blank")
    opens = as_utc(attrs.get("orders_open_at"))
    closes = as_utc(attrs.get("orders_close_at"))
    if opens is not None and closes is not None and closes <= opens:
        messages.append("Orders close at must be after orders open at")
    return messages


def remove_protected_attrs(fields: dict, order_cycle: dict, permissions: Permissions) -> dict:
    """Strip attributes the user may not change on an existing order cycle."""
    cleaned = dict(fields)
    cleaned.pop("coordinator_id", None)
    if not permissions.manages(order_cycle["coordinator_id"]):
        for key in COORDINATOR_ONLY_FIELDS:
            cleaned.pop(key, None)
    return cleaned


def create_order_cycle(
    fields: dict,
    permissions: Permissions,
    schedule_ids: Optional[List[int]] = None,
    incoming_exchanges: Optional[List[dict]] = None,
    outgoing_exchanges: Optional[List[dict]] = None,
    reconciler: Optional[ScheduleReconciler] = None,
) -> dict:
    """Create an order cycle coordinated by one of the user's enterprises.

    Raises:
        CoordinatorNotPermitted: coordinator is not one the user may coordinate for
        OrderCycleValidationError: attributes are invalid
    """
    reconciler = reconciler or build_schedule_reconciler(permissions)

    coordinator_id = fields.get("coordinator_id")
    permitted_coordinator_ids = {e["id"] for e in permissions.permitted_coordinating_enterprises()}
    if coordinator_id is not None and coordinator_id not in permitted_coordinator_ids:
        raise CoordinatorNotPermitted(f"Enterprise {coordinator_id} cannot be used as coordinator")

    messages = validate_order_cycle(fields)
    if messages:
        raise OrderCycleValidationError(messages)

    existing_schedule_ids = frozenset()
    final_schedule_ids = reconciler.reconcile_for(existing_schedule_ids, schedule_ids)

    try:
        with engine.begin() as conn:
            order_cycle_id = insert_order_cycle(conn, fields)
            replace_order_cycle_schedules(conn, order_cycle_id, final_schedule_ids)
            if incoming_exchanges is not None or outgoing_exchanges is not None:
                apply_exchanges(
                    conn, order_cycle_id, coordinator_id,
                    incoming_exchanges, outgoing_exchanges, permissions,
                )
    except Exception as e:
        logger.error(f"Error creating order cycle (name={fields.get('name')}): {e}\n{traceback.format_exc()}")
        raise

    reconciler.sync_subscriptions(existing_schedule_ids, final_schedule_ids)
    return get_order_cycle(order_cycle_id)


def update_order_cycle(
    order_cycle: dict,
    fields: dict,
    permissions: Permissions,
    schedule_ids: Optional[List[int]] = None,
    incoming_exchanges: Optional[List[dict]] = None,
    outgoing_exchanges: Optional[List[dict]] = None,
    reconciler: Optional[ScheduleReconciler] = None,
) -> dict:
    """Update an order cycle the user can access.

    Protected attributes are silently dropped, schedules are reconciled
    against the stored set, and exchanges are only touched when at least one
    exchange list was submitted.
    """
    reconciler = reconciler or build_schedule_reconciler(permissions)
    order_cycle_id = order_cycle["id"]

    fields = remove_protected_attrs(fields, order_cycle, permissions)
    messages = validate_order_cycle({**order_cycle, **fields})
    if messages:
        raise OrderCycleValidationError(messages)

    existing_schedule_ids = frozenset(get_schedule_ids_for_order_cycle(order_cycle_id))
    final_schedule_ids = reconciler.reconcile_for(existing_schedule_ids, schedule_ids)

    try:
        with engine.begin() as conn:
            update_order_cycle_row(conn, order_cycle_id, fields)
            if schedule_ids is not None:
                replace_order_cycle_schedules(conn, order_cycle_id, final_schedule_ids)
            if incoming_exchanges is not None or outgoing_exchanges is not None:
                apply_exchanges(
                    conn, order_cycle_id, order_cycle["coordinator_id"],
                    incoming_exchanges, outgoing_exchanges, permissions,
                )
    except Exception as e:
        logger.error(f"Error updating order cycle (id={order_cycle_id}): {e}\n{traceback.format_exc()}")
        raise

    reconciler.sync_subscriptions(existing_schedule_ids, final_schedule_ids)
    return get_order_cycle(order_cycle_id)


def bulk_update_order_cycles(collection_attributes: Dict[str, dict], permissions: Permissions) -> List[dict]:
    """Update several order cycles at once.

    Rows for order cycles whose coordinator the user does not manage are
    dropped. Every remaining row is validated before anything is written;
    the first invalid row aborts the whole update.

    Returns the updated order cycles.
    """
    rows = []
    for row in collection_attributes.values():
        attrs = dict(row)
        order_cycle_id = attrs.pop("id", None)
        order_cycle = get_order_cycle(order_cycle_id) if order_cycle_id is not None else None
        if order_cycle is None or not permissions.manages(order_cycle["coordinator_id"]):
            logger.info(f"bulk_update_order_cycles: skipping unauthorized row id={order_cycle_id}")
            continue
        attrs.pop("coordinator_id", None)
        rows.append((order_cycle, attrs))

    for order_cycle, attrs in rows:
        messages = validate_order_cycle({**order_cycle, **attrs})
        if messages:
            raise OrderCycleValidationError(messages)

    with engine.begin() as conn:
        for order_cycle, attrs in rows:
            update_order_cycle_row(conn, order_cycle["id"], attrs)

    return get_order_cycles_by_ids([order_cycle["id"] for order_cycle, _ in rows])


def clone_order_cycle(order_cycle: dict) -> dict:
    """Copy an order cycle with its exchanges; dates and schedules are not copied."""
    fields = {
        "name": f"{CLONED_NAME_PREFIX}{order_cycle['name']}",
        "coordinator_id": order_cycle["coordinator_id"],
        "orders_open_at": None,
        "orders_close_at": None,
    }
    with engine.begin() as conn:
        clone_id = insert_order_cycle(conn, fields)
        for exchange in get_exchanges([order_cycle["id"]], conn=conn)[order_cycle["id"]]:
            add_exchange(
                conn,
                clone_id,
                sender_id=exchange["sender_id"],
                receiver_id=exchange["receiver_id"],
                incoming=exchange["incoming"],
                pickup_time=exchange["pickup_time"],
            )
    logger.info(f"clone_order_cycle: cloned id={order_cycle['id']} into id={clone_id}")
    return get_order_cycle(clone_id)
