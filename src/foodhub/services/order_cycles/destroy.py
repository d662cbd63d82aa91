"""Guarded deletion of order cycles."""

from __future__ import annotations

import enum
import logging

from sqlalchemy.exc import IntegrityError

from foodhub.db import engine
from foodhub.db_order_cycles import delete_order_cycle
from foodhub.db_schedules import get_schedule_ids_for_order_cycle

logger = logging.getLogger(__name__)


class DestroyResult(str, enum.Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    SCHEDULES_PRESENT = "schedules_present"
    ORDERS_PRESENT = "orders_present"


def destroy_order_cycle(order_cycle_id: int) -> DestroyResult:
    """Delete an order cycle unless something still depends on it.

    Attached schedules are checked first, without touching the row. Orders
    are only detected by the database refusing the delete, in which case
    the transaction is rolled back and the order cycle stays. A refused
    delete is re-checked for schedules linked in the meantime.
    """
    if get_schedule_ids_for_order_cycle(order_cycle_id):
        logger.info(f"destroy_order_cycle: id={order_cycle_id} refused, schedules attached")
        return DestroyResult.SCHEDULES_PRESENT

    try:
        with engine.begin() as conn:
            deleted = delete_order_cycle(conn, order_cycle_id)
    except IntegrityError as e:
        # A schedule linked after the check also violates a foreign key
        if get_schedule_ids_for_order_cycle(order_cycle_id):
            logger.info(f"destroy_order_cycle: id={order_cycle_id} refused, schedule linked meanwhile: {e.orig}")
            return DestroyResult.SCHEDULES_PRESENT
        logger.info(f"destroy_order_cycle: id={order_cycle_id} refused, still referenced: {e.orig}")
        return DestroyResult.ORDERS_PRESENT

    if not deleted:
        return DestroyResult.NOT_FOUND

    logger.info(f"destroy_order_cycle: deleted order cycle id={order_cycle_id}")
    return DestroyResult.OK
