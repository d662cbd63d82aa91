"""Celery tasks for order cycles."""

from __future__ import annotations

import logging
from typing import Any, Dict

from foodhub.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="foodhub.tasks.order_cycles.notify_producers")
def notify_producers_task(order_cycle_id: int) -> Dict[str, Any]:
    """Notify every producer supplying the order cycle."""
    from foodhub.db_enterprises import get_enterprises_by_ids
    from foodhub.db_order_cycles import get_exchanges, get_order_cycle

    order_cycle = get_order_cycle(order_cycle_id)
    if order_cycle is None:
        logger.warning(f"notify_producers: order cycle id={order_cycle_id} not found, skipping")
        return {"status": "skipped", "order_cycle_id": order_cycle_id, "producers": []}

    exchanges = get_exchanges([order_cycle_id])[order_cycle_id]
    producer_ids = {e["sender_id"] for e in exchanges if e["incoming"]}
    producers = get_enterprises_by_ids(producer_ids)
    for producer in producers:
        logger.info(
            f"notify_producers: order cycle '{order_cycle['name']}' (id={order_cycle_id}) "
            f"-> producer '{producer['name']}' (id={producer['id']})"
        )

    return {
        "status": "completed",
        "order_cycle_id": order_cycle_id,
        "producers": [p["id"] for p in producers],
    }
