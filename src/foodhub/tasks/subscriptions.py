"""Celery tasks for subscription proxy order resync."""

from __future__ import annotations

from typing import Any, Dict, List

from foodhub.celery_app import celery_app


@celery_app.task(name="foodhub.tasks.subscriptions.sync_subscriptions")
def sync_subscriptions_task(subscription_ids: List[int]) -> Dict[str, Any]:
    from foodhub.services.subscriptions.proxy_order_syncer import sync_subscriptions

    result = sync_subscriptions(subscription_ids)
    return {"status": "completed", "domain": "proxy_orders", "result": result}
