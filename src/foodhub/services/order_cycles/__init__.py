"""Order cycle administration services."""

from foodhub.services.order_cycles.destroy import DestroyResult, destroy_order_cycle
from foodhub.services.order_cycles.listing import OrderCycleStatus, order_cycle_status, sort_into_brackets
from foodhub.services.order_cycles.schedule_reconciler import (
    ScheduleReconciler,
    affected_subscriptions,
    diff,
    reconcile,
)

__all__ = [
    "DestroyResult",
    "destroy_order_cycle",
    "OrderCycleStatus",
    "order_cycle_status",
    "sort_into_brackets",
    "ScheduleReconciler",
    "affected_subscriptions",
    "diff",
    "reconcile",
]
