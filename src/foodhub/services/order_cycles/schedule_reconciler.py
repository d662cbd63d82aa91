"""Reconcile an order cycle's schedules against what the user asked for.

Schedule ids arriving in a request are untrusted. The final set starts from
what is already attached and only moves on ids the acting user is permitted
to edit:

    final = existing
    final |= requested & permitted
    final -= (final & permitted) - requested

Schedules the user cannot edit stay exactly as they were, whether or not the
request mentions them. A request without schedule ids (``None``) changes
nothing; an empty list detaches every permitted schedule.

Once the new set is stored, the subscriptions on every added or removed
schedule must be resynchronised, because the order cycles they will place
orders in have changed.
"""

from __future__ import annotations

import logging
from typing import (
    AbstractSet,
    Callable,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Optional,
    Protocol,
    Tuple,
)

logger = logging.getLogger(__name__)

ScheduleLookup = Callable[[Iterable[int]], List[dict]]
SubscriptionLookup = Callable[[Iterable[int]], List[dict]]
NotificationTrigger = Callable[[List[int]], None]


class PermissionFilter(Protocol):
    def editable_schedule_ids(self, candidate_ids: Iterable[int]) -> AbstractSet[int]:
        ...


def reconcile(
    requested: Optional[Iterable[int]],
    existing: Iterable[int],
    permitted: Iterable[int],
) -> FrozenSet[int]:
    """Compute the schedule ids to store for one order cycle."""
    result = frozenset(existing)
    if requested is None:
        return result

    requested_ids = frozenset(int(i) for i in requested)
    permitted_ids = frozenset(permitted)

    result |= requested_ids & permitted_ids
    result -= (result & permitted_ids) - requested_ids
    return result


def diff(existing: Iterable[int], final: Iterable[int]) -> Tuple[FrozenSet[int], FrozenSet[int]]:
    """Return (added, removed) between the stored and the new schedule ids."""
    existing_ids = frozenset(existing)
    final_ids = frozenset(final)
    return final_ids - existing_ids, existing_ids - final_ids


def affected_subscriptions(
    added: Iterable[int],
    removed: Iterable[int],
    schedule_lookup: ScheduleLookup,
    subscription_lookup: SubscriptionLookup,
) -> List[dict]:
    """Subscriptions on any added or removed schedule, unique by id.

    Nothing changed means nothing to look up: the lookups are not called.
    """
    changed = frozenset(added) | frozenset(removed)
    if not changed:
        return []

    schedules = schedule_lookup(sorted(changed))
    schedule_ids = sorted({s["id"] for s in schedules})
    if not schedule_ids:
        return []

    unique: Dict[int, dict] = {}
    for subscription in subscription_lookup(schedule_ids):
        unique.setdefault(subscription["id"], subscription)
    return [unique[k] for k in sorted(unique)]


class ScheduleReconciler:
    """Schedule reconciliation bound to one acting user's permissions."""

    def __init__(
        self,
        permission_filter: PermissionFilter,
        schedule_lookup: ScheduleLookup,
        subscription_lookup: SubscriptionLookup,
        notification_trigger: NotificationTrigger,
    ) -> None:
        self.permission_filter = permission_filter
        self.schedule_lookup = schedule_lookup
        self.subscription_lookup = subscription_lookup
        self.notification_trigger = notification_trigger

    def reconcile_for(self, existing: Iterable[int], requested: Optional[Iterable[int]]) -> FrozenSet[int]:
        """Reconcile `requested` against `existing` using the injected permissions."""
        existing_ids = frozenset(existing)
        if requested is None:
            return existing_ids

        requested_ids = frozenset(int(i) for i in requested)
        # Bound the permission query to the ids in play
        permitted = self.permission_filter.editable_schedule_ids(requested_ids | existing_ids)
        final = reconcile(requested_ids, existing_ids, permitted)

        ignored = (requested_ids - existing_ids) - final
        if ignored:
            logger.info(f"schedule_reconciler: ignoring non-editable schedule ids {sorted(ignored)}")
        return final

    def sync_subscriptions(self, existing: Iterable[int], final: Iterable[int]) -> List[int]:
        """Trigger a resync for subscriptions touched by the change.

        Returns the subscription ids handed to the trigger (possibly empty,
        in which case the trigger is not called).
        """
        added, removed = diff(existing, final)
        subscriptions = affected_subscriptions(
            added, removed, self.schedule_lookup, self.subscription_lookup
        )
        subscription_ids = [s["id"] for s in subscriptions]
        if not subscription_ids:
            return []

        logger.info(
            f"schedule_reconciler: schedules added={sorted(added)} removed={sorted(removed)}, "
            f"resyncing {len(subscription_ids)} subscription(s)"
        )
        self.notification_trigger(subscription_ids)
        return subscription_ids
