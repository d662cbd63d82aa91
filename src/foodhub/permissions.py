"""What a user may see and change, derived from the enterprises they manage.

Superusers manage every enterprise. Everyone else manages the enterprises
they hold an enterprise role in.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Set

from foodhub.db_enterprises import (
    get_all_enterprise_ids,
    get_coordinating_enterprises,
    get_managed_enterprise_ids,
)
from foodhub.db_schedules import get_existing_schedule_ids, get_schedule_ids_coordinated_by


class Permissions:
    """Capability provider bound to one user.

    Implements the PermissionFilter interface the schedule reconciler expects
    (`editable_schedule_ids`).
    """

    def __init__(self, user: dict) -> None:
        self.user = user
        self._managed_ids: Optional[Set[int]] = None

    @property
    def is_superuser(self) -> bool:
        return bool(self.user.get("is_superuser"))

    def managed_enterprise_ids(self) -> Set[int]:
        if self._managed_ids is None:
            if self.is_superuser:
                self._managed_ids = get_all_enterprise_ids()
            else:
                self._managed_ids = get_managed_enterprise_ids(self.user["id"])
        return self._managed_ids

    def manages(self, enterprise_id: Optional[int]) -> bool:
        return enterprise_id is not None and enterprise_id in self.managed_enterprise_ids()

    def permitted_coordinating_enterprises(self) -> List[dict]:
        return get_coordinating_enterprises(self.managed_enterprise_ids())

    def editable_schedule_ids(self, candidate_ids: Iterable[int]) -> Set[int]:
        """Schedules among `candidate_ids` this user may attach or detach.

        A schedule is editable when one of the order cycles using it is
        coordinated by an enterprise the user manages.
        """
        candidates = set(candidate_ids)
        if not candidates:
            return set()
        if self.is_superuser:
            return get_existing_schedule_ids(candidates)
        return get_schedule_ids_coordinated_by(self.managed_enterprise_ids(), candidates)
