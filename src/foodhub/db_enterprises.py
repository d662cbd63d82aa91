"""Database helpers for enterprises and enterprise roles (who manages what)."""

from __future__ import annotations

import logging
from typing import Iterable, List, Set

from sqlalchemy import insert, select

from foodhub.db import engine
from foodhub.models import Enterprise, EnterpriseRole

logger = logging.getLogger(__name__)

enterprises = Enterprise.__table__
enterprise_roles = EnterpriseRole.__table__


class Sells:
    NONE = "none"
    OWN = "own"
    ANY = "any"

    @classmethod
    def all(cls) -> List[str]:
        return [cls.NONE, cls.OWN, cls.ANY]


def _row_to_enterprise(row) -> dict:
    return {
        "id": row["id"],
        "name": row["name"],
        "is_primary_producer": row["is_primary_producer"],
        "sells": row["sells"],
    }


def create_enterprise(name: str, sells: str = Sells.ANY, is_primary_producer: bool = False) -> dict:
    """Create an enterprise."""
    if sells not in Sells.all():
        raise ValueError(f"Invalid sells value: {sells}. Must be one of {Sells.all()}")

    with engine.begin() as conn:
        row = conn.execute(
            insert(enterprises)
            .values(name=name, sells=sells, is_primary_producer=is_primary_producer)
            .returning(*enterprises.c)
        ).mappings().first()
    logger.info(f"db_enterprises: created enterprise id={row['id']}, name={name}")
    return _row_to_enterprise(row)


def add_enterprise_manager(enterprise_id: int, user_id: int) -> None:
    """Give a user management rights over an enterprise."""
    with engine.begin() as conn:
        conn.execute(
            insert(enterprise_roles).values(enterprise_id=enterprise_id, user_id=user_id)
        )


def get_enterprises_by_ids(enterprise_ids: Iterable[int]) -> List[dict]:
    ids = list(set(enterprise_ids))
    if not ids:
        return []
    with engine.connect() as conn:
        rows = conn.execute(
            select(enterprises).where(enterprises.c.id.in_(ids)).order_by(enterprises.c.name)
        ).mappings().all()
    return [_row_to_enterprise(row) for row in rows]


def get_all_enterprise_ids() -> Set[int]:
    with engine.connect() as conn:
        return set(conn.execute(select(enterprises.c.id)).scalars().all())


def get_managed_enterprise_ids(user_id: int) -> Set[int]:
    """Ids of enterprises the user holds a role in."""
    with engine.connect() as conn:
        return set(
            conn.execute(
                select(enterprise_roles.c.enterprise_id).where(enterprise_roles.c.user_id == user_id)
            ).scalars().all()
        )


def get_coordinating_enterprises(enterprise_ids: Iterable[int]) -> List[dict]:
    """Enterprises among `enterprise_ids` that may coordinate an order cycle.

    Only hubs that sell other producers' goods can coordinate.
    """
    ids = list(set(enterprise_ids))
    if not ids:
        return []
    with engine.connect() as conn:
        rows = conn.execute(
            select(enterprises)
            .where(enterprises.c.id.in_(ids), enterprises.c.sells == Sells.ANY)
            .order_by(enterprises.c.name)
        ).mappings().all()
    return [_row_to_enterprise(row) for row in rows]
