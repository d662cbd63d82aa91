"""Database helpers for the `users` table."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import insert, select, update

from foodhub.db import engine
from foodhub.models import User

users = User.__table__

_USER_COLUMNS = (
    users.c.id,
    users.c.username,
    users.c.email,
    users.c.hashed_password,
    users.c.is_active,
    users.c.is_superuser,
    users.c.created_at,
    users.c.updated_at,
)


def _row_to_user(row) -> dict:
    return {
        "id": row["id"],
        "username": row["username"],
        "email": row["email"],
        "hashed_password": row["hashed_password"],
        "is_active": row["is_active"],
        "is_superuser": row["is_superuser"],
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
    }


def get_user_by_username(username: str) -> Optional[dict]:
    """Get user by username."""
    with engine.connect() as conn:
        row = conn.execute(
            select(*_USER_COLUMNS).where(users.c.username == username)
        ).mappings().first()
    return _row_to_user(row) if row else None


def get_user_by_id(user_id: int) -> Optional[dict]:
    """Get user by ID."""
    with engine.connect() as conn:
        row = conn.execute(
            select(*_USER_COLUMNS).where(users.c.id == user_id)
        ).mappings().first()
    return _row_to_user(row) if row else None


def create_user(
    username: str,
    email: Optional[str],
    hashed_password: str,
    is_superuser: bool = False,
) -> dict:
    """Create a new user."""
    with engine.begin() as conn:
        row = conn.execute(
            insert(users)
            .values(
                username=username,
                email=email,
                hashed_password=hashed_password,
                is_active=True,
                is_superuser=is_superuser,
            )
            .returning(*_USER_COLUMNS)
        ).mappings().first()
    return _row_to_user(row)


def set_user_password(username: str, hashed_password: str, is_superuser: bool) -> bool:
    """Overwrite password hash and superuser flag; False if user is missing."""
    now = datetime.now(timezone.utc)
    with engine.begin() as conn:
        result = conn.execute(
            update(users)
            .where(users.c.username == username)
            .values(hashed_password=hashed_password, is_superuser=is_superuser, updated_at=now)
        )
        return result.rowcount > 0


def update_user_last_login(user_id: int) -> None:
    """Stamp last login time."""
    with engine.begin() as conn:
        conn.execute(
            update(users)
            .where(users.c.id == user_id)
            .values(last_login_at=datetime.now(timezone.utc))
        )
