#!/usr/bin/env python3
"""Script to create/update the admin superuser with specified password.

Usage:
    python scripts/create_admin_user.py [password]

If password is not provided, defaults to "admin123".
Script is idempotent: creates user if missing, updates password if different.
A superuser manages every enterprise, so it can coordinate any order cycle.
"""

import sys
import os

# In container PYTHONPATH already points at src; on host add ../src
script_dir = os.path.dirname(os.path.abspath(__file__))
src_dir = os.path.abspath(os.path.join(script_dir, '..', 'src'))
if src_dir not in sys.path:
    sys.path.insert(0, src_dir)

from foodhub.db_users import get_user_by_username, create_user, set_user_password
from foodhub.core.security import get_password_hash, verify_password


def create_or_update_admin(password: str = "admin123") -> None:
    """Create the `admin` user or reset its password."""
    username = "admin"

    existing_user = get_user_by_username(username)

    if existing_user:
        if verify_password(password, existing_user["hashed_password"]) and existing_user["is_superuser"]:
            print(f"✓ User '{username}' already exists with this password")
            return

        print(f"User '{username}' exists, updating password and setting is_superuser=true...")
        set_user_password(username, get_password_hash(password), is_superuser=True)
        print(f"✓ Password for '{username}' updated, is_superuser=true")
    else:
        print(f"Creating user '{username}'...")
        admin_user = create_user(
            username=username,
            email="admin@example.com",
            hashed_password=get_password_hash(password),
            is_superuser=True
        )
        print(f"✓ User '{username}' created (id={admin_user['id']})")

    print("\nCredentials:")
    print(f"  Username: {username}")
    print(f"  Password: {password}")


if __name__ == "__main__":
    password = sys.argv[1] if len(sys.argv) > 1 else "admin123"
    create_or_update_admin(password)
