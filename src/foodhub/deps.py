"""Dependencies for FastAPI endpoints."""

from typing import Optional
from fastapi import Depends, HTTPException, status, Path
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from foodhub.core.security import decode_token
from foodhub.db_order_cycles import get_order_cycle, order_cycle_involves
from foodhub.db_users import get_user_by_id, get_user_by_username
from foodhub.permissions import Permissions

security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> dict:
    """Get current user from JWT access token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_token(credentials.credentials, token_type="access")
    if payload is None:
        raise credentials_exception

    username: Optional[str] = payload.get("sub")
    user_id: Optional[int] = payload.get("user_id")

    if username is None and user_id is None:
        raise credentials_exception

    # Try to get user by username first, then by ID
    user = None
    if username:
        user = get_user_by_username(username)
    if not user and user_id:
        user = get_user_by_id(user_id)

    if user is None:
        raise credentials_exception

    return user


async def get_current_active_user(
    current_user: dict = Depends(get_current_user)
) -> dict:
    """Get current active user."""
    if not current_user.get("is_active"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user"
        )
    return current_user


async def get_permissions(
    current_user: dict = Depends(get_current_active_user)
) -> Permissions:
    """Permissions of the current user."""
    return Permissions(current_user)


async def get_accessible_order_cycle(
    order_cycle_id: int = Path(..., description="Order cycle ID"),
    permissions: Permissions = Depends(get_permissions),
) -> dict:
    """Load an order cycle the current user coordinates or takes part in.

    Raises 404 if it doesn't exist or the user has no access to it.
    """
    order_cycle = get_order_cycle(order_cycle_id)
    if order_cycle is not None and not permissions.manages(order_cycle["coordinator_id"]):
        if not order_cycle_involves(order_cycle_id, permissions.managed_enterprise_ids()):
            order_cycle = None
    if order_cycle is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Order cycle not found or not accessible"
        )
    return order_cycle


async def require_coordinator_manager(
    order_cycle: dict = Depends(get_accessible_order_cycle),
    permissions: Permissions = Depends(get_permissions),
) -> dict:
    """Require the current user to manage the order cycle's coordinator.

    Raises 403 otherwise.
    """
    if not permissions.manages(order_cycle["coordinator_id"]):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only managers of the coordinating enterprise can do this"
        )
    return order_cycle
