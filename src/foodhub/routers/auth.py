"""Authentication router with JWT access and refresh tokens."""

from fastapi import APIRouter, HTTPException, status, Depends

from foodhub.core.security import (
    verify_password,
    create_access_token,
    create_refresh_token,
    decode_token,
)
from foodhub.db_users import (
    get_user_by_username,
    get_user_by_id,
    update_user_last_login,
)
from foodhub.schemas.auth import (
    UserResponse,
    Token,
    LoginRequest,
    RefreshTokenRequest,
)
from foodhub.deps import get_current_user

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


def _issue_tokens(user: dict) -> Token:
    claims = {"sub": user["username"], "user_id": user["id"]}
    return Token(
        access_token=create_access_token(data=claims),
        refresh_token=create_refresh_token(data=claims),
        token_type="bearer",
    )


@router.post("/login", response_model=Token)
async def login(login_data: LoginRequest):
    """Login and get access + refresh tokens."""
    user = get_user_by_username(login_data.username)

    if not user or not verify_password(login_data.password, user["hashed_password"]):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password"
        )

    if not user["is_active"]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is inactive"
        )

    update_user_last_login(user["id"])
    return _issue_tokens(user)


@router.post("/refresh", response_model=Token)
async def refresh_token(refresh_data: RefreshTokenRequest):
    """Refresh access token using refresh token."""
    payload = decode_token(refresh_data.refresh_token, token_type="refresh")

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token"
        )

    username = payload.get("sub")
    user_id = payload.get("user_id")

    user = None
    if username:
        user = get_user_by_username(username)
    if not user and user_id:
        user = get_user_by_id(user_id)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    if not user["is_active"]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is inactive"
        )

    return _issue_tokens(user)


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: dict = Depends(get_current_user)):
    """Get current user information."""
    return UserResponse(
        id=current_user["id"],
        username=current_user["username"],
        email=current_user["email"],
        is_active=current_user["is_active"],
        is_superuser=current_user["is_superuser"],
    )
