"""
Authentication routes: login, own profile and password change.
"""
from datetime import datetime, timezone
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import get_db
from app.core.limiter import limit_login
from app.features.auth.schemas import ChangePasswordRequest, LoginRequest, LoginResponse
from app.features.users.auth import create_access_token, hash_password, verify_password
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.features.users.routes import load_user
from app.features.users.schemas import ProfileUpdate, UserResponse
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()

INVALID_CREDENTIALS = "Invalid email or password"


@router.post("/login", response_model=LoginResponse)
@limit_login
async def login(
    request: Request,
    response: Response,
    credentials: LoginRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """
    Exchange email and password for an access token.

    The token is returned in the body and also set as the auth cookie.
    """
    result = await db.execute(select(User).where(User.email == credentials.email))
    user = result.scalars().first()

    if user is None or not verify_password(credentials.password, user.password_hash):
        log.info(f"Failed login for {credentials.email}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS)

    if not user.is_active:
        log.info(f"Login refused for {credentials.email}: status {user.status.value}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is not active"
        )

    user.last_login_at = datetime.now(timezone.utc)
    await db.commit()

    token = create_access_token(user.id, user.email, user.user_type.value)
    response.set_cookie(
        key=config.AUTH_COOKIE_NAMES[0],
        value=token,
        httponly=True,
        samesite="lax",
        max_age=config.JWT_EXPIRE_HOURS * 3600,
    )

    log.info(f"User {user.id} logged in")
    return LoginResponse(access_token=token, user=await load_user(db, user.id))


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(response: Response):
    """Clear the auth cookies."""
    for name in config.AUTH_COOKIE_NAMES:
        response.delete_cookie(name)


@router.get("/me", response_model=UserResponse)
async def get_me(user: Annotated[User, Depends(get_current_user)]):
    """Get current authenticated user's profile."""
    return user


@router.put("/me", response_model=UserResponse)
async def update_me(
    update_data: ProfileUpdate,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Update current user's profile."""
    for key, value in update_data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(user, key, value)

    await db.commit()
    return await load_user(db, user.id)


@router.post("/change-password")
async def change_password(
    payload: ChangePasswordRequest,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Change the current user's password; the current one must match."""
    if not verify_password(payload.current_password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect"
        )

    user.password_hash = hash_password(payload.new_password)
    await db.commit()

    log.info(f"User {user.id} changed password")
    return {"message": "Password updated successfully"}
