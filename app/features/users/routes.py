"""
User management routes.

Every route except reading one's own record is gated by the usuarios
permissions of the caller's roles.
"""
from datetime import datetime, timedelta, timezone
from typing import Annotated, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select, or_, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.pagination import paginate
from app.features.users.auth import hash_password
from app.features.users.dependencies import get_current_user
from app.features.users.models import User, UserStatus, UserType
from app.features.users.schemas import (
    DailyCount,
    UserCreate,
    UserListResponse,
    UserResponse,
    UserStatsResponse,
    UserStatusUpdate,
    UserUpdate,
)
from app.features.permissions.constants import Action, Resource
from app.features.permissions.dependencies import (
    ensure_permission,
    get_permission_manager,
    is_administrator,
    require_permission,
)
from app.features.permissions.manager import PermissionManager
from app.features.evidence.models import Evidence
from app.features.filings.models import Filing
from app.features.projects.models import Project
from app.features.staff.models import StaffMember
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


async def load_user(db: AsyncSession, user_id: str) -> User:
    """Load a user with fresh roles, 404 when absent."""
    result = await db.execute(
        select(User).where(User.id == user_id).execution_options(populate_existing=True)
    )
    user = result.scalars().first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


async def _ensure_unique(
    db: AsyncSession,
    email: Optional[str],
    national_id: Optional[str],
    exclude_id: Optional[str] = None,
) -> None:
    clauses = []
    if email:
        clauses.append(User.email == email)
    if national_id:
        clauses.append(User.national_id == national_id)
    if not clauses:
        return

    stmt = select(User).where(or_(*clauses))
    if exclude_id:
        stmt = stmt.where(User.id != exclude_id)
    result = await db.execute(stmt)
    existing = result.scalars().first()
    if existing:
        field = "email" if email and existing.email == email else "national ID"
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"A user with this {field} already exists"
        )


async def _referencing_records(db: AsyncSession, user_id: str) -> list[str]:
    """Names of the record kinds that still point at the user."""
    checks = (
        ("projects", select(Project.id).where(
            or_(
                Project.contractor_id == user_id,
                Project.overseer_id == user_id,
                Project.supervisor_id == user_id,
                Project.created_by_id == user_id,
            )
        )),
        ("filings", select(Filing.id).where(Filing.created_by_id == user_id)),
        ("evidence", select(Evidence.id).where(Evidence.created_by_id == user_id)),
        ("staff", select(StaffMember.id).where(StaffMember.created_by_id == user_id)),
    )
    found = []
    for name, stmt in checks:
        if (await db.execute(stmt.limit(1))).first() is not None:
            found.append(name)
    return found


@router.get("", response_model=UserListResponse)
async def list_users(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(Resource.USERS, Action.READ))],
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user_type: Optional[UserType] = None,
    status_filter: Optional[UserStatus] = Query(None, alias="status"),
    search: Optional[str] = None,
):
    """List users with pagination and filters, newest first."""
    stmt = select(User)

    if user_type:
        stmt = stmt.where(User.user_type == user_type)
    if status_filter:
        stmt = stmt.where(User.status == status_filter)
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
                User.email.ilike(pattern),
                User.national_id.ilike(pattern),
            )
        )

    stmt = stmt.order_by(User.created_at.desc(), User.id.desc())
    items, pagination = await paginate(db, stmt, page, limit)
    return UserListResponse(items=items, pagination=pagination)


@router.get("/stats", response_model=UserStatsResponse)
async def user_stats(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(Resource.USERS, Action.READ))],
):
    """Totals by status and type, and registrations per day over the last 30 days."""
    total = (await db.execute(select(func.count()).select_from(User))).scalar() or 0

    by_status = {s.value: 0 for s in UserStatus}
    result = await db.execute(select(User.status, func.count()).group_by(User.status))
    for user_status, count in result.all():
        by_status[user_status.value] = count

    by_type = {t.value: 0 for t in UserType}
    result = await db.execute(select(User.user_type, func.count()).group_by(User.user_type))
    for user_type, count in result.all():
        by_type[user_type.value] = count

    since = datetime.now(timezone.utc) - timedelta(days=30)
    day = func.date(User.created_at)
    result = await db.execute(
        select(day, func.count())
        .where(User.created_at >= since)
        .group_by(day)
        .order_by(day)
    )
    registrations = [DailyCount(date=str(d), count=c) for d, c in result.all()]

    return UserStatsResponse(
        total=total,
        by_status=by_status,
        by_type=by_type,
        registrations_last_30_days=registrations,
    )


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    manager: Annotated[PermissionManager, Depends(get_permission_manager)],
):
    """Get a user by ID (self, or usuarios:leer)."""
    if user_id != current_user.id:
        await ensure_permission(manager, current_user, Resource.USERS, Action.READ)
    return await load_user(db, user_id)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_in: UserCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(Resource.USERS, Action.CREATE))],
):
    """Create a user account."""
    await _ensure_unique(db, user_in.email, user_in.national_id)

    data = user_in.model_dump(exclude={"password"})
    user = User(**data, password_hash=hash_password(user_in.password), status=UserStatus.ACTIVO)
    db.add(user)
    await db.commit()

    log.info(f"User {user.id} ({user.email}) created by {current_user.id}")
    return await load_user(db, user.id)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    user_update: UserUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(Resource.USERS, Action.UPDATE))],
    manager: Annotated[PermissionManager, Depends(get_permission_manager)],
):
    """Update a user's profile fields. Changing user_type takes an administrator."""
    user = await load_user(db, user_id)

    update_data = user_update.model_dump(exclude_unset=True, exclude_none=True)
    if "user_type" in update_data and update_data["user_type"] != user.user_type:
        if not await is_administrator(manager, current_user):
            log.warning(f"User {current_user.id} tried to change the user type of {user_id}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Admin privileges required to change the user type"
            )

    await _ensure_unique(db, update_data.get("email"), update_data.get("national_id"), exclude_id=user_id)

    for key, value in update_data.items():
        setattr(user, key, value)

    await db.commit()
    return await load_user(db, user_id)


@router.patch("/{user_id}/status", response_model=UserResponse)
async def update_user_status(
    user_id: str,
    status_update: UserStatusUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(Resource.USERS, Action.UPDATE))],
):
    """Activate, deactivate or suspend a user."""
    user = await load_user(db, user_id)
    user.status = status_update.status
    await db.commit()

    log.info(f"User {user_id} status set to {status_update.status.value} by {current_user.id}")
    return await load_user(db, user_id)


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(Resource.USERS, Action.DELETE))],
):
    """Delete a user account that no project, filing, evidence or staff record points at."""
    if user_id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete your own account"
        )

    user = await load_user(db, user_id)
    referenced_by = await _referencing_records(db, user_id)
    if referenced_by:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"User is still referenced by {', '.join(referenced_by)}; deactivate the account instead"
        )

    await db.delete(user)
    await db.commit()

    log.info(f"User {user_id} deleted by {current_user.id}")
    return {"message": "User deleted successfully"}
