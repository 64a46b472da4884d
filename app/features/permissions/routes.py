"""
Permission management API routes.

Provides endpoints for role administration, role assignment, permission
checks, effective permissions and the audit trail.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from app.core.database.engine import get_db
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.features.permissions.constants import ALL_ACTIONS, RESOURCE_LABELS, Resource
from app.features.permissions.manager import PermissionManager
from app.features.permissions.models import Role, AuditLog, user_roles
from app.features.permissions.schemas import (
    RoleCreate,
    RoleUpdate,
    RoleResponse,
    RoleSummary,
    AssignRolesToUser,
    PermissionCheckRequest,
    PermissionCheckResponse,
    UserPermissionsResponse,
    AvailableResourcesResponse,
    ResourceDescriptor,
    AuditLogResponse,
    AuditLogListResponse,
)
from app.features.permissions.dependencies import (
    get_current_admin_user,
    get_permission_manager,
    create_audit_log,
)
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


async def _get_role_or_404(db: AsyncSession, role_id: str) -> Role:
    result = await db.execute(select(Role).where(Role.id == role_id))
    role = result.scalars().first()
    if not role:
        raise HTTPException(status_code=404, detail="Role not found")
    return role


async def _get_user_or_404(db: AsyncSession, user_id: str) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalars().first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


async def _name_taken(db: AsyncSession, name: str, exclude_id: Optional[str] = None) -> bool:
    stmt = select(Role.id).where(func.lower(Role.name) == name.lower())
    if exclude_id:
        stmt = stmt.where(Role.id != exclude_id)
    result = await db.execute(stmt)
    return result.first() is not None


async def _ensure_self_or_admin(
    user_id: str,
    current_user: User,
    manager: PermissionManager,
) -> None:
    if user_id != current_user.id:
        await get_current_admin_user(current_user, manager)


# ============================================================================
# Role Routes
# ============================================================================

@router.get("/roles", response_model=List[RoleResponse])
async def list_roles(
    is_active: Optional[bool] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    """List roles sorted by name, optionally filtered by active flag."""
    stmt = select(Role)
    if is_active is not None:
        stmt = stmt.where(Role.is_active == is_active)
    stmt = stmt.order_by(Role.name)

    result = await db.execute(stmt)
    return result.scalars().all()


@router.get("/roles/{role_id}", response_model=RoleResponse)
async def get_role(
    role_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    """Get a specific role by ID."""
    return await _get_role_or_404(db, role_id)


@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    role: RoleCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    """Create a new role (admin only)."""
    if await _name_taken(db, role.name):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A role with this name already exists"
        )

    role_data = role.model_dump(mode="json", exclude_none=True)
    try:
        db_role = Role(is_active=True, **role_data)
        db.add(db_role)
        await db.flush()

        await create_audit_log(
            db,
            user_id=current_user.id,
            action="create",
            resource_type="role",
            resource_id=db_role.id,
            details=role_data,
            request=request,
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Role with this name already exists"
        )

    await db.refresh(db_role)
    log.info(f"Role '{db_role.name}' created by {current_user.id}")
    return db_role


@router.put("/roles/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: str,
    role_update: RoleUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    """Update a role (admin only)."""
    db_role = await _get_role_or_404(db, role_id)

    update_data = role_update.model_dump(mode="json", exclude_unset=True, exclude_none=True)
    if "permissions" in update_data:
        # Entries without conditions drop the key entirely
        update_data["permissions"] = [
            p.model_dump(mode="json", exclude_none=True) for p in role_update.permissions
        ]

    if "name" in update_data and await _name_taken(db, update_data["name"], exclude_id=role_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A role with this name already exists"
        )

    for key, value in update_data.items():
        setattr(db_role, key, value)

    try:
        await create_audit_log(
            db,
            user_id=current_user.id,
            action="update",
            resource_type="role",
            resource_id=role_id,
            details=update_data,
            request=request,
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Role with this name already exists"
        )

    await db.refresh(db_role)
    return db_role


@router.delete("/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(
    role_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    """Delete a role that no user holds (admin only)."""
    db_role = await _get_role_or_404(db, role_id)

    holders = await db.execute(
        select(func.count()).select_from(user_roles).where(user_roles.c.role_id == role_id)
    )
    holder_count = holders.scalar_one()
    if holder_count:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Role is assigned to {holder_count} user(s) and cannot be deleted"
        )

    role_name = db_role.name
    await db.delete(db_role)
    await create_audit_log(
        db,
        user_id=current_user.id,
        action="delete",
        resource_type="role",
        resource_id=role_id,
        details={"name": role_name},
        request=request,
    )
    await db.commit()


# ============================================================================
# Resources
# ============================================================================

@router.get("/resources", response_model=AvailableResourcesResponse)
async def list_resources(current_user: User = Depends(get_current_user)):
    """Resources and actions available when defining roles."""
    return AvailableResourcesResponse(
        resources=[
            ResourceDescriptor(id=resource.value, name=RESOURCE_LABELS[resource], actions=ALL_ACTIONS)
            for resource in Resource
        ],
        actions=ALL_ACTIONS,
    )


# ============================================================================
# Effective Permissions & Assignment
# ============================================================================

async def _permissions_payload(user: User, manager: PermissionManager) -> UserPermissionsResponse:
    return UserPermissionsResponse(
        user_id=user.id,
        full_name=user.full_name,
        email=user.email,
        user_type=user.user_type.value,
        roles=[RoleSummary.model_validate(r) for r in user.roles],
        permissions=await manager.effective_permissions(user.id),
    )


@router.get("/me", response_model=UserPermissionsResponse)
async def get_my_permissions(
    current_user: User = Depends(get_current_user),
    manager: PermissionManager = Depends(get_permission_manager)
):
    """Effective permissions of the authenticated user."""
    return await _permissions_payload(current_user, manager)


@router.get("/users/{user_id}", response_model=UserPermissionsResponse)
async def get_user_permissions(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    manager: PermissionManager = Depends(get_permission_manager)
):
    """Effective permissions of a user (self or admin)."""
    await _ensure_self_or_admin(user_id, current_user, manager)
    user = await _get_user_or_404(db, user_id)
    return await _permissions_payload(user, manager)


@router.put("/users/{user_id}/roles", response_model=UserPermissionsResponse)
async def assign_roles_to_user(
    user_id: str,
    assignment: AssignRolesToUser,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
    manager: PermissionManager = Depends(get_permission_manager)
):
    """Replace the roles held by a user (admin only)."""
    user = await _get_user_or_404(db, user_id)

    role_ids = list(dict.fromkeys(assignment.role_ids))
    roles: List[Role] = []
    if role_ids:
        result = await db.execute(select(Role).where(Role.id.in_(role_ids)))
        found = {role.id: role for role in result.scalars().all()}

        missing = [rid for rid in role_ids if rid not in found]
        if missing:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Roles not found: {', '.join(missing)}"
            )
        inactive = [found[rid].name for rid in role_ids if not found[rid].is_active]
        if inactive:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Inactive roles cannot be assigned: {', '.join(inactive)}"
            )
        roles = [found[rid] for rid in role_ids]

    user.roles = roles
    await create_audit_log(
        db,
        user_id=current_user.id,
        action="assign",
        resource_type="user_roles",
        resource_id=user_id,
        details={"role_ids": role_ids},
        request=request,
    )
    await db.commit()

    log.info(f"Roles of user {user_id} set to {role_ids} by {current_user.id}")
    return await _permissions_payload(user, manager)


@router.post("/users/{user_id}/check", response_model=PermissionCheckResponse)
async def check_permission(
    user_id: str,
    check_request: PermissionCheckRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    manager: PermissionManager = Depends(get_permission_manager)
):
    """Check whether a user holds a permission, optionally against a context."""
    await _ensure_self_or_admin(user_id, current_user, manager)

    allowed = await manager.has_permission(
        user_id,
        check_request.resource,
        check_request.action,
        check_request.context,
    )

    return PermissionCheckResponse(
        has_permission=allowed,
        resource=check_request.resource,
        action=check_request.action,
        context=check_request.context,
    )


# ============================================================================
# Audit Log Routes
# ============================================================================

@router.get("/audit-logs", response_model=AuditLogListResponse)
async def list_audit_logs(
    skip: int = 0,
    limit: int = 50,
    user_id: Optional[str] = None,
    action: Optional[str] = None,
    resource_type: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    """List audit logs with optional filtering (admin only)."""
    stmt = select(AuditLog)

    if user_id:
        stmt = stmt.where(AuditLog.user_id == user_id)
    if action:
        stmt = stmt.where(AuditLog.action == action)
    if resource_type:
        stmt = stmt.where(AuditLog.resource_type == resource_type)

    count_stmt = select(func.count()).select_from(stmt.subquery())
    total_result = await db.execute(count_stmt)
    total = total_result.scalar() or 0

    stmt = stmt.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).offset(skip).limit(limit)
    result = await db.execute(stmt)
    logs = result.scalars().all()

    pages = (total + limit - 1) // limit if limit > 0 else 0
    page = (skip // limit) + 1 if limit > 0 else 1

    return AuditLogListResponse(
        items=[AuditLogResponse.model_validate(entry) for entry in logs],
        total=total,
        page=page,
        page_size=limit,
        pages=pages
    )
