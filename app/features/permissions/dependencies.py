"""
Permission checking dependencies.

Implements:
- PermissionManager construction bound to the request session
- FastAPI dependencies for route protection
- Contextual checks against a loaded entity
- Audit logging helper
"""
from typing import Annotated, Any, Dict, Optional, Union
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.features.permissions.constants import Action, Resource
from app.features.permissions.manager import PermissionManager
from app.features.permissions.models import AuditLog
from app.features.permissions.repository import SqlAlchemyRoleRepository
from app.features.permissions.schemas import PermissionContext
from app.utils import get_logger


log = get_logger(__name__)


async def get_permission_manager(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> PermissionManager:
    """PermissionManager reading roles through the request session."""
    return PermissionManager(SqlAlchemyRoleRepository(db))


def _forbidden(resource: Union[Resource, str], action: Union[Action, str]) -> HTTPException:
    resource = getattr(resource, "value", resource)
    action = getattr(action, "value", action)
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=f"Permission denied: {action} on {resource}",
    )


async def ensure_permission(
    manager: PermissionManager,
    user: User,
    resource: Resource,
    action: Action,
    context: Union[PermissionContext, Dict[str, Any], None] = None,
) -> None:
    """
    Raise 403 unless `user` may perform `action` on `resource`.

    Used by routes that must load the target entity first to build the context.
    """
    if not await manager.has_permission(user.id, resource, action, context):
        raise _forbidden(resource, action)


def require_permission(resource: Resource, action: Action):
    """
    FastAPI dependency to require a specific permission.

    Usage:
        @router.post("/projects")
        async def create_project(
            user: User = Depends(require_permission(Resource.PROJECTS, Action.CREATE))
        ):
            ...

    Returns:
        Dependency function that returns the current user if they have permission

    Raises:
        HTTPException: 403 if user doesn't have permission
    """
    async def permission_dependency(
        current_user: Annotated[User, Depends(get_current_user)],
        manager: Annotated[PermissionManager, Depends(get_permission_manager)],
    ) -> User:
        await ensure_permission(manager, current_user, resource, action)
        return current_user

    return permission_dependency


async def is_administrator(manager: PermissionManager, user: User) -> bool:
    """
    Holders of configuracion:configurar.

    The user_type column grants nothing by itself; a user without roles is
    judged through the role standing in for their user type.
    """
    return await manager.has_permission(user.id, Resource.CONFIGURATION, Action.CONFIGURE)


async def get_current_admin_user(
    user: Annotated[User, Depends(get_current_user)],
    manager: Annotated[PermissionManager, Depends(get_permission_manager)],
) -> User:
    """Require administrator privileges."""
    if await is_administrator(manager, user):
        return user
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Admin privileges required",
    )


# ============================================================================
# Audit Logging
# ============================================================================

async def create_audit_log(
    db: AsyncSession,
    user_id: Optional[str],
    action: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
) -> AuditLog:
    """
    Create an audit log entry in the current transaction.

    Args:
        db: Database session
        user_id: User performing the action
        action: Action performed (e.g., "create", "update", "delete", "assign")
        resource_type: Type of resource (e.g., "role", "user_roles")
        resource_id: ID of the resource
        details: Additional details
        request: Incoming request, for client IP and user agent
    """
    audit_log = AuditLog(
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details,
        ip_address=request.client.host if request and request.client else None,
        user_agent=request.headers.get("user-agent") if request else None,
    )

    db.add(audit_log)
    await db.flush()

    log.info(f"Audit: user={user_id} action={action} resource={resource_type}:{resource_id}")

    return audit_log
