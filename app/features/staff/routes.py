"""
Staff (personal) routes.

Staff records are people, so they are gated by the usuarios permissions.
Assigning someone to a project also takes proyectos:actualizar against that
project.
"""
from typing import Annotated, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.pagination import paginate
from app.features.permissions.constants import Action, Resource
from app.features.permissions.dependencies import (
    ensure_permission,
    get_permission_manager,
    require_permission,
)
from app.features.permissions.manager import PermissionManager
from app.features.projects.models import Project
from app.features.projects.routes import project_context
from app.features.staff.models import StaffMember, StaffStatus
from app.features.staff.schemas import (
    StaffAssignment,
    StaffCreate,
    StaffListResponse,
    StaffResponse,
    StaffUpdate,
    check_staff_dates,
)
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


async def load_staff_member(db: AsyncSession, staff_id: str) -> StaffMember:
    result = await db.execute(
        select(StaffMember).where(StaffMember.id == staff_id).execution_options(populate_existing=True)
    )
    member = result.scalars().first()
    if not member:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Staff member not found")
    return member


async def _ensure_unique_national_id(
    db: AsyncSession, national_id: Optional[str], exclude_id: Optional[str] = None
) -> None:
    if not national_id:
        return
    stmt = select(StaffMember.id).where(StaffMember.national_id == national_id)
    if exclude_id:
        stmt = stmt.where(StaffMember.id != exclude_id)
    if (await db.execute(stmt)).first() is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A staff member with this national ID already exists"
        )


async def _ensure_can_assign(
    db: AsyncSession, manager: PermissionManager, user: User, project_id: str
) -> Project:
    """The target project must exist and the caller must be allowed to update it."""
    result = await db.execute(select(Project).where(Project.id == project_id))
    project = result.scalars().first()
    if project is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Project not found")
    await ensure_permission(manager, user, Resource.PROJECTS, Action.UPDATE, project_context(project))
    return project


async def _commit(db: AsyncSession) -> None:
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A staff member with this national ID already exists"
        )


@router.get("", response_model=StaffListResponse)
async def list_staff(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(Resource.USERS, Action.READ))],
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status_filter: Optional[StaffStatus] = Query(None, alias="status"),
    project_id: Optional[str] = None,
    search: Optional[str] = None,
):
    """List staff, newest first, filtered by status, project or a free-text search."""
    filters = []
    if status_filter:
        filters.append(StaffMember.status == status_filter)
    if project_id:
        filters.append(StaffMember.project_id == project_id)
    if search:
        pattern = f"%{search.strip()}%"
        filters.append(
            or_(
                StaffMember.first_name.ilike(pattern),
                StaffMember.last_name.ilike(pattern),
                StaffMember.national_id.ilike(pattern),
                StaffMember.position.ilike(pattern),
            )
        )

    stmt = select(StaffMember).where(*filters).order_by(StaffMember.created_at.desc(), StaffMember.id.desc())
    items, pagination = await paginate(db, stmt, page, limit)
    return StaffListResponse(items=items, pagination=pagination)


@router.get("/{staff_id}", response_model=StaffResponse)
async def get_staff_member(
    staff_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(Resource.USERS, Action.READ))],
):
    return await load_staff_member(db, staff_id)


@router.post("", response_model=StaffResponse, status_code=status.HTTP_201_CREATED)
async def create_staff_member(
    staff_in: StaffCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(Resource.USERS, Action.CREATE))],
    manager: Annotated[PermissionManager, Depends(get_permission_manager)],
):
    """Register a staff member; the cédula must not be registered yet."""
    await _ensure_unique_national_id(db, staff_in.national_id)
    if staff_in.project_id:
        await _ensure_can_assign(db, manager, current_user, staff_in.project_id)

    member = StaffMember(**staff_in.model_dump(), created_by_id=current_user.id)
    db.add(member)
    await _commit(db)

    log.info(f"Staff member {member.id} ({member.national_id}) registered by {current_user.id}")
    return await load_staff_member(db, member.id)


@router.put("/{staff_id}", response_model=StaffResponse)
async def update_staff_member(
    staff_id: str,
    staff_update: StaffUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(Resource.USERS, Action.UPDATE))],
):
    """Update a staff member's record."""
    member = await load_staff_member(db, staff_id)

    update_data = staff_update.model_dump(exclude_unset=True, exclude_none=True)
    try:
        check_staff_dates(
            update_data.get("hire_date", member.hire_date),
            update_data.get("termination_date", member.termination_date),
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    await _ensure_unique_national_id(db, update_data.get("national_id"), exclude_id=staff_id)

    for key, value in update_data.items():
        setattr(member, key, value)

    await _commit(db)
    return await load_staff_member(db, staff_id)


@router.put("/{staff_id}/project", response_model=StaffResponse)
async def assign_staff_member(
    staff_id: str,
    assignment: StaffAssignment,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(Resource.USERS, Action.UPDATE))],
    manager: Annotated[PermissionManager, Depends(get_permission_manager)],
):
    """
    Assign a staff member to a project, or unassign with a null project_id.

    Both the project left and the project joined must be updatable by the caller.
    """
    member = await load_staff_member(db, staff_id)

    if member.project_id and member.project_id != assignment.project_id:
        await _ensure_can_assign(db, manager, current_user, member.project_id)
    if assignment.project_id:
        await _ensure_can_assign(db, manager, current_user, assignment.project_id)

    previous = member.project_id
    member.project_id = assignment.project_id
    await db.commit()

    log.info(f"Staff member {staff_id} moved from project {previous} to {assignment.project_id} by {current_user.id}")
    return await load_staff_member(db, staff_id)


@router.delete("/{staff_id}")
async def delete_staff_member(
    staff_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(Resource.USERS, Action.DELETE))],
):
    """Delete a staff member's record."""
    member = await load_staff_member(db, staff_id)
    await db.delete(member)
    await db.commit()

    log.info(f"Staff member {staff_id} deleted by {current_user.id}")
    return {"message": "Staff member deleted successfully"}
