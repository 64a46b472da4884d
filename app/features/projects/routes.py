"""
Project routes.

Mutations are checked against the project itself: owner (creator), state
(status) and type (project_type) feed the permission conditions.
"""
from datetime import datetime, timezone
from typing import Annotated, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select, or_, and_, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.pagination import paginate
from app.features.permissions.constants import Action, Resource
from app.features.permissions.dependencies import (
    ensure_permission,
    get_permission_manager,
    is_administrator,
    require_permission,
)
from app.features.permissions.manager import PermissionManager
from app.features.permissions.schemas import PermissionContext
from app.features.projects.models import (
    Project,
    ProjectMilestone,
    ProjectPriority,
    ProjectStatus,
    ProjectType,
)
from app.features.projects.schemas import (
    BudgetTotals,
    MilestoneUpdate,
    ProjectCreate,
    ProjectListResponse,
    ProjectResponse,
    ProjectStatsResponse,
    ProjectStatusUpdate,
    ProjectUpdate,
    check_project_dates,
)
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


def project_context(project: Project) -> PermissionContext:
    """Permission context describing a project."""
    return PermissionContext(
        owner_id=project.created_by_id,
        state=project.status.value,
        type=project.project_type.value,
    )


def _assigned_to(user_id: str):
    return or_(
        Project.contractor_id == user_id,
        Project.overseer_id == user_id,
        Project.supervisor_id == user_id,
        Project.created_by_id == user_id,
    )


async def load_project(db: AsyncSession, project_id: str) -> Project:
    result = await db.execute(
        select(Project).where(Project.id == project_id).execution_options(populate_existing=True)
    )
    project = result.scalars().first()
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    return project


async def _ensure_users_exist(db: AsyncSession, *user_ids: Optional[str]) -> None:
    wanted = {uid for uid in user_ids if uid}
    if not wanted:
        return
    result = await db.execute(select(User.id).where(User.id.in_(wanted)))
    missing = wanted - set(result.scalars().all())
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Users not found: {', '.join(sorted(missing))}"
        )


@router.get("", response_model=ProjectListResponse)
async def list_projects(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    manager: Annotated[PermissionManager, Depends(get_permission_manager)],
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    project_type: Optional[ProjectType] = None,
    status_filter: Optional[ProjectStatus] = Query(None, alias="status"),
    priority: Optional[ProjectPriority] = None,
    search: Optional[str] = None,
    assigned: bool = False,
):
    """
    List projects, newest first.

    Non-administrators, and anyone passing assigned=true, only see projects
    they take part in. The assignment filter is combined with the search.
    """
    filters = []
    if project_type:
        filters.append(Project.project_type == project_type)
    if status_filter:
        filters.append(Project.status == status_filter)
    if priority:
        filters.append(Project.priority == priority)
    if search:
        pattern = f"%{search.strip()}%"
        filters.append(
            or_(
                Project.name.ilike(pattern),
                Project.code.ilike(pattern),
                Project.description.ilike(pattern),
            )
        )
    if assigned or not await is_administrator(manager, current_user):
        filters.append(_assigned_to(current_user.id))

    stmt = select(Project)
    if filters:
        stmt = stmt.where(and_(*filters))
    stmt = stmt.order_by(Project.created_at.desc(), Project.id.desc())

    items, pagination = await paginate(db, stmt, page, limit)
    return ProjectListResponse(items=items, pagination=pagination)


@router.get("/stats", response_model=ProjectStatsResponse)
async def project_stats(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(Resource.PROJECTS, Action.READ))],
):
    """Totals by status, type and priority, average progress and budget totals."""

    async def grouped(column, enum_cls) -> dict[str, int]:
        counts = {member.value: 0 for member in enum_cls}
        result = await db.execute(select(column, func.count()).group_by(column))
        for value, count in result.all():
            counts[value.value] = count
        return counts

    totals = await db.execute(
        select(
            func.count(Project.id),
            func.avg(Project.progress),
            func.coalesce(func.sum(Project.budget_total), 0),
            func.coalesce(func.sum(Project.budget_executed), 0),
        )
    )
    total, avg_progress, budget_total, budget_executed = totals.one()

    return ProjectStatsResponse(
        total=total,
        by_status=await grouped(Project.status, ProjectStatus),
        by_type=await grouped(Project.project_type, ProjectType),
        by_priority=await grouped(Project.priority, ProjectPriority),
        average_progress=round(float(avg_progress or 0), 2),
        budget=BudgetTotals(total=float(budget_total), executed=float(budget_executed)),
    )


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    manager: Annotated[PermissionManager, Depends(get_permission_manager)],
):
    """Get a project (participants, or proyectos:leer)."""
    project = await load_project(db, project_id)
    if current_user.id not in project.participant_ids():
        await ensure_permission(manager, current_user, Resource.PROJECTS, Action.READ, project_context(project))
    return project


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    project_in: ProjectCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(Resource.PROJECTS, Action.CREATE))],
):
    """Create a project with its budget and milestones."""
    await _ensure_users_exist(db, project_in.contractor_id, project_in.overseer_id, project_in.supervisor_id)

    data = project_in.model_dump(mode="json", exclude={"budget", "milestones"})
    data.update(
        project_type=project_in.project_type,
        priority=project_in.priority,
        start_date=project_in.start_date,
        planned_end_date=project_in.planned_end_date,
        actual_end_date=project_in.actual_end_date,
    )
    project = Project(
        **data,
        status=ProjectStatus.PLANIFICACION,
        budget_total=project_in.budget.total,
        budget_executed=project_in.budget.executed,
        currency=project_in.budget.currency,
        budget_approved_at=project_in.budget.approved_at,
        created_by_id=current_user.id,
        milestones=[ProjectMilestone(**m.model_dump()) for m in project_in.milestones],
    )
    if project.milestones:
        project.progress = round(sum(m.progress for m in project.milestones) / len(project.milestones))

    db.add(project)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A project with this code already exists"
        )

    log.info(f"Project {project.code} created by {current_user.id}")
    return await load_project(db, project.id)


@router.put("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: str,
    project_update: ProjectUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    manager: Annotated[PermissionManager, Depends(get_permission_manager)],
):
    """Update a project (proyectos:actualizar against the project)."""
    project = await load_project(db, project_id)
    await ensure_permission(manager, current_user, Resource.PROJECTS, Action.UPDATE, project_context(project))

    # Explicit nulls leave the stored value unchanged
    update_data = project_update.model_dump(exclude_unset=True, exclude_none=True)
    try:
        check_project_dates(
            update_data.get("start_date", project.start_date),
            update_data.get("planned_end_date", project.planned_end_date),
            update_data.get("actual_end_date", project.actual_end_date),
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    await _ensure_users_exist(
        db,
        update_data.get("contractor_id"),
        update_data.get("overseer_id"),
        update_data.get("supervisor_id"),
    )

    budget = update_data.pop("budget", None)
    if budget:
        project.budget_total = budget["total"]
        project.budget_executed = budget["executed"]
        project.currency = budget["currency"]
        project.budget_approved_at = budget["approved_at"]

    for key in ("location", "client_contact"):
        if update_data.get(key) is not None:
            update_data[key] = getattr(project_update, key).model_dump(mode="json")

    for key, value in update_data.items():
        setattr(project, key, value)

    await db.commit()
    return await load_project(db, project_id)


@router.patch("/{project_id}/status", response_model=ProjectResponse)
async def update_project_status(
    project_id: str,
    status_update: ProjectStatusUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    manager: Annotated[PermissionManager, Depends(get_permission_manager)],
):
    """Change a project's status; the check runs against the current status."""
    project = await load_project(db, project_id)
    await ensure_permission(manager, current_user, Resource.PROJECTS, Action.UPDATE, project_context(project))

    previous = project.status
    project.status = status_update.status
    if status_update.notes:
        project.notes = status_update.notes
    if status_update.status == ProjectStatus.FINALIZADO and project.actual_end_date is None:
        project.actual_end_date = datetime.now(timezone.utc).date()

    await db.commit()

    log.info(f"Project {project_id} status {previous.value} -> {status_update.status.value} by {current_user.id}")
    return await load_project(db, project_id)


@router.put("/{project_id}/milestones/{milestone_id}", response_model=ProjectResponse)
async def update_milestone(
    project_id: str,
    milestone_id: str,
    milestone_update: MilestoneUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    manager: Annotated[PermissionManager, Depends(get_permission_manager)],
):
    """Update a milestone and recompute the project progress as the rounded mean."""
    project = await load_project(db, project_id)
    await ensure_permission(manager, current_user, Resource.PROJECTS, Action.UPDATE, project_context(project))

    milestone = next((m for m in project.milestones if m.id == milestone_id), None)
    if milestone is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Milestone not found")

    for key, value in milestone_update.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(milestone, key, value)

    if milestone.completed:
        if milestone_update.progress is None:
            milestone.progress = 100
        if milestone.completed_at is None:
            milestone.completed_at = datetime.now(timezone.utc)
    else:
        milestone.completed_at = None

    project.progress = round(sum(m.progress for m in project.milestones) / len(project.milestones))

    await db.commit()
    return await load_project(db, project_id)


@router.delete("/{project_id}")
async def delete_project(
    project_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    manager: Annotated[PermissionManager, Depends(get_permission_manager)],
):
    """Delete a project that is not in execution."""
    project = await load_project(db, project_id)
    await ensure_permission(manager, current_user, Resource.PROJECTS, Action.DELETE, project_context(project))

    if project.status == ProjectStatus.EN_EJECUCION:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Projects in execution cannot be deleted"
        )

    await db.delete(project)
    await db.commit()

    log.info(f"Project {project_id} deleted by {current_user.id}")
    return {"message": "Project deleted successfully"}
