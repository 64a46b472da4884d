"""
Filing (radicado) routes.

Filings are documents for permission purposes. Updates are checked against
owner (creator), state (status) and type (letter_type); deletion is a soft
delete checked against the owner.
"""
from datetime import datetime, timezone
from typing import Annotated, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select, or_, and_, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.pagination import paginate
from app.features.filings.models import Filing, FilingPriority, FilingStatus, LetterType
from app.features.filings.schemas import (
    FilingCreate,
    FilingListResponse,
    FilingResponse,
    FilingUpdate,
    NextNumberResponse,
)
from app.features.permissions.constants import Action, Resource
from app.features.permissions.dependencies import (
    ensure_permission,
    get_permission_manager,
    require_permission,
)
from app.features.permissions.manager import PermissionManager
from app.features.permissions.schemas import PermissionContext
from app.features.projects.models import Project
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


def filing_context(filing: Filing) -> PermissionContext:
    """Permission context describing a filing."""
    return PermissionContext(
        owner_id=filing.created_by_id,
        state=filing.status.value,
        type=filing.letter_type.value,
    )


async def next_filing_number(db: AsyncSession) -> str:
    """RAD-<year>-<seq>, seq being one more than the filings numbered this year."""
    year = datetime.now(timezone.utc).year
    prefix = f"RAD-{year}-"
    result = await db.execute(select(func.count()).select_from(Filing).where(Filing.number.like(f"{prefix}%")))
    count = result.scalar() or 0
    return f"{prefix}{count + 1:06d}"


async def load_filing(db: AsyncSession, filing_id: str) -> Filing:
    result = await db.execute(
        select(Filing)
        .where(Filing.id == filing_id, Filing.is_active.is_(True))
        .execution_options(populate_existing=True)
    )
    filing = result.scalars().first()
    if not filing:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Filing not found")
    return filing


async def _ensure_project_exists(db: AsyncSession, project_id: Optional[str]) -> None:
    if not project_id:
        return
    result = await db.execute(select(Project.id).where(Project.id == project_id))
    if result.first() is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Project not found")


@router.get("", response_model=FilingListResponse)
async def list_filings(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(Resource.DOCUMENTS, Action.READ))],
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    letter_type: Optional[LetterType] = None,
    status_filter: Optional[FilingStatus] = Query(None, alias="status"),
    priority: Optional[FilingPriority] = None,
    search: Optional[str] = None,
):
    """List active filings, most recently filed first."""
    filters = [Filing.is_active.is_(True)]
    if letter_type:
        filters.append(Filing.letter_type == letter_type)
    if status_filter:
        filters.append(Filing.status == status_filter)
    if priority:
        filters.append(Filing.priority == priority)
    if search:
        pattern = f"%{search.strip()}%"
        filters.append(
            or_(
                Filing.number.ilike(pattern),
                Filing.subject.ilike(pattern),
                Filing.summary.ilike(pattern),
                Filing.recipient.ilike(pattern),
            )
        )

    stmt = select(Filing).where(and_(*filters)).order_by(Filing.filed_at.desc(), Filing.id.desc())
    items, pagination = await paginate(db, stmt, page, limit)
    return FilingListResponse(items=items, pagination=pagination)


@router.get("/overdue", response_model=list[FilingResponse])
async def list_overdue_filings(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(Resource.DOCUMENTS, Action.READ))],
):
    """Active filings awaiting a response past their due date, oldest due first."""
    today = datetime.now(timezone.utc).date()
    result = await db.execute(
        select(Filing)
        .where(
            Filing.is_active.is_(True),
            Filing.requires_response.is_(True),
            Filing.due_date < today,
            Filing.status != FilingStatus.ARCHIVADO,
        )
        .order_by(Filing.due_date)
    )
    return result.scalars().all()


@router.get("/next-number", response_model=NextNumberResponse)
async def get_next_number(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(Resource.DOCUMENTS, Action.CREATE))],
):
    """Number the next generated filing would receive."""
    return NextNumberResponse(number=await next_filing_number(db))


@router.get("/{filing_id}", response_model=FilingResponse)
async def get_filing(
    filing_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(Resource.DOCUMENTS, Action.READ))],
):
    """Get an active filing."""
    return await load_filing(db, filing_id)


@router.post("", response_model=FilingResponse, status_code=status.HTTP_201_CREATED)
async def create_filing(
    filing_in: FilingCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(Resource.DOCUMENTS, Action.CREATE))],
):
    """Register a filing, generating its number when none is given."""
    await _ensure_project_exists(db, filing_in.project_id)

    data = filing_in.model_dump()
    data["number"] = data["number"] or await next_filing_number(db)
    data["filed_at"] = data["filed_at"] or datetime.now(timezone.utc).date()

    filing = Filing(**data, created_by_id=current_user.id, is_active=True, version=1)
    db.add(filing)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A filing with this number already exists"
        )

    log.info(f"Filing {filing.number} created by {current_user.id}")
    return await load_filing(db, filing.id)


@router.put("/{filing_id}", response_model=FilingResponse)
async def update_filing(
    filing_id: str,
    filing_update: FilingUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    manager: Annotated[PermissionManager, Depends(get_permission_manager)],
):
    """Update a filing and bump its version."""
    filing = await load_filing(db, filing_id)
    await ensure_permission(manager, current_user, Resource.DOCUMENTS, Action.UPDATE, filing_context(filing))

    update_data = filing_update.model_dump(exclude_unset=True, exclude_none=True)
    requires_response = update_data.get("requires_response", filing.requires_response)
    due_date = update_data.get("due_date", filing.due_date)
    if requires_response and not due_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="due_date is required when requires_response is set"
        )
    if "project_id" in update_data:
        await _ensure_project_exists(db, update_data["project_id"])

    for key, value in update_data.items():
        setattr(filing, key, value)
    filing.version += 1

    await db.commit()
    return await load_filing(db, filing_id)


@router.delete("/{filing_id}")
async def delete_filing(
    filing_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    manager: Annotated[PermissionManager, Depends(get_permission_manager)],
):
    """Soft delete a filing."""
    filing = await load_filing(db, filing_id)
    await ensure_permission(
        manager, current_user, Resource.DOCUMENTS, Action.DELETE,
        PermissionContext(owner_id=filing.created_by_id),
    )

    filing.is_active = False
    await db.commit()

    log.info(f"Filing {filing.number} deleted by {current_user.id}")
    return {"message": "Filing deleted successfully"}
