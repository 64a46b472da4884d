"""
Evidence routes.
"""
import datetime
from typing import Annotated, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.pagination import paginate
from app.features.evidence.models import Evidence, EvidenceCategory
from app.features.evidence.schemas import (
    EvidenceCategoriesResponse,
    EvidenceCreate,
    EvidenceListResponse,
    EvidenceResponse,
)
from app.features.permissions.constants import Action, Resource
from app.features.permissions.dependencies import (
    ensure_permission,
    get_permission_manager,
    require_permission,
)
from app.features.permissions.manager import PermissionManager
from app.features.permissions.schemas import PermissionContext
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


async def load_evidence(db: AsyncSession, evidence_id: str) -> Evidence:
    result = await db.execute(
        select(Evidence)
        .where(Evidence.id == evidence_id, Evidence.is_deleted.is_(False))
        .execution_options(populate_existing=True)
    )
    evidence = result.scalars().first()
    if not evidence:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Evidence not found")
    return evidence


@router.get("", response_model=EvidenceListResponse)
async def list_evidence(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    category: Optional[EvidenceCategory] = None,
    date_from: Optional[datetime.date] = None,
    q: Optional[str] = None,
):
    """List evidence that is not deleted, most recent date first."""
    stmt = select(Evidence).where(Evidence.is_deleted.is_(False))

    if category:
        stmt = stmt.where(Evidence.category == category)
    if date_from:
        stmt = stmt.where(Evidence.date >= date_from)
    if q:
        pattern = f"%{q.strip()}%"
        stmt = stmt.where(or_(Evidence.title.ilike(pattern), Evidence.description.ilike(pattern)))

    stmt = stmt.order_by(Evidence.date.desc(), Evidence.id.desc())
    items, pagination = await paginate(db, stmt, page, limit)
    return EvidenceListResponse(items=items, pagination=pagination)


@router.get("/categories", response_model=EvidenceCategoriesResponse)
async def list_categories(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    """Distinct categories in use by evidence that is not deleted, sorted."""
    result = await db.execute(
        select(Evidence.category).where(Evidence.is_deleted.is_(False)).distinct()
    )
    return EvidenceCategoriesResponse(categories=sorted(c.value for c in result.scalars().all()))


@router.get("/{evidence_id}", response_model=EvidenceResponse)
async def get_evidence(
    evidence_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    return await load_evidence(db, evidence_id)


@router.post("", response_model=EvidenceResponse, status_code=status.HTTP_201_CREATED)
async def create_evidence(
    evidence_in: EvidenceCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(Resource.DOCUMENTS, Action.CREATE))],
):
    """Record evidence; the creator is the authenticated user."""
    evidence = Evidence(**evidence_in.model_dump(), created_by_id=current_user.id, is_deleted=False)
    db.add(evidence)
    await db.commit()

    log.info(f"Evidence {evidence.id} created by {current_user.id}")
    return await load_evidence(db, evidence.id)


@router.delete("/{evidence_id}")
async def delete_evidence(
    evidence_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    manager: Annotated[PermissionManager, Depends(get_permission_manager)],
):
    """Soft delete evidence."""
    evidence = await load_evidence(db, evidence_id)
    await ensure_permission(
        manager, current_user, Resource.DOCUMENTS, Action.DELETE,
        PermissionContext(owner_id=evidence.created_by_id),
    )

    evidence.is_deleted = True
    await db.commit()

    log.info(f"Evidence {evidence_id} deleted by {current_user.id}")
    return {"message": "Evidence deleted successfully"}
