"""
Pydantic schemas for Evidence API requests/responses.
"""
import datetime
from pydantic import BaseModel, Field, ConfigDict

from app.core.pagination import Pagination
from app.features.evidence.models import EvidenceCategory


class EvidenceBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=1000)
    category: EvidenceCategory
    date: datetime.date = Field(default_factory=datetime.date.today)
    file_ids: list[str] = []


class EvidenceCreate(EvidenceBase):
    """Schema for creating evidence; the creator comes from the token."""
    pass


class EvidenceResponse(EvidenceBase):
    id: str
    created_by_id: str
    is_deleted: bool
    created_at: datetime.datetime
    updated_at: datetime.datetime

    model_config = ConfigDict(from_attributes=True)


class EvidenceListResponse(BaseModel):
    items: list[EvidenceResponse]
    pagination: Pagination


class EvidenceCategoriesResponse(BaseModel):
    categories: list[str]
