"""
Pydantic schemas for Filing API requests/responses.
"""
from datetime import date, datetime
from pydantic import BaseModel, EmailStr, Field, ConfigDict, model_validator

from app.core.pagination import Pagination
from app.features.filings.models import FilingPriority, FilingStatus, LetterType


class FilingBase(BaseModel):
    """Base schema for filing."""
    letter_date: date
    letter_type: LetterType = LetterType.OFICIO
    subject: str = Field(..., min_length=1, max_length=500)
    summary: str = Field(..., min_length=1, max_length=2000)
    notes: str | None = Field(None, max_length=1000)
    recipient: str = Field(..., min_length=1, max_length=200)
    recipient_title: str | None = Field(None, max_length=200)
    recipient_entity: str | None = Field(None, max_length=200)
    recipient_email: EmailStr | None = None
    sender: str | None = Field(None, max_length=200)
    sender_title: str | None = Field(None, max_length=200)
    sender_entity: str | None = Field(None, max_length=200)
    priority: FilingPriority = FilingPriority.MEDIA
    category: str = Field(..., min_length=1, max_length=100)
    project_id: str | None = None
    requires_response: bool = False
    due_date: date | None = None
    is_confidential: bool = False


class FilingCreate(FilingBase):
    """Schema for creating a filing; the number is generated when omitted."""
    number: str | None = Field(None, min_length=1, max_length=50)
    filed_at: date | None = None
    status: FilingStatus = FilingStatus.BORRADOR

    @model_validator(mode="after")
    def due_date_when_response_required(self):
        if self.requires_response and not self.due_date:
            raise ValueError("due_date is required when requires_response is set")
        return self


class FilingUpdate(BaseModel):
    """Schema for updating a filing."""
    letter_date: date | None = None
    letter_type: LetterType | None = None
    subject: str | None = Field(None, min_length=1, max_length=500)
    summary: str | None = Field(None, min_length=1, max_length=2000)
    notes: str | None = Field(None, max_length=1000)
    recipient: str | None = Field(None, min_length=1, max_length=200)
    recipient_title: str | None = Field(None, max_length=200)
    recipient_entity: str | None = Field(None, max_length=200)
    recipient_email: EmailStr | None = None
    sender: str | None = Field(None, max_length=200)
    sender_title: str | None = Field(None, max_length=200)
    sender_entity: str | None = Field(None, max_length=200)
    status: FilingStatus | None = None
    priority: FilingPriority | None = None
    category: str | None = Field(None, min_length=1, max_length=100)
    project_id: str | None = None
    requires_response: bool | None = None
    due_date: date | None = None
    is_confidential: bool | None = None


class FilingResponse(FilingBase):
    """Schema for filing response."""
    id: str
    number: str
    filed_at: date
    status: FilingStatus
    created_by_id: str
    is_active: bool
    version: int
    is_overdue: bool
    days_remaining: int | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class FilingListResponse(BaseModel):
    items: list[FilingResponse]
    pagination: Pagination


class NextNumberResponse(BaseModel):
    number: str
