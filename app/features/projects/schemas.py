"""
Pydantic schemas for Project and ProjectMilestone API requests/responses.
"""
from datetime import date, datetime
from pydantic import BaseModel, EmailStr, Field, ConfigDict, field_validator, model_validator

from app.core.pagination import Pagination
from app.features.projects.models import Currency, ProjectPriority, ProjectStatus, ProjectType


class Coordinates(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class Location(BaseModel):
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    department: str = Field(..., min_length=1)
    country: str = "Colombia"
    coordinates: Coordinates | None = None


class ClientContact(BaseModel):
    name: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    phone: str | None = None
    email: EmailStr | None = None


class Budget(BaseModel):
    total: float = Field(..., ge=0)
    executed: float = Field(0, ge=0)
    currency: Currency = Currency.COP
    approved_at: date


class MilestoneBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=1000)
    planned_date: date
    actual_date: date | None = None
    completed: bool = False
    progress: int = Field(0, ge=0, le=100)
    notes: str | None = Field(None, max_length=1000)


class MilestoneCreate(MilestoneBase):
    pass


class MilestoneUpdate(BaseModel):
    """Progress update of a single milestone."""
    actual_date: date | None = None
    completed: bool | None = None
    progress: int | None = Field(None, ge=0, le=100)
    notes: str | None = Field(None, max_length=1000)


class MilestoneResponse(MilestoneBase):
    id: str
    project_id: str
    completed_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


def check_project_dates(start: date | None, planned_end: date | None, actual_end: date | None) -> None:
    if start and planned_end and planned_end <= start:
        raise ValueError("planned_end_date must be after start_date")
    if start and actual_end and actual_end <= start:
        raise ValueError("actual_end_date must be after start_date")


class ProjectBase(BaseModel):
    """Base schema for project."""
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=1000)
    project_type: ProjectType
    priority: ProjectPriority = ProjectPriority.MEDIA
    start_date: date
    planned_end_date: date
    actual_end_date: date | None = None
    location: Location
    contractor_id: str
    overseer_id: str | None = None
    supervisor_id: str | None = None
    client_contact: ClientContact
    tags: list[str] = []
    notes: str | None = Field(None, max_length=2000)

    @field_validator("code")
    @classmethod
    def upper_code(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("tags")
    @classmethod
    def lower_tags(cls, v: list[str]) -> list[str]:
        return [t.strip().lower() for t in v if t and t.strip()]


class ProjectCreate(ProjectBase):
    """Schema for creating a project."""
    budget: Budget
    milestones: list[MilestoneCreate] = []

    @model_validator(mode="after")
    def check_dates(self):
        check_project_dates(self.start_date, self.planned_end_date, self.actual_end_date)
        return self


class ProjectUpdate(BaseModel):
    """Schema for updating a project; status changes go through the status route."""
    name: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, min_length=1, max_length=1000)
    project_type: ProjectType | None = None
    priority: ProjectPriority | None = None
    start_date: date | None = None
    planned_end_date: date | None = None
    actual_end_date: date | None = None
    location: Location | None = None
    contractor_id: str | None = None
    overseer_id: str | None = None
    supervisor_id: str | None = None
    client_contact: ClientContact | None = None
    budget: Budget | None = None
    progress: int | None = Field(None, ge=0, le=100)
    tags: list[str] | None = None
    notes: str | None = Field(None, max_length=2000)

    @field_validator("tags")
    @classmethod
    def lower_tags(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return v
        return [t.strip().lower() for t in v if t and t.strip()]


class ProjectStatusUpdate(BaseModel):
    status: ProjectStatus
    notes: str | None = Field(None, max_length=2000)


class ProjectResponse(ProjectBase):
    """Schema for project response."""
    id: str
    status: ProjectStatus
    budget: Budget
    progress: int
    milestones: list[MilestoneResponse] = []
    created_by_id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProjectListResponse(BaseModel):
    items: list[ProjectResponse]
    pagination: Pagination


class BudgetTotals(BaseModel):
    total: float
    executed: float


class ProjectStatsResponse(BaseModel):
    total: int
    by_status: dict[str, int]
    by_type: dict[str, int]
    by_priority: dict[str, int]
    average_progress: float
    budget: BudgetTotals
