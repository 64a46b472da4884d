"""
Pydantic schemas for staff API requests/responses.
"""
from datetime import date, datetime
from pydantic import BaseModel, EmailStr, Field, ConfigDict, field_validator, model_validator

from app.core.pagination import Pagination
from app.features.staff.models import ContractType, StaffStatus


def check_staff_dates(hire_date: date | None, termination_date: date | None) -> None:
    if hire_date and termination_date and termination_date <= hire_date:
        raise ValueError("termination_date must be after hire_date")


class StaffBase(BaseModel):
    """Base schema for a staff member."""
    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    national_id: str = Field(..., min_length=1, max_length=20, description="Cédula")
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=20)
    position: str = Field(..., min_length=2, max_length=100)
    contract_type: ContractType = ContractType.INDEFINIDO
    status: StaffStatus = StaffStatus.ACTIVO
    hire_date: date
    termination_date: date | None = None
    salary: float | None = Field(None, ge=0)
    notes: str | None = Field(None, max_length=500)

    @field_validator("first_name", "last_name", "national_id", "position", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str | None) -> str | None:
        return v.lower() if v else v


class StaffCreate(StaffBase):
    """Schema for registering a staff member, optionally assigned to a project."""
    project_id: str | None = None

    @model_validator(mode="after")
    def check_dates(self):
        check_staff_dates(self.hire_date, self.termination_date)
        return self


class StaffUpdate(BaseModel):
    """Schema for updating a staff member; assignment goes through the project route."""
    first_name: str | None = Field(None, min_length=2, max_length=50)
    last_name: str | None = Field(None, min_length=2, max_length=50)
    national_id: str | None = Field(None, min_length=1, max_length=20)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=20)
    position: str | None = Field(None, min_length=2, max_length=100)
    contract_type: ContractType | None = None
    status: StaffStatus | None = None
    hire_date: date | None = None
    termination_date: date | None = None
    salary: float | None = Field(None, ge=0)
    notes: str | None = Field(None, max_length=500)

    @field_validator("first_name", "last_name", "national_id", "position", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str | None) -> str | None:
        return v.lower() if v else v


class StaffAssignment(BaseModel):
    """Assign a staff member to a project, or unassign with null."""
    project_id: str | None


class StaffProject(BaseModel):
    id: str
    code: str
    name: str

    model_config = ConfigDict(from_attributes=True)


class StaffResponse(StaffBase):
    id: str
    full_name: str
    project_id: str | None = None
    project: StaffProject | None = None
    created_by_id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StaffListResponse(BaseModel):
    items: list[StaffResponse]
    pagination: Pagination
