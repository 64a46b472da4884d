"""
Pydantic schemas for permission management.

Request and response models for permission entries, roles, role assignment,
permission checks and audit logs.
"""
from datetime import datetime
from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator


from app.features.permissions.constants import Resource, Action


# ============================================================================
# Permission Entry Schemas
# ============================================================================

class PermissionConditions(BaseModel):
    """
    Optional restrictions on a permission entry.

    Empty `states`/`types` lists and `owner=False` mean the condition is absent.
    Unknown condition keys are rejected.
    """
    owner: bool = Field(False, description="Only the recorded owner of the entity may act")
    states: List[str] = Field(default_factory=list, description="Allowed values of the entity state")
    types: List[str] = Field(default_factory=list, description="Allowed values of the entity type")

    model_config = ConfigDict(extra="forbid")

    def is_empty(self) -> bool:
        return not self.owner and not self.states and not self.types


class PermissionEntry(BaseModel):
    """A (resource, actions, conditions) triple held by a role."""
    resource: Resource
    actions: List[Action] = Field(..., min_length=1)
    conditions: Optional[PermissionConditions] = None

    @field_validator("actions")
    @classmethod
    def dedupe_actions(cls, v: List[Action]) -> List[Action]:
        """Drop repeated actions, keeping first-seen order."""
        return list(dict.fromkeys(v))


class PermissionContext(BaseModel):
    """Attributes of the target entity used to evaluate conditions."""
    owner_id: Optional[str] = None
    state: Optional[str] = None
    type: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


def _reject_duplicate_resources(entries: List[PermissionEntry]) -> List[PermissionEntry]:
    seen = set()
    for entry in entries:
        if entry.resource in seen:
            raise ValueError(f"Resource '{entry.resource.value}' appears more than once")
        seen.add(entry.resource)
    return entries


# ============================================================================
# Role Schemas
# ============================================================================

class RoleBase(BaseModel):
    """Base role schema."""
    name: str = Field(..., min_length=3, max_length=50, description="Unique role name")
    description: str = Field(..., min_length=10, max_length=200, description="Role description")

    @field_validator("name", "description", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v


class RoleCreate(RoleBase):
    """Schema for creating a new role."""
    permissions: List[PermissionEntry] = Field(..., min_length=1)

    @field_validator("permissions")
    @classmethod
    def unique_resources(cls, v: List[PermissionEntry]) -> List[PermissionEntry]:
        return _reject_duplicate_resources(v)


class RoleUpdate(BaseModel):
    """Schema for updating a role."""
    name: Optional[str] = Field(None, min_length=3, max_length=50)
    description: Optional[str] = Field(None, min_length=10, max_length=200)
    permissions: Optional[List[PermissionEntry]] = Field(None, min_length=1)
    is_active: Optional[bool] = None

    @field_validator("name", "description", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("permissions")
    @classmethod
    def unique_resources(cls, v: Optional[List[PermissionEntry]]) -> Optional[List[PermissionEntry]]:
        if v is None:
            return v
        return _reject_duplicate_resources(v)


class RoleResponse(RoleBase):
    """Schema for role response."""
    id: str
    permissions: List[Dict[str, Any]] = []
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RoleSummary(BaseModel):
    """Role reference embedded in user payloads."""
    id: str
    name: str
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Assignment Schemas
# ============================================================================

class AssignRolesToUser(BaseModel):
    """Schema for replacing the roles held by a user."""
    role_ids: List[str] = Field(..., description="Role IDs; an empty list removes every role")


# ============================================================================
# Permission Check Schemas
# ============================================================================

class PermissionCheckRequest(BaseModel):
    """
    Schema for checking if a user has a permission.

    `resource` and `action` are plain strings so an unknown value reaches the
    engine and is reported as an invalid argument rather than a denial.
    """
    resource: str = Field(..., min_length=1, description="Resource type")
    action: str = Field(..., min_length=1, description="Action")
    context: Optional[Dict[str, Any]] = Field(None, description="owner_id, state and type of the target entity")


class PermissionCheckResponse(BaseModel):
    """Schema for permission check response."""
    has_permission: bool
    resource: str
    action: str
    context: Optional[Dict[str, Any]] = None


# ============================================================================
# Effective Permissions
# ============================================================================

class UserPermissionsResponse(BaseModel):
    """Merged permissions of a user across all active roles."""
    user_id: str
    full_name: str
    email: str
    user_type: str
    roles: List[RoleSummary] = []
    permissions: List[PermissionEntry] = []


class ResourceDescriptor(BaseModel):
    id: str
    name: str
    actions: List[str]


class AvailableResourcesResponse(BaseModel):
    """Closed enumerations available when defining roles."""
    resources: List[ResourceDescriptor]
    actions: List[str]


# ============================================================================
# Audit Log Schemas
# ============================================================================

class AuditLogResponse(BaseModel):
    """Schema for audit log response."""
    id: str
    user_id: Optional[str]
    action: str
    resource_type: str
    resource_id: Optional[str]
    details: Optional[Dict[str, Any]]
    ip_address: Optional[str]
    user_agent: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuditLogListResponse(BaseModel):
    """Schema for paginated audit log list."""
    items: List[AuditLogResponse]
    total: int
    page: int
    page_size: int
    pages: int
