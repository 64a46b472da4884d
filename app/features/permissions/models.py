"""
Role and audit models for the role-based permission system.

This module implements:
- Roles carrying their permission entries as a JSON document
- The many-to-many user/role assignment table
- An audit trail for role administration
"""
from datetime import datetime
from typing import Any, Dict
from sqlalchemy import String, ForeignKey, Table, Column, JSON, Text, DateTime, Boolean
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, IdMixin, TimestampMixin


# User-Role relationship
user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("user_id", String(26), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", String(26), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("assigned_at", DateTime(timezone=True), nullable=False, default=datetime.now),
)


class Role(Base, IdMixin, TimestampMixin):
    """
    Role model grouping permission entries.

    Each entry in `permissions` is a document of the form:
        {"resource": "proyectos",
         "actions": ["leer", "actualizar"],
         "conditions": {"owner": true, "states": [], "types": []}}

    Examples: Super Administrador, Administrador, Interventor, Contratista, Supervisor
    """
    __tablename__ = "roles"

    # Unique across active and inactive roles
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    permissions: Mapped[list[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    users: Mapped[list["User"]] = relationship(  # type: ignore
        "User",
        secondary=user_roles,
        back_populates="roles",
        lazy="noload",
    )

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name!r}, active={self.is_active})>"


class AuditLog(Base, IdMixin, TimestampMixin):
    """
    Audit log for tracking permission-related actions.

    Tracks who did what, when, and from where.
    """
    __tablename__ = "audit_logs"

    # Actor
    user_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    # Action details
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_id: Mapped[str | None] = mapped_column(String(26), nullable=True, index=True)

    # Context
    details: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, user_id={self.user_id}, action={self.action}, resource={self.resource_type})>"
