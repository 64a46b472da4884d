"""
User model with ULID primary keys.
"""
import enum
from datetime import datetime
from sqlalchemy import String, JSON, DateTime, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, IdMixin, TimestampMixin
from app.features.permissions.models import user_roles


class UserType(str, enum.Enum):
    """Legacy user classification that predates role assignment."""
    ADMINISTRADOR = "administrador"
    INTERVENTOR = "interventor"
    CONTRATISTA = "contratista"
    SUPERVISOR = "supervisor"


class UserStatus(str, enum.Enum):
    ACTIVO = "activo"
    INACTIVO = "inactivo"
    SUSPENDIDO = "suspendido"


class User(Base, IdMixin, TimestampMixin):
    """
    User model representing platform members (overseers, contractors, supervisors, admins).

    Authorization is driven by `roles`; `user_type` is kept for the legacy
    fallback used when a user has no role assigned.
    """
    __tablename__ = "users"

    # Identity
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    national_id: Mapped[str] = mapped_column(String(15), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)

    # Classification
    user_type: Mapped[UserType] = mapped_column(
        SQLEnum(UserType, values_callable=lambda e: [m.value for m in e], native_enum=False),
        nullable=False,
        index=True,
    )
    status: Mapped[UserStatus] = mapped_column(
        SQLEnum(UserStatus, values_callable=lambda e: [m.value for m in e], native_enum=False),
        default=UserStatus.ACTIVO,
        nullable=False,
        index=True,
    )

    # Professional profile
    profession: Mapped[str | None] = mapped_column(String(100), nullable=True)
    experience: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    certifications: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    # Track last login
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    roles: Mapped[list["Role"]] = relationship(  # type: ignore
        "Role",
        secondary=user_roles,
        back_populates="users",
        lazy="selectin",
        order_by="Role.name",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVO

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r})>"
