"""
Staff (personal) SQLAlchemy model.
"""
import enum
from datetime import date
from sqlalchemy import String, ForeignKey, Float, Date, Index, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, IdMixin, TimestampMixin


def _enum_column(enum_cls):
    return SQLEnum(enum_cls, values_callable=lambda e: [m.value for m in e], native_enum=False)


class StaffStatus(str, enum.Enum):
    ACTIVO = "activo"
    INACTIVO = "inactivo"
    TERMINADO = "terminado"
    SUSPENDIDO = "suspendido"


class ContractType(str, enum.Enum):
    INDEFINIDO = "indefinido"
    FIJO = "fijo"
    OBRA_LABOR = "obra_labor"
    PRESTACION_SERVICIOS = "prestacion_servicios"


class StaffMember(Base, IdMixin, TimestampMixin):
    """
    Field staff employed on oversight work.

    Staff members are not system users: they hold no credentials or roles.

    Attributes:
        national_id: Cédula, unique across staff
        project_id: Project the person is currently assigned to, if any
        termination_date: When set, falls after hire_date
    """
    __tablename__ = "staff"

    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    national_id: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)
    email: Mapped[str | None] = mapped_column(String(100), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    position: Mapped[str] = mapped_column(String(100), nullable=False)

    contract_type: Mapped[ContractType] = mapped_column(
        _enum_column(ContractType), default=ContractType.INDEFINIDO, nullable=False
    )
    status: Mapped[StaffStatus] = mapped_column(
        _enum_column(StaffStatus), default=StaffStatus.ACTIVO, nullable=False, index=True
    )
    hire_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    termination_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    salary: Mapped[float | None] = mapped_column(Float, nullable=True)
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)

    project_id: Mapped[str | None] = mapped_column(
        ForeignKey("projects.id", ondelete="SET NULL"), nullable=True, index=True
    )
    created_by_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)

    project = relationship("Project", lazy="selectin")

    __table_args__ = (
        Index("ix_staff_status_project", "status", "project_id"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self):
        return f"<StaffMember(id={self.id}, national_id='{self.national_id}', status={self.status})>"
