"""
Project and ProjectMilestone SQLAlchemy models.
"""
import enum
from datetime import date, datetime
from typing import Any, Dict
from sqlalchemy import String, Text, ForeignKey, Float, Integer, Boolean, Date, DateTime, JSON, Index, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, IdMixin, TimestampMixin


def _enum_column(enum_cls):
    return SQLEnum(enum_cls, values_callable=lambda e: [m.value for m in e], native_enum=False)


class ProjectType(str, enum.Enum):
    CONSTRUCCION = "construccion"
    INFRAESTRUCTURA = "infraestructura"
    TECNOLOGIA = "tecnologia"
    CONSULTORIA = "consultoria"
    OTROS = "otros"


class ProjectStatus(str, enum.Enum):
    PLANIFICACION = "planificacion"
    EN_EJECUCION = "en_ejecucion"
    SUSPENDIDO = "suspendido"
    FINALIZADO = "finalizado"
    CANCELADO = "cancelado"


class ProjectPriority(str, enum.Enum):
    BAJA = "baja"
    MEDIA = "media"
    ALTA = "alta"
    CRITICA = "critica"


class Currency(str, enum.Enum):
    COP = "COP"
    USD = "USD"
    EUR = "EUR"


class Project(Base, IdMixin, TimestampMixin):
    """
    Oversight project.

    Attributes:
        code: Unique, upper-cased project code
        location: {"address", "city", "department", "country", "coordinates": {"latitude", "longitude"}}
        client_contact: {"name", "title", "phone", "email"}
        budget_*: Budget columns, kept flat so they can be aggregated
        contractor_id / overseer_id / supervisor_id: Participating users
        created_by_id: Owner used for owner-only permission conditions
        milestones: Related ProjectMilestone records
    """
    __tablename__ = "projects"

    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(String(1000), nullable=False)
    project_type: Mapped[ProjectType] = mapped_column(_enum_column(ProjectType), nullable=False, index=True)
    status: Mapped[ProjectStatus] = mapped_column(
        _enum_column(ProjectStatus), default=ProjectStatus.PLANIFICACION, nullable=False, index=True
    )
    priority: Mapped[ProjectPriority] = mapped_column(
        _enum_column(ProjectPriority), default=ProjectPriority.MEDIA, nullable=False
    )

    # Dates
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    planned_end_date: Mapped[date] = mapped_column(Date, nullable=False)
    actual_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    location: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    client_contact: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)

    # Participants
    contractor_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    overseer_id: Mapped[str | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    supervisor_id: Mapped[str | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    created_by_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)

    # Budget
    budget_total: Mapped[float] = mapped_column(Float, nullable=False)
    budget_executed: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    currency: Mapped[Currency] = mapped_column(_enum_column(Currency), default=Currency.COP, nullable=False)
    budget_approved_at: Mapped[date] = mapped_column(Date, nullable=False)

    progress: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    milestones = relationship(
        "ProjectMilestone",
        back_populates="project",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ProjectMilestone.planned_date",
    )

    __table_args__ = (
        Index("ix_projects_participants", "contractor_id", "overseer_id", "supervisor_id"),
    )

    @property
    def budget(self) -> Dict[str, Any]:
        return {
            "total": self.budget_total,
            "executed": self.budget_executed,
            "currency": self.currency,
            "approved_at": self.budget_approved_at,
        }

    def participant_ids(self) -> set[str]:
        return {
            uid
            for uid in (self.contractor_id, self.overseer_id, self.supervisor_id, self.created_by_id)
            if uid
        }

    def __repr__(self):
        return f"<Project(id={self.id}, code='{self.code}', status={self.status})>"


class ProjectMilestone(Base, IdMixin, TimestampMixin):
    """Planned checkpoint of a project with its own progress."""
    __tablename__ = "project_milestones"

    project_id: Mapped[str] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    planned_date: Mapped[date] = mapped_column(Date, nullable=False)
    actual_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    progress: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    project = relationship("Project", back_populates="milestones")

    def __repr__(self):
        return f"<ProjectMilestone(id={self.id}, project_id={self.project_id}, progress={self.progress})>"
