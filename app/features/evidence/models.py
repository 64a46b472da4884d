"""
Evidence SQLAlchemy model.
"""
import enum
import datetime
from sqlalchemy import String, ForeignKey, Boolean, Date, JSON, Index, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, IdMixin, TimestampMixin


class EvidenceCategory(str, enum.Enum):
    DOCUMENTOS = "documentos"
    IMAGENES = "imagenes"
    VIDEOS = "videos"
    REPORTES = "reportes"
    CERTIFICADOS = "certificados"
    OTROS = "otros"


class Evidence(Base, IdMixin, TimestampMixin):
    """
    Evidence record referencing uploaded files by opaque id.

    Soft deleted through `is_deleted`.
    """
    __tablename__ = "evidence"

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(String(1000), nullable=False)
    category: Mapped[EvidenceCategory] = mapped_column(
        SQLEnum(EvidenceCategory, values_callable=lambda e: [m.value for m in e], native_enum=False),
        nullable=False,
    )
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    file_ids: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    created_by_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index("ix_evidence_deleted_date", "is_deleted", "date"),
        Index("ix_evidence_category_deleted", "category", "is_deleted"),
        Index("ix_evidence_creator_deleted", "created_by_id", "is_deleted"),
    )

    def __repr__(self):
        return f"<Evidence(id={self.id}, title='{self.title}', category={self.category})>"
