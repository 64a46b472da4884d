"""
Filing (radicado) SQLAlchemy model.
"""
import enum
from datetime import date, datetime, timezone
from sqlalchemy import String, Text, ForeignKey, Boolean, Integer, Date, Index, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, IdMixin, TimestampMixin


def _enum_column(enum_cls):
    return SQLEnum(enum_cls, values_callable=lambda e: [m.value for m in e], native_enum=False)


class LetterType(str, enum.Enum):
    OFICIO = "Oficio"
    CIRCULAR = "Circular"
    MEMORANDO = "Memorando"
    COMUNICACION = "Comunicación"
    RESOLUCION = "Resolución"
    OTRO = "Otro"


class FilingStatus(str, enum.Enum):
    BORRADOR = "borrador"
    ENVIADO = "enviado"
    RECIBIDO = "recibido"
    ARCHIVADO = "archivado"


class FilingPriority(str, enum.Enum):
    BAJA = "baja"
    MEDIA = "media"
    ALTA = "alta"
    URGENTE = "urgente"


class Filing(Base, IdMixin, TimestampMixin):
    """
    Registered correspondence (radicado).

    Attributes:
        number: Unique consecutive, RAD-<year>-<seq> when generated
        requires_response / due_date: A filing requiring a response must carry a due date
        is_active: False once soft deleted
        version: Starts at 1, incremented on every update
    """
    __tablename__ = "filings"

    number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    filed_at: Mapped[date] = mapped_column(Date, nullable=False)
    letter_date: Mapped[date] = mapped_column(Date, nullable=False)
    letter_type: Mapped[LetterType] = mapped_column(_enum_column(LetterType), default=LetterType.OFICIO, nullable=False)
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    summary: Mapped[str] = mapped_column(String(2000), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    recipient: Mapped[str] = mapped_column(String(200), nullable=False)
    recipient_title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    recipient_entity: Mapped[str | None] = mapped_column(String(200), nullable=True)
    recipient_email: Mapped[str | None] = mapped_column(String(100), nullable=True)
    sender: Mapped[str | None] = mapped_column(String(200), nullable=True)
    sender_title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    sender_entity: Mapped[str | None] = mapped_column(String(200), nullable=True)

    status: Mapped[FilingStatus] = mapped_column(_enum_column(FilingStatus), default=FilingStatus.BORRADOR, nullable=False)
    priority: Mapped[FilingPriority] = mapped_column(_enum_column(FilingPriority), default=FilingPriority.MEDIA, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    project_id: Mapped[str | None] = mapped_column(ForeignKey("projects.id", ondelete="SET NULL"), nullable=True, index=True)

    requires_response: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
    is_confidential: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_by_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    __table_args__ = (
        Index("ix_filings_creator_active", "created_by_id", "is_active"),
        Index("ix_filings_status_active", "status", "is_active"),
    )

    @property
    def is_overdue(self) -> bool:
        if not self.requires_response or not self.due_date:
            return False
        return datetime.now(timezone.utc).date() > self.due_date and self.status != FilingStatus.ARCHIVADO

    @property
    def days_remaining(self) -> int | None:
        if not self.requires_response or not self.due_date:
            return None
        return (self.due_date - datetime.now(timezone.utc).date()).days

    def __repr__(self):
        return f"<Filing(id={self.id}, number='{self.number}', status={self.status})>"
