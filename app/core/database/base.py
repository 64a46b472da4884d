"""
SQLAlchemy declarative base and common model utilities.

All SQLAlchemy models should inherit from Base.
"""
from datetime import datetime
from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from app.utils import generate_ulid


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    Usage:
        from app.core.database.base import Base, IdMixin, TimestampMixin

        class Project(Base, IdMixin, TimestampMixin):
            __tablename__ = "projects"

            name: Mapped[str] = mapped_column(String(200))
    """
    pass


class IdMixin:
    """
    Mixin adding a ULID primary key.

    ULIDs are lexicographically sortable, so ordering by id follows creation order.
    """
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)


class TimestampMixin:
    """
    Mixin to add created_at and updated_at timestamps to models.

    Both are set by the database; refresh an instance after commit before reading them.
    """
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
