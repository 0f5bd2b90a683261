"""SQLAlchemy declarative base and common mixins."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from warden.core.constants import MAX_MORPH_ID_LENGTH, MAX_MORPH_TYPE_LENGTH


class Base(DeclarativeBase):
    """Base class for all grant store models."""

    pass


class UUIDMixin:
    """Mixin that adds a UUID primary key."""

    id: Mapped[UUID] = mapped_column(
        primary_key=True,
        default=uuid4,
        index=True,
    )


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamps."""

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


class ContextMixin:
    """Mixin that adds an optional polymorphic context reference.

    Both columns are NULL for global (unscoped) rows.
    """

    context_type: Mapped[str | None] = mapped_column(
        String(MAX_MORPH_TYPE_LENGTH),
        nullable=True,
        index=True,
    )
    context_id: Mapped[str | None] = mapped_column(
        String(MAX_MORPH_ID_LENGTH),
        nullable=True,
        index=True,
    )


class SubjectMixin:
    """Mixin that adds the polymorphic subject reference of an assignment row."""

    subject_type: Mapped[str] = mapped_column(
        String(MAX_MORPH_TYPE_LENGTH),
        nullable=False,
        index=True,
    )
    subject_id: Mapped[str] = mapped_column(
        String(MAX_MORPH_ID_LENGTH),
        nullable=False,
        index=True,
    )
