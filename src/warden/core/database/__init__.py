"""Database layer - engine and session management, base models, and mixins."""

from warden.core.database.base import (
    Base,
    ContextMixin,
    SubjectMixin,
    TimestampMixin,
    UUIDMixin,
)
from warden.core.database.session import (
    create_engine,
    create_schema,
    create_session_factory,
    drop_schema,
    session_scope,
)


__all__ = [
    "Base",
    "ContextMixin",
    "SubjectMixin",
    "TimestampMixin",
    "UUIDMixin",
    "create_engine",
    "create_schema",
    "create_session_factory",
    "drop_schema",
    "session_scope",
]
