"""Grant store database models.

This module defines the RBAC models:
- Permission: A named action, unique per guard (and context)
- Role: A named set of permissions and capabilities
- Capability: A reusable bundle of permissions
- PermissionSubject / RoleSubject / CapabilitySubject: assignment rows
  linking those entities to external subjects
"""

from uuid import UUID

from sqlalchemy import Column, DateTime, ForeignKey, String, Table, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from warden.core.constants import (
    MAX_DESCRIPTION_LENGTH,
    MAX_GUARD_LENGTH,
    MAX_LABEL_LENGTH,
    MAX_NAME_LENGTH,
)
from warden.core.database.base import (
    Base,
    ContextMixin,
    SubjectMixin,
    TimestampMixin,
    UUIDMixin,
)


def _pivot(name: str, left: str, right: str) -> Table:
    left_table, left_column = left.split(".")
    right_table, right_column = right.split(".")
    return Table(
        name,
        Base.metadata,
        Column(
            left_column,
            Uuid,
            ForeignKey(f"{left_table}.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        Column(
            right_column,
            Uuid,
            ForeignKey(f"{right_table}.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        Column("created_at", DateTime(timezone=True), server_default=func.now(), nullable=False),
    )


# Junction tables between entities
role_permissions = _pivot("role_permissions", "roles.role_id", "permissions.permission_id")
capability_permissions = _pivot(
    "capability_permissions", "capabilities.capability_id", "permissions.permission_id"
)
role_capabilities = _pivot("role_capabilities", "roles.role_id", "capabilities.capability_id")


class EntityMixin(UUIDMixin, TimestampMixin, ContextMixin):
    """Columns shared by permissions, roles and capabilities."""

    name: Mapped[str] = mapped_column(String(MAX_NAME_LENGTH), nullable=False, index=True)
    guard: Mapped[str] = mapped_column(String(MAX_GUARD_LENGTH), nullable=False, index=True)
    label: Mapped[str | None] = mapped_column(String(MAX_LABEL_LENGTH), nullable=True)
    description: Mapped[str | None] = mapped_column(
        String(MAX_DESCRIPTION_LENGTH),
        nullable=True,
    )


class Permission(Base, EntityMixin):
    """Permission model.

    ``name`` is opaque to the store; the resolver may treat names that
    contain ``*`` as wildcard patterns.
    """

    __tablename__ = "permissions"
    __table_args__ = (
        UniqueConstraint(
            "name", "guard", "context_type", "context_id", name="uq_permission_name_guard_context"
        ),
    )

    roles: Mapped[list["Role"]] = relationship(
        "Role",
        secondary=role_permissions,
        back_populates="permissions",
    )

    def __repr__(self) -> str:
        return f"<Permission({self.name}, guard={self.guard})>"


class Capability(Base, EntityMixin):
    """Capability model: a named bundle of permissions."""

    __tablename__ = "capabilities"
    __table_args__ = (
        UniqueConstraint(
            "name", "guard", "context_type", "context_id", name="uq_capability_name_guard_context"
        ),
    )

    permissions: Mapped[list["Permission"]] = relationship(
        "Permission",
        secondary=capability_permissions,
        lazy="selectin",
    )
    roles: Mapped[list["Role"]] = relationship(
        "Role",
        secondary=role_capabilities,
        back_populates="capabilities",
    )

    def __repr__(self) -> str:
        return f"<Capability({self.name}, guard={self.guard})>"


class Role(Base, EntityMixin):
    """Role model.

    A subject holding a role is granted the role's permissions and,
    when capabilities are enabled, the permissions of its capabilities.
    """

    __tablename__ = "roles"
    __table_args__ = (
        UniqueConstraint(
            "name", "guard", "context_type", "context_id", name="uq_role_name_guard_context"
        ),
    )

    permissions: Mapped[list["Permission"]] = relationship(
        "Permission",
        secondary=role_permissions,
        back_populates="roles",
        lazy="selectin",
    )
    capabilities: Mapped[list["Capability"]] = relationship(
        "Capability",
        secondary=role_capabilities,
        back_populates="roles",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Role({self.name}, guard={self.guard})>"


class PermissionSubject(Base, UUIDMixin, SubjectMixin, ContextMixin, TimestampMixin):
    """Direct grant of a permission to a subject, optionally in a context."""

    __tablename__ = "permission_subjects"
    __table_args__ = (
        UniqueConstraint(
            "permission_id",
            "subject_type",
            "subject_id",
            "context_type",
            "context_id",
            name="uq_permission_subject",
        ),
    )

    permission_id: Mapped[UUID] = mapped_column(
        ForeignKey("permissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return (
            f"<PermissionSubject(permission_id={self.permission_id}, "
            f"subject={self.subject_type}#{self.subject_id})>"
        )


class RoleSubject(Base, UUIDMixin, SubjectMixin, ContextMixin, TimestampMixin):
    """Role assignment to a subject, optionally in a context."""

    __tablename__ = "role_subjects"
    __table_args__ = (
        UniqueConstraint(
            "role_id",
            "subject_type",
            "subject_id",
            "context_type",
            "context_id",
            name="uq_role_subject",
        ),
    )

    role_id: Mapped[UUID] = mapped_column(
        ForeignKey("roles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<RoleSubject(role_id={self.role_id}, subject={self.subject_type}#{self.subject_id})>"


class CapabilitySubject(Base, UUIDMixin, SubjectMixin, TimestampMixin):
    """Direct capability assignment to a subject. Always unscoped."""

    __tablename__ = "capability_subjects"
    __table_args__ = (
        UniqueConstraint(
            "capability_id", "subject_type", "subject_id", name="uq_capability_subject"
        ),
    )

    capability_id: Mapped[UUID] = mapped_column(
        ForeignKey("capabilities.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return (
            f"<CapabilitySubject(capability_id={self.capability_id}, "
            f"subject={self.subject_type}#{self.subject_id})>"
        )
