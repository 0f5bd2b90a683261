"""Domain exceptions for the authorization engine.

Not-found and already-exists errors are expected outcomes that callers use
for control flow (find-or-create). Guard mismatches and circular role
inheritance are configuration errors and abort the enclosing operation.
"""

from typing import Any


class WardenError(Exception):
    """Base exception for all engine errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        details: Additional error details
    """

    message: str = "An unexpected authorization error occurred"
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(WardenError):
    """Raised when a permission, role or capability does not exist.

    Example:
        raise RoleNotFoundError("editor", "web")
    """

    message = "Resource not found"
    error_code = "not_found"
    kind: str = "resource"

    def __init__(self, name: str, guard: str | None = None, **kwargs: Any) -> None:
        guard_info = f" for guard '{guard}'" if guard else ""
        details = kwargs.pop("details", {})
        details.update({"name": name, "guard": guard})
        self.name = name
        self.guard = guard
        super().__init__(
            message=kwargs.pop("message", None)
            or f"{self.kind.capitalize()} '{name}' not found{guard_info}",
            details=details,
            **kwargs,
        )


class PermissionNotFoundError(NotFoundError):
    error_code = "permission_not_found"
    kind = "permission"


class RoleNotFoundError(NotFoundError):
    error_code = "role_not_found"
    kind = "role"


class CapabilityNotFoundError(NotFoundError):
    error_code = "capability_not_found"
    kind = "capability"


class ConflictError(WardenError):
    """Raised when an entity already exists under the same name and guard.

    Example:
        raise PermissionAlreadyExistsError("article:edit", "web")
    """

    message = "Resource conflict"
    error_code = "conflict"
    kind: str = "resource"

    def __init__(self, name: str, guard: str, **kwargs: Any) -> None:
        details = kwargs.pop("details", {})
        details.update({"name": name, "guard": guard})
        self.name = name
        self.guard = guard
        super().__init__(
            message=kwargs.pop("message", None)
            or f"{self.kind.capitalize()} '{name}' already exists for guard '{guard}'",
            details=details,
            **kwargs,
        )


class PermissionAlreadyExistsError(ConflictError):
    error_code = "permission_exists"
    kind = "permission"


class RoleAlreadyExistsError(ConflictError):
    error_code = "role_exists"
    kind = "role"


class CapabilityAlreadyExistsError(ConflictError):
    error_code = "capability_exists"
    kind = "capability"


class GuardMismatchError(WardenError):
    """Raised when associating entities that belong to different guards.

    Example:
        raise GuardMismatchError(expected="api", actual="web", kind="permission")
    """

    message = "Guard mismatch"
    error_code = "guard_mismatch"

    def __init__(self, expected: str, actual: str, kind: str = "permission") -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            message=(
                f"{kind.capitalize()} guard mismatch. Expected guard '{expected}', "
                f"but got '{actual}'."
            ),
            details={"expected": expected, "actual": actual, "kind": kind},
        )


class CircularRoleInheritanceError(WardenError):
    """Raised when role declarations inherit from each other in a cycle."""

    message = "Circular role inheritance"
    error_code = "circular_role_inheritance"

    def __init__(self, role: str) -> None:
        self.role = role
        super().__init__(
            message=f"Circular role inheritance detected involving role: {role}",
            details={"role": role},
        )


class FeatureDisabledError(WardenError):
    """Raised when an operation needs a feature switched off in settings.

    Example:
        raise FeatureDisabledError("capabilities")
    """

    message = "Feature disabled"
    error_code = "feature_disabled"

    def __init__(self, feature: str) -> None:
        self.feature = feature
        super().__init__(
            message=f"The '{feature}' feature is not enabled",
            details={"feature": feature},
        )


class CacheBackendError(WardenError):
    """Raised when the resolution cache backend cannot be reached.

    A cache outage is a hard dependency failure; it is never read
    as "no grants exist".
    """

    message = "Cache backend unavailable"
    error_code = "cache_unavailable"


class InvalidDeclarationError(WardenError):
    """Raised when a declaration file cannot be read or validated."""

    message = "Invalid declarations"
    error_code = "invalid_declarations"
