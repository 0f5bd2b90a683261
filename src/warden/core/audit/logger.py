"""Audit event sinks.

The engine reports authorization events to an ``AuditLogger``; what
happens to them afterwards (shipping, persistence) is up to the sink.
"""

from typing import Any

import structlog


class StructlogAuditLogger:
    """Writes audit events as structured log lines.

    Example:
        audit = StructlogAuditLogger()
        audit.log("role_assigned", role="editor", subject="User#1")
    """

    def __init__(self, logger: Any | None = None) -> None:
        self.logger = logger or structlog.get_logger("warden.audit")

    def log(self, event: str, **fields: Any) -> None:
        """Emit one audit event."""
        self.logger.info(event, audit=True, **fields)


class MemoryAuditLogger:
    """Collects audit events in a list, for tests and diagnostics."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def log(self, event: str, **fields: Any) -> None:
        self.events.append((event, fields))

    def names(self) -> list[str]:
        return [event for event, _ in self.events]
