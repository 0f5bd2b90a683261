"""Audit event sinks."""

from warden.core.audit.logger import MemoryAuditLogger, StructlogAuditLogger


__all__ = ["MemoryAuditLogger", "StructlogAuditLogger"]
