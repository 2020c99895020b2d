"""
Audit Package.

Exports the audit sink contract and its file and in-memory implementations.
"""

from .audit_logger import AuditSink, FileAuditLog, MemoryAuditSink, format_entry

__all__ = ["AuditSink", "FileAuditLog", "MemoryAuditSink", "format_entry"]
