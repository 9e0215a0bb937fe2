"""Exception types raised by the CMDB audit toolkit.

Data-consistency problems are never raised; they are reported as
:class:`~cmdb_audit.findings.ValidationFinding` values. The exceptions below
signal misuse of the API or unreadable input files.
"""
from __future__ import annotations


class CMDBAuditError(Exception):
    """Base exception for the CMDB audit toolkit."""

    def __init__(self, code: str, message: str, details=None):
        self.code = code
        self.message = message
        self.details = details
        super().__init__(message)


class ContractViolationError(CMDBAuditError, TypeError):
    """A required argument was missing or of the wrong type."""

    def __init__(self, message: str, details=None):
        super().__init__("CONTRACT_VIOLATION", message, details)


class WorkbookImportError(CMDBAuditError):
    """A workbook could not be opened or read."""

    def __init__(self, path: str, reason: str):
        super().__init__("WORKBOOK_IMPORT", f"Failed to import '{path}': {reason}")
        self.path = path


def require(value, expected_type, argument: str):
    """Return *value* or raise :class:`ContractViolationError` if it is unusable."""

    if value is None:
        raise ContractViolationError(f"'{argument}' must not be None")
    if not isinstance(value, expected_type):
        names = (
            ", ".join(t.__name__ for t in expected_type)
            if isinstance(expected_type, tuple)
            else expected_type.__name__
        )
        raise ContractViolationError(
            f"'{argument}' must be {names}, got {type(value).__name__}"
        )
    return value


__all__ = [
    "CMDBAuditError",
    "ContractViolationError",
    "WorkbookImportError",
    "require",
]
