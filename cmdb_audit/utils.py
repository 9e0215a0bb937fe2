"""Shared helpers for validation rules and the engine."""
from __future__ import annotations

from .findings import FindingCode, Severity, ValidationFinding, make_finding


def finding_from_exception(
    rule: str,
    action: str,
    exc: Exception,
    *,
    ci_id: str | None = None,
    severity: Severity = Severity.ERROR,
) -> ValidationFinding:
    """Create a GENERIC_ERROR :class:`ValidationFinding` describing ``exc``.

    The helper ensures consistent formatting for findings raised in place of a
    rule result while leaving the caller in control of the severity and the
    implicated CI.
    """

    action = action.rstrip(".")
    return make_finding(
        FindingCode.GENERIC_ERROR,
        f"{action}: {exc}",
        ci_id=ci_id,
        context={"rule": rule, "exception": type(exc).__name__},
        severity=severity,
    )


__all__ = ["finding_from_exception"]
