"""Data models for CMDB validation findings."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
import threading
from typing import Any, Dict, Mapping, Optional, Tuple
import uuid

from .models import CI, ImportMetadata, Relationship


class Severity(str, Enum):
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"


class FindingCode(str, Enum):
    MISSING_PARENT = "MISSING_PARENT"
    ORPHAN_CI = "ORPHAN_CI"
    DANGLING_RELATIONSHIP = "DANGLING_RELATIONSHIP"
    INVALID_RELATIONSHIP_TYPE = "INVALID_RELATIONSHIP_TYPE"
    INVALID_CLASS = "INVALID_CLASS"
    MISSING_SERVICE_OFFERING = "MISSING_SERVICE_OFFERING"
    DUPLICATE_CI = "DUPLICATE_CI"
    CIRCULAR_DEPENDENCY = "CIRCULAR_DEPENDENCY"
    LOCATION_INVALID = "LOCATION_INVALID"
    GENERIC_ERROR = "GENERIC_ERROR"


DEFAULT_SEVERITIES: Dict[FindingCode, Severity] = {
    FindingCode.DANGLING_RELATIONSHIP: Severity.ERROR,
    FindingCode.ORPHAN_CI: Severity.WARNING,
    FindingCode.MISSING_PARENT: Severity.WARNING,
    FindingCode.INVALID_CLASS: Severity.ERROR,
    FindingCode.INVALID_RELATIONSHIP_TYPE: Severity.ERROR,
    FindingCode.LOCATION_INVALID: Severity.WARNING,
    FindingCode.DUPLICATE_CI: Severity.WARNING,
    FindingCode.MISSING_SERVICE_OFFERING: Severity.INFO,
    FindingCode.CIRCULAR_DEPENDENCY: Severity.ERROR,
    FindingCode.GENERIC_ERROR: Severity.ERROR,
}

# Placeholders are filled from the finding's context with str.format_map.
SUGGESTION_TEMPLATES: Dict[FindingCode, str] = {
    FindingCode.DANGLING_RELATIONSHIP: (
        "Remove or correct the reference to CI '{missing_ci_id}'; it does not exist in the dataset."
    ),
    FindingCode.ORPHAN_CI: (
        "Link CI '{ci_id}' to a parent, dependency or service offering, or retire it."
    ),
    FindingCode.MISSING_PARENT: (
        "Link CI '{ci_id}' to its parent with a structural relationship ({expected_types})."
    ),
    FindingCode.INVALID_CLASS: (
        "Use one of the approved CI classes instead of '{ci_class}'."
    ),
    FindingCode.INVALID_RELATIONSHIP_TYPE: (
        "Use one of the approved relationship types instead of '{relationship_type}'."
    ),
    FindingCode.LOCATION_INVALID: (
        "Use one of the approved locations instead of '{location}'."
    ),
    FindingCode.DUPLICATE_CI: (
        "Merge CI '{duplicate_ci_id}' into '{kept_ci_id}' or make their class, name and location distinct."
    ),
    FindingCode.MISSING_SERVICE_OFFERING: (
        "Define at least one service offering for business service '{business_service_id}'."
    ),
    FindingCode.CIRCULAR_DEPENDENCY: (
        "Break the dependency cycle {cycle} by removing or reversing one of its relationships."
    ),
    FindingCode.GENERIC_ERROR: "Review the source record; the check could not be evaluated.",
}


class _Defaults(dict):
    def __missing__(self, key: str) -> str:
        return "?"


def render_suggestion(code: FindingCode, context: Mapping[str, str]) -> str:
    """Return the suggestion text for *code* filled from *context*."""

    template = SUGGESTION_TEMPLATES.get(code, SUGGESTION_TEMPLATES[FindingCode.GENERIC_ERROR])
    return template.format_map(_Defaults(context))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(eq=False)
class ValidationFinding:
    """Represents a single consistency issue detected in a CMDB dataset."""

    severity: Severity = Severity.ERROR
    code: FindingCode = FindingCode.GENERIC_ERROR
    message: str = ""
    ci_id: Optional[str] = None
    relationship: Optional[Relationship] = None
    source_file: Optional[str] = None
    sheet_name: Optional[str] = None
    row_index: Optional[int] = None
    suggestion: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()), init=False)
    created_at: datetime = field(default_factory=_utcnow, init=False, repr=False)
    _context: Dict[str, str] = field(default_factory=dict, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @property
    def context(self) -> Dict[str, str]:
        return self.get_context()

    def get_context(self) -> Dict[str, str]:
        """Return a point-in-time copy of the rule-specific context."""

        with self._lock:
            return dict(self._context)

    def put_context(self, key: Optional[str], value: Any) -> None:
        if key is None or value is None:
            return
        with self._lock:
            self._context[key] = str(value)

    def merge_context(self, values: Mapping[str, Any]) -> None:
        """Add *values* to the context; the last write for a key wins."""

        with self._lock:
            for key, value in values.items():
                if key is not None and value is not None:
                    self._context[str(key)] = str(value)

    def apply_provenance(self, metadata: Optional[ImportMetadata]) -> None:
        """Copy source file, sheet and row from *metadata* when available."""

        if metadata is None:
            return
        self.source_file = metadata.source_file
        self.sheet_name = metadata.sheet_name
        self.row_index = metadata.row_index()

    def key(self) -> Tuple[Any, ...]:
        """Value identity used to compare findings across runs.

        The generated ``id`` and ``created_at`` are excluded.
        """

        return (
            self.severity.value,
            self.code.value,
            self.message,
            self.ci_id,
            self.relationship,
            self.source_file,
            self.sheet_name,
            self.row_index,
            tuple(sorted(self.get_context().items())),
            self.suggestion,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-serialisable representation."""

        relation = None
        if self.relationship is not None:
            relation = {
                "source_id": self.relationship.source_id,
                "target_id": self.relationship.target_id,
                "type": self.relationship.type,
            }
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "severity": self.severity.value,
            "code": self.code.value,
            "message": self.message,
            "ci_id": self.ci_id,
            "relationship": relation,
            "source_file": self.source_file,
            "sheet_name": self.sheet_name,
            "row_index": self.row_index,
            "context": self.get_context(),
            "suggestion": self.suggestion,
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ValidationFinding):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __str__(self) -> str:
        return f"[{self.severity.value}] {self.code.value} - {self.message}"


def make_finding(
    code: FindingCode,
    message: str,
    *,
    ci: Optional[CI] = None,
    ci_id: Optional[str] = None,
    relationship: Optional[Relationship] = None,
    context: Optional[Mapping[str, Any]] = None,
    severity: Optional[Severity] = None,
) -> ValidationFinding:
    """Build a finding with default severity, provenance and suggestion filled in.

    Provenance comes from the CI's import metadata when a CI is given, otherwise
    from the relationship's.
    """

    finding = ValidationFinding(
        severity=severity or DEFAULT_SEVERITIES[code],
        code=code,
        message=message,
        ci_id=ci.id if ci is not None else ci_id,
        relationship=relationship,
    )
    if context:
        finding.merge_context(context)
    if ci is not None and ci.metadata is not None:
        finding.apply_provenance(ci.metadata)
    elif relationship is not None:
        finding.apply_provenance(relationship.metadata)
        if finding.sheet_name is None:
            finding.sheet_name = relationship.source_sheet
    finding.suggestion = render_suggestion(code, finding.get_context())
    return finding


__all__ = [
    "DEFAULT_SEVERITIES",
    "FindingCode",
    "SUGGESTION_TEMPLATES",
    "Severity",
    "ValidationFinding",
    "make_finding",
    "render_suggestion",
]
