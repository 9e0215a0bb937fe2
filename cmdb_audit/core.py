"""Core orchestration utilities for the CMDB audit."""
from __future__ import annotations

from dataclasses import dataclass
import json
from typing import Iterable, List, Optional

from .catalog import ReferenceCatalog
from .config import EngineConfig
from .dataset import CMDBDataset
from .engine import ValidationEngine
from .findings import Severity, ValidationFinding


SEVERITY_ORDER = {
    Severity.ERROR: 0,
    Severity.WARNING: 1,
    Severity.INFO: 2,
}


def finding_sort_key(finding: ValidationFinding) -> tuple[int, str, str, str]:
    """Return a tuple used to order findings for display."""

    severity_rank = SEVERITY_ORDER.get(finding.severity, len(SEVERITY_ORDER))
    return (severity_rank, finding.code.value, finding.ci_id or "", finding.message)


@dataclass
class AuditResults:
    """Findings of one validation pass with per-severity counts."""

    findings: List[ValidationFinding]

    def count(self, severity: Severity) -> int:
        return sum(1 for finding in self.findings if finding.severity == severity)

    def has_at_least(self, severity: Severity) -> bool:
        """True if any finding is as severe as *severity* or worse."""

        threshold = SEVERITY_ORDER[severity]
        return any(SEVERITY_ORDER[finding.severity] <= threshold for finding in self.findings)


def collect_audit_results(
    dataset: CMDBDataset,
    catalog: Optional[ReferenceCatalog] = None,
    *,
    rules: Optional[Iterable[str]] = None,
    config: Optional[EngineConfig] = None,
) -> AuditResults:
    """Validate *dataset*, record the findings on it and return them for display.

    Findings already stored on the dataset from an earlier pass are replaced.
    """

    engine = ValidationEngine(config, rules)
    findings = engine.validate(dataset, catalog)
    dataset.replace_findings(findings)
    return AuditResults(findings=sorted(findings, key=finding_sort_key))


def print_findings(findings: Iterable[ValidationFinding]) -> None:
    """Pretty-print findings to stdout."""

    findings = list(findings)
    if not findings:
        print("No findings detected.")
        return

    header = f"{'Severity':<8} {'Code':<26} {'CI':<24} Message"
    print(header)
    print("-" * len(header))
    for finding in findings:
        ci_id = finding.ci_id or "*"
        ci_id = (ci_id[:21] + "...") if len(ci_id) > 24 else ci_id
        print(f"{finding.severity.value:<8} {finding.code.value:<26} {ci_id:<24} {finding.message}")
        if finding.suggestion:
            print(f"{'':<8} {'':<26} {'':<24} -> {finding.suggestion}")


def export_findings_to_json(findings: Iterable[ValidationFinding], path: str) -> str:
    """Write *findings* to *path* as a JSON array."""

    with open(path, "w", encoding="utf-8") as fh:
        json.dump([finding.to_dict() for finding in findings], fh, indent=2, default=str)
    return path


__all__ = [
    "AuditResults",
    "collect_audit_results",
    "export_findings_to_json",
    "finding_sort_key",
    "print_findings",
]
