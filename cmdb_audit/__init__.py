"""CMDB dataset model and consistency validation toolkit."""

from __future__ import annotations

from .catalog import CatalogSnapshot, ReferenceCatalog
from .config import EngineConfig
from .core import collect_audit_results, print_findings
from .dataset import CMDBDataset, DatasetSnapshot
from .engine import ValidationEngine, validate
from .errors import CMDBAuditError, ContractViolationError, WorkbookImportError
from .findings import FindingCode, Severity, ValidationFinding
from .headers import normalize_header, normalize_headers
from .models import CI, BusinessService, ImportMetadata, Project, Relationship, ServiceOffering

__all__ = [
    "BusinessService",
    "CI",
    "CMDBAuditError",
    "CMDBDataset",
    "CatalogSnapshot",
    "ContractViolationError",
    "DatasetSnapshot",
    "EngineConfig",
    "FindingCode",
    "ImportMetadata",
    "Project",
    "ReferenceCatalog",
    "Relationship",
    "ServiceOffering",
    "Severity",
    "ValidationEngine",
    "ValidationFinding",
    "WorkbookImportError",
    "collect_audit_results",
    "normalize_header",
    "normalize_headers",
    "print_findings",
    "validate",
]
