"""Populate a :class:`CMDBDataset` and :class:`ReferenceCatalog` from Excel workbooks.

Sheet conventions:

* A sheet named ``Catalog``, ``Reference`` or ``Reference Catalog`` lists approved
  values in ``class``, ``relationship``, ``location`` and ``environment`` columns.
* Every other sheet with a ``name`` (or ``id``) column holds one CI per row. A
  row's ``parent_ci`` and ``relationship`` cells describe a relationship from the
  parent to the row's CI; ``project``, ``business_service`` and
  ``service_offering`` cells attach the CI to those groupings.

Parent references are resolved once every workbook has been read, first by CI
id and then by CI name. Unresolvable parents are kept as given so validation
reports them as dangling.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
import os
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple
from zipfile import BadZipFile

from .catalog import ReferenceCatalog
from .dataset import CMDBDataset
from .errors import WorkbookImportError
from .headers import normalize_header
from .models import CI, BusinessService, ImportMetadata, Project, Relationship, ServiceOffering

logger = logging.getLogger(__name__)

CATALOG_SHEET_NAMES = frozenset({"catalog", "reference", "reference catalog", "reference_catalog"})

CI_FIELDS: Dict[str, str] = {
    "class": "ci_class",
    "name": "name",
    "description": "description",
    "location": "location",
    "project": "project",
    "environment": "environment",
}

ID_COLUMNS: Tuple[str, ...] = ("id", "sys_id", "ci_id", "name")

# Columns consumed as links rather than stored as extra CI attributes.
LINK_COLUMNS = frozenset({"relationship", "business_service", "service_offering"})


@dataclass
class ImportSummary:
    """Counts of what a workbook import added."""

    files: int = 0
    sheets: int = 0
    cis: int = 0
    relationships: int = 0
    catalog_values: int = 0
    skipped_rows: int = 0

    def merge(self, other: "ImportSummary") -> None:
        self.files += other.files
        self.sheets += other.sheets
        self.cis += other.cis
        self.relationships += other.relationships
        self.catalog_values += other.catalog_values
        self.skipped_rows += other.skipped_rows


@dataclass
class _PendingRelationship:
    parent: str
    child_id: str
    rel_type: str
    sheet_name: str
    metadata: ImportMetadata


@dataclass
class WorkbookImporter:
    """Accumulates one or more workbooks into a dataset and catalog."""

    dataset: CMDBDataset = field(default_factory=CMDBDataset)
    catalog: ReferenceCatalog = field(default_factory=ReferenceCatalog)
    summary: ImportSummary = field(default_factory=ImportSummary)
    _pending: List[_PendingRelationship] = field(default_factory=list, init=False, repr=False)

    def load(self, path: str) -> ImportSummary:
        """Read the workbook at *path*; call :meth:`finish` after the last one."""

        try:
            from openpyxl import load_workbook
            from openpyxl.utils.exceptions import InvalidFileException
        except ImportError as exc:  # pragma: no cover - dependency missing during tests
            raise RuntimeError(
                "The 'openpyxl' package is required to import CMDB workbooks. "
                "Install it with 'pip install openpyxl'."
            ) from exc

        try:
            workbook = load_workbook(path, read_only=True, data_only=True)
        except (OSError, InvalidFileException, BadZipFile, KeyError) as exc:
            raise WorkbookImportError(path, str(exc)) from exc

        summary = ImportSummary(files=1)
        source_file = os.path.basename(path)
        try:
            for sheet in workbook.worksheets:
                rows = sheet.iter_rows(values_only=True)
                summary.sheets += 1
                if sheet.title.strip().lower() in CATALOG_SHEET_NAMES:
                    summary.catalog_values += self._load_catalog_rows(rows)
                else:
                    self._load_ci_rows(rows, source_file, sheet.title, summary)
        finally:
            workbook.close()

        logger.info(
            "Imported %s: %d sheet(s), %d CI(s), %d catalog value(s)",
            source_file,
            summary.sheets,
            summary.cis,
            summary.catalog_values,
        )
        self.summary.merge(summary)
        return summary

    def finish(self) -> ImportSummary:
        """Resolve parent references and add the resulting relationships."""

        by_name: Dict[str, str] = {}
        for ci in self.dataset.get_configuration_items():
            if ci.name:
                by_name.setdefault(ci.name, ci.id)

        added = 0
        for pending in self._pending:
            if self.dataset.get_ci(pending.parent) is not None:
                parent_id = pending.parent
            else:
                parent_id = by_name.get(pending.parent, pending.parent)
            relationship = Relationship(
                source_id=parent_id,
                target_id=pending.child_id,
                type=pending.rel_type,
                source_sheet=pending.sheet_name,
                metadata=pending.metadata,
            )
            if self.dataset.add_relationship(relationship):
                added += 1
        self._pending.clear()
        self.summary.relationships += added
        logger.info("Resolved %d relationship(s)", added)
        return self.summary

    # ------------------------------------------------------------------

    def _load_catalog_rows(self, rows: Iterable[Sequence[object]]) -> int:
        adders: Dict[str, Callable[[Optional[str]], None]] = {
            "class": self.catalog.add_valid_class,
            "relationship": self.catalog.add_valid_relationship_type,
            "location": self.catalog.add_valid_location,
            "environment": self.catalog.add_valid_environment,
        }
        columns: Optional[Dict[int, str]] = None
        count = 0
        for values in rows:
            if columns is None:
                columns = _header_columns(values)
                continue
            for index, key in columns.items():
                adder = adders.get(key)
                value = _cell_text(values, index)
                if adder is not None and value is not None:
                    adder(value)
                    count += 1
        return count

    def _load_ci_rows(
        self,
        rows: Iterable[Sequence[object]],
        source_file: str,
        sheet_name: str,
        summary: ImportSummary,
    ) -> None:
        columns: Optional[Dict[int, str]] = None
        for row_number, values in enumerate(rows, start=1):
            if columns is None:
                if not any(_cell_text(values, i) for i in range(len(values))):
                    continue
                columns = _header_columns(values)
                if not set(columns.values()) & set(ID_COLUMNS):
                    logger.info("Skipping sheet %r: no name or id column", sheet_name)
                    return
                continue

            record: Dict[str, str] = {}
            for index, key in columns.items():
                value = _cell_text(values, index)
                if value is not None:
                    record.setdefault(key, value)
            if not record:
                continue
            ci_id = next((record[key] for key in ID_COLUMNS if key in record), None)
            if ci_id is None:
                summary.skipped_rows += 1
                logger.warning(
                    "Skipping row %d of sheet %r: no CI name or id", row_number, sheet_name
                )
                continue

            has_relation = "parent_ci" in record and "relationship" in record
            metadata = ImportMetadata(
                source_file=source_file,
                sheet_name=sheet_name,
                row_index_entity=row_number,
                row_index_relation=row_number if has_relation else -1,
            )
            if self._upsert_ci(ci_id, record, metadata):
                summary.cis += 1
            if has_relation:
                self._pending.append(
                    _PendingRelationship(
                        parent=record["parent_ci"],
                        child_id=ci_id,
                        rel_type=record["relationship"],
                        sheet_name=sheet_name,
                        metadata=metadata,
                    )
                )
            self._link_groupings(ci_id, record)

    def _upsert_ci(self, ci_id: str, record: Dict[str, str], metadata: ImportMetadata) -> bool:
        values = {attr: record[key] for key, attr in CI_FIELDS.items() if key in record}
        extras = {
            key: value
            for key, value in record.items()
            if key not in CI_FIELDS and key not in LINK_COLUMNS and key not in ID_COLUMNS
        }
        ci = CI(id=ci_id, metadata=metadata, **values)
        for key, value in extras.items():
            ci.put_attribute(key, value)
        if self.dataset.add_ci(ci):
            return True

        # Seen on an earlier sheet: fill in only what is still unset.
        existing = self.dataset.get_ci(ci_id)
        missing = {attr: value for attr, value in values.items() if getattr(existing, attr) is None}
        if missing:
            existing.update(**missing)
        current = existing.get_attributes()
        for key, value in extras.items():
            if key not in current:
                existing.put_attribute(key, value)
        return False

    def _link_groupings(self, ci_id: str, record: Dict[str, str]) -> None:
        project_name = record.get("project")
        if project_name:
            self.dataset.add_project(Project(name=project_name))
            self.dataset.get_project(project_name).add_ci(ci_id)

        service = None
        service_id = record.get("business_service")
        if service_id:
            self.dataset.add_business_service(BusinessService(id=service_id, name=service_id))
            service = self.dataset.get_business_service(service_id)
            service.add_dependency(ci_id)

        offering_id = record.get("service_offering")
        if offering_id:
            self.dataset.add_service_offering(ServiceOffering(id=offering_id, name=offering_id))
            offering = self.dataset.get_service_offering(offering_id)
            if offering.linked_ci_id is None:
                offering.link_ci(ci_id)
            if service is not None:
                if offering.business_service_id is None:
                    offering.attach_to(service)
                service.add_service_offering(offering)


def _cell_text(values: Sequence[object], index: int) -> Optional[str]:
    if index >= len(values):
        return None
    value = values[index]
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _header_columns(values: Sequence[object]) -> Dict[int, str]:
    """Map column positions to canonical keys; the first column wins per key."""

    columns: Dict[int, str] = {}
    seen = set()
    for index, raw in enumerate(values):
        key = normalize_header(raw if raw is None else str(raw))
        if key is None or key in seen:
            continue
        seen.add(key)
        columns[index] = key
    return columns


def load_workbooks(
    paths: Iterable[str],
    dataset: Optional[CMDBDataset] = None,
    catalog: Optional[ReferenceCatalog] = None,
) -> WorkbookImporter:
    """Import every workbook in *paths* and resolve relationships across them."""

    importer = WorkbookImporter(
        dataset=dataset if dataset is not None else CMDBDataset(),
        catalog=catalog if catalog is not None else ReferenceCatalog(),
    )
    for path in paths:
        importer.load(path)
    importer.finish()
    return importer


__all__ = ["ImportSummary", "WorkbookImporter", "load_workbooks"]
