"""Tests for importing CMDB workbooks with openpyxl."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

openpyxl = pytest.importorskip("openpyxl")

from cmdb_audit.engine import validate
from cmdb_audit.errors import WorkbookImportError
from cmdb_audit.findings import FindingCode
from cmdb_audit.workbook import WorkbookImporter, load_workbooks

SERVER_HEADERS = [
    "CI Name",
    "Class",
    "Location",
    "Parent CI",
    "Relationship Type",
    "Project",
    "Business Service",
    "Service Offering",
    "Owner Team",
]


def write_cmdb_workbook(path: Path, with_catalog: bool = True) -> Path:
    workbook = openpyxl.Workbook()
    servers = workbook.active
    servers.title = "Servers"
    servers.append(SERVER_HEADERS)
    servers.append(["Rack01", "Rack", "EU", None, None, "FactoryNet", None, None, "infra"])
    servers.append(
        [
            "App01",
            "Server",
            "EU",
            "Rack01",
            "Contains::Contained by",
            "FactoryNet",
            "Document Management",
            "DMS Portal",
            "apps",
        ]
    )
    servers.append(
        [
            "DB01",
            "Database",
            "Mars",
            "Rack01",
            "Contains::Contained by",
            None,
            "Document Management",
            None,
            None,
        ]
    )
    servers.append([None, None, None, None, None, None, None, None, "nobody"])

    if with_catalog:
        catalog = workbook.create_sheet("Catalog")
        catalog.append(["Class", "Relationship", "Location"])
        catalog.append(["Server", "Contains::Contained by", "EU"])
        catalog.append(["Rack"])
        catalog.append(["Database"])

    workbook.save(path)
    return path


def test_load_workbook_populates_dataset_and_catalog(tmp_path) -> None:
    path = write_cmdb_workbook(tmp_path / "cmdb.xlsx")

    importer = load_workbooks([str(path)])
    dataset = importer.dataset

    assert [ci.id for ci in dataset.get_configuration_items()] == ["Rack01", "App01", "DB01"]
    app = dataset.get_ci("App01")
    assert (app.ci_class, app.location, app.project) == ("Server", "EU", "FactoryNet")
    assert app.get_attributes()["owner_team"] == "apps"
    assert app.metadata.source_file == "cmdb.xlsx"
    assert app.metadata.sheet_name == "Servers"
    assert app.metadata.row_index_entity == 3
    assert dataset.get_ci("Rack01").metadata.row_index_relation == -1

    relationships = dataset.get_relationships()
    assert [(r.source_id, r.target_id, r.type) for r in relationships] == [
        ("Rack01", "App01", "Contains::Contained by"),
        ("Rack01", "DB01", "Contains::Contained by"),
    ]
    assert relationships[0].source_sheet == "Servers"

    assert dataset.get_project("FactoryNet").ci_ids == ("Rack01", "App01")
    service = dataset.get_business_service("Document Management")
    assert service.dependency_ids == ("App01", "DB01")
    assert service.service_offering_ids == ("DMS Portal",)
    offering = dataset.get_service_offering("DMS Portal")
    assert (offering.linked_ci_id, offering.business_service_id) == ("App01", "Document Management")

    assert importer.catalog.valid_classes == frozenset({"Server", "Rack", "Database"})
    assert importer.catalog.valid_locations == frozenset({"EU"})
    assert importer.summary.cis == 3
    assert importer.summary.relationships == 2
    assert importer.summary.skipped_rows == 1


def test_imported_workbook_validates_with_provenance(tmp_path) -> None:
    path = write_cmdb_workbook(tmp_path / "cmdb.xlsx")
    importer = load_workbooks([str(path)])

    findings = validate(importer.dataset, importer.catalog)

    assert [(f.code, f.ci_id) for f in findings] == [(FindingCode.LOCATION_INVALID, "DB01")]
    finding = findings[0]
    assert (finding.source_file, finding.sheet_name, finding.row_index) == ("cmdb.xlsx", "Servers", 4)


def test_parents_resolve_across_workbooks(tmp_path) -> None:
    first = write_cmdb_workbook(tmp_path / "servers.xlsx", with_catalog=False)
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.title = "Applications"
    sheet.append(["Name", "Class", "Parent CI", "Relationship", "Description"])
    sheet.append(["Portal", "Application", "App01", "Runs on::Runs", "Intranet portal"])
    sheet.append(["DB01", "Database", None, None, "Document store"])
    sheet.append(["Ghost", "Application", "Nowhere01", "Runs on::Runs", None])
    second = tmp_path / "apps.xlsx"
    workbook.save(second)

    importer = load_workbooks([str(first), str(second)])
    dataset = importer.dataset

    pairs = {(r.source_id, r.target_id) for r in dataset.get_relationships()}
    assert ("App01", "Portal") in pairs
    assert ("Nowhere01", "Ghost") in pairs
    db = dataset.get_ci("DB01")
    assert db.description == "Document store"
    assert db.location == "Mars"
    assert db.metadata.source_file == "servers.xlsx"

    findings = validate(dataset, rules=["dangling_relationship"])
    assert [f.ci_id for f in findings] == ["Ghost"]


def test_sheet_without_identity_column_is_skipped(tmp_path) -> None:
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.title = "Notes"
    sheet.append(["Comment", "Author"])
    sheet.append(["Review pending", "ops"])
    path = tmp_path / "notes.xlsx"
    workbook.save(path)

    importer = WorkbookImporter()
    summary = importer.load(str(path))
    importer.finish()

    assert summary.sheets == 1
    assert importer.dataset.get_configuration_items() == ()


def test_missing_workbook_raises_import_error(tmp_path) -> None:
    with pytest.raises(WorkbookImportError) as excinfo:
        load_workbooks([str(tmp_path / "absent.xlsx")])

    assert excinfo.value.code == "WORKBOOK_IMPORT"
    assert excinfo.value.path.endswith("absent.xlsx")


def test_corrupt_workbook_raises_import_error(tmp_path) -> None:
    path = tmp_path / "broken.xlsx"
    path.write_text("not a spreadsheet", encoding="utf-8")

    with pytest.raises(WorkbookImportError):
        WorkbookImporter().load(str(path))
