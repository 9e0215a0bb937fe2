"""Tests for the individual validation rules."""

from __future__ import annotations

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


from cmdb_audit.catalog import ReferenceCatalog
from cmdb_audit.config import EngineConfig
from cmdb_audit.dataset import CMDBDataset
from cmdb_audit.engine import validate
from cmdb_audit.findings import FindingCode, Severity
from cmdb_audit.models import (
    CI,
    BusinessService,
    ImportMetadata,
    Project,
    Relationship,
    ServiceOffering,
)
from cmdb_audit.rules import RULES


def _catalog() -> ReferenceCatalog:
    catalog = ReferenceCatalog()
    catalog.add_valid_class("Server")
    catalog.add_valid_relationship_type("Depends on")
    catalog.add_valid_location("EU")
    return catalog


def test_all_rules_are_registered() -> None:
    assert set(RULES) == {
        "blank_identity",
        "circular_dependency",
        "dangling_grouping_reference",
        "dangling_relationship",
        "duplicate_ci",
        "invalid_class",
        "invalid_relationship_type",
        "location_invalid",
        "missing_parent",
        "missing_service_offering",
        "orphan_ci",
    }


def test_dangling_relationship_reported_once_per_relationship() -> None:
    dataset = CMDBDataset()
    dataset.add_ci(CI("CI-1", name="App01"))
    broken = Relationship("CI-1", "CI-404", "Depends on", source_sheet="Links")
    both_missing = Relationship("CI-8", "CI-9", "Depends on")
    dataset.add_relationship(broken)
    dataset.add_relationship(both_missing)

    findings = validate(dataset, rules=["dangling_relationship"])

    assert [f.relationship for f in findings] == [broken, both_missing]
    assert findings[0].ci_id == "CI-1"
    assert findings[0].severity is Severity.ERROR
    assert findings[0].sheet_name == "Links"
    assert "CI-404" in findings[0].suggestion
    assert findings[1].get_context()["missing_ci_ids"] == "CI-8,CI-9"


def test_dangling_grouping_references() -> None:
    dataset = CMDBDataset()
    dataset.add_ci(CI("CI-1"))
    project = Project("FactoryNet")
    project.add_ci("CI-1")
    project.add_ci("CI-2")
    project.add_ci("CI-2")
    service = BusinessService("BS-1")
    service.add_dependency("CI-3")
    offering = ServiceOffering("SO-1", linked_ci_id="CI-4")
    dataset.add_project(project)
    dataset.add_business_service(service)
    dataset.add_service_offering(offering)

    findings = validate(dataset, rules=["dangling_grouping_reference"])

    assert [(f.get_context()["reference_kind"], f.get_context()["missing_ci_id"]) for f in findings] == [
        ("project_member", "CI-2"),
        ("business_service_dependency", "CI-3"),
        ("service_offering_link", "CI-4"),
    ]
    assert all(f.code is FindingCode.DANGLING_RELATIONSHIP for f in findings)
    assert all(f.relationship is None for f in findings)


def test_orphans_exclude_service_references() -> None:
    dataset = CMDBDataset()
    for ci_id in ["CI-1", "CI-2", "CI-3", "CI-4"]:
        dataset.add_ci(CI(ci_id))
    service = BusinessService("BS-1")
    service.add_dependency("CI-2")
    dataset.add_business_service(service)
    dataset.add_service_offering(ServiceOffering("SO-1", linked_ci_id="CI-3"))
    project = Project("FactoryNet")
    project.add_ci("CI-4")
    dataset.add_project(project)

    findings = validate(dataset, rules=["orphan_ci"])

    assert [f.ci_id for f in findings] == ["CI-1", "CI-4"]
    assert all(f.severity is Severity.WARNING for f in findings)


def test_missing_parent_from_import_declaration() -> None:
    dataset = CMDBDataset()
    parent = CI("CI-P", ci_class="Rack", name="Rack01")
    child = CI("CI-C", ci_class="Server", name="App01")
    child.put_attribute("parent_ci", "Rack01")
    lonely = CI("CI-L", ci_class="Server", name="App02")
    lonely.put_attribute("parent_ci", "Rack02")
    for ci in (parent, child, lonely):
        dataset.add_ci(ci)
    dataset.add_relationship(Relationship("CI-P", "CI-C", "Depends on::Used by"))

    findings = validate(dataset, rules=["missing_parent"])

    assert [f.ci_id for f in findings] == ["CI-L"]
    assert findings[0].get_context()["declared_parent"] == "Rack02"


def test_missing_parent_for_required_classes() -> None:
    dataset = CMDBDataset()
    dataset.add_ci(CI("RACK", ci_class="Rack"))
    dataset.add_ci(CI("SRV-1", ci_class="Server"))
    dataset.add_ci(CI("SRV-2", ci_class="Server"))
    dataset.add_ci(CI("APP", ci_class="Application"))
    dataset.add_relationship(Relationship("RACK", "SRV-1", "Contains::Contained by"))
    dataset.add_relationship(Relationship("RACK", "SRV-2", "Depends on"))
    config = EngineConfig(parent_required_classes=frozenset({"server"}))

    findings = validate(dataset, config=config, rules=["missing_parent"])

    assert [f.ci_id for f in findings] == ["SRV-2"]
    assert findings[0].code is FindingCode.MISSING_PARENT


def test_empty_catalog_never_reports_catalog_findings() -> None:
    dataset = CMDBDataset()
    dataset.add_ci(CI("CI-1", ci_class="Anything", location="Nowhere"))
    dataset.add_ci(CI("CI-2", ci_class="Else", location="Mars"))
    dataset.add_relationship(Relationship("CI-1", "CI-2", "Whatever"))

    findings = validate(
        dataset,
        ReferenceCatalog(),
        rules=["invalid_class", "invalid_relationship_type", "location_invalid"],
    )

    assert findings == []


def test_catalog_mismatches_are_reported() -> None:
    dataset = CMDBDataset()
    metadata = ImportMetadata(source_file="cmdb.xlsx", sheet_name="Servers", row_index_entity=3)
    dataset.add_ci(CI("CI-1", ci_class="Server", location="EU"))
    dataset.add_ci(CI("CI-2", ci_class="server", location="Mars", metadata=metadata))
    dataset.add_ci(CI("CI-3"))
    dataset.add_relationship(Relationship("CI-1", "CI-2", "Depends on"))
    dataset.add_relationship(Relationship("CI-2", "CI-3", "Uses"))
    dataset.add_relationship(Relationship("CI-2", "CI-404", "Runs"))

    findings = validate(
        dataset,
        _catalog(),
        rules=["invalid_class", "invalid_relationship_type", "location_invalid"],
    )

    summary = [(f.code, f.ci_id) for f in findings]
    assert summary == [
        (FindingCode.INVALID_CLASS, "CI-2"),
        (FindingCode.INVALID_RELATIONSHIP_TYPE, "CI-2"),
        (FindingCode.INVALID_RELATIONSHIP_TYPE, "CI-2"),
        (FindingCode.LOCATION_INVALID, "CI-2"),
    ]
    invalid_class = findings[0]
    assert invalid_class.severity is Severity.ERROR
    assert (invalid_class.source_file, invalid_class.row_index) == ("cmdb.xlsx", 3)
    assert findings[-1].severity is Severity.WARNING


def test_duplicate_ci_reported_once() -> None:
    dataset = CMDBDataset()
    dataset.add_ci(CI("CI-1", ci_class="Server", name="App01", location="EU"))
    dataset.add_ci(CI("CI-2", ci_class="Server", name="App01", location="EU"))
    dataset.add_ci(CI("CI-3", ci_class="Server", name="App01", location="US"))

    findings = validate(dataset, rules=["duplicate_ci"])

    assert len(findings) == 1
    context = findings[0].get_context()
    assert (context["kept_ci_id"], context["duplicate_ci_id"]) == ("CI-1", "CI-2")
    assert findings[0].ci_id == "CI-2"


def test_duplicates_beyond_the_first_each_get_a_finding() -> None:
    dataset = CMDBDataset()
    for ci_id in ["CI-1", "CI-2", "CI-3"]:
        dataset.add_ci(CI(ci_id, ci_class="Server", name="App01", location="EU"))
    dataset.add_ci(CI("CI-4", ci_class="Server"))
    dataset.add_ci(CI("CI-5", ci_class="Server"))

    findings = validate(dataset, rules=["duplicate_ci"])

    assert [(f.get_context()["kept_ci_id"], f.ci_id) for f in findings] == [
        ("CI-1", "CI-2"),
        ("CI-1", "CI-3"),
    ]


def test_missing_service_offering_is_informational() -> None:
    dataset = CMDBDataset()
    dataset.add_business_service(BusinessService("BS-1", name="DMS"))
    offered = BusinessService("BS-2", name="API")
    offered.add_service_offering("SO-1")
    dataset.add_business_service(offered)

    findings = validate(dataset, rules=["missing_service_offering"])

    assert [f.get_context()["business_service_id"] for f in findings] == ["BS-1"]
    assert findings[0].severity is Severity.INFO


def test_blank_identity_is_a_generic_error() -> None:
    dataset = CMDBDataset()
    dataset.add_ci(CI("", ci_class="Server", name="Nameless"))
    dataset.add_ci(CI("CI-1", ci_class="Server", name="App01"))

    findings = validate(dataset, rules=["blank_identity", "orphan_ci"])

    assert [(f.code, f.ci_id) for f in findings] == [
        (FindingCode.GENERIC_ERROR, ""),
        (FindingCode.ORPHAN_CI, "CI-1"),
    ]


def test_whitespace_identity_is_excluded_from_every_other_rule() -> None:
    dataset = CMDBDataset()
    dataset.add_ci(CI("   ", ci_class="Server", name="Ghost"))
    dataset.add_ci(CI("CI-1", ci_class="Server"))
    dataset.add_relationship(Relationship("CI-1", "   ", "Depends on"))

    findings = validate(dataset)

    assert [(f.code, f.ci_id) for f in findings] == [
        (FindingCode.GENERIC_ERROR, "   "),
        (FindingCode.DANGLING_RELATIONSHIP, "CI-1"),
    ]
    assert dataset.snapshot().has_ci("   ") is False
