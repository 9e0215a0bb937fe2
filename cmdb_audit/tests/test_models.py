"""Tests for the CMDB entity models."""

from __future__ import annotations

import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


from cmdb_audit.models import (
    CI,
    BusinessService,
    ImportMetadata,
    Project,
    Relationship,
    ServiceOffering,
    is_blank_id,
)


def test_ci_equality_uses_identity_only() -> None:
    """Two CIs with the same id are equal even when other fields differ."""

    first = CI("CI-001", ci_class="Server", name="App01")
    second = CI("CI-001", ci_class="Database", name="Other")

    assert first == second
    assert hash(first) == hash(second)
    assert first != CI("CI-002", ci_class="Server", name="App01")
    assert "App01" in str(first)


def test_ci_identity_cannot_be_reassigned() -> None:
    ci = CI("CI-001", name="App01")

    with pytest.raises(AttributeError):
        ci.id = "CI-999"
    ci.name = "App02"
    assert ci.name == "App02"


def test_ci_update_applies_field_group() -> None:
    ci = CI("CI-001")

    ci.update(ci_class="Server", location="EU", environment="prod")

    assert (ci.ci_class, ci.location, ci.environment) == ("Server", "EU", "prod")
    with pytest.raises(AttributeError):
        ci.update(id="CI-002")
    with pytest.raises(AttributeError):
        ci.update(colour="blue")


def test_ci_attributes_are_copied_and_ignore_none() -> None:
    ci = CI("CI-001")
    ci.put_attribute("owner", "ops")
    ci.put_attribute(None, "x")
    ci.put_attribute("serial", None)

    attributes = ci.get_attributes()
    attributes["owner"] = "changed"

    assert ci.get_attributes() == {"owner": "ops"}


def test_ci_attributes_accept_concurrent_writers() -> None:
    ci = CI("CI-002", ci_class="Database", name="DB01")

    with ThreadPoolExecutor(max_workers=4) as pool:
        for index in range(100):
            pool.submit(ci.put_attribute, f"key-{index}", "ok")

    assert len(ci.get_attributes()) == 100


def test_relationship_equality_uses_source_target_and_type() -> None:
    app = CI("CI-1", ci_class="App", name="DMS Frontend")
    db = CI("CI-2", ci_class="DB", name="DMS Database")

    depends = Relationship.between(app, db, "Depends on", source_sheet="Apps")
    same = Relationship("CI-1", "CI-2", "Depends on", source_sheet="Other sheet")
    parallel = Relationship.between(app, db, "Uses")

    assert depends.source_id == "CI-1"
    assert depends.target_id == "CI-2"
    assert depends == same
    assert len({depends, same, parallel}) == 2
    assert str(depends) == "CI-1 -Depends on-> CI-2"


def test_project_tracks_member_ids_in_order() -> None:
    project = Project("FactoryNet", code="FN01")
    project.add_ci(CI("CI-10", ci_class="PLC", name="PLC-001"))
    project.add_ci("CI-11")
    project.add_ci(None)

    assert project.ci_ids == ("CI-10", "CI-11")
    project.remove_ci("CI-10")
    assert project.ci_ids == ("CI-11",)
    assert "ciCount=1" in str(project)
    project.clear_cis()
    assert project.ci_ids == ()


def test_project_accepts_concurrent_updates() -> None:
    project = Project("FactoryNet")

    with ThreadPoolExecutor(max_workers=6) as pool:
        for index in range(100):
            pool.submit(project.add_ci, CI(f"CI-{index}", ci_class="Server"))
            pool.submit(project.update, location=f"Site-{index}")

    assert len(project.ci_ids) == 100
    assert project.location is not None


def test_business_service_and_offering_link_by_identity() -> None:
    service = BusinessService("BS-1", name="Document Mgmt")
    offering = ServiceOffering("SO-1", name="DMS Portal")

    service.add_service_offering(offering)
    service.add_service_offering("SO-1")
    offering.attach_to(service)
    offering.link_ci(CI("CI-1"))
    service.add_dependencies(["CI-1", CI("CI-2")])

    assert service.service_offering_ids == ("SO-1",)
    assert service.dependency_ids == ("CI-1", "CI-2")
    assert offering.business_service_id == "BS-1"
    assert offering.linked_ci_id == "CI-1"
    service.clear_dependencies()
    assert service.dependency_ids == ()


def test_import_metadata_row_index_prefers_entity_row() -> None:
    assert ImportMetadata(row_index_entity=4, row_index_relation=9).row_index() == 4
    assert ImportMetadata(row_index_relation=9).row_index() == 9
    assert ImportMetadata().row_index() is None


@pytest.mark.parametrize(
    "ci_id, blank",
    [(None, True), ("", True), ("  \t", True), ("CI-1", False), (" CI-1 ", False), (0, False)],
)
def test_is_blank_id(ci_id, blank: bool) -> None:
    assert is_blank_id(ci_id) is blank
