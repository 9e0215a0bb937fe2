"""In-memory container for an imported CMDB dataset and its findings."""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
import threading
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .errors import require
from .findings import ValidationFinding
from .models import CI, BusinessService, Project, Relationship, ServiceOffering, is_blank_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DatasetSnapshot:
    """Mutually consistent copy of every dataset collection at one instant."""

    configuration_items: Tuple[CI, ...] = ()
    relationships: Tuple[Relationship, ...] = ()
    projects: Tuple[Project, ...] = ()
    business_services: Tuple[BusinessService, ...] = ()
    service_offerings: Tuple[ServiceOffering, ...] = ()
    _ci_index: Dict[str, CI] = field(default_factory=dict, repr=False, compare=False)

    def has_ci(self, ci_id: Optional[str]) -> bool:
        return ci_id is not None and ci_id in self._ci_index

    def is_empty(self) -> bool:
        return not (
            self.configuration_items
            or self.relationships
            or self.projects
            or self.business_services
            or self.service_offerings
        )


class CMDBDataset:
    """Thread-safe aggregate of CIs, relationships, groupings and findings.

    Collections are append-only: entities are added or the whole dataset is
    cleared, never removed one at a time. All reads return tuples copied under the
    dataset lock, so a caller iterating a result never observes later appends or a
    partially applied :meth:`clear_all`.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._cis: List[CI] = []
        self._ci_index: Dict[str, CI] = {}
        self._relationships: List[Relationship] = []
        self._relationship_keys: Set[Relationship] = set()
        self._projects: List[Project] = []
        self._project_index: Dict[str, Project] = {}
        self._business_services: List[BusinessService] = []
        self._business_service_index: Dict[str, BusinessService] = {}
        self._service_offerings: List[ServiceOffering] = []
        self._service_offering_index: Dict[str, ServiceOffering] = {}
        self._findings: List[ValidationFinding] = []

    # ------------------------------------------------------------------
    # Mutators

    def add_ci(self, ci: CI) -> bool:
        """Append *ci*; returns ``False`` if a CI with the same id is already present."""

        require(ci, CI, "ci")
        with self._lock:
            if ci.id in self._ci_index:
                logger.debug("Ignoring CI with duplicate id %r", ci.id)
                return False
            self._cis.append(ci)
            self._ci_index[ci.id] = ci
        return True

    def add_relationship(self, relationship: Relationship) -> bool:
        """Append *relationship* unless an equal one (same source, target, type) exists."""

        require(relationship, Relationship, "relationship")
        with self._lock:
            if relationship in self._relationship_keys:
                logger.debug("Ignoring duplicate relationship %s", relationship)
                return False
            self._relationships.append(relationship)
            self._relationship_keys.add(relationship)
        return True

    def add_project(self, project: Project) -> bool:
        require(project, Project, "project")
        with self._lock:
            if project.name in self._project_index:
                return False
            self._projects.append(project)
            self._project_index[project.name] = project
        return True

    def add_business_service(self, service: BusinessService) -> bool:
        require(service, BusinessService, "service")
        with self._lock:
            if service.id in self._business_service_index:
                return False
            self._business_services.append(service)
            self._business_service_index[service.id] = service
        return True

    def add_service_offering(self, offering: ServiceOffering) -> bool:
        require(offering, ServiceOffering, "offering")
        with self._lock:
            if offering.id in self._service_offering_index:
                return False
            self._service_offerings.append(offering)
            self._service_offering_index[offering.id] = offering
        return True

    def add_finding(self, finding: ValidationFinding) -> None:
        require(finding, ValidationFinding, "finding")
        with self._lock:
            self._findings.append(finding)

    def add_findings(self, findings: Iterable[ValidationFinding]) -> None:
        """Append *findings* as one batch; readers see all of them or none."""

        batch = [require(finding, ValidationFinding, "finding") for finding in findings]
        with self._lock:
            self._findings.extend(batch)

    def clear_findings(self) -> None:
        with self._lock:
            self._findings.clear()

    def replace_findings(self, findings: Iterable[ValidationFinding]) -> None:
        """Swap the stored findings for *findings* in one step.

        Readers see either the previous findings or the new batch, never an
        empty list in between.
        """

        batch = [require(finding, ValidationFinding, "finding") for finding in findings]
        with self._lock:
            self._findings[:] = batch

    def clear_all(self) -> None:
        """Empty every collection atomically."""

        with self._lock:
            self._cis.clear()
            self._ci_index.clear()
            self._relationships.clear()
            self._relationship_keys.clear()
            self._projects.clear()
            self._project_index.clear()
            self._business_services.clear()
            self._business_service_index.clear()
            self._service_offerings.clear()
            self._service_offering_index.clear()
            self._findings.clear()

    # ------------------------------------------------------------------
    # Readers

    def get_configuration_items(self) -> Tuple[CI, ...]:
        with self._lock:
            return tuple(self._cis)

    def get_relationships(self) -> Tuple[Relationship, ...]:
        with self._lock:
            return tuple(self._relationships)

    def get_projects(self) -> Tuple[Project, ...]:
        with self._lock:
            return tuple(self._projects)

    def get_business_services(self) -> Tuple[BusinessService, ...]:
        with self._lock:
            return tuple(self._business_services)

    def get_service_offerings(self) -> Tuple[ServiceOffering, ...]:
        with self._lock:
            return tuple(self._service_offerings)

    def get_findings(self) -> Tuple[ValidationFinding, ...]:
        with self._lock:
            return tuple(self._findings)

    def get_ci(self, ci_id: Optional[str]) -> Optional[CI]:
        if ci_id is None:
            return None
        with self._lock:
            return self._ci_index.get(ci_id)

    def get_project(self, name: Optional[str]) -> Optional[Project]:
        if name is None:
            return None
        with self._lock:
            return self._project_index.get(name)

    def get_business_service(self, service_id: Optional[str]) -> Optional[BusinessService]:
        if service_id is None:
            return None
        with self._lock:
            return self._business_service_index.get(service_id)

    def get_service_offering(self, offering_id: Optional[str]) -> Optional[ServiceOffering]:
        if offering_id is None:
            return None
        with self._lock:
            return self._service_offering_index.get(offering_id)

    def snapshot(self) -> DatasetSnapshot:
        """Return every entity collection copied under a single lock acquisition."""

        with self._lock:
            return DatasetSnapshot(
                configuration_items=tuple(self._cis),
                relationships=tuple(self._relationships),
                projects=tuple(self._projects),
                business_services=tuple(self._business_services),
                service_offerings=tuple(self._service_offerings),
                _ci_index={
                    ci_id: ci for ci_id, ci in self._ci_index.items() if not is_blank_id(ci_id)
                },
            )

    def __str__(self) -> str:
        with self._lock:
            return (
                f"CMDBDataset{{CIs={len(self._cis)}, Rels={len(self._relationships)}, "
                f"Services={len(self._business_services)}, "
                f"Offerings={len(self._service_offerings)}, "
                f"Projects={len(self._projects)}, Findings={len(self._findings)}}}"
            )


__all__ = ["CMDBDataset", "DatasetSnapshot"]
