"""Data models for configuration items and the entities that group them.

Entities reference each other by identity (CI id, business service id) rather
than by object pointer. The owning :class:`~cmdb_audit.dataset.CMDBDataset`
resolves those identities when a caller needs the referenced object.

Each mutable entity carries one coarse lock that guards its whole field group,
so a concurrent reader never sees half of an :meth:`update` applied.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
import threading
from typing import Dict, Iterable, List, Optional, Tuple, Union


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ImportMetadata:
    """Provenance of a record parsed from a spreadsheet row."""

    source_file: Optional[str] = None
    sheet_name: Optional[str] = None
    row_index_entity: int = -1
    row_index_relation: int = -1
    imported_at: datetime = field(default_factory=_utcnow, compare=False)

    def row_index(self) -> Optional[int]:
        """Return the entity row, falling back to the relation row, or ``None``."""

        if self.row_index_entity >= 0:
            return self.row_index_entity
        if self.row_index_relation >= 0:
            return self.row_index_relation
        return None


class _LockedEntity:
    """Mixin providing a single lock for a dataclass field group."""

    _immutable_fields: Tuple[str, ...] = ()

    def __setattr__(self, name: str, value) -> None:
        if name in self._immutable_fields and name in self.__dict__:
            raise AttributeError(
                f"{type(self).__name__}.{name} is an identity field and cannot be reassigned"
            )
        super().__setattr__(name, value)

    def update(self, **changes) -> None:
        """Apply *changes* atomically with respect to other ``update`` calls."""

        allowed = {f.name for f in fields(self) if f.init} - set(self._immutable_fields)
        unknown = sorted(set(changes) - allowed)
        if unknown:
            raise AttributeError(
                f"{type(self).__name__} has no updatable field(s): {', '.join(unknown)}"
            )
        with self._lock:
            for name, value in changes.items():
                setattr(self, name, value)


def is_blank_id(ci_id: object) -> bool:
    """True for a missing, empty or whitespace-only identity."""

    return ci_id is None or not str(ci_id).strip()


def entity_id(value: Union["CI", str, None]) -> Optional[str]:
    """Return the CI identity for *value*, which may be a :class:`CI` or an id."""

    if value is None:
        return None
    if isinstance(value, CI):
        return value.id
    return str(value)


@dataclass(eq=False)
class CI(_LockedEntity):
    """A single configuration item (server, application, PLC, ...)."""

    _immutable_fields = ("id",)

    id: str
    ci_class: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    project: Optional[str] = None
    environment: Optional[str] = None
    attributes: Dict[str, str] = field(default_factory=dict)
    metadata: Optional[ImportMetadata] = None
    _lock: threading.RLock = field(
        default_factory=threading.RLock, init=False, repr=False, compare=False
    )

    def put_attribute(self, key: Optional[str], value: Optional[str]) -> None:
        """Record or update an extra attribute; ``None`` keys or values are ignored."""

        if key is None or value is None:
            return
        with self._lock:
            self.attributes[key] = value

    def get_attributes(self) -> Dict[str, str]:
        """Return a point-in-time copy of the extra attributes."""

        with self._lock:
            return dict(self.attributes)

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, CI):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __str__(self) -> str:
        return f"{self.name} [{self.ci_class}]"


@dataclass(frozen=True)
class Relationship:
    """A directed, typed edge from ``source_id`` to ``target_id``.

    Two relationships are equal when source, target and type match, so parallel
    edges of different types between the same pair are allowed while exact
    duplicates collapse.
    """

    source_id: Optional[str]
    target_id: Optional[str]
    type: Optional[str]
    source_sheet: Optional[str] = field(default=None, compare=False)
    metadata: Optional[ImportMetadata] = field(default=None, compare=False)

    @classmethod
    def between(
        cls,
        source: Union[CI, str, None],
        target: Union[CI, str, None],
        rel_type: Optional[str],
        *,
        source_sheet: Optional[str] = None,
        metadata: Optional[ImportMetadata] = None,
    ) -> "Relationship":
        """Build a relationship from CI objects or their identities."""

        return cls(
            source_id=entity_id(source),
            target_id=entity_id(target),
            type=rel_type,
            source_sheet=source_sheet,
            metadata=metadata,
        )

    def __str__(self) -> str:
        source = self.source_id if self.source_id is not None else "<?>"
        target = self.target_id if self.target_id is not None else "<?>"
        return f"{source} -{self.type}-> {target}"


@dataclass(eq=False)
class Project(_LockedEntity):
    """A project, factory or site grouping of configuration items."""

    _immutable_fields = ("name",)

    name: str
    code: Optional[str] = None
    location: Optional[str] = None
    _ci_ids: List[str] = field(default_factory=list, init=False, repr=False)
    _lock: threading.RLock = field(
        default_factory=threading.RLock, init=False, repr=False, compare=False
    )

    @property
    def ci_ids(self) -> Tuple[str, ...]:
        """Member CI identities in insertion order."""

        with self._lock:
            return tuple(self._ci_ids)

    def add_ci(self, ci: Union[CI, str, None]) -> None:
        ci_id = entity_id(ci)
        if ci_id is None:
            return
        with self._lock:
            self._ci_ids.append(ci_id)

    def remove_ci(self, ci: Union[CI, str, None]) -> None:
        ci_id = entity_id(ci)
        with self._lock:
            if ci_id in self._ci_ids:
                self._ci_ids.remove(ci_id)

    def clear_cis(self) -> None:
        with self._lock:
            self._ci_ids.clear()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Project):
            return NotImplemented
        return self.name == other.name

    def __hash__(self) -> int:
        return hash(self.name)

    def __str__(self) -> str:
        return (
            f"Project{{name='{self.name}', code='{self.code}', "
            f"location='{self.location}', ciCount={len(self.ci_ids)}}}"
        )


@dataclass(eq=False)
class BusinessService(_LockedEntity):
    """A business-facing service made of offerings and supporting CIs."""

    _immutable_fields = ("id",)

    id: str
    name: Optional[str] = None
    description: Optional[str] = None
    owner: Optional[str] = None
    _offering_ids: List[str] = field(default_factory=list, init=False, repr=False)
    _dependency_ids: List[str] = field(default_factory=list, init=False, repr=False)
    _lock: threading.RLock = field(
        default_factory=threading.RLock, init=False, repr=False, compare=False
    )

    @property
    def service_offering_ids(self) -> Tuple[str, ...]:
        with self._lock:
            return tuple(self._offering_ids)

    @property
    def dependency_ids(self) -> Tuple[str, ...]:
        """Identities of the CIs this service depends on."""

        with self._lock:
            return tuple(self._dependency_ids)

    def add_service_offering(self, offering: Union["ServiceOffering", str, None]) -> None:
        if offering is None:
            return
        offering_id = offering.id if isinstance(offering, ServiceOffering) else str(offering)
        with self._lock:
            if offering_id not in self._offering_ids:
                self._offering_ids.append(offering_id)

    def add_dependency(self, ci: Union[CI, str, None]) -> None:
        ci_id = entity_id(ci)
        if ci_id is None:
            return
        with self._lock:
            self._dependency_ids.append(ci_id)

    def add_dependencies(self, cis: Iterable[Union[CI, str]]) -> None:
        for ci in cis:
            self.add_dependency(ci)

    def clear_dependencies(self) -> None:
        with self._lock:
            self._dependency_ids.clear()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BusinessService):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __str__(self) -> str:
        return (
            f"BusinessService{{id='{self.id}', name='{self.name}', "
            f"offerings={len(self.service_offering_ids)}, deps={len(self.dependency_ids)}}}"
        )


@dataclass(eq=False)
class ServiceOffering(_LockedEntity):
    """A consumable offering of a business service, optionally backed by a CI."""

    _immutable_fields = ("id",)

    id: str
    name: Optional[str] = None
    description: Optional[str] = None
    sla: Optional[str] = None
    status: Optional[str] = None
    business_service_id: Optional[str] = None
    linked_ci_id: Optional[str] = None
    _lock: threading.RLock = field(
        default_factory=threading.RLock, init=False, repr=False, compare=False
    )

    def link_ci(self, ci: Union[CI, str, None]) -> None:
        self.update(linked_ci_id=entity_id(ci))

    def attach_to(self, service: Union[BusinessService, str, None]) -> None:
        """Set the owning business service back-reference."""

        service_id = service.id if isinstance(service, BusinessService) else service
        self.update(business_service_id=service_id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ServiceOffering):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __str__(self) -> str:
        return f"ServiceOffering{{id='{self.id}', name='{self.name}', status='{self.status}'}}"


__all__ = [
    "BusinessService",
    "CI",
    "ImportMetadata",
    "Project",
    "Relationship",
    "ServiceOffering",
    "entity_id",
    "is_blank_id",
]
