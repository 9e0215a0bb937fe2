"""Reference catalog of approved classification values."""
from __future__ import annotations

from dataclasses import dataclass
import threading
from typing import AbstractSet, FrozenSet, Optional


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


@dataclass(frozen=True)
class CatalogSnapshot:
    """Immutable copy of a :class:`ReferenceCatalog` used by one validation pass.

    An empty dimension means "not loaded" and never produces findings; the
    ``check_*`` helpers return ``None`` in that case, and otherwise whether the
    value is approved.
    """

    classes: FrozenSet[str] = frozenset()
    relationship_types: FrozenSet[str] = frozenset()
    locations: FrozenSet[str] = frozenset()
    environments: FrozenSet[str] = frozenset()

    @staticmethod
    def _check(values: FrozenSet[str], value: Optional[str]) -> Optional[bool]:
        if not values:
            return None
        return value is not None and value in values

    def check_class(self, value: Optional[str]) -> Optional[bool]:
        return self._check(self.classes, value)

    def check_relationship_type(self, value: Optional[str]) -> Optional[bool]:
        return self._check(self.relationship_types, value)

    def check_location(self, value: Optional[str]) -> Optional[bool]:
        return self._check(self.locations, value)


class ReferenceCatalog:
    """Registry of globally valid classes, relationship types, locations and environments.

    Mutators are add-only and ignore blank values. Membership tests are exact and
    case-sensitive. Readers never wait on writers: every write swaps in a new
    frozenset, and readers use whichever set is current.
    """

    def __init__(self) -> None:
        self._write_lock = threading.Lock()
        self._classes: FrozenSet[str] = frozenset()
        self._relationship_types: FrozenSet[str] = frozenset()
        self._locations: FrozenSet[str] = frozenset()
        self._environments: FrozenSet[str] = frozenset()

    def _add(self, attr: str, value: Optional[str]) -> None:
        if _is_blank(value):
            return
        with self._write_lock:
            setattr(self, attr, getattr(self, attr) | {value})

    def add_valid_class(self, class_name: Optional[str]) -> None:
        self._add("_classes", class_name)

    def add_valid_relationship_type(self, rel_type: Optional[str]) -> None:
        self._add("_relationship_types", rel_type)

    def add_valid_location(self, location: Optional[str]) -> None:
        self._add("_locations", location)

    def add_valid_environment(self, environment: Optional[str]) -> None:
        self._add("_environments", environment)

    @property
    def valid_classes(self) -> AbstractSet[str]:
        return self._classes

    @property
    def valid_relationship_types(self) -> AbstractSet[str]:
        return self._relationship_types

    @property
    def valid_locations(self) -> AbstractSet[str]:
        return self._locations

    @property
    def valid_environments(self) -> AbstractSet[str]:
        return self._environments

    def is_valid_class(self, class_name: Optional[str]) -> bool:
        return class_name is not None and class_name in self._classes

    def is_valid_relationship_type(self, rel_type: Optional[str]) -> bool:
        return rel_type is not None and rel_type in self._relationship_types

    def is_valid_location(self, location: Optional[str]) -> bool:
        return location is not None and location in self._locations

    def is_valid_environment(self, environment: Optional[str]) -> bool:
        return environment is not None and environment in self._environments

    def is_empty(self) -> bool:
        return not (
            self._classes or self._relationship_types or self._locations or self._environments
        )

    def clear_all(self) -> None:
        """Empty every dimension in one step."""

        with self._write_lock:
            self._classes = frozenset()
            self._relationship_types = frozenset()
            self._locations = frozenset()
            self._environments = frozenset()

    def snapshot(self) -> CatalogSnapshot:
        with self._write_lock:
            return CatalogSnapshot(
                classes=self._classes,
                relationship_types=self._relationship_types,
                locations=self._locations,
                environments=self._environments,
            )

    def __str__(self) -> str:
        return (
            f"ReferenceCatalog{{classes={len(self._classes)}, "
            f"relTypes={len(self._relationship_types)}, "
            f"locations={len(self._locations)}, "
            f"environments={len(self._environments)}}}"
        )


__all__ = ["CatalogSnapshot", "ReferenceCatalog"]
