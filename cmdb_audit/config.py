"""Tunable settings for a validation pass."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Optional

from .findings import DEFAULT_SEVERITIES, FindingCode, Severity

# Relationship types whose edges mean "source cannot work without target".
# Entries are compared case-insensitively against Relationship.type.
DEFAULT_DEPENDENCY_TYPES: FrozenSet[str] = frozenset(
    {
        "depends on",
        "depends on::used by",
        "runs on",
        "runs on::runs",
        "hosted on",
        "hosted on::hosts",
        "uses",
        "uses::used by",
        "virtualized by::virtualizes",
    }
)

# Relationship types that attach a child CI below its parent (parent -> child).
DEFAULT_STRUCTURAL_TYPES: FrozenSet[str] = frozenset(
    {
        "contains",
        "contains::contained by",
        "parent",
        "parent of",
        "members::member of",
        "hosts",
        "hosts::hosted on",
    }
)

DEFAULT_MAX_WORKERS = 4


def _folded(value: object) -> Optional[str]:
    # Imported cells are not always strings; compare their text form.
    if value is None:
        return None
    return str(value).strip().casefold() or None


def _fold(values: Iterable[object]) -> FrozenSet[str]:
    return frozenset(key for key in map(_folded, values) if key)


@dataclass(frozen=True)
class EngineConfig:
    """Settings consulted by the rules of one validation pass.

    ``parent_required_classes`` lists CI classes that must hang below a parent
    through a structural relationship; a CI that carries a ``parent_ci``
    attribute from import is expected to have a parent regardless of class.
    """

    dependency_types: FrozenSet[str] = DEFAULT_DEPENDENCY_TYPES
    structural_types: FrozenSet[str] = DEFAULT_STRUCTURAL_TYPES
    parent_required_classes: FrozenSet[str] = frozenset()
    severity_overrides: Dict[FindingCode, Severity] = field(default_factory=dict)
    max_workers: int = DEFAULT_MAX_WORKERS

    def __post_init__(self) -> None:
        object.__setattr__(self, "dependency_types", _fold(self.dependency_types))
        object.__setattr__(self, "structural_types", _fold(self.structural_types))
        object.__setattr__(
            self, "parent_required_classes", _fold(self.parent_required_classes)
        )
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")

    @classmethod
    def from_options(
        cls,
        *,
        dependency_types: Optional[Iterable[str]] = None,
        structural_types: Optional[Iterable[str]] = None,
        parent_required_classes: Optional[Iterable[str]] = None,
        max_workers: Optional[int] = None,
    ) -> "EngineConfig":
        """Build a config, keeping defaults for options that were not given."""

        kwargs = {}
        if dependency_types:
            kwargs["dependency_types"] = frozenset(dependency_types)
        if structural_types:
            kwargs["structural_types"] = frozenset(structural_types)
        if parent_required_classes:
            kwargs["parent_required_classes"] = frozenset(parent_required_classes)
        if max_workers is not None:
            kwargs["max_workers"] = max_workers
        return cls(**kwargs)

    def is_dependency_type(self, rel_type: object) -> bool:
        return _folded(rel_type) in self.dependency_types

    def is_structural_type(self, rel_type: object) -> bool:
        return _folded(rel_type) in self.structural_types

    def requires_parent(self, ci_class: object) -> bool:
        return _folded(ci_class) in self.parent_required_classes

    def severity_for(self, code: FindingCode) -> Severity:
        return self.severity_overrides.get(code, DEFAULT_SEVERITIES[code])


__all__ = [
    "DEFAULT_DEPENDENCY_TYPES",
    "DEFAULT_MAX_WORKERS",
    "DEFAULT_STRUCTURAL_TYPES",
    "EngineConfig",
]
