"""Validation rule entry points and registry helpers."""
from __future__ import annotations

from dataclasses import dataclass
import importlib
import pkgutil
from types import MappingProxyType
from typing import Callable, Dict, Iterable, Mapping

from ..catalog import CatalogSnapshot
from ..config import EngineConfig
from ..dataset import DatasetSnapshot
from ..findings import ValidationFinding
from ..graph import RelationshipGraph


@dataclass(frozen=True)
class RuleContext:
    """Read-only inputs shared by every rule of one validation pass."""

    graph: RelationshipGraph
    dataset: DatasetSnapshot
    catalog: CatalogSnapshot
    config: EngineConfig


Rule = Callable[[RuleContext], Iterable[ValidationFinding]]


class RuleRegistry:
    """Registry that stores available validation rules in registration order."""

    def __init__(self) -> None:
        self._rules: Dict[str, Rule] = {}

    @staticmethod
    def _normalize(name: str) -> str:
        if not name:
            raise ValueError("Rule name must be a non-empty string")
        return name.strip().lower()

    def register(self, name: str) -> Callable[[Rule], Rule]:
        """Return a decorator that registers *name* for the wrapped rule."""

        normalized = self._normalize(name)

        def decorator(func: Rule) -> Rule:
            if normalized in self._rules and self._rules[normalized] is not func:
                raise ValueError(f"Rule '{name}' is already registered")
            self._rules[normalized] = func
            return func

        return decorator

    def as_mapping(self) -> Mapping[str, Rule]:
        return MappingProxyType(self._rules)


RULE_REGISTRY = RuleRegistry()
register_rule = RULE_REGISTRY.register


def get_rules() -> Mapping[str, Rule]:
    """Return a read-only mapping of registered rules."""

    return RULE_REGISTRY.as_mapping()


def _import_rule_modules() -> None:
    """Import modules that register rules via decorators."""

    package_name = __name__
    package_paths = getattr(__spec__, "submodule_search_locations", None)
    if not package_paths:
        return

    for module_info in sorted(pkgutil.iter_modules(package_paths), key=lambda info: info.name):
        module_name = module_info.name
        if module_name.startswith("_"):
            continue
        importlib.import_module(f"{package_name}.{module_name}")


_import_rule_modules()

RULES: Mapping[str, Rule] = get_rules()

__all__ = [
    "RULES",
    "RULE_REGISTRY",
    "Rule",
    "RuleContext",
    "get_rules",
    "register_rule",
]
