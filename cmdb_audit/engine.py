"""Validation rule engine: fans rules out over one read-only graph snapshot."""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import contextvars
import logging
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple

from .catalog import CatalogSnapshot, ReferenceCatalog
from .config import EngineConfig
from .dataset import CMDBDataset
from .errors import ContractViolationError, require
from .findings import FindingCode, ValidationFinding
from .graph import RelationshipGraph
from .logging_config import validation_context
from .rules import RULES, Rule, RuleContext
from .utils import finding_from_exception

logger = logging.getLogger(__name__)

# Exceptions a rule may raise on malformed records; anything else is a bug and
# propagates to the caller.
DATA_ERRORS = (AttributeError, LookupError, TypeError, ValueError)


def resolve_rules(
    names: Optional[Iterable[str]] = None,
    *,
    registry: Mapping[str, Rule] = RULES,
) -> List[Tuple[str, Rule]]:
    """Return ``(name, rule)`` pairs for *names*, or every registered rule.

    Raises :class:`ValueError` for a name that is not registered. The result
    always follows registry order, whatever order *names* come in.
    """

    if names is None:
        return list(registry.items())

    selected = set()
    for name in names:
        key = name.strip().lower()
        if key not in registry:
            valid = ", ".join(sorted(registry))
            raise ValueError(f"Unknown rule '{name}'. Valid rules: {valid}")
        selected.add(key)
    return [(key, rule) for key, rule in registry.items() if key in selected]


class ValidationEngine:
    """Runs a set of rules against a dataset and reference catalog.

    The engine keeps no state between runs: every :meth:`validate` call takes a
    fresh snapshot, builds a private graph and returns a new list, so running it
    twice on the same inputs yields findings with equal :meth:`~ValidationFinding.key`
    values in the same order.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        rules: Optional[Iterable[str]] = None,
        *,
        registry: Mapping[str, Rule] = RULES,
    ) -> None:
        self.config = config or EngineConfig()
        self.rules: Sequence[Tuple[str, Rule]] = resolve_rules(rules, registry=registry)

    def validate(
        self, dataset: CMDBDataset, catalog: Optional[ReferenceCatalog] = None
    ) -> List[ValidationFinding]:
        """Return every finding for the current contents of *dataset*.

        ``catalog`` defaults to an empty catalog, which disables the catalog
        checks. Raises :class:`ContractViolationError` if *dataset* is missing
        or either argument has the wrong type.
        """

        require(dataset, CMDBDataset, "dataset")
        if catalog is not None and not isinstance(catalog, ReferenceCatalog):
            raise ContractViolationError(
                f"'catalog' must be ReferenceCatalog, got {type(catalog).__name__}"
            )

        snapshot = dataset.snapshot()
        catalog_snapshot = catalog.snapshot() if catalog is not None else CatalogSnapshot()
        if snapshot.is_empty():
            logger.info("Dataset is empty; nothing to validate")
            return []

        graph = RelationshipGraph.build(snapshot)
        ctx = RuleContext(
            graph=graph, dataset=snapshot, catalog=catalog_snapshot, config=self.config
        )
        workers = min(self.config.max_workers, len(self.rules)) or 1
        with validation_context(
            ci_count=len(snapshot.configuration_items),
            relationship_count=len(snapshot.relationships),
        ):
            logger.info("Validating with %d rule(s) on %d worker(s)", len(self.rules), workers)
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="cmdb-rule") as pool:
                # Each task gets its own copy of the bound log context.
                futures = [
                    pool.submit(contextvars.copy_context().run, self._run_rule, name, rule, ctx)
                    for name, rule in self.rules
                ]
                # Collect in submission order so the combined list is reproducible.
                findings: List[ValidationFinding] = []
                for future in futures:
                    findings.extend(future.result())

            logger.info("Validation finished with %d finding(s)", len(findings))
        return findings

    def validate_dataset(
        self, dataset: CMDBDataset, catalog: Optional[ReferenceCatalog] = None
    ) -> List[ValidationFinding]:
        """Run :meth:`validate` and append the resulting findings to *dataset*."""

        findings = self.validate(dataset, catalog)
        dataset.add_findings(findings)
        return findings

    def _run_rule(self, name: str, rule: Rule, ctx: RuleContext) -> List[ValidationFinding]:
        logger.debug("Running rule %s", name)
        findings: List[ValidationFinding] = []
        try:
            with validation_context(rule=name):
                # Rules are generators; findings emitted before a failure are kept.
                for finding in rule(ctx):
                    findings.append(finding)
        except ContractViolationError:
            raise
        except DATA_ERRORS as exc:
            logger.warning(
                "Rule %s stopped after %d finding(s): %s", name, len(findings), exc
            )
            findings.append(
                finding_from_exception(
                    name,
                    f"Rule '{name}' could not be evaluated",
                    exc,
                    severity=self.config.severity_for(FindingCode.GENERIC_ERROR),
                )
            )
            return findings
        logger.debug("Rule %s produced %d finding(s)", name, len(findings))
        return findings


def validate(
    dataset: CMDBDataset,
    catalog: Optional[ReferenceCatalog] = None,
    *,
    config: Optional[EngineConfig] = None,
    rules: Optional[Iterable[str]] = None,
) -> List[ValidationFinding]:
    """Convenience wrapper running a one-off :class:`ValidationEngine`."""

    return ValidationEngine(config, rules).validate(dataset, catalog)


__all__ = ["DATA_ERRORS", "ValidationEngine", "resolve_rules", "validate"]
