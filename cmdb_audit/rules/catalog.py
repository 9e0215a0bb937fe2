"""Rules comparing CI and relationship attributes with the reference catalog.

Each check is skipped entirely when the matching catalog dimension is empty,
and skips individual entities whose attribute is unset.
"""
from __future__ import annotations

from typing import Iterator, Optional

from ..findings import FindingCode, ValidationFinding, make_finding
from . import RuleContext, register_rule


def _is_set(value: Optional[str]) -> bool:
    return value is not None and bool(str(value).strip())


@register_rule("invalid_class")
def check_classes(ctx: RuleContext) -> Iterator[ValidationFinding]:
    if not ctx.catalog.classes:
        return
    for ci_id, ci in ctx.graph.nodes.items():
        if not _is_set(ci.ci_class) or ctx.catalog.check_class(ci.ci_class):
            continue
        yield make_finding(
            FindingCode.INVALID_CLASS,
            f"CI '{ci_id}' has class '{ci.ci_class}' which is not in the reference catalog.",
            ci=ci,
            context={"ci_id": ci_id, "ci_class": ci.ci_class},
            severity=ctx.config.severity_for(FindingCode.INVALID_CLASS),
        )


@register_rule("invalid_relationship_type")
def check_relationship_types(ctx: RuleContext) -> Iterator[ValidationFinding]:
    """Check every relationship, including dangling ones, against approved types."""

    if not ctx.catalog.relationship_types:
        return
    for relationship in ctx.dataset.relationships:
        rel_type = relationship.type
        if not _is_set(rel_type) or ctx.catalog.check_relationship_type(rel_type):
            continue
        yield make_finding(
            FindingCode.INVALID_RELATIONSHIP_TYPE,
            f"Relationship {relationship} uses type '{rel_type}' which is not in the reference catalog.",
            ci_id=relationship.source_id,
            relationship=relationship,
            context={
                "relationship_type": rel_type,
                "source_id": relationship.source_id,
                "target_id": relationship.target_id,
            },
            severity=ctx.config.severity_for(FindingCode.INVALID_RELATIONSHIP_TYPE),
        )


@register_rule("location_invalid")
def check_locations(ctx: RuleContext) -> Iterator[ValidationFinding]:
    if not ctx.catalog.locations:
        return
    for ci_id, ci in ctx.graph.nodes.items():
        if not _is_set(ci.location) or ctx.catalog.check_location(ci.location):
            continue
        yield make_finding(
            FindingCode.LOCATION_INVALID,
            f"CI '{ci_id}' has location '{ci.location}' which is not in the reference catalog.",
            ci=ci,
            context={"ci_id": ci_id, "location": ci.location},
            severity=ctx.config.severity_for(FindingCode.LOCATION_INVALID),
        )


__all__ = ["check_classes", "check_locations", "check_relationship_types"]
