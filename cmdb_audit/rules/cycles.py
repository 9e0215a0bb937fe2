"""Circular dependency detection over dependency-type relationships."""
from __future__ import annotations

from typing import Iterator

from ..findings import FindingCode, ValidationFinding, make_finding
from . import RuleContext, register_rule


@register_rule("circular_dependency")
def check_cycles(ctx: RuleContext) -> Iterator[ValidationFinding]:
    """Report each distinct directed cycle among dependency relationships."""

    config = ctx.config
    cycles = ctx.graph.find_cycles(lambda rel: config.is_dependency_type(rel.type))
    for cycle in cycles:
        members = cycle.members
        anchor = ctx.graph.nodes[members[0]]
        description = cycle.describe()
        yield make_finding(
            FindingCode.CIRCULAR_DEPENDENCY,
            f"Circular dependency between {len(members)} CI(s): {description}.",
            ci=anchor,
            relationship=cycle.closing_edge,
            context={
                "cycle": description,
                "cycle_members": ",".join(members),
                "cycle_length": len(members),
            },
            severity=config.severity_for(FindingCode.CIRCULAR_DEPENDENCY),
        )


__all__ = ["check_cycles"]
