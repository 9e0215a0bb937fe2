"""Duplicate configuration item detection."""
from __future__ import annotations

from typing import Dict, Iterator, Optional, Tuple

from ..findings import FindingCode, ValidationFinding, make_finding
from ..models import CI
from . import RuleContext, register_rule

DuplicateKey = Tuple[Optional[str], str, Optional[str]]


def duplicate_key(ci: CI) -> Optional[DuplicateKey]:
    """Return the ``(class, name, location)`` grouping key, or ``None`` without a name."""

    if ci.name is None or not str(ci.name).strip():
        return None
    return (ci.ci_class, ci.name, ci.location)


@register_rule("duplicate_ci")
def check_duplicates(ctx: RuleContext) -> Iterator[ValidationFinding]:
    """Report every CI beyond the first that shares class, name and location.

    The first CI of a group in dataset order is the one kept; each later member
    yields one finding referencing both. CIs without a name are not grouped:
    unnamed placeholder rows of one class and location would otherwise all be
    reported as copies of each other.
    """

    kept: Dict[DuplicateKey, CI] = {}
    for ci_id, ci in ctx.graph.nodes.items():
        key = duplicate_key(ci)
        if key is None:
            continue
        first = kept.setdefault(key, ci)
        if first is ci:
            continue
        yield make_finding(
            FindingCode.DUPLICATE_CI,
            (
                f"CI '{ci_id}' duplicates CI '{first.id}' "
                f"(class={ci.ci_class!r}, name={ci.name!r}, location={ci.location!r})."
            ),
            ci=ci,
            context={
                "kept_ci_id": first.id,
                "duplicate_ci_id": ci_id,
                "ci_class": ci.ci_class,
                "ci_name": ci.name,
                "location": ci.location,
            },
            severity=ctx.config.severity_for(FindingCode.DUPLICATE_CI),
        )


__all__ = ["check_duplicates", "duplicate_key"]
