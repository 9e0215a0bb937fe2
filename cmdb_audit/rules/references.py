"""Rules for references between CIs and the entities that point at them."""
from __future__ import annotations

from typing import Iterator, Optional, Set

from ..findings import FindingCode, ValidationFinding, make_finding
from ..models import is_blank_id
from . import RuleContext, register_rule


@register_rule("blank_identity")
def check_blank_identities(ctx: RuleContext) -> Iterator[ValidationFinding]:
    """Report CIs that cannot take part in the graph because they have no id."""

    for index, ci in enumerate(ctx.dataset.configuration_items):
        if not is_blank_id(ci.id):
            continue
        yield make_finding(
            FindingCode.GENERIC_ERROR,
            f"CI '{ci.name or '<unnamed>'}' has no identifier and was excluded from validation.",
            ci=ci,
            context={"position": index, "ci_name": ci.name, "ci_class": ci.ci_class},
            severity=ctx.config.severity_for(FindingCode.GENERIC_ERROR),
        )


@register_rule("dangling_relationship")
def check_dangling_relationships(ctx: RuleContext) -> Iterator[ValidationFinding]:
    """Report each relationship whose source or target is not a known CI."""

    for dangling in ctx.graph.dangling:
        relationship = dangling.relationship
        missing = ", ".join(repr(ci_id) for ci_id in dangling.missing_ids)
        present = next(
            (
                ci_id
                for ci_id in (relationship.source_id, relationship.target_id)
                if ci_id not in dangling.missing_ids
            ),
            None,
        )
        yield make_finding(
            FindingCode.DANGLING_RELATIONSHIP,
            f"Relationship {relationship} references missing CI {missing}.",
            ci_id=present,
            relationship=relationship,
            context={
                "reference_kind": "relationship",
                "missing_ci_id": dangling.missing_ids[0],
                "missing_ci_ids": ",".join(str(ci_id) for ci_id in dangling.missing_ids),
                "source_id": relationship.source_id,
                "target_id": relationship.target_id,
                "relationship_type": relationship.type,
            },
            severity=ctx.config.severity_for(FindingCode.DANGLING_RELATIONSHIP),
        )


def _dangling_reference(
    ctx: RuleContext, kind: str, owner: str, owner_id: str, missing_id: str
) -> ValidationFinding:
    return make_finding(
        FindingCode.DANGLING_RELATIONSHIP,
        f"{owner} '{owner_id}' references missing CI '{missing_id}'.",
        context={
            "reference_kind": kind,
            "owner_id": owner_id,
            "missing_ci_id": missing_id,
        },
        severity=ctx.config.severity_for(FindingCode.DANGLING_RELATIONSHIP),
    )


@register_rule("dangling_grouping_reference")
def check_dangling_grouping_references(ctx: RuleContext) -> Iterator[ValidationFinding]:
    """Report project members, service dependencies and offering links to unknown CIs."""

    dataset = ctx.dataset
    for project in dataset.projects:
        for ci_id in dict.fromkeys(project.ci_ids):
            if not dataset.has_ci(ci_id):
                yield _dangling_reference(ctx, "project_member", "Project", project.name, ci_id)
    for service in dataset.business_services:
        for ci_id in dict.fromkeys(service.dependency_ids):
            if not dataset.has_ci(ci_id):
                yield _dangling_reference(
                    ctx, "business_service_dependency", "Business service", service.id, ci_id
                )
    for offering in dataset.service_offerings:
        ci_id = offering.linked_ci_id
        if ci_id is not None and not dataset.has_ci(ci_id):
            yield _dangling_reference(
                ctx, "service_offering_link", "Service offering", offering.id, ci_id
            )


def _grouping_references(ctx: RuleContext) -> Set[str]:
    referenced: Set[str] = set()
    for service in ctx.dataset.business_services:
        referenced.update(service.dependency_ids)
    for offering in ctx.dataset.service_offerings:
        if offering.linked_ci_id is not None:
            referenced.add(offering.linked_ci_id)
    return referenced


@register_rule("orphan_ci")
def check_orphans(ctx: RuleContext) -> Iterator[ValidationFinding]:
    """Report CIs with no relationships that no service or offering refers to."""

    referenced = _grouping_references(ctx)
    for ci_id, ci in ctx.graph.nodes.items():
        if not ctx.graph.is_isolated(ci_id) or ci_id in referenced:
            continue
        yield make_finding(
            FindingCode.ORPHAN_CI,
            f"CI '{ci_id}' ({ci}) has no relationships and is not used by any service.",
            ci=ci,
            context={"ci_id": ci_id, "ci_class": ci.ci_class, "ci_name": ci.name},
            severity=ctx.config.severity_for(FindingCode.ORPHAN_CI),
        )


def _declared_parent(attributes) -> Optional[str]:
    value = attributes.get("parent_ci")
    if value is None or not str(value).strip():
        return None
    return str(value).strip()


def _has_parent(ctx: RuleContext, ci_id: str, declared_parent: Optional[str]) -> bool:
    # A structural edge always counts; an edge of any type counts when it comes
    # from the parent named during import.
    for relationship in ctx.graph.incoming(ci_id):
        if ctx.config.is_structural_type(relationship.type):
            return True
        if declared_parent is None:
            continue
        source = ctx.graph.nodes[relationship.source_id]
        if declared_parent in (source.id, source.name):
            return True
    return False


@register_rule("missing_parent")
def check_missing_parents(ctx: RuleContext) -> Iterator[ValidationFinding]:
    """Report CIs expected to sit below a parent that have no incoming parent edge.

    A CI is expected to have a parent when its class is listed in
    ``EngineConfig.parent_required_classes`` or when the importer recorded a
    ``parent_ci`` attribute for it.
    """

    config = ctx.config
    expected = ", ".join(sorted(config.structural_types))
    for ci_id, ci in ctx.graph.nodes.items():
        declared_parent = _declared_parent(ci.get_attributes())
        if declared_parent is None and not config.requires_parent(ci.ci_class):
            continue
        if _has_parent(ctx, ci_id, declared_parent):
            continue
        message = f"CI '{ci_id}' ({ci}) has no parent relationship."
        if declared_parent is not None:
            message = (
                f"CI '{ci_id}' ({ci}) declares parent '{declared_parent}' "
                "but no parent relationship links them."
            )
        yield make_finding(
            FindingCode.MISSING_PARENT,
            message,
            ci=ci,
            context={
                "ci_id": ci_id,
                "ci_class": ci.ci_class,
                "declared_parent": declared_parent,
                "expected_types": expected,
            },
            severity=config.severity_for(FindingCode.MISSING_PARENT),
        )


__all__ = [
    "check_blank_identities",
    "check_dangling_grouping_references",
    "check_dangling_relationships",
    "check_missing_parents",
    "check_orphans",
]
