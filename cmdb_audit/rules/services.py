"""Rules for business services and their offerings."""
from __future__ import annotations

from typing import Dict, Iterator, Set

from ..findings import FindingCode, ValidationFinding, make_finding
from . import RuleContext, register_rule


@register_rule("missing_service_offering")
def check_missing_offerings(ctx: RuleContext) -> Iterator[ValidationFinding]:
    """Report business services without any service offering.

    An offering counts when the service lists it or when the offering's
    back-reference names the service.
    """

    offered_by: Dict[str, Set[str]] = {}
    for offering in ctx.dataset.service_offerings:
        if offering.business_service_id is not None:
            offered_by.setdefault(offering.business_service_id, set()).add(offering.id)

    for service in ctx.dataset.business_services:
        offerings = set(service.service_offering_ids) | offered_by.get(service.id, set())
        if offerings:
            continue
        yield make_finding(
            FindingCode.MISSING_SERVICE_OFFERING,
            f"Business service '{service.id}' ({service.name}) has no service offerings.",
            context={
                "business_service_id": service.id,
                "business_service_name": service.name,
            },
            severity=ctx.config.severity_for(FindingCode.MISSING_SERVICE_OFFERING),
        )


__all__ = ["check_missing_offerings"]
