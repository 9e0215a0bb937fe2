"""Named rule presets for the CMDB audit toolkit."""

from __future__ import annotations

from typing import Dict, Iterable, Set, Tuple

from .rules import RULES

# Mapping of profile identifiers to the rules that make up the profile. Keys
# are normalized to lowercase so callers can perform case-insensitive lookups.
RULE_PROFILES: Dict[str, Tuple[str, ...]] = {
    "integrity": (
        "blank_identity",
        "dangling_relationship",
        "dangling_grouping_reference",
        "duplicate_ci",
    ),
    "catalog": (
        "invalid_class",
        "invalid_relationship_type",
        "location_invalid",
    ),
    "topology": (
        "orphan_ci",
        "missing_parent",
        "circular_dependency",
    ),
    "services": (
        "missing_service_offering",
        "dangling_grouping_reference",
    ),
}
RULE_PROFILES["full"] = tuple(
    dict.fromkeys(rule for rules in RULE_PROFILES.values() for rule in rules)
)


def expand_rule_profiles(profiles: Iterable[str]) -> Set[str]:
    """Return the normalized set of rule names for *profiles*.

    Raises a :class:`ValueError` when an unknown profile is requested and a
    :class:`RuntimeError` if the static mapping references a rule that is not
    registered in :data:`cmdb_audit.rules.RULES`.
    """

    normalized = {profile.lower() for profile in profiles}
    valid_profiles = set(RULE_PROFILES)
    missing = sorted(normalized - valid_profiles)
    if missing:
        valid = ", ".join(sorted(valid_profiles))
        raise ValueError(
            f"Unknown rule profile(s): {', '.join(missing)}. Valid options: {valid}"
        )

    rules: Set[str] = set()
    for profile in normalized:
        rules.update(RULE_PROFILES[profile])

    unknown_rules = sorted(rules - set(RULES))
    if unknown_rules:
        raise RuntimeError(
            "Rule profile map references unknown rule(s): " + ", ".join(unknown_rules)
        )

    return rules


__all__ = ["RULE_PROFILES", "expand_rule_profiles"]
