"""Command line interface for the CMDB audit tool."""
from __future__ import annotations

import argparse
import sys
import uuid
from typing import List, Optional

from .config import DEFAULT_MAX_WORKERS, EngineConfig
from .core import collect_audit_results, export_findings_to_json, print_findings
from .errors import CMDBAuditError
from .findings import Severity
from .logging_config import bind_run_context, clear_run_context, configure_logging
from .profiles import RULE_PROFILES, expand_rule_profiles
from .rules import RULES
from .workbook import load_workbooks

FAIL_ON_CHOICES = ("error", "warning", "info", "never")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Return parsed command line arguments."""

    parser = argparse.ArgumentParser(
        description="Validate CMDB workbooks for dangling references, orphans, duplicates and cycles."
    )
    parser.add_argument("workbooks", nargs="+", help="CMDB workbook(s) (.xlsx) to validate")
    parser.add_argument(
        "--catalog",
        dest="catalog_paths",
        action="append",
        default=[],
        help="Workbook holding a reference catalog sheet (may be repeated)",
    )
    parser.add_argument(
        "--rules",
        nargs="*",
        choices=sorted(RULES),
        default=None,
        help="Subset of rules to run (default: all rules)",
    )
    parser.add_argument(
        "--profile",
        nargs="*",
        choices=sorted(RULE_PROFILES),
        default=None,
        help="Limit rules to named presets (e.g., integrity, topology)",
    )
    parser.add_argument(
        "--dependency-type",
        dest="dependency_types",
        action="append",
        default=None,
        help="Relationship type treated as a dependency for cycle detection (may be repeated)",
    )
    parser.add_argument(
        "--structural-type",
        dest="structural_types",
        action="append",
        default=None,
        help="Relationship type that links a parent to its child (may be repeated)",
    )
    parser.add_argument(
        "--parent-class",
        dest="parent_classes",
        action="append",
        default=None,
        help="CI class that must have a parent relationship (may be repeated)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=DEFAULT_MAX_WORKERS,
        help="Number of rules evaluated in parallel",
    )
    parser.add_argument("--json", dest="json_path", help="Optional path to export findings as JSON")
    parser.add_argument(
        "--fail-on",
        choices=FAIL_ON_CHOICES,
        default="error",
        help="Exit with status 2 when a finding of this severity or worse exists",
    )
    parser.add_argument("--log-level", default="warning", help="Logging level (debug/info/warning/error)")
    parser.add_argument("--log-json", action="store_true", help="Emit log records as JSON lines")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point used by ``python -m cmdb_audit`` and ``cmdb-audit``."""

    args = parse_args(argv)
    configure_logging(args.log_level, json_output=args.log_json)
    bind_run_context(uuid.uuid4().hex[:12], source=",".join(args.workbooks))
    try:
        return _run(args)
    finally:
        clear_run_context()


def _run(args: argparse.Namespace) -> int:
    selected_rules = list(args.rules) if args.rules else None
    if args.profile:
        try:
            profile_rules = expand_rule_profiles(args.profile)
        except (RuntimeError, ValueError) as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1

        if selected_rules:
            excluded = sorted({rule for rule in selected_rules if rule not in profile_rules})
            selected_rules = [rule for rule in selected_rules if rule in profile_rules]
            if excluded:
                print(
                    "Warning: Ignoring rules not covered by the selected profiles: "
                    + ", ".join(excluded),
                    file=sys.stderr,
                )
            if not selected_rules:
                print(
                    "Error: None of the requested rules are part of the selected profiles.",
                    file=sys.stderr,
                )
                return 1
        else:
            selected_rules = sorted(profile_rules)

    try:
        config = EngineConfig.from_options(
            dependency_types=args.dependency_types,
            structural_types=args.structural_types,
            parent_required_classes=args.parent_classes,
            max_workers=args.workers,
        )
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    try:
        importer = load_workbooks(list(args.workbooks) + list(args.catalog_paths))
        results = collect_audit_results(
            importer.dataset, importer.catalog, rules=selected_rules, config=config
        )
    except (CMDBAuditError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    findings = results.findings
    print_findings(findings)
    print(
        f"\n{len(findings)} finding(s): "
        f"{results.count(Severity.ERROR)} error(s), "
        f"{results.count(Severity.WARNING)} warning(s), "
        f"{results.count(Severity.INFO)} info"
    )

    if args.json_path:
        try:
            export_findings_to_json(findings, args.json_path)
        except OSError as exc:
            print(f"Failed to export JSON report: {exc}", file=sys.stderr)
        else:
            print(f"Findings exported to {args.json_path}")

    if args.fail_on != "never" and results.has_at_least(Severity(args.fail_on.upper())):
        return 2
    return 0


__all__ = ["main", "parse_args"]
