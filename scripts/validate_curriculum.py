"""
Publish gate validator for curriculum credit pools.

Checks data-quality rules that should pass before a curriculum's pool
configuration is shown to students. Designed to be importable for tests and
runnable as a standalone CLI.

Usage:
    python scripts/validate_curriculum.py --curriculum BSCS-2025
    python scripts/validate_curriculum.py --curriculum BSCS-2025 --path path/to/data
    python scripts/validate_curriculum.py --all
"""

import argparse
import os
import sys

# Import backend modules (add backend/ to path)
sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "backend"))

from allocator import calculate_pool_credits
from pool_sources import detect_pool_overlaps
from validators import (
    find_course_type_cycles,
    find_invalid_numeric_inputs,
    find_invalid_sources,
    find_unresolved_attachments,
)


# ── Validation result ─────────────────────────────────────────────────────────

class ValidationResult:
    """Collects errors and warnings for a single curriculum validation run."""

    def __init__(self, curriculum_id: str):
        self.curriculum_id = curriculum_id
        self.errors: list[str] = []
        self.warnings: list[str] = []

    def error(self, msg: str) -> None:
        self.errors.append(msg)

    def warn(self, msg: str) -> None:
        self.warnings.append(msg)

    @property
    def passed(self) -> bool:
        return len(self.errors) == 0

    def summary(self) -> str:
        status = "PASS" if self.passed else "FAIL"
        lines = [f"[{status}] Curriculum '{self.curriculum_id}'"]
        for e in self.errors:
            lines.append(f"  [ERROR] {e}")
        for w in self.warnings:
            lines.append(f"  [WARN]  {w}")
        if self.passed and not self.warnings:
            lines.append("  All checks passed.")
        return "\n".join(lines)


# ── Individual checks ─────────────────────────────────────────────────────────

def check_pools_attached(inputs: dict, result: ValidationResult) -> None:
    """Curriculum must have at least one pool attached."""
    if not inputs["attachments"]:
        result.error("No credit pools attached.")


def check_pools_resolved(inputs: dict, result: ValidationResult) -> None:
    """Every attachment must reference an existing credit pool."""
    for finding in find_unresolved_attachments(inputs["attachments"]):
        result.error(finding["message"])


def check_credit_bounds(inputs: dict, result: ValidationResult) -> None:
    """Negative credits are errors; a cap below the requirement is a warning."""
    for finding in find_invalid_numeric_inputs(inputs["attachments"], inputs["courses"]):
        if finding["code"] == "MAX_BELOW_REQUIRED":
            result.warn(finding["message"])
        else:
            result.error(finding["message"])


def check_course_type_hierarchy(inputs: dict, result: ValidationResult) -> None:
    """Course type parent chains must form a tree."""
    for finding in find_course_type_cycles(inputs["course_types"]):
        if finding["code"] == "CYCLIC_PARENT_CHAIN":
            result.error(finding["message"])
        else:
            result.warn(finding["message"])


def check_pool_sources(inputs: dict, result: ValidationResult) -> None:
    """Every attached pool needs at least one usable source."""
    pools = [a["pool"] for a in inputs["attachments"] if a.get("pool")]
    for pool in pools:
        if not pool.get("sources"):
            result.warn(f"Pool '{pool['id']}' has no sources and will never match a course.")
    for finding in find_invalid_sources(pools):
        result.error(finding["message"])


def check_duplicate_order_index(inputs: dict, result: ValidationResult) -> None:
    """Equal order_index values fall back to storage order; flag them."""
    seen: dict = {}
    for attachment in inputs["attachments"]:
        order_index = attachment.get("order_index")
        if order_index in seen:
            result.warn(
                f"Attachments '{seen[order_index]}' and '{attachment.get('id')}' share "
                f"order_index {order_index}; their priority follows storage order."
            )
        else:
            seen[order_index] = attachment.get("id")


def check_pool_overlaps(inputs: dict, result: ValidationResult) -> None:
    """Overlapping pools compete for the same courses; priority decides."""
    reported: set[frozenset] = set()
    for pool_id, others in detect_pool_overlaps(inputs["attachments"]).items():
        for other in others:
            pair = frozenset([pool_id, other])
            if pair in reported:
                continue
            reported.add(pair)
            a, b = sorted(pair)
            result.warn(f"Pools '{a}' and '{b}' share a source and compete for the same courses.")


def check_unsatisfied_pools(inputs: dict, result: ValidationResult) -> None:
    """Warn when the curriculum's own courses cannot satisfy a pool."""
    calculations = calculate_pool_credits(
        inputs["attachments"],
        inputs["courses"],
        inputs["course_types"],
        inputs["pool_lists"],
    )
    for calc in calculations:
        if not calc["is_satisfied"]:
            result.warn(
                f"Pool '{calc['pool_id']}' gets {calc['applied_credits']} of "
                f"{calc['required_credits']} required credits from curriculum courses."
            )


# ── Main validate function ────────────────────────────────────────────────────

def validate_curriculum(curriculum_id: str, inputs: dict | None) -> ValidationResult:
    """Run all publish gate checks for a curriculum. Returns a ValidationResult."""
    result = ValidationResult(curriculum_id)
    if inputs is None:
        result.error(f"Curriculum '{curriculum_id}' not found.")
        return result

    check_pools_attached(inputs, result)
    check_pools_resolved(inputs, result)
    check_credit_bounds(inputs, result)
    check_course_type_hierarchy(inputs, result)
    check_pool_sources(inputs, result)
    check_duplicate_order_index(inputs, result)
    check_pool_overlaps(inputs, result)
    check_unsatisfied_pools(inputs, result)
    return result


# ── CLI entry point ───────────────────────────────────────────────────────────

def main(args=None):
    parser = argparse.ArgumentParser(
        description="Validate curriculum credit pool configuration before publishing.",
    )
    parser.add_argument("--curriculum", type=str, help="Curriculum ID to validate.")
    parser.add_argument("--all", action="store_true", help="Validate every curriculum.")
    parser.add_argument(
        "--path", type=str,
        default=os.path.join(os.path.dirname(__file__), "..", "data"),
        help="Path to the data directory or workbook.",
    )
    opts = parser.parse_args(args)

    if not opts.curriculum and not opts.all:
        parser.error("Provide --curriculum CURRICULUM_ID or --all.")

    from data_loader import build_curriculum_inputs, load_data

    data = load_data(opts.path)

    if opts.all:
        curriculum_ids = sorted(data["curricula"])
        if not curriculum_ids:
            print("[INFO] No curricula found.")
            return 0
    else:
        curriculum_ids = [opts.curriculum.strip()]

    all_passed = True
    for cid in curriculum_ids:
        result = validate_curriculum(cid, build_curriculum_inputs(data, cid))
        print(result.summary())
        if not result.passed:
            all_passed = False

    return 0 if all_passed else 1


if __name__ == "__main__":
    sys.exit(main())
