# =============================================================================
# ELV COMPLIANCE ENGINE - VALIDATION REPORT GENERATOR
# =============================================================================
# Checks engine outputs against their invariants and formats a summary.
# =============================================================================

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence
from datetime import datetime

from .classifier import ComplianceStatus
from .ranking import RankedEntity

VALID_STATUSES = {s.value for s in ComplianceStatus}


@dataclass
class CheckResult:
    """Result of a single invariant check."""
    name: str
    passed: bool
    message: str = ""


@dataclass
class ValidationReport:
    """Complete validation report."""
    timestamp: str = ""
    profile_id: str = ""

    checks: Dict[str, List[CheckResult]] = field(default_factory=dict)

    total_passed: int = 0
    total_failed: int = 0
    overall_passed: bool = False

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def _status_check(name: str, rows: List[Dict], column: str = "status") -> CheckResult:
    bad = [r.get(column) for r in rows if r.get(column) is not None and r.get(column) not in VALID_STATUSES]
    return CheckResult(
        name, not bad,
        "" if not bad else f"Unexpected status values: {sorted(set(map(str, bad)))}"
    )


def _pct_check(name: str, rows: List[Dict], columns: Sequence[str]) -> CheckResult:
    for row in rows:
        for column in columns:
            value = row.get(column)
            if value is not None and not (0.0 <= value <= 100.0):
                return CheckResult(name, False, f"{column}={value} outside [0, 100]")
    return CheckResult(name, True)


def validate_parts(report) -> List[CheckResult]:
    """Validate part-level CBAM output."""
    results = [_status_check("part_status_values", report.part_rows)]

    negative = [r["part_id"] for r in report.part_rows if r["taxable_emissions"] < 0]
    results.append(CheckResult(
        "non_negative_taxable_emissions", not negative,
        "" if not negative else f"Negative taxable emissions: {negative}"
    ))

    negative_cost = [r["part_id"] for r in report.part_rows if r["cbam_amount"] < 0]
    results.append(CheckResult(
        "non_negative_cbam_amount", not negative_cost,
        "" if not negative_cost else f"Negative CBAM amount: {negative_cost}"
    ))
    return results


def validate_models(report) -> List[CheckResult]:
    """Validate model-level readiness and EPR output."""
    return [
        _status_check("model_status_values", report.model_rows),
        _status_check("model_epr_status_values", report.model_rows, "epr_status"),
        _pct_check("model_pct_range", report.model_rows, ["cbam_readiness", "epr_target", "epr_actual"]),
    ]


def validate_epr(report) -> List[CheckResult]:
    """Validate EPR recovery / recycling part output."""
    rows = report.recovery_rows + report.recycling_rows
    return [
        _status_check("epr_status_values", rows),
        _pct_check("epr_pct_range", rows, ["rate", "benchmark"]),
        _pct_check("material_progress_range", report.material_rows, ["progress_pct"]),
    ]


def validate_ranking(ranked: Sequence[RankedEntity], weights: Dict[str, float]) -> List[CheckResult]:
    """Validate ranking order and totals."""
    results = []
    ordered = all(a.total >= b.total for a, b in zip(ranked, ranked[1:]))
    results.append(CheckResult(
        "ranking_sorted", ordered, "" if ordered else "Ranking is not sorted by total"
    ))

    tolerance = 1e-9
    for entity in ranked:
        expected = sum(
            entity.kpi_scores[k].raw * w / 100.0 for k, w in weights.items() if k in entity.kpi_scores
        )
        if abs(entity.total - expected) > tolerance:
            results.append(CheckResult(
                "ranking_totals", False, f"Total mismatch for {entity.name}"
            ))
            break
    else:
        results.append(CheckResult("ranking_totals", True))

    return results


def generate_validation_report(
    profile_id: str,
    report,
    rankings: Optional[Dict[str, tuple]] = None,
) -> ValidationReport:
    """
    Generate validation report.

    Args:
        profile_id: Configuration profile identifier
        report: ComplianceReport
        rankings: Optional Dict[name, (ranked_entities, weights)]

    Returns:
        ValidationReport with all check results
    """
    validation = ValidationReport(
        timestamp=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        profile_id=profile_id,
        errors=list(report.errors),
        warnings=list(report.warnings),
    )

    validation.checks["CBAM Parts"] = validate_parts(report)
    validation.checks["Models"] = validate_models(report)
    validation.checks["EPR"] = validate_epr(report)
    for name, (ranked, weights) in (rankings or {}).items():
        validation.checks[f"Ranking: {name}"] = validate_ranking(ranked, weights)

    all_checks = [c for checks in validation.checks.values() for c in checks]
    validation.total_passed = sum(1 for c in all_checks if c.passed)
    validation.total_failed = sum(1 for c in all_checks if not c.passed)
    validation.overall_passed = validation.total_failed == 0 and not validation.errors

    return validation


def format_report(report: ValidationReport) -> str:
    """Format validation report as text."""
    lines = [
        "=" * 60,
        "VALIDATION REPORT",
        "=" * 60,
        f"Date: {report.timestamp}",
        f"Profile: {report.profile_id}",
        "",
        "CHECKS",
        "-" * 40
    ]

    for group, checks in report.checks.items():
        passed = sum(1 for c in checks if c.passed)
        total = len(checks)
        status = "PASSED" if passed == total else "FAILED"
        lines.append(f"{group}: {passed}/{total} {status}")
        for check in checks:
            if not check.passed:
                lines.append(f"  - {check.name}: {check.message}")

    if report.errors:
        lines.extend(["", "ERRORS", "-" * 40])
        lines.extend(f"  - {e}" for e in report.errors)

    if report.warnings:
        lines.extend(["", "WARNINGS", "-" * 40])
        lines.extend(f"  - {w}" for w in report.warnings)

    lines.extend([
        "",
        "=" * 60,
        f"OVERALL: {'PASSED' if report.overall_passed else 'FAILED'}",
        f"Total: {report.total_passed} passed, {report.total_failed} failed",
        "=" * 60
    ])

    return "\n".join(lines)


# =============================================================================
# END OF VALIDATION REPORT GENERATOR
# =============================================================================
