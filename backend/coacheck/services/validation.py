"""
Report validation: structural input, formula consistency, logic consistency
and data uniqueness against previously issued reports.

``validate_report`` is a pure function of its inputs. Business-rule
violations come back as ``ValidationIssue`` entries; nothing is raised for
them.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Protocol, Sequence, Union, runtime_checkable

from ..config import Settings, settings as default_settings
from ..models import (
    AnalyteResult,
    CannabinoidFormulaCheck,
    CheckType,
    DataUniquenessCheck,
    LogicConsistencyCheck,
    Report,
    Severity,
    ValidationIssue,
    ValidationVerdict,
)
from .aggregator import CBD_FAMILY, D8_THC, canonical_analyte, compute_totals
from .classifier import classify

logger = logging.getLogger(__name__)


@runtime_checkable
class ReportHistory(Protocol):
    """Read-only source of previously issued reports."""

    def iter_reports(self) -> Iterable[Report]:
        ...


HistoryInput = Union[ReportHistory, Iterable[Report], None]


def _history_reports(history: HistoryInput) -> List[Report]:
    if history is None:
        return []
    if isinstance(history, ReportHistory):
        return list(history.iter_reports())
    return list(history)


def _issue(
    check: CheckType,
    severity: Severity,
    message: str,
    field: Optional[str] = None,
    expected: Optional[float] = None,
    actual: Optional[float] = None,
) -> ValidationIssue:
    return ValidationIssue(
        type=check,
        severity=severity,
        message=message,
        field=field,
        expected_value=expected,
        actual_value=actual,
    )


def check_structure(report: Report) -> List[ValidationIssue]:
    """Coerced numeric input and LOD/LOQ ordering problems."""
    issues: List[ValidationIssue] = []
    for name in report.input_issues:
        issues.append(
            _issue(
                CheckType.INPUT_STRUCTURE,
                Severity.ERROR,
                f"Report field '{name}' is missing or not a valid non-negative number; treated as 0",
                field=name,
            )
        )
    for i, c in enumerate(report.cannabinoids or []):
        for name in c.input_issues:
            issues.append(
                _issue(
                    CheckType.INPUT_STRUCTURE,
                    Severity.ERROR,
                    f"{c.name}: '{name}' is missing or invalid; treated as 0",
                    field=f"cannabinoids[{i}].{name}",
                )
            )
        if c.lod > c.loq:
            issues.append(
                _issue(
                    CheckType.INPUT_STRUCTURE,
                    Severity.ERROR,
                    f"{c.name}: LOD ({c.lod}) is greater than LOQ ({c.loq})",
                    field=f"cannabinoids[{i}].lod",
                    expected=c.loq,
                    actual=c.lod,
                )
            )
    return issues


def _compare_total(
    label: str,
    field: str,
    calculated: float,
    reported: float,
    cfg: Settings,
) -> Optional[ValidationIssue]:
    diff = abs(calculated - reported)
    if diff <= cfg.formula_tolerance:
        return None
    severity = Severity.ERROR if diff > cfg.formula_error_threshold else Severity.WARNING
    return _issue(
        CheckType.CANNABINOID_FORMULA,
        severity,
        f"{label} mismatch: calculated {calculated:.4f}% but report states {reported:.4f}% "
        f"(difference {diff:.4f})",
        field=field,
        expected=calculated,
        actual=reported,
    )


def check_formula(report: Report, settings: Optional[Settings] = None) -> CannabinoidFormulaCheck:
    """Recompute totals from the analytes and compare with the stated totals."""
    cfg = settings or default_settings
    analytes = report.cannabinoids or []
    totals = compute_totals(analytes, settings=cfg)

    issues: List[ValidationIssue] = []
    for label, field, calculated, reported in (
        ("Total THC", "total_thc", totals.total_thc, report.total_thc),
        ("Total CBD", "total_cbd", totals.total_cbd, report.total_cbd),
        ("Total cannabinoids", "total_cannabinoids", totals.total_cannabinoids, report.total_cannabinoids),
    ):
        issue = _compare_total(label, field, calculated, reported, cfg)
        if issue is not None:
            issues.append(issue)

    # mg/g is an exact unit conversion of percent by weight
    for i, c in enumerate(analytes):
        expected = c.percent_weight * 10
        if abs(expected - c.mg_per_g) > cfg.formula_tolerance * 10:
            issues.append(
                _issue(
                    CheckType.CANNABINOID_FORMULA,
                    Severity.WARNING,
                    f"{c.name}: mg/g ({c.mg_per_g}) does not equal percent x 10 ({expected})",
                    field=f"cannabinoids[{i}].mg_per_g",
                    expected=expected,
                    actual=c.mg_per_g,
                )
            )

    return CannabinoidFormulaCheck(
        total_thc_calculated=totals.total_thc,
        total_thc_reported=report.total_thc,
        total_cbd_calculated=totals.total_cbd,
        total_cbd_reported=report.total_cbd,
        sum_of_cannabinoids_calculated=totals.total_cannabinoids,
        sum_of_cannabinoids_reported=report.total_cannabinoids,
        thc_mismatch=abs(totals.total_thc - report.total_thc),
        cbd_mismatch=abs(totals.total_cbd - report.total_cbd),
        sum_mismatch=abs(totals.total_cannabinoids - report.total_cannabinoids),
        issues=issues,
    )


def check_logic(report: Report, settings: Optional[Settings] = None) -> LogicConsistencyCheck:
    """Domain rules that must hold regardless of the arithmetic."""
    cfg = settings or default_settings
    analytes = report.cannabinoids or []
    issues: List[ValidationIssue] = []

    bands = [classify(c.percent_weight, c.lod, c.loq) for c in analytes]
    names = [canonical_analyte(c.name) for c in analytes]

    nd_or_loq_present = any(b is not AnalyteResult.DETECTED for b in bands)
    cbd_slice_exists = any(
        n in CBD_FAMILY and b is not AnalyteResult.ND for n, b in zip(names, bands)
    )

    gte = report.total_cannabinoids >= report.total_thc
    if not gte:
        issues.append(
            _issue(
                CheckType.LOGIC_CONSISTENCY,
                Severity.ERROR,
                f"Total cannabinoids ({report.total_cannabinoids:.4f}%) is less than "
                f"total THC ({report.total_thc:.4f}%)",
                field="total_cannabinoids",
                expected=report.total_thc,
                actual=report.total_cannabinoids,
            )
        )

    moisture_in_range = True
    if report.moisture is not None:
        moisture_in_range = cfg.moisture_min <= report.moisture <= cfg.moisture_max
        if not moisture_in_range:
            issues.append(
                _issue(
                    CheckType.LOGIC_CONSISTENCY,
                    Severity.WARNING,
                    f"Moisture {report.moisture}% is outside the accepted range "
                    f"{cfg.moisture_min}%-{cfg.moisture_max}%",
                    field="moisture",
                    actual=report.moisture,
                )
            )

    delta8 = [
        (i, c) for i, (c, n, b) in enumerate(zip(analytes, names, bands))
        if n == D8_THC and b is not AnalyteResult.ND
    ]
    if delta8:
        i, c = delta8[0]
        issues.append(
            _issue(
                CheckType.LOGIC_CONSISTENCY,
                Severity.WARNING,
                f"Delta-8 THC present ({c.percent_weight}%): non-standard cannabinoid, excluded "
                "from total THC; the report must call it out explicitly",
                field=f"cannabinoids[{i}]",
                actual=c.percent_weight,
            )
        )

    mismatched = [c.name for c, b in zip(analytes, bands) if c.result is not b]
    if mismatched:
        issues.append(
            _issue(
                CheckType.LOGIC_CONSISTENCY,
                Severity.WARNING,
                "Result tag disagrees with LOD/LOQ for: " + ", ".join(mismatched),
                field="cannabinoids",
            )
        )

    return LogicConsistencyCheck(
        nd_or_loq_present=nd_or_loq_present,
        total_cannabinoids_gte_total_thc=gte,
        cbd_slice_exists=cbd_slice_exists,
        moisture_in_range=moisture_in_range,
        delta8_thc_flagged=bool(delta8),
        result_tags_consistent=not mismatched,
        issues=issues,
    )


def _analyte_signature(report: Report) -> Optional[tuple]:
    if not report.cannabinoids:
        return None
    # Exact stored values; order-insensitive
    return tuple(sorted((canonical_analyte(c.name), c.percent_weight) for c in report.cannabinoids))


def _ids(reports: Sequence[Report]) -> str:
    return ", ".join(sorted({r.sample_id for r in reports}))


def check_uniqueness(report: Report, history: HistoryInput = None) -> DataUniquenessCheck:
    """Compare a report against previously issued reports (read-only)."""
    previous = _history_reports(history)
    issues: List[ValidationIssue] = []

    same_id = [r for r in previous if r.sample_id == report.sample_id]
    others = [r for r in previous if r.sample_id != report.sample_id]

    signature = _analyte_signature(report)
    same_values = [r for r in others if signature is not None and _analyte_signature(r) == signature]
    same_moisture = [
        r for r in others
        if report.moisture is not None and r.moisture is not None and r.moisture == report.moisture
    ]
    same_batch = [r for r in others if report.batch_id and r.batch_id == report.batch_id]

    if same_values:
        issues.append(
            _issue(
                CheckType.DATA_UNIQUENESS,
                Severity.WARNING,
                f"Identical cannabinoid values already issued under sample(s) {_ids(same_values)}",
                field="cannabinoids",
            )
        )
    if same_moisture:
        issues.append(
            _issue(
                CheckType.DATA_UNIQUENESS,
                Severity.WARNING,
                f"Moisture {report.moisture}% identical to sample(s) {_ids(same_moisture)}",
                field="moisture",
                actual=report.moisture,
            )
        )
    if same_batch:
        issues.append(
            _issue(
                CheckType.DATA_UNIQUENESS,
                Severity.WARNING,
                f"Batch ID {report.batch_id} also used by sample(s) {_ids(same_batch)}",
                field="batch_id",
            )
        )
    if same_id:
        issues.append(
            _issue(
                CheckType.DATA_UNIQUENESS,
                Severity.ERROR,
                f"Sample ID {report.sample_id} has already been issued",
                field="sample_id",
            )
        )

    return DataUniquenessCheck(
        duplicate_cannabinoids_found=bool(same_values),
        duplicate_moisture_found=bool(same_moisture),
        duplicate_batch_id_found=bool(same_batch),
        duplicate_sample_id_found=bool(same_id),
        reports_compared=len(previous),
        issues=issues,
    )


def _assemble(
    structural: List[ValidationIssue],
    formula: CannabinoidFormulaCheck,
    logic: LogicConsistencyCheck,
    uniqueness: DataUniquenessCheck,
) -> ValidationVerdict:
    merged = structural + formula.issues + logic.issues + uniqueness.issues
    errors = [i for i in merged if i.severity is Severity.ERROR]
    warnings = [i for i in merged if i.severity is Severity.WARNING]
    return ValidationVerdict(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        structural_issues=structural,
        cannabinoid_formula_check=formula,
        logic_consistency_check=logic,
        data_uniqueness_check=uniqueness,
    )


def validate_report(
    report: Report,
    history: HistoryInput = None,
    settings: Optional[Settings] = None,
) -> ValidationVerdict:
    """Run every check and merge the findings into one verdict.

    ``is_valid`` is True iff no error-severity finding exists. A report
    without an analyte list gets a structural error and empty formula and
    logic records; sample identifier reuse is still reported.
    """
    cfg = settings or default_settings
    logger.info(f"Validating report {report.sample_id}")

    if report.cannabinoids is None:
        missing = _issue(
            CheckType.INPUT_STRUCTURE,
            Severity.ERROR,
            "Report has no cannabinoid list; nothing can be validated",
            field="cannabinoids",
        )
        logger.warning(f"Report {report.sample_id} has no cannabinoid list")
        # Identifier reuse is still checked; it does not depend on the analytes
        return _assemble(
            [missing] + check_structure(report),
            CannabinoidFormulaCheck(),
            LogicConsistencyCheck(),
            check_uniqueness(report, history),
        )

    verdict = _assemble(
        check_structure(report),
        check_formula(report, cfg),
        check_logic(report, cfg),
        check_uniqueness(report, history),
    )
    for issue in verdict.errors + verdict.warnings:
        logger.debug(f"{report.sample_id}: [{issue.severity.value}] {issue.type.value}: {issue.message}")
    logger.info(
        f"Report {report.sample_id}: valid={verdict.is_valid} "
        f"errors={len(verdict.errors)} warnings={len(verdict.warnings)}"
    )
    return verdict


def validate_batch(
    reports: Sequence[Report],
    history: HistoryInput = None,
    include_peers: bool = True,
    settings: Optional[Settings] = None,
) -> List[ValidationVerdict]:
    """Validate each report on its own; peers are extra read-only history.

    With ``include_peers`` every other report in the batch is compared as if
    it had already been issued, so duplicates inside a batch surface too.
    """
    previous = _history_reports(history)
    verdicts = []
    for index, report in enumerate(reports):
        peers = [r for j, r in enumerate(reports) if j != index] if include_peers else []
        verdicts.append(validate_report(report, previous + peers, settings))
    return verdicts
