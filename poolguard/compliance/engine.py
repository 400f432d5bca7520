"""Chemical compliance engine.

Classifies readings against the MAHC standards table, aggregates
facility-wide compliance reports and decides pool closure. Every
function here is pure: identical inputs always give identical output.
"""

import math
from typing import Mapping, Optional, Union

from ..exceptions import InvalidChemicalError
from ..models.compliance import (
    ChemicalRange,
    ChemicalStandard,
    ChemicalType,
    ClosureDecision,
    ComplianceReport,
    ComplianceStatus,
    ValidationResult,
    ValidationStatus,
)
from .standards import (
    BASE_PRIORITY,
    CHEMICAL_ALIASES,
    CHEMICAL_ORDER,
    CLOSURE_RECOMMENDATION,
    MAHC_STANDARDS,
    RECOMMENDATIONS,
    SEVERITY_MULTIPLIER,
    STATUS_COLORS,
    STATUS_SEVERITY,
)

ChemicalKey = Union[ChemicalType, str]
Readings = Mapping[ChemicalKey, Optional[float]]


def resolve_chemical(chemical: ChemicalKey) -> ChemicalType:
    """Resolve an enum member, enum value or dashboard alias.

    Raises:
        InvalidChemicalError: If the name is not a supported chemical
    """
    if isinstance(chemical, ChemicalType):
        return chemical
    if isinstance(chemical, str):
        if chemical in CHEMICAL_ALIASES:
            return CHEMICAL_ALIASES[chemical]
        try:
            return ChemicalType(chemical)
        except ValueError:
            pass
    raise InvalidChemicalError(f"Unknown chemical type: {chemical!r}")


def get_standard(chemical: ChemicalKey) -> ChemicalStandard:
    """Get the standard for a chemical."""
    return MAHC_STANDARDS[resolve_chemical(chemical)]


def get_acceptable_range(chemical: ChemicalKey) -> ChemicalRange:
    """Get the acceptable (compliant) range for a chemical."""
    return get_standard(chemical).acceptable_range


def get_ideal_range(chemical: ChemicalKey) -> ChemicalRange:
    """Get the ideal range for a chemical."""
    return get_standard(chemical).ideal_range


def format_chemical_value(value: float, chemical: ChemicalKey) -> str:
    """Format a reading with the chemical's display precision and unit.

    Args:
        value: Reading value
        chemical: Chemical type

    Returns:
        Display string, e.g. "7.4" for pH or "100 ppm" for alkalinity
    """
    standard = get_standard(chemical)
    return f"{value:.{standard.precision}f} {standard.unit}".strip()


def _check_value(value: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidChemicalError(f"Reading must be a number, got {value!r}")
    if not math.isfinite(value):
        raise InvalidChemicalError(f"Reading must be finite, got {value!r}")
    return value


def _classify(value: float, standard: ChemicalStandard) -> tuple[ValidationStatus, str]:
    """Return (status, direction) for a value; direction is "low" or "high"."""
    if standard.ideal.contains(value):
        return ValidationStatus.GOOD, ""

    if standard.min <= value <= standard.max:
        direction = "low" if value < standard.ideal.min else "high"
        return ValidationStatus.WARNING, direction

    direction = "low" if value < standard.min else "high"
    if standard.critical_low < value < standard.critical_high:
        return ValidationStatus.CRITICAL, direction

    return ValidationStatus.EMERGENCY, direction


def get_chemical_priority(chemical: ChemicalKey, status: ValidationStatus) -> int:
    """Urgency score for a chemical at a given status (higher is more urgent)."""
    return BASE_PRIORITY[resolve_chemical(chemical)] * SEVERITY_MULTIPLIER[status]


def validate_chemical(value: float, chemical: ChemicalKey) -> ValidationResult:
    """Validate a single reading against its MAHC standard.

    Classification is ordered, first match wins: ideal range is good,
    acceptable range is warning, strictly inside the critical limits is
    critical, anything else is an emergency.

    Args:
        value: Measured value (any finite number)
        chemical: Chemical type

    Returns:
        ValidationResult for the reading

    Raises:
        InvalidChemicalError: If chemical is unknown or value is not finite
    """
    chemical = resolve_chemical(chemical)
    value = _check_value(value)
    standard = MAHC_STANDARDS[chemical]

    status, direction = _classify(value, standard)
    shown = format_chemical_value(value, chemical)
    description = standard.description

    recommendation = None
    if status == ValidationStatus.GOOD:
        message = f"GOOD: {description} within ideal range ({shown})"
    elif status == ValidationStatus.WARNING:
        side = "below" if direction == "low" else "above"
        message = f"WARNING: {description} {side} ideal range ({shown})"
        recommendation = RECOMMENDATIONS[chemical][direction]
    elif status == ValidationStatus.CRITICAL:
        message = f"CRITICAL: {description} too {direction} ({shown})"
        recommendation = RECOMMENDATIONS[chemical][direction]
    else:
        message = f"EMERGENCY: {description} critically {direction} ({shown})"
        recommendation = f"{CLOSURE_RECOMMENDATION} {RECOMMENDATIONS[chemical][direction]}"

    color, bg_color, border_color = STATUS_COLORS[status]

    return ValidationResult(
        chemical=chemical,
        value=value,
        status=status,
        severity=STATUS_SEVERITY[status],
        message=message,
        recommendation=recommendation,
        color=color,
        bg_color=bg_color,
        border_color=border_color,
        requires_action=status != ValidationStatus.GOOD,
        requires_closure=status == ValidationStatus.EMERGENCY,
        priority=get_chemical_priority(chemical, status),
    )


def _ordered_readings(readings: Readings) -> list[tuple[ChemicalType, float]]:
    """Resolve keys and return present readings in canonical order."""
    resolved: dict[ChemicalType, float] = {}
    for key, value in readings.items():
        chemical = resolve_chemical(key)
        if value is None:
            continue
        resolved[chemical] = value
    return [(c, resolved[c]) for c in CHEMICAL_ORDER if c in resolved]


def _append_unique(target: list[str], item: Optional[str]) -> None:
    if item and item not in target:
        target.append(item)


def generate_compliance_report(readings: Readings) -> ComplianceReport:
    """Validate every present reading and aggregate a compliance report.

    Missing chemicals and None values are skipped. Results are evaluated
    in canonical chemical order so action lists are deterministic.

    Args:
        readings: Mapping of chemical type to measured value

    Returns:
        ComplianceReport with counts, details and action lists
    """
    report = ComplianceReport()

    for chemical, value in _ordered_readings(readings):
        result = validate_chemical(value, chemical)
        report.details.append(result)

        if result.status == ValidationStatus.GOOD:
            report.passed_tests += 1
        elif result.status == ValidationStatus.WARNING:
            report.warning_tests += 1
            _append_unique(report.recommendations, result.recommendation)
        elif result.status == ValidationStatus.CRITICAL:
            report.critical_tests += 1
            _append_unique(report.required_actions, result.recommendation)
        else:
            report.emergency_tests += 1
            _append_unique(report.required_actions, result.recommendation)

    report.total_tests = len(report.details)

    if report.emergency_tests > 0:
        report.overall = ComplianceStatus.EMERGENCY
    elif report.critical_tests > 0:
        report.overall = ComplianceStatus.NON_COMPLIANT
    elif report.warning_tests > 0:
        report.overall = ComplianceStatus.WARNING
    else:
        report.overall = ComplianceStatus.COMPLIANT

    return report


def should_close_pool(readings: Readings) -> ClosureDecision:
    """Decide whether the pool must be closed.

    The pool closes iff at least one reading is an emergency, which
    matches generate_compliance_report(readings).overall == EMERGENCY.

    Args:
        readings: Mapping of chemical type to measured value

    Returns:
        ClosureDecision with one reason per emergency reading
    """
    reasons = []
    for chemical, value in _ordered_readings(readings):
        result = validate_chemical(value, chemical)
        if result.requires_closure:
            reasons.append(f"{MAHC_STANDARDS[chemical].description}: {result.message}")

    return ClosureDecision(should_close=len(reasons) > 0, reasons=reasons)
