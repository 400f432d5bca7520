"""Chemical compliance checks against MAHC standards."""

from .standards import MAHC_STANDARDS, CHEMICAL_ORDER
from .engine import (
    resolve_chemical,
    get_standard,
    get_acceptable_range,
    get_ideal_range,
    format_chemical_value,
    get_chemical_priority,
    validate_chemical,
    generate_compliance_report,
    should_close_pool,
)

__all__ = [
    "MAHC_STANDARDS",
    "CHEMICAL_ORDER",
    "resolve_chemical",
    "get_standard",
    "get_acceptable_range",
    "get_ideal_range",
    "format_chemical_value",
    "get_chemical_priority",
    "validate_chemical",
    "generate_compliance_report",
    "should_close_pool",
]
