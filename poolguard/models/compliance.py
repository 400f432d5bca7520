"""Pydantic data models for chemical compliance checks."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class ChemicalType(str, Enum):
    """Supported chemical parameters.

    Declaration order is the canonical evaluation order used by
    reports and closure decisions.
    """
    FREE_CHLORINE = "free_chlorine"
    TOTAL_CHLORINE = "total_chlorine"
    PH = "ph"
    ALKALINITY = "alkalinity"
    CYANURIC_ACID = "cyanuric_acid"
    CALCIUM_HARDNESS = "calcium_hardness"
    TEMPERATURE = "temperature"

    def __str__(self) -> str:
        return self.value


class ValidationStatus(str, Enum):
    """Classification of a single reading."""
    GOOD = "good"
    WARNING = "warning"
    CRITICAL = "critical"
    EMERGENCY = "emergency"

    def __str__(self) -> str:
        return self.value


class Severity(str, Enum):
    """Severity level derived from a validation status."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    def __str__(self) -> str:
        return self.value


class ComplianceStatus(str, Enum):
    """Facility-wide compliance verdict."""
    COMPLIANT = "compliant"
    WARNING = "warning"
    NON_COMPLIANT = "non-compliant"
    EMERGENCY = "emergency"

    def __str__(self) -> str:
        return self.value


class Bounds(BaseModel):
    """Inclusive numeric bounds."""

    min: float
    max: float

    def contains(self, value: float) -> bool:
        """Check if value lies within the bounds (inclusive)."""
        return self.min <= value <= self.max

    model_config = {"frozen": True}


class ChemicalRange(BaseModel):
    """A displayable range with its unit."""

    min: float = Field(..., description="Lower bound (inclusive)")
    max: float = Field(..., description="Upper bound (inclusive)")
    unit: str = Field(default="", description="Display unit")
    precision: int = Field(default=0, ge=0, description="Decimal places for display")

    def __str__(self) -> str:
        text = f"{self.min:.{self.precision}f}-{self.max:.{self.precision}f} {self.unit}"
        return text.strip()

    model_config = {"frozen": True}


class ChemicalStandard(BaseModel):
    """MAHC-style threshold record for one chemical."""

    min: float = Field(..., description="Lowest acceptable value")
    max: float = Field(..., description="Highest acceptable value")
    ideal: Bounds = Field(..., description="Ideal operating range")
    unit: str = Field(default="", description="Measurement unit")
    description: str = Field(..., description="Human-readable parameter name")
    regulation: str = Field(default="", description="Regulation reference")
    critical_low: float = Field(
        ...,
        description="At or below this value the pool must be closed"
    )
    critical_high: float = Field(
        ...,
        description="At or above this value the pool must be closed"
    )
    precision: int = Field(
        default=0,
        ge=0,
        description="Decimal places used when displaying values"
    )

    @property
    def acceptable_range(self) -> ChemicalRange:
        """Acceptable (compliant) range."""
        return ChemicalRange(
            min=self.min, max=self.max, unit=self.unit, precision=self.precision
        )

    @property
    def ideal_range(self) -> ChemicalRange:
        """Ideal range."""
        return ChemicalRange(
            min=self.ideal.min,
            max=self.ideal.max,
            unit=self.unit,
            precision=self.precision,
        )

    model_config = {"frozen": True}


class ValidationResult(BaseModel):
    """Outcome of validating one reading."""

    chemical: ChemicalType
    value: float
    status: ValidationStatus
    severity: Severity
    message: str
    recommendation: Optional[str] = None
    color: str = Field(..., description="Text color class token")
    bg_color: str = Field(..., description="Background color class token")
    border_color: str = Field(..., description="Border color class token")
    requires_action: bool = False
    requires_closure: bool = False
    priority: int = Field(default=0, ge=0, description="Urgency score, higher first")

    model_config = {"frozen": True, "use_enum_values": False}


class ComplianceReport(BaseModel):
    """Aggregate verdict over a set of readings."""

    overall: ComplianceStatus = ComplianceStatus.COMPLIANT
    total_tests: int = 0
    passed_tests: int = 0
    warning_tests: int = 0
    critical_tests: int = 0
    emergency_tests: int = 0
    details: list[ValidationResult] = Field(default_factory=list)
    required_actions: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)

    def prioritized_issues(self) -> list[ValidationResult]:
        """Non-good results, most urgent first.

        Ties keep the canonical evaluation order.
        """
        issues = [d for d in self.details if d.status != ValidationStatus.GOOD]
        return sorted(issues, key=lambda d: d.priority, reverse=True)

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary."""
        return self.model_dump(mode="json")


class ClosureDecision(BaseModel):
    """Whether the pool must be closed, and why."""

    should_close: bool = False
    reasons: list[str] = Field(default_factory=list)
