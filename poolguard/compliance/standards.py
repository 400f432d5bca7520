"""MAHC (Model Aquatic Health Code) chemical standards and related constants."""

from ..models.compliance import (
    Bounds,
    ChemicalStandard,
    ChemicalType,
    Severity,
    ValidationStatus,
)

MAHC_STANDARDS: dict[ChemicalType, ChemicalStandard] = {
    ChemicalType.FREE_CHLORINE: ChemicalStandard(
        min=1.0,
        max=3.0,
        ideal=Bounds(min=1.5, max=2.5),
        unit="ppm",
        description="Free Available Chlorine",
        regulation="MAHC 5.7.3.1.1",
        critical_low=0.5,
        critical_high=5.0,
        precision=1,
    ),
    ChemicalType.TOTAL_CHLORINE: ChemicalStandard(
        min=1.0,
        max=4.0,
        ideal=Bounds(min=1.5, max=3.0),
        unit="ppm",
        description="Total Available Chlorine",
        regulation="MAHC 5.7.3.1.2",
        critical_low=0.5,
        critical_high=6.0,
        precision=1,
    ),
    ChemicalType.PH: ChemicalStandard(
        min=7.2,
        max=7.6,
        ideal=Bounds(min=7.3, max=7.5),
        unit="",
        description="pH Level",
        regulation="MAHC 5.7.3.2",
        critical_low=6.8,
        critical_high=8.0,
        precision=1,
    ),
    ChemicalType.ALKALINITY: ChemicalStandard(
        min=80,
        max=120,
        ideal=Bounds(min=90, max=110),
        unit="ppm",
        description="Total Alkalinity",
        regulation="MAHC 5.7.3.3",
        critical_low=60,
        critical_high=180,
    ),
    ChemicalType.CYANURIC_ACID: ChemicalStandard(
        min=30,
        max=50,
        ideal=Bounds(min=35, max=45),
        unit="ppm",
        description="Cyanuric Acid (Stabilizer)",
        regulation="MAHC 5.7.3.4",
        critical_low=10,
        critical_high=100,
    ),
    ChemicalType.CALCIUM_HARDNESS: ChemicalStandard(
        min=200,
        max=400,
        ideal=Bounds(min=250, max=350),
        unit="ppm",
        description="Calcium Hardness",
        regulation="MAHC 5.7.3.5",
        critical_low=150,
        critical_high=500,
    ),
    ChemicalType.TEMPERATURE: ChemicalStandard(
        min=78,
        max=84,
        ideal=Bounds(min=80, max=82),
        unit="°F",
        description="Water Temperature",
        regulation="MAHC 4.7.3.1",
        critical_low=75,
        critical_high=90,
    ),
}

# Canonical evaluation order
CHEMICAL_ORDER: tuple[ChemicalType, ...] = tuple(ChemicalType)

# Dashboard field names accepted in addition to the enum values
CHEMICAL_ALIASES: dict[str, ChemicalType] = {
    "freeChlorine": ChemicalType.FREE_CHLORINE,
    "totalChlorine": ChemicalType.TOTAL_CHLORINE,
    "cyanuricAcid": ChemicalType.CYANURIC_ACID,
    "calcium": ChemicalType.CALCIUM_HARDNESS,
    "calciumHardness": ChemicalType.CALCIUM_HARDNESS,
}

RECOMMENDATIONS: dict[ChemicalType, dict[str, str]] = {
    ChemicalType.FREE_CHLORINE: {
        "low": "Add liquid chlorine or granular chlorine. Check chlorine feeder operation.",
        "high": "Reduce chlorine addition. Allow natural dissipation or add sodium thiosulfate.",
    },
    ChemicalType.TOTAL_CHLORINE: {
        "low": "Increase chlorine levels. Check for chloramine formation.",
        "high": "Shock treatment may be needed to break chloramines. Test combined chlorine levels.",
    },
    ChemicalType.PH: {
        "low": "Add sodium carbonate (soda ash) to raise pH. Check alkalinity first.",
        "high": "Add muriatic acid or sodium bisulfate to lower pH. Test in small increments.",
    },
    ChemicalType.ALKALINITY: {
        "low": "Add sodium bicarbonate (baking soda) to increase alkalinity.",
        "high": "Add muriatic acid to lower alkalinity. Monitor pH changes closely.",
    },
    ChemicalType.CYANURIC_ACID: {
        "low": "Add cyanuric acid (stabilizer). Only needed for outdoor pools with chlorine.",
        "high": "Partial drain and refill required. Cannot be chemically reduced.",
    },
    ChemicalType.CALCIUM_HARDNESS: {
        "low": "Add calcium chloride to increase hardness. Prevents equipment corrosion.",
        "high": "Partial drain and refill required. Check for scale formation on surfaces.",
    },
    ChemicalType.TEMPERATURE: {
        "low": "Check heater operation. Adjust thermostat settings.",
        "high": "Check cooling system. Reduce heater temperature or increase circulation.",
    },
}

CLOSURE_RECOMMENDATION = "Immediate pool closure required. Contact facility manager."

# Base urgency per chemical; free chlorine is safety critical
BASE_PRIORITY: dict[ChemicalType, int] = {
    ChemicalType.FREE_CHLORINE: 10,
    ChemicalType.PH: 9,
    ChemicalType.TOTAL_CHLORINE: 8,
    ChemicalType.ALKALINITY: 6,
    ChemicalType.CYANURIC_ACID: 4,
    ChemicalType.CALCIUM_HARDNESS: 3,
    ChemicalType.TEMPERATURE: 2,
}

SEVERITY_MULTIPLIER: dict[ValidationStatus, int] = {
    ValidationStatus.EMERGENCY: 4,
    ValidationStatus.CRITICAL: 3,
    ValidationStatus.WARNING: 2,
    ValidationStatus.GOOD: 1,
}

STATUS_SEVERITY: dict[ValidationStatus, Severity] = {
    ValidationStatus.GOOD: Severity.LOW,
    ValidationStatus.WARNING: Severity.MEDIUM,
    ValidationStatus.CRITICAL: Severity.HIGH,
    ValidationStatus.EMERGENCY: Severity.CRITICAL,
}

# (text, background, border) color class tokens
STATUS_COLORS: dict[ValidationStatus, tuple[str, str, str]] = {
    ValidationStatus.GOOD: ("text-green-700", "bg-green-50", "border-green-400"),
    ValidationStatus.WARNING: ("text-orange-700", "bg-orange-50", "border-orange-400"),
    ValidationStatus.CRITICAL: ("text-red-700", "bg-red-50", "border-red-400"),
    ValidationStatus.EMERGENCY: ("text-red-900", "bg-red-100", "border-red-500"),
}
