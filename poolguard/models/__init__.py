"""Data models for compliance checks and the offline queue."""

from .compliance import (
    ChemicalType,
    ValidationStatus,
    Severity,
    ComplianceStatus,
    Bounds,
    ChemicalRange,
    ChemicalStandard,
    ValidationResult,
    ComplianceReport,
    ClosureDecision,
)

from .queue import (
    QueueItem,
    QueueStats,
    SyncError,
    SyncResult,
)

__all__ = [
    # Compliance models
    "ChemicalType",
    "ValidationStatus",
    "Severity",
    "ComplianceStatus",
    "Bounds",
    "ChemicalRange",
    "ChemicalStandard",
    "ValidationResult",
    "ComplianceReport",
    "ClosureDecision",
    # Queue models
    "QueueItem",
    "QueueStats",
    "SyncError",
    "SyncResult",
]
