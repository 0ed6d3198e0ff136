"""Import of decoded snapshots into the record store."""

from .orchestrator import (
    CategoryCounts,
    ImportOrchestrator,
    ImportState,
    ImportSummary,
    RecordError,
)
from .validation import KnownRecords, SnapshotValidator, ValidationReport

__all__ = [
    "CategoryCounts",
    "ImportOrchestrator",
    "ImportState",
    "ImportSummary",
    "RecordError",
    "KnownRecords",
    "SnapshotValidator",
    "ValidationReport",
]
