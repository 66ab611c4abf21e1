from a11y_api.features.scan.services.processor.results import (
    PersistenceSummary,
    ProcessOutcome,
    ProcessResult,
    classify_failure,
)
from a11y_api.features.scan.services.processor.scan_processor import ScanProcessor

__all__ = [
    "PersistenceSummary",
    "ProcessOutcome",
    "ProcessResult",
    "ScanProcessor",
    "classify_failure",
]
