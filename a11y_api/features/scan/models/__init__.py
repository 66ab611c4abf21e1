"""
Scan models package.
"""
from a11y_api.features.scan.models.scan import Scan, ScanStatus, ScannerType
from a11y_api.features.scan.models.issue import Issue, IssueImpact

__all__ = ["Scan", "ScanStatus", "ScannerType", "Issue", "IssueImpact"]
