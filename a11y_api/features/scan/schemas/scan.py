"""
Scan Schemas

Request and response models for the scan API endpoints.
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from a11y_api.features.scan.models.scan import ScannerType, ScanStatus
from a11y_api.features.scan.schemas.issue import Violation

Language = Literal[
    "ar", "fr", "es", "it", "ja", "nl", "pl", "ko", "zh_CN", "zh_TW",
    "da", "de", "eu", "he", "no_NB", "pt_BR", "en",
]


class CreateScanRequest(BaseModel):
    url: str
    language: Language = "en"
    root_element: Optional[str] = Field(default=None, max_length=512)
    scanner_type: Optional[ScannerType] = None
    rule_ids: Optional[List[str]] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "url": "https://example.com",
                "language": "en",
                "scanner_type": "htmlcs",
            }
        }
    }


class ScanResponse(BaseModel):
    id: int
    url: str
    language: str
    root_element: Optional[str] = None
    scanner_type: ScannerType
    status: ScanStatus
    violations: List[Violation]
    total_issue_count: int
    created_at: datetime
    updated_at: datetime


class QueueStatusResponse(BaseModel):
    waiting: int
    active: int
    completed: int
    failed: int


class CleanupResultResponse(BaseModel):
    scans_removed: int
    issues_removed: int
    files_removed: int
    orphaned_files: int


class CleanupConfigResponse(BaseModel):
    enabled: bool
    retention_days: int
    screenshot_dir: str
    interval: str
    batch_size: int
    concurrency_limit: int
