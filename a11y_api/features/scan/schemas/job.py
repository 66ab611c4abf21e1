from typing import List, Optional

from pydantic import BaseModel

from a11y_api.features.scan.models.scan import DEFAULT_LANGUAGE, DEFAULT_SCANNER_TYPE, ScannerType


class ScanJob(BaseModel):
    """Queue payload for one "perform this scan" unit of work."""
    scan_id: int
    url: str
    language: str = DEFAULT_LANGUAGE
    root_element: Optional[str] = None
    scanner_type: ScannerType = DEFAULT_SCANNER_TYPE
    rule_ids: Optional[List[str]] = None
