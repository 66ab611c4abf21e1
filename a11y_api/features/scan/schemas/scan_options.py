"""
Scan option models passed from the processor to a scanner engine.
"""
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class BasicAuth(BaseModel):
    username: str
    password: str


class ScanOptions(BaseModel):
    """Everything a scanner engine needs besides the URL and the browser handle."""
    timeout: float = 30
    screenshot_timeout: float = 5
    screenshot_dir: Path
    rule_ids: Optional[List[str]] = None
    basic_auth: Optional[BasicAuth] = None
    headers: Optional[Dict[str, str]] = None
    root_element: Optional[str] = None
    language: str = "en"
