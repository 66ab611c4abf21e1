"""
Issue Schemas

Normalized issue records produced by scanner engines, plus the response
shapes used when scans are rendered for the API.
"""
from typing import List, Optional

from pydantic import BaseModel

from a11y_api.features.scan.models.issue import IssueImpact


class RawIssue(BaseModel):
    """One finding as reported by an in-page rule engine, before normalization."""
    code: str
    type: str
    message: str = ""
    selector: Optional[str] = None
    context: Optional[str] = None
    screenshot_filename: Optional[str] = None


class IssueRecord(BaseModel):
    """Engine-independent issue ready to be persisted against a scan."""
    rule_id: str
    description: str
    impact: IssueImpact
    selector: Optional[str] = None
    context: Optional[str] = None
    screenshot_filename: Optional[str] = None


class IssueDetail(BaseModel):
    id: int
    selector: Optional[str] = None
    context: Optional[str] = None
    screenshot_url: Optional[str] = None


class RuleInfo(BaseModel):
    id: str
    description: str
    impact: IssueImpact
    urls: List[str]


class Violation(BaseModel):
    rule: RuleInfo
    issues: List[IssueDetail]
    issue_count: int
