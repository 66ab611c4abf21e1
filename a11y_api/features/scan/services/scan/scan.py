"""
Scan service: the synchronous half of the pipeline.

Creating a scan only writes a PENDING row and hands a job to the queue; all
browser work happens in the worker. Reads render a scan with its issues
grouped by rule and annotated with help URLs.
"""
import logging
from collections import OrderedDict
from typing import Dict, List, Optional

from fastapi import HTTPException, status
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from a11y_api.features.scan.models.issue import Issue, IssueImpact
from a11y_api.features.scan.models.scan import DEFAULT_SCANNER_TYPE, Scan, ScannerType, ScanStatus
from a11y_api.features.scan.schemas.issue import IssueDetail, RuleInfo, Violation
from a11y_api.features.scan.schemas.job import ScanJob
from a11y_api.features.scan.schemas.scan import CreateScanRequest, ScanResponse
from a11y_api.features.scan.services.queue.scan_queue import ScanQueue
from a11y_api.features.scan.services.rules.factory import RuleServiceFactory
from a11y_api.platform.exceptions import ScanNotFoundError
from a11y_api.platform.utils.url_validator import validate_url

logger = logging.getLogger(__name__)


class ScanService:
    def __init__(
        self,
        db: Session,
        queue: ScanQueue,
        rule_factory: RuleServiceFactory,
        base_url: str = "",
    ):
        self.db = db
        self.queue = queue
        self.rule_factory = rule_factory
        self.base_url = base_url.rstrip("/")

    def create(self, request: CreateScanRequest) -> ScanResponse:
        is_valid, url, error_message = validate_url(request.url)
        if not is_valid:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid URL: {error_message}",
            )

        scanner_type = request.scanner_type or DEFAULT_SCANNER_TYPE
        scan = Scan(
            url=url,
            language=request.language,
            root_element=request.root_element or None,
            scanner_type=scanner_type.value,
            status=ScanStatus.pending.value,
        )
        self.db.add(scan)
        self.db.commit()
        self.db.refresh(scan)
        logger.info(f"[scan {scan.id}] Created for {url} ({scanner_type.value})")

        job = ScanJob(
            scan_id=scan.id,
            url=url,
            language=scan.language,
            root_element=scan.root_element,
            scanner_type=scanner_type,
            rule_ids=request.rule_ids,
        )
        try:
            self.queue.enqueue(job)
        except Exception as e:
            # the row exists but no worker will ever pick it up
            logger.error(f"[scan {scan.id}] Failed to enqueue job: {e}")
            scan.status = ScanStatus.failed.value
            self.db.commit()
            raise

        return self.enrich(scan)

    def find_all(self) -> List[ScanResponse]:
        scans = self.db.scalars(select(Scan).order_by(Scan.created_at.desc(), Scan.id.desc())).all()
        return [self.enrich(scan) for scan in scans]

    def find_one(self, scan_id: int) -> ScanResponse:
        return self.enrich(self._get(scan_id))

    def find_by_url(self, url: str) -> List[ScanResponse]:
        is_valid, normalized, _ = validate_url(url)
        candidates = {url.strip()}
        if is_valid:
            candidates.add(normalized)
        scans = self.db.scalars(
            select(Scan).where(Scan.url.in_(candidates)).order_by(Scan.created_at.desc(), Scan.id.desc())
        ).all()
        return [self.enrich(scan) for scan in scans]

    def remove(self, scan_id: int) -> None:
        result = self.db.execute(delete(Scan).where(Scan.id == scan_id))
        if not result.rowcount:
            self.db.rollback()
            raise ScanNotFoundError(scan_id)
        self.db.commit()
        logger.info(f"[scan {scan_id}] Deleted")

    def _get(self, scan_id: int) -> Scan:
        scan = self.db.get(Scan, scan_id)
        if scan is None:
            raise ScanNotFoundError(scan_id)
        return scan

    def screenshot_url(self, filename: Optional[str]) -> Optional[str]:
        if not filename:
            return None
        return f"{self.base_url}/screenshots/{filename}"

    def enrich(self, scan: Scan) -> ScanResponse:
        rule_service = self.rule_factory.get_rule_service(scan.scanner_type)

        grouped: Dict[str, List[Issue]] = OrderedDict()
        for issue in scan.issues:
            grouped.setdefault(issue.rule_id, []).append(issue)

        violations = []
        for rule_id, issues in grouped.items():
            first = issues[0]
            violations.append(Violation(
                rule=RuleInfo(
                    id=rule_id,
                    description=first.description,
                    impact=IssueImpact(first.impact),
                    urls=rule_service.get_help_urls(rule_id),
                ),
                issues=[
                    IssueDetail(
                        id=issue.id,
                        selector=issue.selector,
                        context=issue.context,
                        screenshot_url=self.screenshot_url(issue.screenshot_filename),
                    )
                    for issue in issues
                ],
                issue_count=len(issues),
            ))

        return ScanResponse(
            id=scan.id,
            url=scan.url,
            language=scan.language,
            root_element=scan.root_element,
            scanner_type=ScannerType(scan.scanner_type),
            status=ScanStatus(scan.status),
            violations=violations,
            total_issue_count=len(scan.issues),
            created_at=scan.created_at,
            updated_at=scan.updated_at,
        )
