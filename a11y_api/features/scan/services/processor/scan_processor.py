"""
Scan processor: runs one delivery of a scan job.

Status moves pending -> running -> completed | failed. RUNNING is written
before any scan work so a crash leaves a visible stuck-running scan.
Every delivery starts from an empty issue set for its scan. Every
failure is reported as a ProcessResult instead of an exception; the queue
decides from its outcome whether the job is retried.
"""
import logging
from pathlib import Path
from typing import Callable, List

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from a11y_api.features.scan.models.issue import Issue
from a11y_api.features.scan.models.scan import Scan, ScanStatus
from a11y_api.features.scan.schemas.issue import IssueRecord
from a11y_api.features.scan.schemas.job import ScanJob
from a11y_api.features.scan.schemas.scan_options import ScanOptions
from a11y_api.features.scan.services.browser.browser_manager import BrowserManager, is_session_lost
from a11y_api.features.scan.services.processor.results import (
    IssuePersistenceError,
    IssueWriteFailure,
    PersistenceSummary,
    ProcessOutcome,
    ProcessResult,
    classify_failure,
)
from a11y_api.features.scan.services.scanner.factory import ScannerFactory
from a11y_api.platform.exceptions import ScanNotFoundError

logger = logging.getLogger(__name__)


class ScanProcessor:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        browser_manager: BrowserManager,
        scanner_factory: ScannerFactory,
        screenshot_dir: Path,
        scan_timeout: float = 30,
        screenshot_timeout: float = 5,
    ):
        self.session_factory = session_factory
        self.browser_manager = browser_manager
        self.scanner_factory = scanner_factory
        self.screenshot_dir = Path(screenshot_dir)
        self.scan_timeout = scan_timeout
        self.screenshot_timeout = screenshot_timeout

    def process(self, job: ScanJob, attempt: int = 1) -> ProcessResult:
        scan_id = job.scan_id
        logger.info(
            f"[scan {scan_id}] Processing {job.url} with {job.scanner_type.value} "
            f"(attempt {attempt}{', root element ' + job.root_element if job.root_element else ''})"
        )

        try:
            self.update_status(scan_id, ScanStatus.running)
        except ScanNotFoundError as e:
            logger.error(f"[scan {scan_id}] Scan no longer exists, dropping job")
            return ProcessResult(ProcessOutcome.fatal, scan_id, error=e)

        summary = None
        try:
            # a broker redelivery arrives with the same attempt number
            self.clear_issues(scan_id)

            handle = self.browser_manager.get_handle()
            scanner = self.scanner_factory.get_scanner(job.scanner_type)
            records = scanner.scan(job.url, handle, self.build_options(job))

            summary = self.save_issues(scan_id, records)
            if summary.failed:
                raise IssuePersistenceError(summary)

            self.update_status(scan_id, ScanStatus.completed)
        except Exception as e:
            return self._handle_failure(scan_id, e, summary)

        logger.info(f"[scan {scan_id}] Completed with {summary.saved} issues")
        return ProcessResult(ProcessOutcome.succeeded, scan_id, summary=summary)

    def _handle_failure(self, scan_id: int, error: Exception, summary) -> ProcessResult:
        logger.error(f"[scan {scan_id}] Scan failed: {error}", exc_info=True)

        if is_session_lost(error) or (error.__cause__ is not None and is_session_lost(error.__cause__)):
            self.browser_manager.discard()

        outcome = classify_failure(error)
        try:
            self.update_status(scan_id, ScanStatus.failed)
        except ScanNotFoundError:
            outcome = ProcessOutcome.fatal

        return ProcessResult(outcome, scan_id, summary=summary, error=error)

    def build_options(self, job: ScanJob) -> ScanOptions:
        return ScanOptions(
            timeout=self.scan_timeout,
            screenshot_timeout=self.screenshot_timeout,
            screenshot_dir=self.screenshot_dir,
            rule_ids=job.rule_ids or None,
            root_element=job.root_element or None,
            language=job.language,
        )

    def update_status(self, scan_id: int, status: ScanStatus) -> None:
        db = self.session_factory()
        try:
            scan = db.get(Scan, scan_id)
            if scan is None:
                raise ScanNotFoundError(scan_id)
            scan.status = status.value
            db.commit()
        finally:
            db.close()

    def clear_issues(self, scan_id: int) -> None:
        """Drop issues written by an earlier delivery of the same job."""
        db = self.session_factory()
        try:
            result = db.execute(delete(Issue).where(Issue.scan_id == scan_id))
            db.commit()
            if result.rowcount:
                logger.info(f"[scan {scan_id}] Cleared {result.rowcount} issues from a previous delivery")
        finally:
            db.close()

    def save_issues(self, scan_id: int, records: List[IssueRecord]) -> PersistenceSummary:
        """Each issue is its own write; one failure does not undo the others."""
        summary = PersistenceSummary(attempted=len(records))

        for record in records:
            db = self.session_factory()
            try:
                db.add(Issue(
                    scan_id=scan_id,
                    rule_id=record.rule_id,
                    description=record.description,
                    impact=record.impact.value,
                    selector=record.selector,
                    context=record.context,
                    screenshot_filename=record.screenshot_filename,
                ))
                db.commit()
                summary.saved += 1
                logger.debug(
                    f"[scan {scan_id}] Saved issue '{record.rule_id}' "
                    f"(impact={record.impact.value}, screenshot={record.screenshot_filename or 'none'})"
                )
            except SQLAlchemyError as e:
                db.rollback()
                summary.failures.append(IssueWriteFailure(rule_id=record.rule_id, error=str(e)))
                logger.error(f"[scan {scan_id}] Failed to save issue '{record.rule_id}': {e}")
            finally:
                db.close()

        return summary
