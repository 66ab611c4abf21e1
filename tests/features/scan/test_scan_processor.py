"""
Tests for the scan processor state machine and issue persistence.
"""

from unittest.mock import MagicMock

import pytest
from selenium.common.exceptions import InvalidSessionIdException
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from a11y_api.features.scan.models.issue import Issue, IssueImpact
from a11y_api.features.scan.models.scan import Scan, ScanStatus
from a11y_api.features.scan.schemas.issue import IssueRecord
from a11y_api.features.scan.schemas.job import ScanJob
from a11y_api.features.scan.services.processor.results import ProcessOutcome
from a11y_api.features.scan.services.processor.scan_processor import ScanProcessor
from a11y_api.platform.exceptions import BrowserUnavailableError, EngineContractError, ScanExecutionError


def record(rule_id="rule-a", screenshot=None):
    return IssueRecord(
        rule_id=rule_id,
        description=f"{rule_id} failed",
        impact=IssueImpact.error,
        selector="#x",
        context="<div id='x'>",
        screenshot_filename=screenshot,
    )


def failing_commits(session_factory, fail_on):
    """Session factory whose Nth opened sessions fail to commit."""
    opened = {"count": 0}

    def factory():
        session = session_factory()
        opened["count"] += 1
        if opened["count"] in fail_on:
            session.commit = MagicMock(side_effect=OperationalError("INSERT", {}, Exception("database is locked")))
        return session

    return factory


@pytest.fixture
def scanner():
    return MagicMock()


@pytest.fixture
def browser_manager():
    return MagicMock()


@pytest.fixture
def processor(session_factory, browser_manager, scanner, screenshot_dir):
    scanner_factory = MagicMock()
    scanner_factory.get_scanner.return_value = scanner
    return ScanProcessor(session_factory, browser_manager, scanner_factory, screenshot_dir)


def status_of(session_factory, scan_id):
    session = session_factory()
    try:
        return session.get(Scan, scan_id).status
    finally:
        session.close()


def issues_of(session_factory, scan_id):
    session = session_factory()
    try:
        return session.scalars(select(Issue).where(Issue.scan_id == scan_id).order_by(Issue.id)).all()
    finally:
        session.close()


class TestScanProcessor:
    def test_success_persists_running_then_issues_then_completed(self, processor, scanner, session_factory, make_scan):
        scan_id = make_scan()
        seen = {}

        def fake_scan(url, handle, options):
            seen["status"] = status_of(session_factory, scan_id)
            seen["options"] = options
            return [record("rule-a", "a.png"), record("rule-b")]

        scanner.scan.side_effect = fake_scan

        result = processor.process(ScanJob(scan_id=scan_id, url="https://example.com", language="de", rule_ids=["rule-a", "rule-b"]))

        assert result.outcome is ProcessOutcome.succeeded
        assert result.summary.saved == 2
        assert seen["status"] == ScanStatus.running.value
        assert seen["options"].language == "de"
        assert seen["options"].rule_ids == ["rule-a", "rule-b"]
        assert status_of(session_factory, scan_id) == ScanStatus.completed.value
        stored = issues_of(session_factory, scan_id)
        assert [(i.rule_id, i.screenshot_filename) for i in stored] == [("rule-a", "a.png"), ("rule-b", None)]

    def test_zero_issues_still_completes(self, processor, scanner, session_factory, make_scan):
        scan_id = make_scan()
        scanner.scan.return_value = []

        result = processor.process(ScanJob(scan_id=scan_id, url="https://example.com"))

        assert result.succeeded
        assert status_of(session_factory, scan_id) == ScanStatus.completed.value
        assert issues_of(session_factory, scan_id) == []

    def test_engine_failure_marks_failed_and_is_retryable(self, processor, scanner, session_factory, make_scan):
        scan_id = make_scan()
        scanner.scan.side_effect = ScanExecutionError("Navigation timeout of 30000 ms exceeded")

        result = processor.process(ScanJob(scan_id=scan_id, url="https://example.com"))

        assert result.outcome is ProcessOutcome.retryable
        assert isinstance(result.error, ScanExecutionError)
        assert status_of(session_factory, scan_id) == ScanStatus.failed.value

    def test_browser_unavailable_is_retryable(self, processor, browser_manager, scanner, session_factory, make_scan):
        scan_id = make_scan()
        browser_manager.get_handle.side_effect = BrowserUnavailableError("Unable to launch local Chrome")

        result = processor.process(ScanJob(scan_id=scan_id, url="https://example.com"))

        assert result.outcome is ProcessOutcome.retryable
        scanner.scan.assert_not_called()
        assert status_of(session_factory, scan_id) == ScanStatus.failed.value

    def test_contract_violation_is_fatal(self, processor, scanner, session_factory, make_scan):
        scan_id = make_scan()
        scanner.scan.side_effect = EngineContractError('Unknown issue type: "critical"')

        result = processor.process(ScanJob(scan_id=scan_id, url="https://example.com"))

        assert result.outcome is ProcessOutcome.fatal
        assert status_of(session_factory, scan_id) == ScanStatus.failed.value

    def test_missing_scan_is_fatal_and_never_scanned(self, processor, scanner):
        result = processor.process(ScanJob(scan_id=9999, url="https://example.com"))

        assert result.outcome is ProcessOutcome.fatal
        assert "9999" in str(result.error)
        scanner.scan.assert_not_called()

    def test_partial_persistence_fails_attempt_but_keeps_saved_issues(self, session_factory, browser_manager, scanner, screenshot_dir, make_scan):
        scan_id = make_scan()
        scanner_factory = MagicMock()
        scanner_factory.get_scanner.return_value = scanner
        scanner.scan.return_value = [record("a"), record("b"), record("c")]
        # session 1 writes RUNNING, sessions 2-4 write one issue each
        processor = ScanProcessor(failing_commits(session_factory, {3}), browser_manager, scanner_factory, screenshot_dir)

        result = processor.process(ScanJob(scan_id=scan_id, url="https://example.com"))

        assert result.outcome is ProcessOutcome.retryable
        assert result.summary.attempted == 3
        assert result.summary.saved == 2
        assert [f.rule_id for f in result.summary.failures] == ["b"]
        assert result.summary.is_partial
        assert status_of(session_factory, scan_id) == ScanStatus.failed.value
        assert [i.rule_id for i in issues_of(session_factory, scan_id)] == ["a", "c"]

    def test_retry_attempt_replaces_previous_issues(self, processor, scanner, session_factory, make_scan):
        scan_id = make_scan(
            status=ScanStatus.failed,
            issues=[{"rule_id": "stale", "description": "left by attempt 1", "impact": "error"}],
        )
        scanner.scan.return_value = [record("fresh")]

        result = processor.process(ScanJob(scan_id=scan_id, url="https://example.com"), attempt=2)

        assert result.succeeded
        assert [i.rule_id for i in issues_of(session_factory, scan_id)] == ["fresh"]

    def test_redelivered_job_does_not_duplicate_issues(self, processor, scanner, session_factory, make_scan):
        # a worker crash makes the broker hand out the job again with retries still at 0
        scan_id = make_scan()
        scanner.scan.return_value = [record("a"), record("b")]
        job = ScanJob(scan_id=scan_id, url="https://example.com")

        processor.process(job, attempt=1)
        result = processor.process(job, attempt=1)

        assert result.succeeded
        assert sorted(i.rule_id for i in issues_of(session_factory, scan_id)) == ["a", "b"]

    def test_lost_browser_session_is_discarded(self, processor, browser_manager, scanner, make_scan):
        scan_id = make_scan()
        error = ScanExecutionError("Accessibility scan failed")
        error.__cause__ = InvalidSessionIdException("invalid session id")
        scanner.scan.side_effect = error

        result = processor.process(ScanJob(scan_id=scan_id, url="https://example.com"))

        assert result.outcome is ProcessOutcome.retryable
        browser_manager.discard.assert_called_once()

    def test_ordinary_failure_keeps_browser(self, processor, browser_manager, scanner, make_scan):
        scan_id = make_scan()
        scanner.scan.side_effect = ScanExecutionError("boom")

        processor.process(ScanJob(scan_id=scan_id, url="https://example.com"))

        browser_manager.discard.assert_not_called()
