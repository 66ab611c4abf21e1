"""
Base accessibility scanner shared by every rule engine variant.

A scan opens an isolated context on the shared browser, navigates to the
target, runs the engine in the page, keeps only allow-listed rules, captures
a cropped screenshot per issue element and returns normalized IssueRecords.
Variants only supply the engine source and the runner script.
"""
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from pydantic import ValidationError
from selenium.common.exceptions import WebDriverException
from uuid_extension import uuid7

from a11y_api.features.scan.models.issue import IssueImpact
from a11y_api.features.scan.models.scan import ScannerType
from a11y_api.features.scan.schemas.issue import IssueRecord, RawIssue
from a11y_api.features.scan.schemas.scan_options import ScanOptions
from a11y_api.features.scan.services.browser.browser_manager import BrowserContext, BrowserHandle
from a11y_api.features.scan.services.scanner.engine_scripts import load_engine_source
from a11y_api.platform.exceptions import EngineContractError, ScanError, ScanExecutionError

logger = logging.getLogger(__name__)

# selectors that only point at the whole page give no useful visual context
PAGE_LEVEL_SELECTORS = frozenset({"html", "body", ":root", "html > body", "document"})

IMPACT_BY_TYPE = {
    "error": IssueImpact.error,
    "warning": IssueImpact.warning,
    "notice": IssueImpact.notice,
}


def ensure_screenshot_directory(directory: Path) -> None:
    if not directory.exists():
        directory.mkdir(parents=True, exist_ok=True)
        logger.info(f"Created screenshot directory: {directory}")


def map_severity(token: str) -> IssueImpact:
    impact = IMPACT_BY_TYPE.get(token)
    if impact is None:
        raise EngineContractError(
            f'Unknown issue type: "{token}". Expected one of: "error", "warning", "notice"'
        )
    return impact


def filter_issues_by_rules(issues: List[RawIssue], rule_ids: Optional[Iterable[str]]) -> List[RawIssue]:
    if not rule_ids:
        return issues

    allowed = set(rule_ids)
    filtered = [issue for issue in issues if issue.code in allowed]
    logger.info(
        f"Filtered {len(issues)} issues down to {len(filtered)} using {len(allowed)} rule IDs"
    )
    return filtered


def is_screenshot_worthy(selector: Optional[str]) -> bool:
    if not selector or not selector.strip():
        return False
    return selector.strip().lower() not in PAGE_LEVEL_SELECTORS


class BaseAccessibilityScanner(ABC):
    scanner_type: ScannerType
    engine_name: str

    def __init__(self, script_location: str, script_loader: Callable[[str], str] = load_engine_source):
        self.script_location = script_location
        self._script_loader = script_loader

    @property
    @abstractmethod
    def runner_script(self) -> str:
        """JS run with execute_async_script(root_selector, language, callback)."""

    def scan(self, url: str, handle: BrowserHandle, options: ScanOptions) -> List[IssueRecord]:
        logger.info(f"Starting {self.engine_name} scan for {url}")
        ensure_screenshot_directory(options.screenshot_dir)

        try:
            with handle.new_context(basic_auth=options.basic_auth, headers=options.headers) as context:
                context.navigate(url, options.timeout)

                raw_issues = self.run_rules(context, options)
                raw_issues = filter_issues_by_rules(raw_issues, options.rule_ids)

                # severity is validated before any screenshot is written
                impacts = [map_severity(issue.type) for issue in raw_issues]

                self.take_screenshots(context, raw_issues, options)
        except ScanError:
            raise
        except Exception as e:
            logger.error(f"{self.engine_name} scan of {url} failed: {e}")
            raise ScanExecutionError(f"Accessibility scan failed: {e}") from e

        records = [
            IssueRecord(
                rule_id=issue.code,
                description=issue.message,
                impact=impact,
                selector=issue.selector or None,
                context=issue.context or None,
                screenshot_filename=issue.screenshot_filename,
            )
            for issue, impact in zip(raw_issues, impacts)
        ]
        logger.info(f"{self.engine_name} scan completed. Found {len(records)} issues for {url}")
        return records

    def run_rules(self, context: BrowserContext, options: ScanOptions) -> List[RawIssue]:
        context.inject(self._script_loader(self.script_location))
        payload = context.evaluate(
            self.runner_script,
            options.root_element,
            options.language,
            timeout=options.timeout,
        )
        return self.parse_payload(payload)

    def parse_payload(self, payload) -> List[RawIssue]:
        if not isinstance(payload, dict):
            raise EngineContractError(f"{self.engine_name} runner returned {type(payload).__name__}, expected an object")
        if payload.get("error"):
            raise ScanExecutionError(f"{self.engine_name} failed in page: {payload['error']}")

        items = payload.get("issues")
        if not isinstance(items, list):
            raise EngineContractError(f"{self.engine_name} runner returned no issue list")
        try:
            issues = [RawIssue.model_validate(item) for item in items]
        except ValidationError as e:
            raise EngineContractError(f"{self.engine_name} returned a malformed issue: {e}") from e

        logger.debug(f"{self.engine_name} reported {len(issues)} raw issues")
        return issues

    def take_screenshots(self, context: BrowserContext, issues: List[RawIssue], options: ScanOptions) -> None:
        try:
            context.ready_state()
        except WebDriverException as e:
            logger.error(f"Page is closed, cannot take screenshots: {e}")
            return

        taken = 0
        for issue in issues:
            if not is_screenshot_worthy(issue.selector):
                logger.debug(f"Skipping screenshot for selector: {issue.selector}")
                continue

            filename = f"{uuid7()}.png"
            target = options.screenshot_dir / filename
            try:
                context.screenshot_element(issue.selector, str(target), options.screenshot_timeout)
            except Exception as e:
                logger.warning(f"Failed to take screenshot for selector '{issue.selector}': {e}")
                continue

            issue.screenshot_filename = filename
            taken += 1

        logger.info(f"Took screenshots for {taken} out of {len(issues)} issues")
