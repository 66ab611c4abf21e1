"""
Tests for the scanner engines, driven through a mocked browser context.
"""

from unittest.mock import MagicMock, patch

import pytest
from selenium.common.exceptions import TimeoutException, WebDriverException

from a11y_api.features.scan.models.issue import IssueImpact
from a11y_api.features.scan.models.scan import ScannerType
from a11y_api.features.scan.schemas.issue import RawIssue
from a11y_api.features.scan.schemas.scan_options import BasicAuth, ScanOptions
from a11y_api.features.scan.services.scanner.axe import AxeAccessibilityScanner
from a11y_api.features.scan.services.scanner.base import (
    filter_issues_by_rules,
    is_screenshot_worthy,
    map_severity,
)
from a11y_api.features.scan.services.scanner.engine_scripts import load_engine_source
from a11y_api.features.scan.services.scanner.factory import ScannerFactory
from a11y_api.features.scan.services.scanner.htmlcs import HtmlcsAccessibilityScanner
from a11y_api.platform.exceptions import EngineContractError, ScanExecutionError

SCRIPTS_MODULE = "a11y_api.features.scan.services.scanner.engine_scripts"


def make_handle(payload):
    """A BrowserHandle double whose context returns the given runner payload."""
    context = MagicMock()
    context.evaluate.return_value = payload
    context.ready_state.return_value = "complete"
    handle = MagicMock()
    handle.new_context.return_value.__enter__.return_value = context
    handle.new_context.return_value.__exit__.return_value = False
    return handle, context


def issue(code="WCAG2AA.Principle1.Guideline1_1.1_1_1.H37", type_="error", selector="img.logo"):
    return {"code": code, "type": type_, "message": f"{code} message", "selector": selector, "context": "<img>"}


@pytest.fixture
def scanner():
    return HtmlcsAccessibilityScanner("htmlcs.js", script_loader=lambda location: "/* engine */")


@pytest.fixture
def options(screenshot_dir):
    return ScanOptions(screenshot_dir=screenshot_dir, timeout=30, screenshot_timeout=5)


class TestHelpers:
    def test_map_severity(self):
        assert map_severity("error") is IssueImpact.error
        assert map_severity("warning") is IssueImpact.warning
        assert map_severity("notice") is IssueImpact.notice

    def test_map_severity_rejects_unknown_token(self):
        with pytest.raises(EngineContractError, match='Unknown issue type: "critical"'):
            map_severity("critical")

    def test_filter_is_identity_without_rules(self):
        issues = [RawIssue(code="a", type="error"), RawIssue(code="b", type="error")]
        assert filter_issues_by_rules(issues, None) is issues
        assert filter_issues_by_rules(issues, []) is issues

    def test_filter_keeps_only_allowed_codes(self):
        issues = [RawIssue(code="a", type="error"), RawIssue(code="b", type="error")]
        assert [i.code for i in filter_issues_by_rules(issues, ["b", "zzz"])] == ["b"]

    @pytest.mark.parametrize("selector", [None, "", "   ", "html", "body", "BODY", ":root"])
    def test_page_level_selectors_are_not_screenshot_worthy(self, selector):
        assert is_screenshot_worthy(selector) is False

    def test_element_selector_is_screenshot_worthy(self):
        assert is_screenshot_worthy("#main > form input:nth-child(2)") is True


class TestAccessibilityScanner:
    def test_scan_returns_normalized_records_with_screenshots(self, scanner, options, screenshot_dir):
        handle, context = make_handle({"issues": [issue(), issue(code="X", type_="notice", selector="body")]})

        records = scanner.scan("https://example.com", handle, options)

        context.navigate.assert_called_once_with("https://example.com", 30)
        context.inject.assert_called_once_with("/* engine */")
        assert [r.impact for r in records] == [IssueImpact.error, IssueImpact.notice]
        assert records[0].screenshot_filename.endswith(".png")
        assert records[1].screenshot_filename is None
        # only the element-level issue was captured
        context.screenshot_element.assert_called_once()
        selector, path, timeout = context.screenshot_element.call_args.args
        assert selector == "img.logo"
        assert path == str(screenshot_dir / records[0].screenshot_filename)
        assert timeout == 5

    def test_passes_root_element_and_language_to_runner(self, scanner, screenshot_dir):
        handle, context = make_handle({"issues": []})
        opts = ScanOptions(screenshot_dir=screenshot_dir, root_element="#content", language="fr", timeout=12)

        assert scanner.scan("https://example.com", handle, opts) == []
        args = context.evaluate.call_args
        assert args.args[1:] == ("#content", "fr")
        assert args.kwargs == {"timeout": 12}

    def test_context_receives_auth_and_headers(self, scanner, screenshot_dir):
        handle, _ = make_handle({"issues": []})
        auth = BasicAuth(username="u", password="p")
        opts = ScanOptions(screenshot_dir=screenshot_dir, basic_auth=auth, headers={"X-Test": "1"})

        scanner.scan("https://example.com", handle, opts)

        handle.new_context.assert_called_once_with(basic_auth=auth, headers={"X-Test": "1"})

    def test_screenshot_failure_keeps_issue(self, scanner, options):
        handle, context = make_handle({"issues": [issue(selector="#a"), issue(selector="#b")]})
        context.screenshot_element.side_effect = [TimeoutException("not visible"), None]

        records = scanner.scan("https://example.com", handle, options)

        assert len(records) == 2
        assert records[0].screenshot_filename is None
        assert records[1].screenshot_filename is not None

    def test_unknown_severity_aborts_before_screenshots(self, scanner, options, screenshot_dir):
        handle, context = make_handle({"issues": [issue(), issue(type_="critical")]})

        with pytest.raises(EngineContractError):
            scanner.scan("https://example.com", handle, options)

        context.screenshot_element.assert_not_called()
        assert list(screenshot_dir.iterdir()) == []

    def test_rule_filter_applies_before_screenshots(self, scanner, screenshot_dir):
        handle, context = make_handle({"issues": [issue(code="keep"), issue(code="drop")]})
        opts = ScanOptions(screenshot_dir=screenshot_dir, rule_ids=["keep"])

        records = scanner.scan("https://example.com", handle, opts)

        assert [r.rule_id for r in records] == ["keep"]
        assert context.screenshot_element.call_count == 1

    def test_in_page_error_becomes_execution_error(self, scanner, options):
        handle, _ = make_handle({"error": "Root element not found: #missing"})
        with pytest.raises(ScanExecutionError, match="Root element not found"):
            scanner.scan("https://example.com", handle, options)

    @pytest.mark.parametrize("payload", [None, [], {"issues": "nope"}, {"issues": [{"type": "error"}]}])
    def test_malformed_payload_is_a_contract_violation(self, scanner, options, payload):
        handle, _ = make_handle(payload)
        with pytest.raises(EngineContractError):
            scanner.scan("https://example.com", handle, options)

    def test_navigation_failure_is_wrapped_with_cause(self, scanner, options):
        handle, context = make_handle({"issues": []})
        cause = WebDriverException("net::ERR_NAME_NOT_RESOLVED")
        context.navigate.side_effect = cause

        with pytest.raises(ScanExecutionError) as exc_info:
            scanner.scan("https://nowhere.invalid", handle, options)

        assert exc_info.value.__cause__ is cause

    def test_creates_missing_screenshot_directory(self, scanner, tmp_path):
        target = tmp_path / "nested" / "shots"
        handle, _ = make_handle({"issues": []})

        scanner.scan("https://example.com", handle, ScanOptions(screenshot_dir=target))

        assert target.is_dir()


class TestAxeScanner:
    def test_runner_only_reports_single_level_targets_as_selectors(self):
        script = AxeAccessibilityScanner("axe.js").runner_script
        assert "target.length === 1 ? String(target[0]) : null" in script
        assert ".join(' ')" not in script

    def test_framed_node_is_kept_without_screenshot(self, options):
        axe = AxeAccessibilityScanner("axe.js", script_loader=lambda location: "/* engine */")
        handle, context = make_handle({"issues": [
            {"code": "image-alt", "type": "error", "message": "Images must have alt text", "selector": None, "context": "<img>"},
        ]})

        records = axe.scan("https://example.com", handle, options)

        assert records[0].rule_id == "image-alt"
        assert records[0].selector is None
        context.screenshot_element.assert_not_called()


class TestScannerFactory:
    def test_selects_engine_by_type(self):
        htmlcs = HtmlcsAccessibilityScanner("htmlcs.js")
        axe = AxeAccessibilityScanner("axe.js")
        factory = ScannerFactory({ScannerType.htmlcs: htmlcs, ScannerType.axe: axe})

        assert factory.get_scanner(ScannerType.axe) is axe
        assert factory.get_scanner(None) is htmlcs
        assert factory.get_scanner(ScannerType.axe).scanner_type is ScannerType.axe

    def test_unsupported_type(self):
        factory = ScannerFactory({ScannerType.htmlcs: HtmlcsAccessibilityScanner("htmlcs.js")})
        with pytest.raises(ValueError, match="Unsupported scanner type"):
            factory.get_scanner(ScannerType.axe)


class TestEngineSource:
    def setup_method(self):
        load_engine_source.cache_clear()

    def test_reads_local_file(self, tmp_path):
        script = tmp_path / "HTMLCS.js"
        script.write_text("window.HTMLCS = {};", encoding="utf-8")

        assert load_engine_source(str(script)) == "window.HTMLCS = {};"

    def test_downloads_remote_script_once(self):
        with patch(f"{SCRIPTS_MODULE}.httpx.get") as get:
            get.return_value.text = "window.axe = {};"
            first = load_engine_source("https://cdn.example.com/axe.min.js")
            second = load_engine_source("https://cdn.example.com/axe.min.js")

        assert first == second == "window.axe = {};"
        get.assert_called_once()
        get.return_value.raise_for_status.assert_called_once()
