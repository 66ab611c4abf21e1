from a11y_api.features.scan.models.scan import ScannerType
from a11y_api.features.scan.services.scanner.base import BaseAccessibilityScanner
from a11y_api.features.scan.services.scanner.engine_scripts import DOM_HELPERS_JS

HTMLCS_RUNNER_JS = DOM_HELPERS_JS + r"""
var done = arguments[arguments.length - 1];
var rootSelector = arguments[0];
var language = arguments[1] || 'en';
var root = rootSelector ? document.querySelector(rootSelector) : document;
if (!root) {
  done({error: 'Root element not found: ' + rootSelector});
  return;
}
var typeNames = {1: 'error', 2: 'warning', 3: 'notice'};
try {
  HTMLCS.process('WCAG2AA', root, function () {
    var issues = HTMLCS.getMessages().map(function (m) {
      return {
        code: m.code,
        type: typeNames[m.type] || String(m.type),
        message: m.msg,
        selector: __a11yCssPath(m.element),
        context: __a11yContext(m.element)
      };
    });
    done({issues: issues});
  }, function (err) {
    done({error: String(err)});
  }, language);
} catch (err) {
  done({error: String(err)});
}
"""


class HtmlcsAccessibilityScanner(BaseAccessibilityScanner):
    """HTML_CodeSniffer against the WCAG2AA standard, messages in the scan language."""

    scanner_type = ScannerType.htmlcs
    engine_name = "HTMLCS"

    @property
    def runner_script(self) -> str:
        return HTMLCS_RUNNER_JS
