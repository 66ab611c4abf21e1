from a11y_api.features.scan.models.scan import ScannerType
from a11y_api.features.scan.services.scanner.base import BaseAccessibilityScanner
from a11y_api.features.scan.services.scanner.engine_scripts import DOM_HELPERS_JS

# violations are errors, "needs review" results are warnings
AXE_RUNNER_JS = DOM_HELPERS_JS + r"""
var done = arguments[arguments.length - 1];
var rootSelector = arguments[0];
var context = document;
if (rootSelector) {
  if (!document.querySelector(rootSelector)) {
    done({error: 'Root element not found: ' + rootSelector});
    return;
  }
  context = {include: [[rootSelector]]};
}
axe.run(context, {resultTypes: ['violations', 'incomplete']}).then(function (results) {
  var issues = [];
  function collect(rules, type) {
    rules.forEach(function (rule) {
      rule.nodes.forEach(function (node) {
        // one selector per iframe or shadow-root level; only a top-level target is queryable
        var target = [].concat(node.target);
        issues.push({
          code: rule.id,
          type: type,
          message: rule.help,
          selector: target.length === 1 ? String(target[0]) : null,
          context: node.html
        });
      });
    });
  }
  collect(results.violations, 'error');
  collect(results.incomplete, 'warning');
  done({issues: issues});
}).catch(function (err) {
  done({error: String(err)});
});
"""


class AxeAccessibilityScanner(BaseAccessibilityScanner):
    scanner_type = ScannerType.axe
    engine_name = "axe"

    @property
    def runner_script(self) -> str:
        return AXE_RUNNER_JS
