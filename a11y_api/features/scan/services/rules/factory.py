from typing import Dict, List, Optional, Protocol, Union

from a11y_api.features.scan.models.scan import DEFAULT_SCANNER_TYPE, ScannerType
from a11y_api.features.scan.services.rules.axe_rules import AxeRuleService
from a11y_api.features.scan.services.rules.htmlcs_rules import HtmlcsRuleService


class RuleService(Protocol):
    def get_help_urls(self, rule_id: str) -> List[str]: ...


class RuleServiceFactory:
    def __init__(self, services: Dict[ScannerType, RuleService]):
        self._services = dict(services)

    @classmethod
    def from_settings(cls, settings) -> "RuleServiceFactory":
        return cls({
            ScannerType.htmlcs: HtmlcsRuleService(settings.WCAG_TECHNIQUES_BASE_URL),
            ScannerType.axe: AxeRuleService(settings.AXE_HELP_BASE_URL),
        })

    def get_rule_service(self, scanner_type: Optional[Union[ScannerType, str]] = None) -> RuleService:
        scanner_type = ScannerType(scanner_type or DEFAULT_SCANNER_TYPE)
        try:
            return self._services[scanner_type]
        except KeyError:
            raise ValueError(f"Unsupported scanner type: {scanner_type.value}") from None
