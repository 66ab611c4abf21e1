from typing import Dict, Optional

from a11y_api.features.scan.models.scan import DEFAULT_SCANNER_TYPE, ScannerType
from a11y_api.features.scan.services.scanner.axe import AxeAccessibilityScanner
from a11y_api.features.scan.services.scanner.base import BaseAccessibilityScanner
from a11y_api.features.scan.services.scanner.htmlcs import HtmlcsAccessibilityScanner


class ScannerFactory:
    """Resolves the scanner engine for a job's scanner type."""

    def __init__(self, scanners: Dict[ScannerType, BaseAccessibilityScanner]):
        self._scanners = dict(scanners)

    @classmethod
    def from_settings(cls, settings) -> "ScannerFactory":
        return cls({
            ScannerType.htmlcs: HtmlcsAccessibilityScanner(settings.HTMLCS_SCRIPT_URL),
            ScannerType.axe: AxeAccessibilityScanner(settings.AXE_SCRIPT_URL),
        })

    def get_scanner(self, scanner_type: Optional[ScannerType] = None) -> BaseAccessibilityScanner:
        scanner_type = ScannerType(scanner_type or DEFAULT_SCANNER_TYPE)
        try:
            return self._scanners[scanner_type]
        except KeyError:
            raise ValueError(f"Unsupported scanner type: {scanner_type.value}") from None
