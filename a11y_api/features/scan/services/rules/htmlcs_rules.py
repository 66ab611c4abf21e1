"""
Help URLs for HTML_CodeSniffer rule codes.

HTMLCS codes embed the WCAG technique ids they check, e.g.
``WCAG2AA.Principle1.Guideline1_1.1_1_1.H37`` or
``WCAG2AA.Principle2.Guideline2_4.2_4_1.G1,G123,G124.NoSuchID``. Each
technique id is routed to its W3C techniques category by its letter prefix;
nothing is looked up in a static table.
"""
import re
from typing import List, Optional

WCAG_PREFIX = re.compile(r"^WCAG2A{1,3}\.")
PRINCIPLE_RULE = re.compile(r"^Principle\d+\.Guideline\d+_\d+\.\d+_\d+_\d+\.(.+)$")
TECHNIQUE_ID = re.compile(r"^(ARIA|SCR|SM|SL|G|H|C|F|T)\d+$")

# longest prefixes first so SCR/SM/SL never fall into a shorter bucket
TECHNIQUE_CATEGORIES = (
    ("ARIA", "aria"),
    ("SCR", "client-side-script"),
    ("SM", "smil"),
    ("SL", "silverlight"),
    ("G", "general"),
    ("H", "html"),
    ("C", "css"),
    ("F", "failures"),
    ("T", "text"),
)


class HtmlcsRuleService:
    def __init__(self, base_url: str = "https://www.w3.org/WAI/WCAG21/Techniques"):
        self.base_url = base_url.rstrip("/")

    @property
    def fallback_url(self) -> str:
        return f"{self.base_url}/"

    def get_help_urls(self, rule_id: str) -> List[str]:
        urls = []
        for technique in self.extract_techniques(rule_id or ""):
            url = self.url_for_technique(technique)
            if url and url not in urls:
                urls.append(url)
        return urls or [self.fallback_url]

    def extract_techniques(self, rule_id: str) -> List[str]:
        normalized = WCAG_PREFIX.sub("", rule_id.strip())

        match = PRINCIPLE_RULE.match(normalized)
        if match:
            # "G1,G123,G124.NoSuchID" -> segments G1 / G123 / G124 / NoSuchID
            segments = re.split(r"[.,]", match.group(1))
        elif normalized.startswith("Principle"):
            segments = []
        else:
            # simple codes such as "H49.AlignAttr" carry at most a leading technique
            segments = normalized.split(".")[:1]

        techniques = []
        for segment in segments:
            segment = segment.strip()
            if TECHNIQUE_ID.match(segment) and segment not in techniques:
                techniques.append(segment)
        return techniques

    def url_for_technique(self, technique: str) -> Optional[str]:
        for prefix, category in TECHNIQUE_CATEGORIES:
            if technique.startswith(prefix):
                return f"{self.base_url}/{category}/{technique}"
        return None
