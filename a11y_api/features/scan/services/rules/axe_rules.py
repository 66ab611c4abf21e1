from typing import List


class AxeRuleService:
    """axe rule ids are slugs on Deque University: <base>/<rule id>."""

    def __init__(self, base_url: str = "https://dequeuniversity.com/rules/axe/4.6"):
        self.base_url = base_url.rstrip("/")

    def get_help_urls(self, rule_id: str) -> List[str]:
        slug = (rule_id or "").strip().strip("/")
        if not slug:
            return [self.base_url]
        return [f"{self.base_url}/{slug}"]
