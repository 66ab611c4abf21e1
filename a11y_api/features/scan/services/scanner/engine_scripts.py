"""
Loading of the in-page rule engine sources (HTML_CodeSniffer, axe-core).

Sources are fetched once per process and cached; an http(s) location is
downloaded with httpx, anything else is read from disk.
"""
import logging
from functools import lru_cache
from pathlib import Path

import httpx

logger = logging.getLogger(__name__)

# Shared JS helpers prepended to every runner. Runners are executed with
# execute_async_script, so the last argument is the completion callback.
DOM_HELPERS_JS = r"""
function __a11yCssPath(el) {
  if (!el || el.nodeType !== 1) { return 'html'; }
  var parts = [];
  while (el && el.nodeType === 1) {
    var tag = el.nodeName.toLowerCase();
    if (el.id && document.querySelectorAll('#' + CSS.escape(el.id)).length === 1) {
      parts.unshift('#' + CSS.escape(el.id));
      break;
    }
    if (tag === 'html' || tag === 'body') {
      parts.unshift(tag);
    } else {
      var index = 1;
      var sibling = el;
      while ((sibling = sibling.previousElementSibling)) { index++; }
      parts.unshift(tag + ':nth-child(' + index + ')');
    }
    el = el.parentElement;
  }
  return parts.join(' > ');
}
function __a11yContext(el) {
  if (!el || el.nodeType !== 1) { return null; }
  var html = el.outerHTML || '';
  return html.length > 300 ? html.slice(0, 300) + '...' : html;
}
"""


@lru_cache(maxsize=8)
def load_engine_source(location: str) -> str:
    if location.startswith(("http://", "https://")):
        logger.info(f"Downloading rule engine script from {location}")
        response = httpx.get(location, timeout=30.0, follow_redirects=True)
        response.raise_for_status()
        return response.text

    logger.info(f"Reading rule engine script from {location}")
    return Path(location).read_text(encoding="utf-8")
