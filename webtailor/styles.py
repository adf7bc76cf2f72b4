"""
Stylesheet injection and the per-session AppliedStyleSet.

The applied set holds description keys of CSS blocks already injected into the
current document session. It is never persisted and is only cleared by a
full reset.
"""

import re
import time
from typing import Any, Dict, List, Optional

from .document import Document
from .utils.logger import get_logger

logger = get_logger(__name__)

# Descriptions with these prefixes come from generative tools and may be re-injected
DYNAMIC_PREFIXES = ("Generated CSS:", "Layout:", "Hide:")

_SANITIZERS = [
    (re.compile(r"<style[\s\S]*?</style>", re.IGNORECASE), ""),
    (re.compile(r"<script[\s\S]*?</script>", re.IGNORECASE), ""),
    (re.compile(r"url\s*\(\s*['\"]?\s*javascript:", re.IGNORECASE), "url(/*javascript:*/"),
    (re.compile(r"(?<!/\*)javascript:", re.IGNORECASE), "/*javascript:*/"),
    (re.compile(r"expression\s*\(", re.IGNORECASE), "/*expression(*/"),
    (re.compile(r"@import", re.IGNORECASE), "/*@import*/"),
]


def sanitize_css(css: Any) -> str:
    """Strip markup and neutralise script-capable constructs from generated CSS."""
    if not css or not isinstance(css, str):
        return ""
    sanitized = css
    for pattern, replacement in _SANITIZERS:
        sanitized = pattern.sub(replacement, sanitized)
    return sanitized.strip()


class StyleManager:
    """Injects CSS blocks into a document and tracks them in the AppliedStyleSet."""

    def __init__(self, document: Document):
        self.document = document
        self._applied: List[str] = []  # insertion-ordered set of description keys

    @property
    def applied_keys(self) -> List[str]:
        return list(self._applied)

    def is_applied(self, key: str) -> bool:
        return key in self._applied

    async def apply(self, css: Any, description: Optional[str] = None) -> Dict[str, Any]:
        """
        Inject *css* under *description*.

        Static descriptions already applied in this session are not injected
        twice; dynamic ones (generated, layout, hide) always are.

        Returns:
            {"applied_in_this_call", "already_applied_session", "description", "final_css"|"message"}
        """
        clean = sanitize_css(css)
        description = description or ""
        key = description or f"css-{int(time.time() * 1000) % 10000}"

        if not clean:
            return {
                "applied_in_this_call": False,
                "already_applied_session": False,
                "description": description,
                "message": "No CSS to apply (empty or sanitized).",
            }

        if key in self._applied and not description.startswith(DYNAMIC_PREFIXES):
            logger.debug(f"[StyleManager] '{key}' already applied this session")
            return {
                "applied_in_this_call": False,
                "already_applied_session": True,
                "description": description,
                "message": "CSS with this description was already applied in this session.",
            }

        await self.document.append_style(f"\n/* AI Customization: {description} */\n{clean}\n")
        if key not in self._applied:
            self._applied.append(key)
        logger.info(f"[StyleManager] Applied CSS: {description[:80]!r}")
        return {
            "applied_in_this_call": True,
            "already_applied_session": False,
            "description": description,
            "final_css": clean,
        }

    async def reset(self) -> None:
        """Empty the style element and forget every applied key."""
        await self.document.clear_style()
        self._applied.clear()
