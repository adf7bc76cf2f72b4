"""
Helpers for turning free-form generation output into JSON, CSS or prose.
"""

import json
import re
from typing import Any

from .errors import PlanParseError
from .utils.logger import get_logger

logger = get_logger(__name__)

# byte-order mark and zero-width space
_INVISIBLE = re.compile("[%s%s]" % (chr(0xFEFF), chr(0x200B)))
_JSON_FENCE = re.compile(r"```json\s*([\s\S]*?)\s*```")
_ANY_FENCE = re.compile(r"```\s*([\s\S]*?)\s*```")
_OUTER_BRACES = re.compile(r"\{[\s\S]*\}")


def strip_invisible(text: str) -> str:
    """Drop byte-order marks and zero-width spaces."""
    return _INVISIBLE.sub("", text or "")


def parse_json_response(response: str) -> Any:
    """
    Parse a JSON payload out of a generation response.

    Order: ```json fence, generic ``` fence, whole text, then the outermost
    ``{...}`` span.

    Raises:
        PlanParseError: if nothing parses
    """
    text = strip_invisible(response).strip()
    candidate = text
    match = _JSON_FENCE.search(text) or _ANY_FENCE.search(text)
    if match:
        candidate = match.group(1)

    try:
        return json.loads(candidate)
    except json.JSONDecodeError as error:
        logger.warning(f"[Parsing] Initial JSON parse failed ({error}); trying brace extraction")

    braces = _OUTER_BRACES.search(text)
    if braces:
        try:
            return json.loads(braces.group(0))
        except json.JSONDecodeError as error:
            logger.error(f"[Parsing] Extracted JSON still invalid: {error}")

    raise PlanParseError(text)


def clean_css_response(response: str) -> str:
    """Remove markdown fences the model may wrap around CSS."""
    return strip_invisible(response).replace("```css", "").replace("```", "").strip()


def clean_text_response(response: str) -> str:
    """Remove a surrounding pair of quotes from a prose response."""
    return re.sub(r"^[\"']|[\"']$", "", strip_invisible(response).strip()).strip()
