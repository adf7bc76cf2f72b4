"""
Element selection tool for webtailor.

  selectElements(criteria, context) -> {"selected": [selectors], "reasoning": str}

The reasoning service picks selectors from a pre-filtered sample of page
elements. A generation or parse failure yields an empty selection instead of
an error, so callers such as hideElements degrade to "nothing selected".
"""

from typing import Any, Dict, List, Tuple

from ..document import Element
from ..errors import GenerationServiceError, PlanParseError
from ..page_context import sample_elements
from ..parsing import parse_json_response
from ..prompts.tool_prompts import SELECT_ELEMENTS_PROMPT
from ..utils.logger import get_logger
from . import ToolContext, ToolDefinition

logger = get_logger(__name__)

# (criteria keywords, element predicate); first matching keyword group wins
_KEYWORD_FILTERS = [
    (("headline", "title", "heading"),
     lambda el: el.tag in ("h1", "h2", "h3", "h4", "h5", "h6")
     or _has(el, "title", "headline") or "title" in el.id.lower()),
    (("ad", "advertisement", "sponsor"),
     lambda el: _has(el, "ad", "advertisement", "sponsor") or "ad" in el.id.lower()),
    (("navigation", "menu"),
     lambda el: el.tag == "nav" or "menu" in el.id.lower() or _has(el, "menu", "nav")),
    (("sidebar", "aside"),
     lambda el: el.tag == "aside" or "sidebar" in el.id.lower() or _has(el, "sidebar", "side")),
    (("button", "link"),
     lambda el: el.tag in ("button", "a") or _has(el, "button") or el.role in ("button", "link")),
    (("image", "picture"),
     lambda el: el.tag in ("img", "picture")),
    (("form", "input", "search"),
     lambda el: el.tag in ("form", "input") or _has(el, "search")
     or "search" in el.id.lower() or el.role == "search"),
]


def _has(el: Element, *needles: str) -> bool:
    classes = " ".join(el.classes).lower()
    return any(n in classes for n in needles)


def relevant_elements(elements: List[Element], criteria: str) -> List[Element]:
    """Narrow a page sample to elements plausibly matching *criteria*."""
    if not criteria:
        return elements[:50]

    needle = criteria.lower()
    for keywords, predicate in _KEYWORD_FILTERS:
        if any(k in needle for k in keywords):
            filtered = [el for el in elements if predicate(el)]
            break
    else:
        filtered = [
            el for el in elements
            if needle in el.text.lower() or needle in " ".join(el.classes).lower() or needle in el.id.lower()
        ]
    return filtered[:50] if filtered else elements[:30]


def _describe(el: Element) -> str:
    return (
        f"- Selector: {el.selector}, Text: \"{el.text[:60]}...\", Tag: {el.tag}, "
        f"Classes: {' '.join(el.classes)}, ID: {el.id or 'none'}"
    )


async def select_elements(ctx: ToolContext, criteria: str, context: str = "") -> Tuple[List[str], str]:
    """Ask the reasoning service for selectors matching *criteria*. Never raises on generation failure."""
    snapshot = await ctx.page_context.get()
    sample = relevant_elements(await sample_elements(ctx.document), criteria)[:20]
    prompt = SELECT_ELEMENTS_PROMPT.format(
        criteria=criteria,
        context=context,
        url=snapshot.url,
        title=snapshot.title,
        elements="\n".join(_describe(el) for el in sample)
        or "No specific elements pre-filtered, consider common tags for the criteria.",
    )

    try:
        result = parse_json_response(await ctx.llm.generate(prompt))
    except (GenerationServiceError, PlanParseError) as e:
        logger.error(f"[Tool:selectElements] Selection failed: {e}")
        return [], f"Selection failed: {e}"

    if not isinstance(result, dict) or not isinstance(result.get("selected"), list):
        logger.warning(f"[Tool:selectElements] Response without 'selected' array: {str(result)[:200]}")
        return [], "No valid selection returned."

    selected = [s for s in result["selected"] if isinstance(s, str) and s.strip()]
    logger.info(f"[Tool:selectElements] criteria={criteria!r} -> {len(selected)} selector(s)")
    return selected, str(result.get("reasoning") or "")


# ============================================================================
# Registry helper
# ============================================================================

def make_selection_tools(ctx: ToolContext) -> Dict[str, ToolDefinition]:
    """Return the selection tool for ToolRegistry registration."""

    async def select_elements_tool(params: Dict[str, Any]) -> Dict[str, Any]:
        selected, reasoning = await select_elements(ctx, params.get("criteria") or "", params.get("context") or "")
        return {"selected": selected, "reasoning": reasoning}

    return {
        "selectElements": ToolDefinition(
            name="selectElements",
            parameters={"criteria": "string", "context": "string"},
            execute=select_elements_tool,
            description="Intelligently select DOM elements based on natural language criteria. "
                        "Usually a sub-step for other tools.",
        ),
    }
