"""
Stylesheet tools for webtailor.

Provides:
  applyCSS(css, description)                 : inject CSS directly
  generateCSS(description, targetElements)   : generate CSS, inject it, return it
  hideElements(criteria | selectors)         : display:none for selected elements
  transformLayout(transformation, scope)     : generate layout CSS, inject it, return it

Every generative tool returns the concrete CSS it injected under the ``css``
key so the result can be frozen into a replayable applyCSS action.
"""

import re
from typing import Any, Dict, List, Optional

from ..parsing import clean_css_response
from ..prompts.tool_prompts import GENERATE_CSS_PROMPT, TRANSFORM_LAYOUT_PROMPT
from ..utils.logger import get_logger
from . import ToolContext, ToolDefinition
from .selection import select_elements

logger = get_logger(__name__)

_SELECTOR_LIKE = re.compile(r"^([#.]|\[|\w+)")


def hide_css(selectors: List[str]) -> str:
    """One ``display: none !important`` rule per selector."""
    return "\n".join(f"{selector} {{ display: none !important; }}" for selector in selectors)


async def _target_context(ctx: ToolContext, selectors: List[str]) -> str:
    lines = []
    for selector in selectors[:5]:
        try:
            matches = await ctx.document.query(selector)
        except ValueError:
            matches = []
        if matches:
            el = matches[0]
            lines.append(
                f'Selector "{selector}": tag: {el.tag}, classes: {" ".join(el.classes) or "none"}, '
                f'text: {el.text[:100]!r}'
            )
        else:
            lines.append(f'Selector "{selector}": (not found)')
    return "Specific Target Elements Context:\n" + "\n".join(lines)


async def _page_style_context(ctx: ToolContext) -> str:
    body = await ctx.document.body_info()
    snapshot = await ctx.page_context.get()
    return (
        "General Page Style Context:\n"
        f"Body: classes: {' '.join(body.classes) or 'none'}, color: {body.color or 'unknown'}, "
        f"background: {body.background_color or 'unknown'}.\n"
        f"Main Content Area: {snapshot.structure.main_content_selector}."
    )


async def generate_css(ctx: ToolContext, description: str, target_elements: Optional[List[str]] = None) -> str:
    """Ask the reasoning service for CSS. Generation errors propagate."""
    if target_elements:
        style_context = await _target_context(ctx, target_elements)
    else:
        style_context = await _page_style_context(ctx)
    snapshot = await ctx.page_context.get()
    prompt = GENERATE_CSS_PROMPT.format(
        description=description,
        style_context=style_context,
        theme=snapshot.theme,
    )
    return clean_css_response(await ctx.llm.generate(prompt))


async def transform_layout(ctx: ToolContext, transformation: str, scope: Optional[str] = None) -> str:
    """Ask the reasoning service for layout CSS scoped to *scope* when it is an existing selector."""
    snapshot = await ctx.page_context.get()
    target = snapshot.structure.main_content_selector

    if scope:
        if _SELECTOR_LIKE.match(scope) and await ctx.document.exists(scope):
            target = scope
        else:
            transformation = f"{transformation} (focus on scope: {scope})"

    prompt = TRANSFORM_LAYOUT_PROMPT.format(
        transformation=transformation,
        target=target,
        has_navigation=snapshot.structure.has_navigation,
        has_sidebar=snapshot.structure.has_sidebar,
        has_footer=snapshot.structure.has_footer,
        main_content_selector=snapshot.structure.main_content_selector,
    )
    return clean_css_response(await ctx.llm.generate(prompt))


# ============================================================================
# Registry helper
# ============================================================================

def make_style_tools(ctx: ToolContext) -> Dict[str, ToolDefinition]:
    """Return all stylesheet tools for ToolRegistry registration."""

    async def apply_css(params: Dict[str, Any]) -> Dict[str, Any]:
        return await ctx.styles.apply(params.get("css"), params.get("description"))

    async def generate_css_tool(params: Dict[str, Any]) -> Dict[str, Any]:
        description = params.get("description") or ""
        css = await generate_css(ctx, description, params.get("targetElements") or [])
        if not css:
            return {"css": None, "description": "No CSS generated or applied.", "applied_now": False}
        label = f"Generated CSS: {description}"
        await ctx.styles.apply(css, label)
        return {"css": css, "description": label, "applied_now": True}

    async def hide_elements(params: Dict[str, Any]) -> Dict[str, Any]:
        criteria = params.get("criteria")
        selectors = params.get("selectors")
        base = criteria or ("selected elements" if selectors else "unspecified elements")
        label = f"Hide: {base}"

        if isinstance(selectors, list):
            to_hide = [s for s in selectors if isinstance(s, str) and s.strip()]
        elif criteria:
            to_hide, _ = await select_elements(ctx, criteria, "hiding elements")
        else:
            raise ValueError("Either 'criteria' or 'selectors' must be provided for hideElements.")

        if not to_hide:
            return {"hidden_selectors": [], "css": None, "description": label,
                    "message": "No elements selected for hiding."}

        css = hide_css(to_hide)
        await ctx.styles.apply(css, label)
        return {"hidden_selectors": to_hide, "css": css, "description": label}

    async def transform_layout_tool(params: Dict[str, Any]) -> Dict[str, Any]:
        transformation = params.get("transformation") or ""
        label = f"Layout: {transformation}"
        css = await transform_layout(ctx, transformation, params.get("scope"))
        if not css:
            return {"css": None, "applied": False, "description": label}
        await ctx.styles.apply(css, label)
        return {"css": css, "applied": True, "description": label}

    return {
        "applyCSS": ToolDefinition(
            name="applyCSS",
            parameters={"css": "string", "description": "string"},
            execute=apply_css,
            description="Apply custom CSS rules to modify page styling. Use for direct styling changes.",
        ),
        "generateCSS": ToolDefinition(
            name="generateCSS",
            parameters={"description": "string", "targetElements": "array"},
            execute=generate_css_tool,
            description="Generate CSS based on a natural language description of desired style changes. "
                        "Output will be cached for future applications.",
        ),
        "hideElements": ToolDefinition(
            name="hideElements",
            parameters={"criteria": "string", "selectors": "array"},
            execute=hide_elements,
            description="Hide elements matching AI-determined criteria or specific selectors. "
                        "Generated hiding CSS will be cached.",
        ),
        "transformLayout": ToolDefinition(
            name="transformLayout",
            parameters={"transformation": "string", "scope": "string"},
            execute=transform_layout_tool,
            description="Modify page layout structure using generated CSS. "
                        "Output will be cached for future applications.",
        ),
    }
