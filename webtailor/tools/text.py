"""
Text tools for webtailor.

  modifyText(selectors, transformType, instructions)
  summarizeContent(selectors, length)

Both are generative and produce no stylesheet, so they are replayed as-is
(re-invoking generation) on later loads.
"""

from typing import Any, Dict, List

from ..errors import GenerationServiceError
from ..page_context import extract_paragraphs, find_main_content_selector
from ..parsing import clean_text_response
from ..prompts.tool_prompts import SUMMARIZE_PROMPT, TRANSFORM_TEXT_PROMPT
from ..utils.logger import get_logger
from . import ToolContext, ToolDefinition

logger = get_logger(__name__)

MIN_TRANSFORM_CHARS = 10
MAX_TRANSFORM_CHARS = 3000
MIN_SUMMARY_CHARS = 100
MAX_SUMMARY_CHARS = 15000


async def transform_text(ctx: ToolContext, text: str, transform_type: str, instructions: str) -> str:
    if len(text) > MAX_TRANSFORM_CHARS:
        text = text[:MAX_TRANSFORM_CHARS] + "... (truncated)"
    prompt = TRANSFORM_TEXT_PROMPT.format(text=text, transform_type=transform_type, instructions=instructions)
    return clean_text_response(await ctx.llm.generate(prompt))


async def modify_text(ctx: ToolContext, selectors: List[str], transform_type: str, instructions: str) -> Dict[str, Any]:
    """Rewrite the text of every element matched by *selectors*; a failing selector is skipped."""
    if not selectors:
        return {"modified_count": 0, "modifications": [], "message": "No selectors provided for text modification."}

    modifications = []
    for selector in selectors:
        try:
            elements = await ctx.document.query(selector)
            if not elements:
                logger.warning(f"[Tool:modifyText] No elements for selector: {selector}")
                continue

            for el in elements:
                original = el.text.strip()
                if len(original) < MIN_TRANSFORM_CHARS:
                    continue
                if (el.attributes.get("data-ai-modified") == "true"
                        and el.attributes.get("data-ai-transform-type") == transform_type):
                    continue

                transformed = await transform_text(ctx, original, transform_type, instructions)
                if transformed and transformed != original:
                    await ctx.document.replace_text(selector, el.index, transformed, transform_type)
                    modifications.append({
                        "selector": selector,
                        "original_text": original,
                        "transformed_text": transformed,
                    })
        except (ValueError, GenerationServiceError) as e:
            logger.warning(f"[Tool:modifyText] Skipping selector {selector!r}: {e}")

    count = len(modifications)
    return {"modified_count": count, "modifications": modifications, "message": f"Modified {count} element(s)."}


async def _summary_source(ctx: ToolContext, selectors: List[str]) -> str:
    if selectors:
        chunks = []
        for selector in selectors:
            try:
                chunks.extend(el.text.strip() for el in await ctx.document.query(selector))
            except ValueError:
                logger.warning(f"[Tool:summarizeContent] Invalid selector: {selector}")
        return "\n\n".join(chunks)

    main = await ctx.document.query(await find_main_content_selector(ctx.document))
    if main:
        return main[0].text.strip()
    return "\n\n".join(p.text for p in await extract_paragraphs(ctx.document))


async def summarize_content(ctx: ToolContext, selectors: List[str], length: str = "medium") -> Dict[str, Any]:
    """Summarize the selected text, or the main content when no selectors are given."""
    text = await _summary_source(ctx, selectors)
    if len(text) < MIN_SUMMARY_CHARS:
        return {"summary": "Not enough content to summarize or content not found.", "original_length": len(text)}

    text = text[:MAX_SUMMARY_CHARS]
    summary = (await ctx.llm.generate(SUMMARIZE_PROMPT.format(length=length, text=text))).strip()
    return {"summary": summary, "original_length": len(text), "summarized_length": len(summary)}


# ============================================================================
# Registry helper
# ============================================================================

def make_text_tools(ctx: ToolContext) -> Dict[str, ToolDefinition]:
    """Return the text tools for ToolRegistry registration."""

    async def modify_text_tool(params: Dict[str, Any]) -> Dict[str, Any]:
        return await modify_text(
            ctx,
            params.get("selectors") or [],
            params.get("transformType") or "rephrase",
            params.get("instructions") or "",
        )

    async def summarize_tool(params: Dict[str, Any]) -> Dict[str, Any]:
        return await summarize_content(ctx, params.get("selectors") or [], params.get("length") or "medium")

    return {
        "modifyText": ToolDefinition(
            name="modifyText",
            parameters={"selectors": "array", "transformType": "string", "instructions": "string"},
            execute=modify_text_tool,
            description="Transform text content of specified elements using AI "
                        "(e.g., summarize, de-clickbait, simplify). Applied dynamically on each load.",
        ),
        "summarizeContent": ToolDefinition(
            name="summarizeContent",
            parameters={"selectors": "array", "length": "string"},
            execute=summarize_tool,
            description="Summarize the main content of the page or specific elements. "
                        "Applied dynamically on each load.",
        ),
    }
