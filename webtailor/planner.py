"""
Command planner that converts a natural-language customization request into
an ExecutionPlan of tool actions.

Accepted response shapes:

New format:
    {"reasoning": "...", "actions": [{"tool": "...", "parameters": {...}, "reasoning": "..."}]}

Legacy format:
    {"explanation": "...", "tools": [{"function": "...", "params": {...}}]}

Planning never raises: a generation or parse failure yields an empty plan
whose reasoning explains the failure.
"""

import json
from typing import Any, Dict, List

from .errors import GenerationServiceError, PlanParseError
from .models.schemas import Action, ExecutionPlan, PageContextSnapshot
from .parsing import parse_json_response
from .prompts.planner_prompt import PLANNER_PROMPT
from .tools import ToolRegistry
from .utils.logger import get_logger


logger = get_logger(__name__)


def extract_actions(plan_json: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Extract raw action dicts from a plan dict, supporting both formats.

    Returns:
        List of ``{"tool", "parameters", "reasoning"}`` dicts, or [] if
        neither key is present.
    """
    if isinstance(plan_json.get("actions"), list):
        return [a for a in plan_json["actions"] if isinstance(a, dict)]
    if isinstance(plan_json.get("tools"), list):
        return [
            {"tool": t.get("function"), "parameters": t.get("params"), "reasoning": t.get("reasoning")}
            for t in plan_json["tools"]
            if isinstance(t, dict)
        ]
    return []


def normalize_plan(plan_json: Any) -> ExecutionPlan:
    """
    Build an ExecutionPlan from parsed planner output.

    Raises:
        PlanParseError: if *plan_json* is not a JSON object
    """
    if not isinstance(plan_json, dict):
        raise PlanParseError(json.dumps(plan_json, default=str))

    actions = []
    for raw in extract_actions(plan_json):
        tool = raw.get("tool")
        if not isinstance(tool, str) or not tool:
            logger.warning(f"[Planner] Skipping action without a tool name: {str(raw)[:120]}")
            continue
        parameters = raw.get("parameters")
        reasoning = raw.get("reasoning")
        actions.append(Action(
            tool=tool,
            parameters=parameters if isinstance(parameters, dict) else {},
            reasoning=reasoning if isinstance(reasoning, str) else None,
        ))

    reasoning = plan_json.get("reasoning") or plan_json.get("explanation") or ""
    return ExecutionPlan(reasoning=str(reasoning), actions=actions)


class CommandPlanner:
    """Asks the reasoning service for a plan over the registry's tools."""

    def __init__(self, llm, registry: ToolRegistry):
        """
        Args:
            llm:      object exposing ``async generate(prompt) -> str``
            registry: tools offered to the reasoning service
        """
        self.llm = llm
        self.registry = registry

    def build_prompt(self, command: str, snapshot: PageContextSnapshot) -> str:
        return PLANNER_PROMPT.format(
            command=command,
            url=snapshot.url,
            title=snapshot.title,
            main_content_selector=json.dumps(snapshot.structure.main_content_selector),
            theme=snapshot.theme,
            headlines="; ".join(h.text for h in snapshot.content.headlines[:2]),
            paragraph_count=len(snapshot.content.paragraphs),
            tools=self.registry.describe(),
        )

    async def plan(self, command: str, snapshot: PageContextSnapshot) -> ExecutionPlan:
        logger.info(f"[Planner] Planning command: {command[:80]!r}")
        try:
            response = await self.llm.generate(self.build_prompt(command, snapshot))
            plan = normalize_plan(parse_json_response(response))
        except (GenerationServiceError, PlanParseError) as e:
            logger.error(f"[Planner] Planning failed: {e}")
            return ExecutionPlan(
                reasoning=f"Failed to generate execution plan due to AI call error: {e}",
                actions=[],
            )

        logger.info(
            f"[Planner] {len(plan.actions)} action(s): {', '.join(a.tool for a in plan.actions) or '-'}"
        )
        return plan
